import boto3
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from moto import mock_aws

from notes_service.config import Settings
from notes_service.errors import StorageUnavailable
from notes_service.main import build_backend
from notes_service.services.validation import NotePatch, ValidatedNote
from notes_service.storage.dynamo_backend import DynamoBackend
from notes_service.storage.kv_backend import ConditionalCheckFailed, Key
from notes_service.storage.notes_store import Conflict, IdCollision, Note, NotesStore, NotFound

TABLE = "notes-test"


@pytest.fixture()
def aws(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    with mock_aws():
        boto3.client("dynamodb", region_name="us-east-1").create_table(
            TableName=TABLE,
            KeySchema=[
                {"AttributeName": "pk", "KeyType": "HASH"},
                {"AttributeName": "sk", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "pk", "AttributeType": "S"},
                {"AttributeName": "sk", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        yield


@pytest.fixture()
def backend(aws):
    return DynamoBackend.from_settings(TABLE, region_name="us-east-1")


def _valid(title="Groceries"):
    return ValidatedNote(title=title, content="milk", tags=["home"])


def test_build_backend_selects_dynamodb(aws):
    backend = build_backend(Settings(storage_backend="dynamodb", table_name=TABLE, aws_region="us-east-1"))
    assert isinstance(backend, DynamoBackend)
    assert backend.table.name == TABLE


def test_create_and_get_round_trip(backend):
    store = NotesStore(backend)
    created = store.create("u1", _valid())

    fetched = store.get("u1", created.id)
    assert fetched == created
    assert isinstance(fetched.version, int)
    assert store.get("u2", created.id) == NotFound(owner_id="u2", note_id=created.id)


def test_guarded_put_reports_existing_item(backend):
    store = NotesStore(backend, id_factory=lambda: "fixed")
    assert isinstance(store.create("u1", _valid(title="first")), Note)

    assert store.create("u1", _valid(title="second")) == IdCollision(note_id="fixed")
    assert store.get("u1", "fixed").title == "first"

    with pytest.raises(ConditionalCheckFailed) as exc:
        backend.put_item({"pk": "USER#u1", "sk": "NOTE#fixed"}, if_not_exists=True)
    assert exc.value.current["title"] == "first"


def test_list_pages_one_at_a_time(backend):
    ids = iter(["a", "b", "c"])
    store = NotesStore(backend, id_factory=lambda: next(ids))
    for title in ("n1", "n2", "n3"):
        store.create("u1", _valid(title=title))
    store.create("u2", ValidatedNote(title="other", content="x"))

    seen, cursor = [], None
    for _ in range(3):
        page = store.list("u1", limit=1, cursor=cursor)
        assert len(page.items) == 1
        seen.extend(n.id for n in page.items)
        cursor = page.next_cursor
    assert seen == ["a", "b", "c"]
    assert cursor is None


def test_full_last_page_has_no_cursor(backend):
    store = NotesStore(backend)
    for title in ("n1", "n2"):
        store.create("u1", _valid(title=title))

    page = store.list("u1", limit=2)
    assert len(page.items) == 2
    assert page.next_cursor is None


def test_partial_update_bumps_version(backend):
    store = NotesStore(backend)
    created = store.create("u1", _valid())

    updated = store.update("u1", created.id, NotePatch(tags=[]))
    assert updated.tags == []
    assert updated.title == created.title
    assert updated.version == 2

    pinned = store.update("u1", created.id, NotePatch(title="v3"), expected_version=2)
    assert pinned.version == 3


def test_stale_version_is_a_conflict(backend):
    store = NotesStore(backend)
    created = store.create("u1", _valid())
    store.update("u1", created.id, NotePatch(title="v2"))

    result = store.update("u1", created.id, NotePatch(title="stale"), expected_version=1)
    assert result == Conflict(note_id=created.id, expected_version=1, actual_version=2)
    assert store.get("u1", created.id).title == "v2"


def test_update_missing_note_is_not_found_and_creates_nothing(backend):
    store = NotesStore(backend)
    assert store.update("u1", "nope", NotePatch(title="x")) == NotFound(owner_id="u1", note_id="nope")
    assert backend.get_item(Key("USER#u1", "NOTE#nope")) is None


def test_delete_is_idempotent(backend):
    store = NotesStore(backend)
    created = store.create("u1", _valid())
    store.delete("u1", created.id)
    store.delete("u1", created.id)
    assert isinstance(store.get("u1", created.id), NotFound)


class _UnreachableTable:
    name = TABLE

    def _fail(self, **kwargs):
        raise EndpointConnectionError(endpoint_url="http://localhost:1")

    put_item = get_item = query = update_item = delete_item = _fail


class _ThrottledTable(_UnreachableTable):
    def _fail(self, **kwargs):
        raise ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "UpdateItem",
        )

    put_item = get_item = query = update_item = delete_item = _fail


@pytest.mark.parametrize("table", [_UnreachableTable(), _ThrottledTable()])
def test_client_failures_surface_as_storage_unavailable(table):
    backend = DynamoBackend(table)
    key = Key("USER#u1", "NOTE#1")
    calls = [
        lambda: backend.put_item(key.to_dict(), if_not_exists=True),
        lambda: backend.get_item(key),
        lambda: backend.query("USER#u1", limit=5),
        lambda: backend.update_item(key, {"title": "t"}, increment={"version": 1}),
        lambda: backend.delete_item(key),
    ]
    for call in calls:
        with pytest.raises(StorageUnavailable):
            call()
