import pytest
from fastapi.testclient import TestClient

from notes_service.config import Settings
from notes_service.main import create_app
from notes_service.storage.kv_backend import MemoryBackend
from notes_service.utils.jwt_auth import create_access_token


@pytest.fixture()
def settings(tmp_path):
    return Settings(data_dir=tmp_path, jwt_secret="dev-secret-for-tests")


@pytest.fixture()
def client(settings):
    # fresh backend per test
    app = create_app(settings, backend=MemoryBackend())
    return TestClient(app)


@pytest.fixture()
def auth(settings):
    def _headers(owner_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(owner_id, settings)}"}

    return _headers
