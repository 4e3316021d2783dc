import base64
import json
import os
import threading
from pathlib import Path
from typing import Any, Optional

from notes_service.errors import StorageUnavailable
from notes_service.storage.kv_backend import (
    ConditionalCheckFailed,
    Item,
    Key,
    QueryPage,
    apply_update,
    check_expected,
    page_after,
)


def encode_segment(value: str) -> str:
    # url-safe base64 never yields "/" or "..", so keys cannot escape the data dir
    if not value:
        raise ValueError("Empty key segment")
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii").rstrip("=")


def decode_segment(name: str) -> str:
    padded = name + "=" * (-len(name) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.flush()
        os.fsync(f.fileno())
    tmp_path.replace(path)


class FileBackend:
    """One JSON document per item: <base_dir>/<partition>/<sort>.json."""

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self._lock = threading.Lock()

    def _partition_dir(self, partition: str) -> Path:
        return self.base_dir / encode_segment(partition)

    def _item_path(self, key: Key) -> Path:
        return self._partition_dir(key.partition) / f"{encode_segment(key.sort)}.json"

    def _read(self, path: Path) -> Optional[Item]:
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def put_item(self, item: Item, if_not_exists: bool = False) -> None:
        key = Key.of(item)
        path = self._item_path(key)
        try:
            with self._lock:
                if if_not_exists:
                    current = self._read(path)
                    if current is not None:
                        raise ConditionalCheckFailed(key, current=current)
                _atomic_write_json(path, item)
        except OSError as e:
            raise StorageUnavailable() from e

    def get_item(self, key: Key) -> Optional[Item]:
        try:
            return self._read(self._item_path(key))
        except OSError as e:
            raise StorageUnavailable() from e

    def query(
        self,
        partition: str,
        limit: int,
        exclusive_start_key: Optional[dict[str, str]] = None,
    ) -> QueryPage:
        directory = self._partition_dir(partition)
        try:
            if not directory.exists():
                return QueryPage(items=[], last_evaluated_key=None)
            sort_keys = [decode_segment(p.stem) for p in directory.glob("*.json")]
            selected, more = page_after(sort_keys, limit, exclusive_start_key)
            items = []
            for sk in selected:
                item = self._read(self._item_path(Key(partition, sk)))
                # deleted between listing and reading
                if item is not None:
                    items.append(item)
        except OSError as e:
            raise StorageUnavailable() from e
        # resume after what was selected, even if some of it vanished before the read
        last = Key(partition, selected[-1]).to_dict() if more and selected else None
        return QueryPage(items=items, last_evaluated_key=last)

    def update_item(
        self,
        key: Key,
        set_fields: dict[str, Any],
        expected: Optional[dict[str, Any]] = None,
        increment: Optional[dict[str, int]] = None,
    ) -> Item:
        path = self._item_path(key)
        try:
            with self._lock:
                current = self._read(path)
                check_expected(key, current, expected)
                updated = apply_update(current, set_fields, increment)
                _atomic_write_json(path, updated)
                return updated
        except OSError as e:
            raise StorageUnavailable() from e

    def delete_item(self, key: Key) -> None:
        try:
            with self._lock:
                self._item_path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable() from e
