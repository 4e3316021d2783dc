from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from typing import Any, Optional, Protocol

Item = dict[str, Any]

PARTITION_ATTR = "pk"
SORT_ATTR = "sk"


@dataclass(frozen=True)
class Key:
    partition: str
    sort: str

    def to_dict(self) -> dict[str, str]:
        return {PARTITION_ATTR: self.partition, SORT_ATTR: self.sort}

    @classmethod
    def of(cls, item: Item) -> "Key":
        return cls(partition=item[PARTITION_ATTR], sort=item[SORT_ATTR])


@dataclass(frozen=True)
class QueryPage:
    items: list[Item]
    # None when the partition has no items past the last one returned
    last_evaluated_key: Optional[dict[str, str]]


class ConditionalCheckFailed(Exception):
    """A conditional write found the item missing, present, or different."""

    def __init__(self, key: Key, current: Optional[Item] = None):
        self.key = key
        self.current = current
        super().__init__(f"Condition failed for {key.sort}")


class KeyValueBackend(Protocol):
    def put_item(self, item: Item, if_not_exists: bool = False) -> None: ...

    def get_item(self, key: Key) -> Optional[Item]: ...

    def query(
        self,
        partition: str,
        limit: int,
        exclusive_start_key: Optional[dict[str, str]] = None,
    ) -> QueryPage: ...

    def update_item(
        self,
        key: Key,
        set_fields: dict[str, Any],
        expected: Optional[dict[str, Any]] = None,
        increment: Optional[dict[str, int]] = None,
    ) -> Item: ...

    def delete_item(self, key: Key) -> None: ...


def check_expected(key: Key, current: Optional[Item], expected: Optional[dict[str, Any]]) -> None:
    if current is None:
        raise ConditionalCheckFailed(key)
    for name, value in (expected or {}).items():
        if current.get(name) != value:
            raise ConditionalCheckFailed(key, current=copy.deepcopy(current))


def apply_update(current: Item, set_fields: dict[str, Any], increment: Optional[dict[str, int]]) -> Item:
    updated = dict(current)
    updated.update(copy.deepcopy(set_fields))
    for name, delta in (increment or {}).items():
        updated[name] = int(updated.get(name, 0)) + delta
    return updated


def page_after(sort_keys: list[str], limit: int, exclusive_start_key: Optional[dict[str, str]]) -> tuple[list[str], bool]:
    """Slice sorted sort keys strictly after the start key; report whether more remain."""
    keys = sorted(sort_keys)
    if exclusive_start_key is not None:
        start = exclusive_start_key.get(SORT_ATTR, "")
        keys = [k for k in keys if k > start]
    return keys[:limit], len(keys) > limit


class MemoryBackend:
    """Process-local backend. Items are copied in and out so callers never share state."""

    def __init__(self) -> None:
        self._partitions: dict[str, dict[str, Item]] = {}
        self._lock = threading.Lock()

    def put_item(self, item: Item, if_not_exists: bool = False) -> None:
        key = Key.of(item)
        with self._lock:
            partition = self._partitions.setdefault(key.partition, {})
            if if_not_exists and key.sort in partition:
                raise ConditionalCheckFailed(key, current=copy.deepcopy(partition[key.sort]))
            partition[key.sort] = copy.deepcopy(item)

    def get_item(self, key: Key) -> Optional[Item]:
        with self._lock:
            item = self._partitions.get(key.partition, {}).get(key.sort)
            return copy.deepcopy(item) if item is not None else None

    def query(
        self,
        partition: str,
        limit: int,
        exclusive_start_key: Optional[dict[str, str]] = None,
    ) -> QueryPage:
        with self._lock:
            items = self._partitions.get(partition, {})
            selected, more = page_after(list(items), limit, exclusive_start_key)
            out = [copy.deepcopy(items[sk]) for sk in selected]
        last = Key.of(out[-1]).to_dict() if more and out else None
        return QueryPage(items=out, last_evaluated_key=last)

    def update_item(
        self,
        key: Key,
        set_fields: dict[str, Any],
        expected: Optional[dict[str, Any]] = None,
        increment: Optional[dict[str, int]] = None,
    ) -> Item:
        with self._lock:
            partition = self._partitions.get(key.partition, {})
            current = partition.get(key.sort)
            check_expected(key, current, expected)
            updated = apply_update(current, set_fields, increment)
            partition[key.sort] = updated
            return copy.deepcopy(updated)

    def delete_item(self, key: Key) -> None:
        with self._lock:
            partition = self._partitions.get(key.partition)
            if partition is not None:
                partition.pop(key.sort, None)
