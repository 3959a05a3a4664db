# read_state.py
"""
Per-browser read-state ledger for announcements.

Values live in a plain mutable mapping. In the web app the seen set and the
last-viewed instant sit in a `read_ledgers` row whose id is kept in the
browser's session cookie, so the ledger follows the browser, survives across
logins, and can grow without pushing the cookie past its size limit. The
small site flag stays in the session itself. In tests the mapping is a dict.
Each value is stored as a JSON string and parsed back through a TypedKey,
which falls back to its default when the stored value is missing or corrupt.
"""

import json
import logging
import time
from dataclasses import dataclass
from collections.abc import MutableMapping
from typing import Any, Callable, Generic, Iterable, Optional, Set, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class TypedKey(Generic[T]):
    name: str
    default: Callable[[], T]
    parse: Callable[[Any], T]


class KeyValueStore:
    def __init__(self, backing: MutableMapping):
        self.backing = backing

    def get(self, key: TypedKey[T]) -> T:
        raw = self.backing.get(key.name)
        if raw is None:
            return key.default()
        try:
            return key.parse(json.loads(raw))
        except (TypeError, ValueError) as e:
            logging.warning(f"Discarding unreadable value for '{key.name}': {e}")
            return key.default()

    def set(self, key: TypedKey[T], value: T, encode: Callable[[T], Any] = lambda v: v):
        self.backing[key.name] = json.dumps(encode(value))

    def clear(self, key: TypedKey):
        self.backing.pop(key.name, None)


def _parse_id_set(value) -> Set[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError("expected a list of ids")
    return set(value)


def _parse_instant(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("expected epoch milliseconds")
    return float(value)


def _parse_flag(value) -> bool:
    if not isinstance(value, bool):
        raise ValueError("expected true/false")
    return value


SEEN_ANNOUNCEMENTS = TypedKey('seen_announcements', set, _parse_id_set)
LAST_ANNOUNCEMENT_VIEW = TypedKey('last_announcement_view', float, _parse_instant)
SITE_AUTHENTICATED = TypedKey('site_authenticated', bool, _parse_flag)


class ReadStateTracker:
    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def get_seen_ids(self) -> Set[str]:
        return self.kv.get(SEEN_ANNOUNCEMENTS)

    def mark_seen(self, ids: Iterable[str]):
        seen = self.get_seen_ids()
        merged = seen | {str(i) for i in ids if i}
        if merged != seen:
            self.kv.set(SEEN_ANNOUNCEMENTS, merged, encode=sorted)

    def is_new(self, announcement) -> bool:
        return announcement.id not in self.get_seen_ids()

    def count_new(self, announcements) -> int:
        seen = self.get_seen_ids()
        return sum(1 for a in announcements if a.id not in seen)

    def last_viewed(self) -> float:
        """Epoch milliseconds of the last board visit, 0 if never."""
        return self.kv.get(LAST_ANNOUNCEMENT_VIEW)

    def touch_last_viewed(self):
        self.kv.set(LAST_ANNOUNCEMENT_VIEW, time.time() * 1000)


class RowBackedMapping(MutableMapping):
    """One row of a RowStore table seen as a mapping of column name to stored text."""

    def __init__(self, store, table: str, row_id: str):
        self.store = store
        self.table = table
        self.row_id = row_id
        self._row: Optional[dict] = None

    def _load(self) -> dict:
        if self._row is None:
            self._row = self.store.get(self.table, self.row_id) or {}
        return self._row

    def __getitem__(self, name):
        value = self._load().get(name) if name != 'id' else None
        if value is None:
            raise KeyError(name)
        return value

    def __setitem__(self, name, value):
        if self.store.update(self.table, self.row_id, {name: value}) is None:
            self.store.insert(self.table, {'id': self.row_id, name: value})
        self._row = None

    def __delitem__(self, name):
        if name not in self:
            raise KeyError(name)
        self.store.update(self.table, self.row_id, {name: None})
        self._row = None

    def __iter__(self):
        return iter([k for k, v in self._load().items() if k != 'id' and v is not None])

    def __len__(self):
        return len(list(iter(self)))
