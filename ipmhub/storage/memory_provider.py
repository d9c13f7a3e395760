"""
In-process store provider.
Keeps the key-value tree in dictionaries; used for tests and single-process dev runs.
"""
import copy
import threading
from typing import Dict, Iterable, Optional

from .provider import StoreProvider, Snapshot, new_key


class MemoryStoreProvider(StoreProvider):
    """Dict-backed store. Insertion order is the snapshot order."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, dict]]] = None):
        super().__init__()
        self._lock = threading.RLock()
        self._tree: Dict[str, Dict[str, dict]] = {c: {} for c in self._listeners}
        for collection, children in (initial or {}).items():
            self._check(collection)
            self._tree[collection] = copy.deepcopy(dict(children))

    def push(self, collection: str, data: dict) -> str:
        self._check(collection)
        key = new_key()
        with self._lock:
            self._tree[collection][key] = copy.deepcopy(data)
        self._notify(collection)
        return key

    def set(self, collection: str, key: str, data: dict) -> None:
        self._check(collection)
        with self._lock:
            self._tree[collection][key] = copy.deepcopy(data)
        self._notify(collection)

    def update(self, collection: str, key: str, fields: dict) -> None:
        self._check(collection)
        with self._lock:
            node = self._tree[collection].get(key)
            if node is None:
                return
            node.update(copy.deepcopy(fields))
        self._notify(collection)

    def remove(self, collection: str, key: str) -> None:
        self._check(collection)
        with self._lock:
            removed = self._tree[collection].pop(key, None)
        if removed is not None:
            self._notify(collection)

    def remove_many(self, collection: str, keys: Iterable[str]) -> None:
        self._check(collection)
        changed = False
        with self._lock:
            for key in list(keys):
                if self._tree[collection].pop(key, None) is not None:
                    changed = True
        if changed:
            self._notify(collection)

    def snapshot(self, collection: str) -> Snapshot:
        self._check(collection)
        with self._lock:
            return [(k, copy.deepcopy(v)) for k, v in self._tree[collection].items()]

    def dump(self) -> Dict[str, Dict[str, dict]]:
        with self._lock:
            return copy.deepcopy(self._tree)
