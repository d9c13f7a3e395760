"""
Backend store interface.

The store is a schema-less key-value tree: each top-level collection maps a
generated key to a JSON object. Readers subscribe to a collection and receive
the full snapshot on subscribe and again after every write to it.
"""
import copy
import threading
import uuid
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import structlog


COLLECTIONS = (
    "users",
    "projects",
    "records",
    "remarks",
    "customForms",
    "products",
    "stockLogs",
)

Snapshot = List[Tuple[str, dict]]
Listener = Callable[[Snapshot], None]

logger = structlog.get_logger(__name__)


class StoreError(ValueError):
    pass


def new_key() -> str:
    return uuid.uuid4().hex


class StoreProvider:
    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {c: [] for c in COLLECTIONS}
        self._listeners_lock = threading.RLock()

    # ---- writes ----
    def push(self, collection: str, data: dict) -> str:
        raise NotImplementedError

    def set(self, collection: str, key: str, data: dict) -> None:
        raise NotImplementedError

    def update(self, collection: str, key: str, fields: dict) -> None:
        raise NotImplementedError

    def remove(self, collection: str, key: str) -> None:
        raise NotImplementedError

    def remove_many(self, collection: str, keys: Iterable[str]) -> None:
        raise NotImplementedError

    # ---- reads ----
    def snapshot(self, collection: str) -> Snapshot:
        raise NotImplementedError

    def get(self, collection: str, key: str) -> Optional[dict]:
        for k, v in self.snapshot(collection):
            if k == key:
                return v
        return None

    def subscribe(self, collection: str, listener: Listener) -> Callable[[], None]:
        self._check(collection)
        with self._listeners_lock:
            self._listeners[collection].append(listener)
        self._deliver(collection, listener, self.snapshot(collection))

        def _unsubscribe() -> None:
            with self._listeners_lock:
                try:
                    self._listeners[collection].remove(listener)
                except ValueError:
                    pass

        return _unsubscribe

    def close(self) -> None:
        with self._listeners_lock:
            for c in self._listeners:
                self._listeners[c] = []

    # ---- helpers ----
    def _check(self, collection: str) -> None:
        if collection not in COLLECTIONS:
            raise StoreError(f"Unknown collection: {collection}")

    def _notify(self, collection: str) -> None:
        with self._listeners_lock:
            targets = list(self._listeners[collection])
        if not targets:
            return
        snap = self.snapshot(collection)
        for listener in targets:
            self._deliver(collection, listener, copy.deepcopy(snap))

    def _deliver(self, collection: str, listener: Listener, snap: Snapshot) -> None:
        try:
            listener(snap)
        except Exception as e:
            # one failing subscriber must not starve the others
            logger.warning("store_subscriber_failed", collection=collection, error=str(e))
