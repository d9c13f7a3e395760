"""
SQL-backed store provider.
Persists the key-value tree in the store_nodes table and fans out snapshots
to in-process subscribers after each committed write.
"""
import threading
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.orm import Session, sessionmaker

from ..models.models import StoreNode
from .provider import StoreProvider, Snapshot, new_key


class SqlStoreProvider(StoreProvider):
    def __init__(self, session_factory: Optional[sessionmaker] = None):
        super().__init__()
        if session_factory is None:
            from ..db import SessionLocal
            session_factory = SessionLocal
        self._session_factory = session_factory
        # serialise writes so fan-out order matches commit order
        self._write_lock = threading.RLock()

    def _session(self) -> Session:
        return self._session_factory()

    def _find(self, db: Session, collection: str, key: str) -> Optional[StoreNode]:
        return db.query(StoreNode).filter(StoreNode.collection == collection, StoreNode.key == key).first()

    def push(self, collection: str, data: dict) -> str:
        self._check(collection)
        key = new_key()
        with self._write_lock:
            db = self._session()
            try:
                db.add(StoreNode(collection=collection, key=key, data=dict(data)))
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        self._notify(collection)
        return key

    def set(self, collection: str, key: str, data: dict) -> None:
        self._check(collection)
        with self._write_lock:
            db = self._session()
            try:
                node = self._find(db, collection, key)
                if node is None:
                    db.add(StoreNode(collection=collection, key=key, data=dict(data)))
                else:
                    node.data = dict(data)
                    node.updated_at = datetime.now(timezone.utc)
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        self._notify(collection)

    def update(self, collection: str, key: str, fields: dict) -> None:
        self._check(collection)
        with self._write_lock:
            db = self._session()
            try:
                node = self._find(db, collection, key)
                if node is None:
                    return
                # reassign so the JSON column is flagged dirty
                node.data = {**(node.data or {}), **fields}
                node.updated_at = datetime.now(timezone.utc)
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        self._notify(collection)

    def remove(self, collection: str, key: str) -> None:
        self.remove_many(collection, [key])

    def remove_many(self, collection: str, keys: Iterable[str]) -> None:
        self._check(collection)
        keys = list(keys)
        if not keys:
            return
        with self._write_lock:
            db = self._session()
            try:
                deleted = (
                    db.query(StoreNode)
                    .filter(StoreNode.collection == collection, StoreNode.key.in_(keys))
                    .delete(synchronize_session=False)
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        if deleted:
            self._notify(collection)

    def snapshot(self, collection: str) -> Snapshot:
        self._check(collection)
        db = self._session()
        try:
            rows = (
                db.query(StoreNode)
                .filter(StoreNode.collection == collection)
                .order_by(StoreNode.seq.asc())
                .all()
            )
            return [(r.key, dict(r.data or {})) for r in rows]
        finally:
            db.close()
