"""
Data-access context.

Subscribes to every store collection, keeps each one materialised as an
ordered in-memory list and exposes typed accessors plus the write functions
for every entity. Constructed explicitly and handed to whoever needs it;
start() opens the subscriptions and stop() releases them.
"""
import copy
import threading
from functools import partial
from typing import Callable, Dict, List, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from ..config import settings
from ..schemas.forms import CustomForm
from ..schemas.inventory import Product, StockLog
from ..schemas.projects import Project
from ..schemas.records import IPMRecord
from ..schemas.remarks import Remark
from ..schemas.users import User, UserRole
from ..storage.provider import COLLECTIONS, Snapshot, StoreProvider
from .time_rules import epoch_ms


logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

DEFAULT_ADMIN_KEY = "admin_default"


class DataContext:
    def __init__(self, provider: StoreProvider):
        self.provider = provider
        self._lock = threading.RLock()
        self._lists: Dict[str, List[dict]] = {c: [] for c in COLLECTIONS}
        self._loaded: set = set()
        self._unsubscribers: List[Callable[[], None]] = []

    # ---- lifecycle ----
    def start(self) -> "DataContext":
        if self._unsubscribers:
            return self
        for collection in COLLECTIONS:
            unsub = self.provider.subscribe(collection, partial(self._on_snapshot, collection))
            self._unsubscribers.append(unsub)
        logger.info("data_context_started", collections=len(COLLECTIONS))
        return self

    def stop(self) -> None:
        for unsub in self._unsubscribers:
            unsub()
        self._unsubscribers = []
        with self._lock:
            self._loaded.clear()
        logger.info("data_context_stopped")

    @property
    def started(self) -> bool:
        return bool(self._unsubscribers)

    @property
    def loading(self) -> bool:
        with self._lock:
            return len(self._loaded) < len(COLLECTIONS)

    def __enter__(self) -> "DataContext":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()

    def _on_snapshot(self, collection: str, snap: Snapshot) -> None:
        items = [{"key": k, **v} for k, v in snap]
        with self._lock:
            self._lists[collection] = items
            self._loaded.add(collection)

    # ---- reads ----
    def raw(self, collection: str) -> List[dict]:
        with self._lock:
            return copy.deepcopy(self._lists[collection])

    def _parse(self, collection: str, model: Type[M]) -> List[M]:
        out: List[M] = []
        for item in self.raw(collection):
            try:
                out.append(model.model_validate(item))
            except ValidationError as e:
                # malformed nodes are skipped rather than failing the whole list
                logger.warning("store_node_invalid", collection=collection, key=item.get("key"), errors=e.error_count())
        return out

    @property
    def users(self) -> List[User]:
        return self._parse("users", User)

    @property
    def projects(self) -> List[Project]:
        return self._parse("projects", Project)

    @property
    def records(self) -> List[IPMRecord]:
        return self._parse("records", IPMRecord)

    @property
    def remarks(self) -> List[Remark]:
        return self._parse("remarks", Remark)

    @property
    def custom_forms(self) -> List[CustomForm]:
        return self._parse("customForms", CustomForm)

    @property
    def products(self) -> List[Product]:
        return self._parse("products", Product)

    @property
    def stock_logs(self) -> List[StockLog]:
        return self._parse("stockLogs", StockLog)

    def _find(self, items: List[M], key: Optional[str]) -> Optional[M]:
        if not key:
            return None
        for item in items:
            if getattr(item, "key", None) == key:
                return item
        return None

    def get_user(self, key: Optional[str]) -> Optional[User]:
        return self._find(self.users, key)

    def get_project(self, key: Optional[str]) -> Optional[Project]:
        return self._find(self.projects, key)

    def get_record(self, key: Optional[str]) -> Optional[IPMRecord]:
        return self._find(self.records, key)

    def get_custom_form(self, key: Optional[str]) -> Optional[CustomForm]:
        return self._find(self.custom_forms, key)

    def get_product(self, key: Optional[str]) -> Optional[Product]:
        return self._find(self.products, key)

    def get_remark(self, key: Optional[str]) -> Optional[Remark]:
        return self._find(self.remarks, key)

    def get_stock_log(self, key: Optional[str]) -> Optional[StockLog]:
        return self._find(self.stock_logs, key)

    # ---- write primitives ----
    def _create(self, collection: str, data: dict) -> str:
        payload = {**data, "createdAt": epoch_ms()}
        payload.pop("key", None)
        key = self.provider.push(collection, payload)
        logger.info("store_write", collection=collection, op="create", key=key)
        return key

    def _update(self, collection: str, key: str, data: dict) -> str:
        payload = {**data, "updatedAt": epoch_ms()}
        payload.pop("key", None)
        self.provider.update(collection, key, payload)
        logger.info("store_write", collection=collection, op="update", key=key)
        return key

    def _save(self, collection: str, data: dict, key: Optional[str]) -> str:
        if key:
            return self._update(collection, key, data)
        return self._create(collection, data)

    def _remove(self, collection: str, key: str) -> None:
        self.provider.remove(collection, key)
        logger.info("store_write", collection=collection, op="delete", key=key)

    # ---- users ----
    def save_user(self, data: dict, key: Optional[str] = None) -> str:
        return self._save("users", data, key)

    def delete_user(self, key: str) -> None:
        self._remove("users", key)

    # ---- projects ----
    def save_project(self, data: dict, key: Optional[str] = None) -> str:
        return self._save("projects", data, key)

    def delete_project(self, key: str) -> None:
        self._remove("projects", key)

    # ---- records (append/delete only) ----
    def save_record(self, data: dict) -> str:
        return self._create("records", data)

    def delete_record(self, key: str) -> None:
        self._remove("records", key)

    # ---- remarks (append/delete only) ----
    def save_remark(self, data: dict) -> str:
        return self._create("remarks", data)

    def delete_remark(self, key: str) -> None:
        self._remove("remarks", key)

    # ---- custom forms ----
    def save_custom_form(self, data: dict, key: Optional[str] = None) -> str:
        return self._save("customForms", data, key)

    def delete_custom_form(self, key: str) -> None:
        self._remove("customForms", key)

    # ---- inventory products ----
    def save_product(self, data: dict, key: Optional[str] = None) -> str:
        payload = dict(data)
        if key:
            # the opening balance is fixed at creation
            payload.pop("openingStock", None)
            payload.pop("opening_stock", None)
            return self._update("products", key, payload)
        return self._create("products", payload)

    def delete_product(self, key: str) -> int:
        """
        Delete a product and every stock log that references it.

        The log cascade is a single batched delete read from the store itself,
        so re-running it after a partial failure removes whatever is left and
        is a no-op once nothing references the product.

        Returns:
            Number of stock logs removed
        """
        self._remove("products", key)
        log_keys = [k for k, v in self.provider.snapshot("stockLogs") if v.get("productKey") == key]
        if log_keys:
            self.provider.remove_many("stockLogs", log_keys)
        logger.info("product_cascade_delete", key=key, logs=len(log_keys))
        return len(log_keys)

    # ---- stock logs (append/delete only) ----
    def save_stock_log(self, data: dict) -> str:
        return self._create("stockLogs", data)

    def delete_stock_log(self, key: str) -> None:
        self._remove("stockLogs", key)

    # ---- default admin ----
    def ensure_admin(self) -> bool:
        """
        Provision the default administrator when no admin-role 'admin' user exists.

        Returns:
            True if the default admin was written
        """
        username = settings.default_admin_username
        for _key, u in self.provider.snapshot("users"):
            if u.get("username") == username and u.get("role") == UserRole.admin.value:
                return False
        self.provider.set("users", DEFAULT_ADMIN_KEY, {
            "empId": "ADM001",
            "name": "Administrator",
            "username": username,
            "password": settings.default_admin_password,
            "role": UserRole.admin.value,
            "projects": [],
            "active": True,
            "createdAt": epoch_ms(),
        })
        logger.info("default_admin_provisioned", key=DEFAULT_ADMIN_KEY)
        return True

    # ---- backup ----
    def export_collections(self, *collections: str) -> Dict[str, List[dict]]:
        return {c: self.raw(c) for c in collections}
