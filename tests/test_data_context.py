import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ipmhub.db import create_store_tables
from ipmhub.services.data_context import DEFAULT_ADMIN_KEY, DataContext
from ipmhub.storage.factory import get_store_provider
from ipmhub.storage.memory_provider import MemoryStoreProvider
from ipmhub.storage.provider import StoreError
from ipmhub.storage.sql_provider import SqlStoreProvider


def test_loading_until_every_collection_delivered(provider):
    context = DataContext(provider)
    assert context.loading
    context.start()
    assert not context.loading
    assert context.started
    context.stop()
    assert not context.started


def test_create_and_update_stamp_timestamps(ctx):
    key = ctx.save_project({"code": "C1", "name": "Site", "client": "X"})
    project = ctx.get_project(key)
    assert project.created_at
    assert project.updated_at is None
    ctx.save_project({"name": "Renamed"}, key)
    project = ctx.get_project(key)
    assert project.name == "Renamed"
    assert project.code == "C1"
    assert project.updated_at


def test_unknown_fields_survive_round_trip(ctx):
    key = ctx.save_user({"name": "A", "username": "a", "password": "x", "role": "staff", "nickname": "Ace"})
    assert ctx.raw("users")[0]["nickname"] == "Ace"
    assert ctx.get_user(key).to_store()["nickname"] == "Ace"


def test_dangling_lookups_return_none(ctx):
    assert ctx.get_user("missing") is None
    assert ctx.get_project(None) is None


def test_opening_stock_is_fixed_at_creation(ctx):
    key = ctx.save_product({"name": "Delta", "openingStock": 100, "minStock": 500})
    ctx.save_product({"name": "Delta EC", "openingStock": 999}, key)
    product = ctx.get_product(key)
    assert product.opening_stock == 100
    assert product.name == "Delta EC"


def test_delete_product_cascades_to_its_logs_and_is_idempotent(ctx):
    a = ctx.save_product({"name": "A"})
    b = ctx.save_product({"name": "B"})
    for qty in (10, 20, 30):
        ctx.save_stock_log({"productKey": a, "type": "add", "qty": qty, "date": "2024-03-01"})
    ctx.save_stock_log({"productKey": b, "type": "add", "qty": 5, "date": "2024-03-01"})

    assert ctx.delete_product(a) == 3
    assert ctx.get_product(a) is None
    assert [l.product_key for l in ctx.stock_logs] == [b]

    assert ctx.delete_product(a) == 0
    assert len(ctx.stock_logs) == 1


def test_ensure_admin_writes_default_once(ctx):
    assert ctx.ensure_admin() is True
    admin = ctx.get_user(DEFAULT_ADMIN_KEY)
    assert admin.username == "admin"
    assert admin.role.value == "admin"
    assert admin.emp_id == "ADM001"
    assert ctx.ensure_admin() is False
    assert len(ctx.users) == 1


def test_invalid_nodes_are_skipped(provider, ctx):
    provider.push("stockLogs", {"type": "add", "qty": 1})
    ctx.save_stock_log({"productKey": "p", "type": "add", "qty": 2})
    assert [l.qty for l in ctx.stock_logs] == [2]


def test_failing_subscriber_does_not_block_others(provider, ctx):
    def broken(_snap):
        raise RuntimeError("boom")

    provider.subscribe("remarks", broken)
    ctx.save_remark({"text": "hello"})
    assert [r.text for r in ctx.remarks] == ["hello"]


def test_unsubscribe_stops_delivery():
    provider = MemoryStoreProvider()
    seen = []
    unsubscribe = provider.subscribe("users", seen.append)
    provider.push("users", {"name": "a"})
    unsubscribe()
    provider.push("users", {"name": "b"})
    assert len(seen) == 2
    assert len(seen[-1]) == 1


def test_unknown_collection_rejected():
    with pytest.raises(StoreError):
        MemoryStoreProvider().push("invoices", {})
    with pytest.raises(StoreError):
        get_store_provider("redis")


def test_remove_missing_key_is_noop():
    provider = MemoryStoreProvider()
    seen = []
    provider.subscribe("records", seen.append)
    provider.remove("records", "nope")
    assert len(seen) == 1


@pytest.fixture
def sql_provider(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'store.db'}", connect_args={"check_same_thread": False})
    create_store_tables(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    yield SqlStoreProvider(factory)
    engine.dispose()


def test_sql_provider_persists_and_fans_out(sql_provider):
    with DataContext(sql_provider) as context:
        first = context.save_project({"code": "A", "name": "One", "client": "X"})
        second = context.save_project({"code": "B", "name": "Two", "client": "Y"})
        context.save_project({"name": "Uno"}, first)
        assert [p.name for p in context.projects] == ["Uno", "Two"]
        context.delete_project(second)
        assert [p.key for p in context.projects] == [first]


def test_sql_provider_cascade_delete(sql_provider):
    with DataContext(sql_provider) as context:
        product = context.save_product({"name": "A", "openingStock": 10})
        for qty in (1, 2):
            context.save_stock_log({"productKey": product, "type": "usage", "qty": qty})
        assert context.delete_product(product) == 2
        assert context.stock_logs == []
        assert context.delete_product(product) == 0


def test_sql_provider_update_missing_key_is_noop(sql_provider):
    sql_provider.update("users", "ghost", {"name": "x"})
    assert sql_provider.snapshot("users") == []
