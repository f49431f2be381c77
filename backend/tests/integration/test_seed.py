import pytest
from sqlalchemy import select

from orderdocs.config.settings import Settings
from orderdocs.models.database import Order, OrderDocument
from orderdocs.seed import DatabaseSeeder, SeedingNotAllowed

pytestmark = [pytest.mark.integration]


def test_seeding_refused_in_production(database):
    with pytest.raises(SeedingNotAllowed):
        DatabaseSeeder(database, Settings.load({"APP_ENV": "production"}))


@pytest.mark.asyncio
async def test_create_test_order_defaults(seeder):
    order = await seeder.create_test_order()
    assert order.order_number.startswith("TEST-")
    assert order.company_name == "Test Company"
    assert float(order.subtotal) == 100
    assert float(order.addon_total) == 25
    assert float(order.total) == 125
    assert order.status == "pending"


@pytest.mark.asyncio
async def test_ensure_catalog_is_idempotent(seeder):
    first = await seeder.ensure_catalog()
    second = await seeder.ensure_catalog()
    assert len(first["products"]) == 2
    assert len(first["addons"]) == 1
    assert sorted(first["products"]) == sorted(second["products"])


@pytest.mark.asyncio
async def test_complete_scenario_and_cleanup(seeder, database):
    scenario = await seeder.create_complete_test_scenario()
    order = scenario["order"]
    assert len(scenario["items"]) == 2
    assert scenario["documents"]["receipt"].webhook_event_id == scenario["webhook_event"].id

    stats = await seeder.get_database_stats()
    assert stats["orders"] == 1
    assert stats["order_items"] == 2
    assert stats["order_addons"] == 1
    assert stats["order_documents"] == 2
    assert stats["order_communications"] == 1
    assert stats["webhook_events"] == 1

    removed = await seeder.cleanup_test_data()
    assert removed == 1
    stats = await seeder.get_database_stats()
    assert all(count == 0 for count in stats.values())

    async with database.session() as db:
        assert (await db.execute(select(Order).where(Order.id == order.id))).first() is None
        assert (await db.execute(select(OrderDocument))).first() is None


@pytest.mark.asyncio
async def test_cleanup_only_named_orders(seeder):
    keep = await seeder.create_test_order()
    drop = await seeder.create_test_order(order_number="TEST-drop")
    assert await seeder.cleanup_test_data([drop.id]) == 1
    assert (await seeder.get_database_stats())["orders"] == 1
    assert keep.id != drop.id


@pytest.mark.asyncio
async def test_verify_schema(seeder):
    result = await seeder.verify_schema()
    assert all(result.values())
    assert "order_documents" in result


@pytest.mark.asyncio
async def test_verify_schema_reports_missing_tables(seeder, database):
    await database.drop_tables()
    result = await seeder.verify_schema()
    assert not any(result.values())
    await database.create_tables()
