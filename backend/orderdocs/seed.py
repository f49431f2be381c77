"""Fixture data for development databases and tests.

Everything here writes through the same models as the service. Orders created
by ``create_test_order`` carry a ``TEST-`` order number so that
``cleanup_test_data`` can find them again; dependent rows go with them through
the ``ON DELETE CASCADE`` foreign keys.
"""
from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, inspect, select

from .config.database import Database
from .config.settings import Settings
from .models.database import (
    Addon,
    CommunicationStatus,
    DocumentStatus,
    Order,
    OrderAddon,
    OrderCommunication,
    OrderDocument,
    OrderItem,
    OrderStatus,
    Product,
    WebhookEvent,
    WebhookStatus,
)

logger = logging.getLogger(__name__)

ALLOWED_ENVIRONMENTS = ("development", "test")
TEST_ORDER_PREFIX = "TEST-"

CATALOG_PRODUCTS: List[Dict[str, Any]] = [
    {
        "name": "Mixed Variety",
        "type": "starter",
        "price_per_bundle": Decimal("30.00"),
        "description": "Our Standard Harvest",
        "features": ["12+ Month Maturity", "Gold & Green Varieties", "Certified Organic", "Harvested to Order"],
    },
    {
        "name": "Golden",
        "type": "premium",
        "price_per_bundle": Decimal("40.00"),
        "description": "Selectively Harvested",
        "features": ["18+ Month Maturity", "Pure Gold Cane", "Certified Organic", "Harvested to Order"],
    },
]

CATALOG_ADDONS: List[Dict[str, Any]] = [
    {
        "name": "Delivery & Disposal",
        "description": "Full service delivery and pulp disposal.",
        "price": Decimal("99.00"),
        "requirements": "Must be within 50 miles of 92003",
    },
]

SCHEMA_TABLES = (
    "orders",
    "order_items",
    "order_addons",
    "products",
    "addons",
    "order_documents",
    "order_communications",
    "webhook_events",
)

STATS_MODELS = (Order, OrderItem, OrderAddon, OrderDocument, OrderCommunication, WebhookEvent)


class SeedingNotAllowed(RuntimeError):
    """Raised when seeding is attempted outside development/test."""


def _ms() -> int:
    return int(time.time() * 1000)


class DatabaseSeeder:
    """Create and remove fixture rows. Refuses to run against production."""

    def __init__(self, database: Database, settings: Settings):
        if settings.app_env not in ALLOWED_ENVIRONMENTS:
            raise SeedingNotAllowed(
                "Database seeding can only be used in development/test environment"
            )
        self.database = database
        self.settings = settings

    async def ensure_catalog(self) -> Dict[str, List[str]]:
        """Insert catalog products/addons missing by name; return all their ids."""
        async with self.database.session() as db:
            existing_products = {p.name: p for p in (await db.execute(select(Product))).scalars()}
            for spec in CATALOG_PRODUCTS:
                if spec["name"] not in existing_products:
                    product = Product(**spec)
                    db.add(product)
                    existing_products[product.name] = product

            existing_addons = {a.name: a for a in (await db.execute(select(Addon))).scalars()}
            for spec in CATALOG_ADDONS:
                if spec["name"] not in existing_addons:
                    addon = Addon(**spec)
                    db.add(addon)
                    existing_addons[addon.name] = addon

            await db.flush()
            return {
                "products": [p.id for p in existing_products.values()],
                "addons": [a.id for a in existing_addons.values()],
            }

    async def create_test_order(self, **overrides: Any) -> Order:
        values: Dict[str, Any] = {
            "order_number": f"{TEST_ORDER_PREFIX}{_ms()}",
            "company_name": "Test Company",
            "contact_name": "Test Contact",
            "email": "test@example.com",
            "phone": "555-0123",
            "business_address": "123 Test St",
            "city": "Test City",
            "state": "CA",
            "zip_code": "90210",
            "po_number": "PO-TEST-123",
            "special_instructions": "Test order for development",
            "subtotal": Decimal("100.00"),
            "addon_total": Decimal("25.00"),
            "total": Decimal("125.00"),
            "status": OrderStatus.PENDING.value,
        }
        values.update(overrides)
        async with self.database.session() as db:
            order = Order(**values)
            db.add(order)
            await db.flush()
        logger.debug("Created test order %s (%s)", order.order_number, order.id)
        return order

    async def create_test_order_items(self, order_id: str, item_count: int = 2) -> List[OrderItem]:
        """Attach one item per catalog product, quantities 1..n."""
        await self.ensure_catalog()
        async with self.database.session() as db:
            result = await db.execute(select(Product).order_by(Product.name).limit(item_count))
            products = list(result.scalars())
            if not products:
                raise LookupError("No products found for test order items")
            items = []
            for index, product in enumerate(products, start=1):
                item = OrderItem(
                    order_id=order_id,
                    product_id=product.id,
                    quantity=index,
                    unit_price=product.price_per_bundle,
                    total_price=product.price_per_bundle * index,
                )
                db.add(item)
                items.append(item)
            await db.flush()
        return items

    async def create_test_order_item(self, order_id: str, product_name: str, quantity: int,
                                     unit_price: Optional[Decimal] = None,
                                     custom_description: Optional[str] = None) -> OrderItem:
        """Attach a single item for the named catalog product."""
        await self.ensure_catalog()
        async with self.database.session() as db:
            product = (await db.execute(select(Product).where(Product.name == product_name))).scalar_one()
            price = product.price_per_bundle if unit_price is None else Decimal(str(unit_price))
            item = OrderItem(
                order_id=order_id,
                product_id=product.id,
                quantity=quantity,
                unit_price=price,
                total_price=price * quantity,
                custom_description=custom_description,
            )
            db.add(item)
            await db.flush()
        return item

    async def create_test_order_addon(self, order_id: str) -> OrderAddon:
        await self.ensure_catalog()
        async with self.database.session() as db:
            addon = (await db.execute(select(Addon).limit(1))).scalar_one_or_none()
            if addon is None:
                raise LookupError("No addons found for test order addon")
            order_addon = OrderAddon(order_id=order_id, addon_id=addon.id, price=addon.price)
            db.add(order_addon)
            await db.flush()
        return order_addon

    async def create_test_document(self, order_id: str, document_type: str,
                                   status: str = DocumentStatus.PENDING.value,
                                   webhook_event_id: Optional[str] = None) -> OrderDocument:
        async with self.database.session() as db:
            document = OrderDocument(
                order_id=order_id,
                document_type=document_type,
                status=status,
                webhook_event_id=webhook_event_id,
                metadata_={"test": True},
            )
            db.add(document)
            await db.flush()
        return document

    async def create_test_communication(self, order_id: str, communication_type: str,
                                        status: str = CommunicationStatus.PENDING.value,
                                        webhook_event_id: Optional[str] = None) -> OrderCommunication:
        async with self.database.session() as db:
            communication = OrderCommunication(
                order_id=order_id,
                communication_type=communication_type,
                recipient_email="test@example.com",
                subject=f"Test {communication_type} email",
                status=status,
                webhook_event_id=webhook_event_id,
                metadata_={"test": True},
            )
            db.add(communication)
            await db.flush()
        return communication

    async def create_test_webhook_event(self, order_id: str, event_type: str = "order_created",
                                        status: str = WebhookStatus.PENDING.value) -> WebhookEvent:
        async with self.database.session() as db:
            event = WebhookEvent(
                event_type=event_type,
                table_name="orders",
                record_id=order_id,
                payload={
                    "type": "INSERT",
                    "table": "orders",
                    "record": {"id": order_id},
                    "event_id": f"test-{_ms()}",
                    "test": True,
                },
                status=status,
            )
            db.add(event)
            await db.flush()
        return event

    async def create_complete_test_scenario(self) -> Dict[str, Any]:
        """Order with items, an addon, generated documents, a sent confirmation and its event."""
        order = await self.create_test_order()
        items = await self.create_test_order_items(order.id)
        addon = await self.create_test_order_addon(order.id)
        event = await self.create_test_webhook_event(order.id, status=WebhookStatus.COMPLETED.value)
        receipt = await self.create_test_document(order.id, "receipt", DocumentStatus.GENERATED.value, event.id)
        pick_slip = await self.create_test_document(order.id, "pick_slip", DocumentStatus.GENERATED.value, event.id)
        confirmation = await self.create_test_communication(
            order.id, "confirmation", CommunicationStatus.SENT.value, event.id
        )
        logger.info("Created test scenario for order %s", order.order_number)
        return {
            "order": order,
            "items": items,
            "addon": addon,
            "documents": {"receipt": receipt, "pick_slip": pick_slip},
            "communications": {"confirmation": confirmation},
            "webhook_event": event,
        }

    async def cleanup_test_data(self, order_ids: Optional[Iterable[str]] = None) -> int:
        """Delete the given orders (default: every ``TEST-`` order) and their events.

        Returns the number of orders removed.
        """
        async with self.database.session() as db:
            query = select(Order.id)
            if order_ids is None:
                query = query.where(Order.order_number.like(f"{TEST_ORDER_PREFIX}%"))
            else:
                query = query.where(Order.id.in_(list(order_ids)))
            ids = list((await db.execute(query)).scalars())
            if not ids:
                return 0
            await db.execute(
                delete(WebhookEvent).where(WebhookEvent.table_name == "orders", WebhookEvent.record_id.in_(ids))
            )
            await db.execute(delete(Order).where(Order.id.in_(ids)))
        logger.info("Removed %d test orders", len(ids))
        return len(ids)

    async def verify_schema(self) -> Dict[str, bool]:
        """Map each expected table to whether it exists."""
        async with self.database.engine.connect() as conn:
            present = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
        results = {table: table in present for table in SCHEMA_TABLES}
        missing = [table for table, ok in results.items() if not ok]
        if missing:
            logger.error("Schema verification failed, missing tables: %s", ", ".join(missing))
        return results

    async def get_database_stats(self) -> Dict[str, int]:
        stats: Dict[str, int] = {}
        async with self.database.session() as db:
            for model in STATS_MODELS:
                count = await db.scalar(select(func.count()).select_from(model))
                stats[model.__tablename__] = int(count or 0)
        return stats


__all__ = ["DatabaseSeeder", "SeedingNotAllowed", "CATALOG_PRODUCTS", "CATALOG_ADDONS"]
