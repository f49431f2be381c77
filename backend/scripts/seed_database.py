#!/usr/bin/env python
"""Seed catalog rows and, optionally, a complete test order scenario.

Only runs when APP_ENV is development or test. Tables are created first if
missing (no migrations in this service).

Usage:
  python scripts/seed_database.py              # catalog + one scenario
  python scripts/seed_database.py --catalog-only
  python scripts/seed_database.py --cleanup    # remove TEST- orders
"""
from __future__ import annotations

import argparse
import asyncio
import logging

from orderdocs.config.database import Database
from orderdocs.config.settings import get_settings
from orderdocs.seed import DatabaseSeeder

logger = logging.getLogger("seed_database")
logging.basicConfig(level=logging.INFO, format="[seed_database] %(message)s")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the order documents database")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--catalog-only", action="store_true", help="only insert products and addons")
    group.add_argument("--cleanup", action="store_true", help="delete TEST- orders and their rows")
    return parser.parse_args(argv)


async def main(argv=None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    database = Database.from_settings(settings.database)
    try:
        await database.create_tables()
        seeder = DatabaseSeeder(database, settings)

        if args.cleanup:
            removed = await seeder.cleanup_test_data()
            logger.info("Removed %d test order(s)", removed)
            return

        catalog = await seeder.ensure_catalog()
        logger.info("Catalog ready: %d product(s), %d addon(s)",
                    len(catalog["products"]), len(catalog["addons"]))
        if args.catalog_only:
            return

        scenario = await seeder.create_complete_test_scenario()
        order = scenario["order"]
        logger.info("Order:         %s (%s)", order.order_number, order.id)
        logger.info("Receipt row:   %s", scenario["documents"]["receipt"].id)
        logger.info("Pick slip row: %s", scenario["documents"]["pick_slip"].id)
        logger.info("Webhook event: %s", scenario["webhook_event"].id)
        logger.info("Table counts:  %s", await seeder.get_database_stats())
    finally:
        await database.dispose()


if __name__ == "__main__":  # pragma: no cover
    try:
        asyncio.run(main())
    except Exception as e:  # noqa: BLE001
        logger.error("Seeding failed: %s", e)
        raise
