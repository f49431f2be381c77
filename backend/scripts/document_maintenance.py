#!/usr/bin/env python
"""Operational chores for generated documents.

Subcommands:
  cleanup-local   [--max-age-hours 24]   delete stale temp PDFs from DOCUMENT_OUTPUT_DIR
  cleanup-remote  [--max-age-hours 168]  delete stale objects from the storage bucket
  ensure-bucket                          create the document bucket if missing
  stats                                  print local and bucket statistics
  retry <document_id>                    re-run generation for one tracking row
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import asdict

from orderdocs.config.settings import get_settings
from orderdocs.context import AppContext
from orderdocs.utils.formatting import use_host_locale

logger = logging.getLogger("document_maintenance")
logging.basicConfig(level=logging.INFO, format="[document_maintenance] %(message)s")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Document storage maintenance")
    sub = parser.add_subparsers(dest="command", required=True)

    local = sub.add_parser("cleanup-local", help="remove old local PDFs")
    local.add_argument("--max-age-hours", type=int, default=24)

    remote = sub.add_parser("cleanup-remote", help="remove old bucket objects")
    remote.add_argument("--max-age-hours", type=int, default=168)
    remote.add_argument("--folder", default="documents")

    sub.add_parser("ensure-bucket", help="create the bucket if it does not exist")
    sub.add_parser("stats", help="show local and bucket statistics")

    retry = sub.add_parser("retry", help="retry one document")
    retry.add_argument("document_id")
    return parser


async def run(args: argparse.Namespace, ctx: AppContext) -> int:
    if args.command == "cleanup-local":
        removed = ctx.pdf_generator.cleanup_old_files(args.max_age_hours)
        logger.info("Removed %d local file(s)", removed)
        return 0

    if args.command == "cleanup-remote":
        removed = await ctx.storage.cleanup_old_files(args.folder, args.max_age_hours)
        logger.info("Removed %d object(s) from %s/%s", removed, ctx.settings.storage.bucket, args.folder)
        return 0

    if args.command == "ensure-bucket":
        result = await ctx.storage.ensure_bucket()
        if not result.success:
            logger.error("Bucket check failed: %s", result.error)
            return 1
        logger.info("Bucket %s is ready", ctx.settings.storage.bucket)
        return 0

    if args.command == "stats":
        report = {
            "local": ctx.pdf_generator.get_service_stats(),
            "storage": asdict(await ctx.storage.get_storage_stats()),
        }
        print(json.dumps(report, indent=2, default=str))
        return 0

    if args.command == "retry":
        result = await ctx.documents.retry_document(args.document_id)
        print(json.dumps(result.to_payload(), indent=2))
        return 0 if result.success else 1

    raise ValueError(f"Unknown command: {args.command}")


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    use_host_locale()
    ctx = AppContext.create(get_settings())
    try:
        return await run(args, ctx)
    finally:
        await ctx.aclose()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(asyncio.run(main()))
