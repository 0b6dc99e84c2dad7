"""Command-line entry point."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from catalog_pipeline.config import ConfigurationError, settings
from catalog_pipeline.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-pipeline",
        description="Scrape supplier stock and product detail into a reconciled catalog",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Scrape both sites, reconcile and export")
    reconcile_parser = subparsers.add_parser("reconcile", help="Export the catalog from the cache only")
    for sub in (run_parser, reconcile_parser):
        sub.add_argument(
            "--products",
            default=None,
            help=f"Product list CSV (default: {settings.products_file})",
        )
        sub.add_argument(
            "--output-dir",
            default=None,
            help=f"Directory for the CSV and JSON artifacts (default: {settings.output_dir})",
        )

    sync_parser = subparsers.add_parser("sync", help="Push cached stock into the storefront database")
    sync_parser.add_argument(
        "--cache",
        default=None,
        help=f"Cache file (default: {settings.cache_file})",
    )

    subparsers.add_parser("schedule", help="Run the cron scheduler in the foreground")
    return parser


async def _serve_scheduler() -> None:
    from catalog_pipeline.worker.scheduler import setup_scheduler

    scheduler = setup_scheduler()
    scheduler.start()
    logger.info("Scheduler started")
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()
        logger.info("Scheduler stopped")


async def dispatch(args: argparse.Namespace) -> None:
    if args.command == "run":
        from catalog_pipeline.worker.tasks import run_pipeline

        csv_path, json_path = await run_pipeline(args.products, args.output_dir)
        logger.info(f"Catalog written to {csv_path} and {json_path}")

    elif args.command == "reconcile":
        from catalog_pipeline.worker.tasks import export_from_cache

        csv_path, json_path = await export_from_cache(args.products, args.output_dir)
        logger.info(f"Catalog written to {csv_path} and {json_path}")

    elif args.command == "sync":
        from catalog_pipeline.db.session import dispose_engine
        from catalog_pipeline.worker.product_sync import run_product_sync

        try:
            await run_product_sync(args.cache)
        finally:
            await dispose_engine()

    elif args.command == "schedule":
        await _serve_scheduler()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        asyncio.run(dispatch(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    except Exception:
        logger.exception(f"{args.command} failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
