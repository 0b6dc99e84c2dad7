"""APScheduler job definitions."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from catalog_pipeline.config import settings
from catalog_pipeline.worker.product_sync import run_product_sync
from catalog_pipeline.worker.tasks import run_pipeline

logger = logging.getLogger(__name__)


async def scheduled_product_sync() -> None:
    """Cron job wrapper: a failed sync is logged, the scheduler keeps running."""
    try:
        await run_product_sync()
    except Exception:
        logger.exception("Scheduled product sync failed")


async def scheduled_pipeline_run() -> None:
    try:
        csv_path, json_path = await run_pipeline()
        logger.info(f"Scheduled pipeline run wrote {csv_path} and {json_path}")
    except Exception:
        logger.exception("Scheduled pipeline run failed")


def setup_scheduler() -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    Scheduling overview:
    - Cache to storefront sync at settings.sync_cron (daily 3 AM by default)
    - Full pipeline run at settings.pipeline_cron, when set

    Returns:
        Configured scheduler instance
    """
    timezone = settings.scheduler_timezone
    scheduler = AsyncIOScheduler(timezone=timezone)

    scheduler.add_job(
        scheduled_product_sync,
        CronTrigger.from_crontab(settings.sync_cron, timezone=timezone),
        id="product_sync",
        name="Sync cached stock to storefront products",
        max_instances=1,  # Prevent overlapping runs
        coalesce=True,
        replace_existing=True,
    )

    if settings.pipeline_cron:
        scheduler.add_job(
            scheduled_pipeline_run,
            CronTrigger.from_crontab(settings.pipeline_cron, timezone=timezone),
            id="pipeline_run",
            name="Scrape, reconcile and export the catalog",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=600,
            replace_existing=True,
        )

    logger.info(
        "Scheduler configured: product sync at '%s', pipeline %s (timezone %s)",
        settings.sync_cron,
        f"at '{settings.pipeline_cron}'" if settings.pipeline_cron else "disabled",
        timezone,
    )

    return scheduler
