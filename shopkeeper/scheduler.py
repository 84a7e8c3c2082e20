"""Scheduled restocking of every persisted shop."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class RestockScheduler:
    """Refills shop shelves on a cron schedule.

    Uses APScheduler for cron-based scheduling.
    """

    def __init__(self, config) -> None:
        """Initialize scheduler with a ShopkeeperConfig.

        Args:
            config: ShopkeeperConfig instance.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger
        except ImportError:
            raise ImportError(
                "apscheduler is required: pip install 'shopkeeper[scheduler]'"
            )

        self._config = config
        self._scheduler = AsyncIOScheduler()
        self._CronTrigger = CronTrigger
        self._running = False

    def setup_jobs(self) -> None:
        """Register scheduled jobs based on config."""
        if not self._config.restock.enabled:
            logger.info("Restocking is disabled; no jobs registered")
            return

        trigger = self._parse_cron(self._config.restock.schedule)
        self._scheduler.add_job(
            self._job_restock_shops,
            trigger=trigger,
            id="restock_shops",
            name="Restock all shops",
            replace_existing=True,
        )
        logger.info("Registered restock job: %s", self._config.restock.schedule)

    def start(self) -> None:
        """Start the scheduler."""
        self.setup_jobs()
        self._scheduler.start()
        self._running = True
        logger.info("Scheduler started")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    def get_jobs(self) -> list[dict]:
        """Return info about scheduled jobs."""
        jobs = []
        for job in self._scheduler.get_jobs():
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": str(job.next_run_time) if getattr(job, "next_run_time", None) else None,
            })
        return jobs

    def _parse_cron(self, expr: str):
        """Parse a cron expression into a CronTrigger."""
        parts = expr.split()
        if len(parts) == 5:
            return self._CronTrigger(
                minute=parts[0],
                hour=parts[1],
                day=parts[2],
                month=parts[3],
                day_of_week=parts[4],
            )
        raise ValueError(f"Invalid cron expression: {expr}")

    async def _job_restock_shops(self) -> None:
        """Refill every shop to its stock caps."""
        logger.info("Running restock job...")

        try:
            restock_all_shops(self._config)
        except Exception:
            logger.exception("Restock job failed")


def restock_all_shops(config) -> dict[str, int]:
    """Restock every persisted shop; returns items restocked per shop name."""
    from .db import DocumentStore, ShopStore, StateStore
    from .stock import StockManager

    documents = DocumentStore(config.database.path)
    state = StateStore(config.database.path)
    try:
        shops = ShopStore(documents)
        manager = StockManager(shops, state, config)
        restocked: dict[str, int] = {}
        for shop in shops.list_shops():
            result = manager.restock(shop)
            if result:
                restocked[shop.name] = result.value
                if result.value:
                    logger.info("Restocked %d items in %s", result.value, shop.name)
            else:
                logger.error("Could not restock %s: %s", shop.name, result.message)
        return restocked
    finally:
        state.close()
        documents.close()
