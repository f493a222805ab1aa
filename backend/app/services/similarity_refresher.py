"""
Periodic similarity sweep.

Users who haven't interacted recently never trigger a per-user refresh,
so their neighbor data goes stale. This task reruns the full-catalog
sweep on a fixed interval (6 hours by default) from the app lifespan.
"""

import asyncio

from sqlalchemy.orm import sessionmaker

from app.core.config import get_settings
from app.core.database import SessionLocal, session_scope
from app.core.logging import get_context_logger
from app.services.similarity import compute_all_similarities

settings = get_settings()
logger = get_context_logger(__name__, job="similarity-refresh")


class SimilarityRefreshTask:
    """
    Runs compute_all_similarities every `interval_seconds`.

    The sweep is synchronous database work, so each tick runs it in a
    worker thread with its own session.
    """

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        interval_seconds: float | None = None,
        run_on_start: bool | None = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = (
            settings.SIMILARITY_REFRESH_INTERVAL_HOURS * 3600
            if interval_seconds is None
            else interval_seconds
        )
        self.run_on_start = (
            settings.SIMILARITY_REFRESH_ON_STARTUP if run_on_start is None else run_on_start
        )
        self.runs = 0
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> dict:
        """Run one sweep. Errors are logged and yield empty stats."""
        try:
            with session_scope(self.session_factory) as db:
                stats = compute_all_similarities(db)
        except Exception:
            logger.exception("Scheduled similarity sweep failed")
            return {}
        finally:
            self.runs += 1

        logger.info(
            "Scheduled similarity sweep complete",
            extra={"extra_fields": stats},
        )
        return stats

    async def _loop(self) -> None:
        if not self.run_on_start:
            await asyncio.sleep(self.interval_seconds)
        while True:
            await asyncio.to_thread(self.run_once)
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        if self.is_running:
            return self._task
        logger.info(f"Starting similarity refresh every {self.interval_seconds / 3600:g}h")
        self._task = asyncio.create_task(self._loop(), name="similarity-refresh")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Similarity refresh stopped")
