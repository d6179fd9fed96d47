"""Background task keeping the metadata and word count caches warm."""
import asyncio
import datetime
import logging

from ecfr_proxy import timestamps
from ecfr_proxy.config import Settings
from ecfr_proxy.services import TitleService

logger = logging.getLogger("ecfr")


class CacheRefresher:
    """
    Periodically re-fetches metadata (daily) and word counts (monthly).

    The check runs at startup and then every ``refresh_check_interval``
    seconds; work only happens when the matching "last updated" timestamp is
    older than the cache TTL. The first full word count refresh happens one
    TTL after startup, counts in between are computed lazily on request.
    """

    def __init__(self, service: TitleService, settings: Settings):
        self.service = service
        self.settings = settings
        self.metadata_updated: datetime.datetime | None = None
        self.word_counts_updated: datetime.datetime | None = timestamps.nowUTC()
        self._task: asyncio.Task | None = None

    def metadata_due(self) -> bool:
        age = timestamps.elapsed(self.metadata_updated)
        return age is None or age >= self.settings.metadata_ttl

    def word_counts_due(self) -> bool:
        age = timestamps.elapsed(self.word_counts_updated)
        return age is None or age >= self.settings.word_count_ttl

    async def run_once(self):
        if self.metadata_due():
            try:
                await self.service.refresh_metadata()
                self.metadata_updated = timestamps.nowUTC()
            except Exception:
                logger.warning("Metadata refresh failed", exc_info=True)

        if self.word_counts_due():
            try:
                await self.service.refresh_word_counts()
                self.word_counts_updated = timestamps.nowUTC()
            except Exception:
                logger.warning("Word count refresh failed", exc_info=True)

    async def run(self):
        while True:
            await self.run_once()
            await asyncio.sleep(self.settings.refresh_check_interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self.run())
            logger.info("Cache refresher started")
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Cache refresher stopped")
