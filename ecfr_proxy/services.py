import asyncio
import logging
from dataclasses import dataclass

from ecfr_proxy import wordcount
from ecfr_proxy.cache import MISSING, Caches
from ecfr_proxy.config import Settings
from ecfr_proxy.errors import NotFound, ParseFailure, UpstreamUnavailable
from ecfr_proxy.models import Agency, Title
from ecfr_proxy.structure import StructureNode, section_urls
from ecfr_proxy.upstream import EcfrClient

logger = logging.getLogger("ecfr")


def _parse_all(model, items) -> list:
    """Parse upstream entries, skipping the ones missing required fields"""
    parsed = []
    for item in items:
        try:
            parsed.append(model.from_json(item))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed {model.__name__} entry {item!r}: {e!r}")
    return parsed


def _consume_exception(task: asyncio.Task):
    # every waiter may have been cancelled, nobody else would retrieve it
    if not task.cancelled():
        task.exception()


@dataclass(frozen=True)
class WordCountResult:
    """Outcome of counting a title. A failed count carries the reason instead of a number."""

    title: str
    count: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: int) -> int:
        return self.count if self.ok else default


class TitleService:
    """
    TitleService retrieves titles, agencies and word counts from the eCFR API
    and keeps them in the process caches.
    """

    TITLES_KEY = "titles"
    AGENCIES_KEY = "agencies"

    def __init__(self, upstream: EcfrClient, caches: Caches, settings: Settings | None = None):
        self.upstream: EcfrClient = upstream
        self.caches: Caches = caches
        self.settings: Settings = settings or Settings()
        self._in_flight: dict[str, asyncio.Task] = {}

    async def get_titles(self) -> list[Title]:
        """Titles from the metadata cache, fetched from the eCFR API on a miss"""
        metadata = self.caches.metadata
        titles = metadata.get(self.TITLES_KEY, MISSING)
        if titles is not MISSING:
            logger.debug(f"Cache hit for {self.TITLES_KEY}")
            return titles
        titles = _parse_all(Title, await self.upstream.get_titles())
        metadata[self.TITLES_KEY] = titles
        logger.info(f"Cached {len(titles)} titles")
        return titles

    async def get_agencies(self) -> list[Agency]:
        """Agencies from the metadata cache, fetched from the eCFR API on a miss"""
        metadata = self.caches.metadata
        agencies = metadata.get(self.AGENCIES_KEY, MISSING)
        if agencies is not MISSING:
            logger.debug(f"Cache hit for {self.AGENCIES_KEY}")
            return agencies
        agencies = _parse_all(Agency, await self.upstream.get_agencies())
        metadata[self.AGENCIES_KEY] = agencies
        logger.info(f"Cached {len(agencies)} agencies")
        return agencies

    async def refresh_metadata(self):
        """Re-fetch titles and agencies. The old entries stay until both fetches succeed."""
        titles = _parse_all(Title, await self.upstream.get_titles())
        agencies = _parse_all(Agency, await self.upstream.get_agencies())
        self.caches.metadata[self.TITLES_KEY] = titles
        self.caches.metadata[self.AGENCIES_KEY] = agencies
        self.caches.suggestions.flush()
        logger.info(f"Metadata refreshed: {len(titles)} titles, {len(agencies)} agencies")

    async def get_title(self, number) -> Title:
        key = str(number).strip()
        for title in await self.get_titles():
            if title.key == key:
                return title
        raise NotFound("Title not found", f"title {key}")

    async def get_agency(self, slug: str) -> Agency:
        for agency in await self.get_agencies():
            for candidate in agency.walk():
                if candidate.slug == slug:
                    return candidate
        raise NotFound("Agency not found", f"agency {slug}")

    async def get_word_count(self, number) -> WordCountResult:
        """
        Word count for a single title.

        Concurrent requests for the same uncached title share one upstream
        fetch. Reserved titles are 0 without touching the network.
        """
        key = str(number).strip()
        word_counts = self.caches.word_counts
        count = word_counts.get(key, MISSING)
        if count is not MISSING:
            logger.info(f"Cache hit for word count of title {key}")
            return WordCountResult(key, count)

        title = await self.get_title(key)
        if title.reserved:
            logger.info(f"Title {key} is reserved, word count is 0")
            word_counts[key] = 0
            return WordCountResult(key, 0)

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._count_and_release(title))
            task.add_done_callback(_consume_exception)
            self._in_flight[key] = task
        else:
            logger.info(f"Joining in-flight word count for title {key}")
        # shielded: cancelling one waiter leaves the shared fetch running
        return await asyncio.shield(task)

    async def _count_and_release(self, title: Title) -> WordCountResult:
        try:
            return await self.count_title_words(title)
        finally:
            self._in_flight.pop(title.key, None)

    async def count_title_words(self, title: Title) -> WordCountResult:
        """Fetch and count a title's XML at its latest issue date, caching a successful count"""
        if not title.latest_issue_date:
            raise NotFound("Title not found", f"title {title.key} has no issue date")
        logger.info(f"Cache miss for word count of title {title.key}")
        try:
            if self.settings.word_count_mode == "dom":
                payload = await self.upstream.get_title_xml(title.latest_issue_date, title.number)
                count = wordcount.count_xml_document(payload)
            else:
                async with self.upstream.open_title_xml(
                    title.latest_issue_date, title.number
                ) as response:
                    count = await wordcount.count_xml_stream(response.aiter_bytes())
        except ParseFailure as e:
            logger.warning(f"Could not count words of title {title.key}: {e}")
            return WordCountResult(title.key, 0, error=e.message)

        self.caches.word_counts[title.key] = count
        logger.info(f"Title {title.key} has {count} words in total")
        return WordCountResult(title.key, count)

    async def refresh_word_counts(self) -> list[WordCountResult]:
        """Recompute the word count of every title, skipping titles that fail"""
        logger.info("Starting word count refresh for all titles")
        results = []
        for title in await self.get_titles():
            if title.reserved:
                self.caches.word_counts[title.key] = 0
                results.append(WordCountResult(title.key, 0))
                continue
            try:
                results.append(await self.count_title_words(title))
            except (UpstreamUnavailable, NotFound) as e:
                logger.warning(f"Failed to refresh word count of title {title.key}: {e}")
                results.append(WordCountResult(title.key, 0, error=e.message))
        logger.info(f"Word count refresh done for {len(results)} titles")
        return results

    async def get_agency_section_urls(self, slug: str) -> tuple[Agency, list[str]]:
        """Section document URLs for every chapter the agency regulates"""
        agency = await self.get_agency(slug)
        found = []
        for reference in agency.cfr_references:
            if not reference.chapter:
                continue
            try:
                title = await self.get_title(reference.title)
            except NotFound:
                logger.warning(f"Agency {slug} references unknown title {reference.title}")
                continue
            if title.reserved or not title.latest_issue_date:
                continue
            data = await self.upstream.get_structure(title.latest_issue_date, title.number)
            root = StructureNode.from_json(data)
            for url in section_urls(root, title.number, reference.chapter):
                if url not in found:
                    found.append(url)
        logger.info(f"Agency {slug} has {len(found)} section urls")
        return agency, found

    async def get_suggestions(self, query: str | None) -> list[str]:
        """Title and agency names containing the query, case-insensitive"""
        normalized = (query or "").strip().lower()
        if not normalized:
            return []
        suggestions_cache = self.caches.suggestions
        cached = suggestions_cache.get(normalized, MISSING)
        if cached is not MISSING:
            return cached

        names = [title.name for title in await self.get_titles()]
        for agency in await self.get_agencies():
            for candidate in agency.walk():
                names.extend(name for name in (candidate.name, candidate.display_name) if name)

        suggestions = []
        for name in names:
            if normalized in name.lower() and name not in suggestions:
                suggestions.append(name)
                if len(suggestions) >= self.settings.max_suggestions:
                    break
        suggestions_cache[normalized] = suggestions
        return suggestions

    async def search(self, query_string: str) -> dict:
        return await self.upstream.search(query_string)

    async def search_count(self, query_string: str) -> dict:
        return await self.upstream.search_count(query_string)
