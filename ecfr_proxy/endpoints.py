import logging

import falcon

from ecfr_proxy.logs import log_errors
from ecfr_proxy.services import TitleService
from ecfr_proxy.timestamps import nowIso8601

logger = logging.getLogger("ecfr")


class HealthResource:
    """Health resource for determining that a container is live"""

    @log_errors
    async def on_get(self, req, resp):
        resp.status = falcon.HTTP_OK
        resp.media = {"message": f"Health is okay. Time is {nowIso8601()}"}


class TitlesResource:
    """Summary information for all titles"""

    def __init__(self, title_service: TitleService):
        self.title_service = title_service

    @log_errors
    async def on_get(self, req, resp):
        titles = await self.title_service.get_titles()
        resp.status = falcon.HTTP_OK
        resp.media = {"titles": [title.to_json() for title in titles]}


class AgenciesResource:
    """All agencies with their CFR references"""

    def __init__(self, title_service: TitleService):
        self.title_service = title_service

    @log_errors
    async def on_get(self, req, resp):
        agencies = await self.title_service.get_agencies()
        resp.status = falcon.HTTP_OK
        resp.media = {"agencies": [agency.to_json() for agency in agencies]}


class WordCountResource:
    """Word count of a single title, served from cache when possible"""

    def __init__(self, title_service: TitleService):
        self.title_service = title_service

    @log_errors
    async def on_get(self, req, resp, title_number):
        result = await self.title_service.get_word_count(title_number)
        resp.status = falcon.HTTP_OK
        resp.media = {"title": title_number, "wordCount": result.unwrap_or(0)}


class AgencySectionsResource:
    """Section document URLs under the chapters an agency regulates"""

    def __init__(self, title_service: TitleService):
        self.title_service = title_service

    @log_errors
    async def on_get(self, req, resp, slug):
        agency, section_urls = await self.title_service.get_agency_section_urls(slug)
        resp.status = falcon.HTTP_OK
        resp.media = {"agency": agency.name, "sectionUrls": section_urls}


class SearchResource:
    """Upstream search results, query parameters forwarded as-is"""

    def __init__(self, title_service: TitleService):
        self.title_service = title_service

    @log_errors
    async def on_get(self, req, resp):
        resp.status = falcon.HTTP_OK
        resp.media = await self.title_service.search(req.query_string)


class SearchCountResource:
    """Upstream search result counts, query parameters forwarded as-is"""

    def __init__(self, title_service: TitleService):
        self.title_service = title_service

    @log_errors
    async def on_get(self, req, resp):
        resp.status = falcon.HTTP_OK
        resp.media = await self.title_service.search_count(req.query_string)


class SuggestionsResource:
    """Autocomplete over title and agency names. Errors degrade to an empty list."""

    def __init__(self, title_service: TitleService):
        self.title_service = title_service

    @log_errors
    async def on_get(self, req, resp):
        query = req.get_param("query", default="")
        try:
            suggestions = await self.title_service.get_suggestions(query)
        except Exception as e:
            # autocomplete degrades to no suggestions rather than an error
            logger.warning(f"Suggestions for {query!r} failed: {e!r}")
            suggestions = []
        resp.status = falcon.HTTP_OK
        resp.media = {"suggestions": suggestions}
