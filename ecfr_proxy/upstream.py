"""
Client for the public eCFR API.

Every failure mode (non-2xx status, network error, timeout, unreadable JSON)
is logged with the URL and raised as UpstreamUnavailable.
"""
import contextlib
import logging

import httpx

from ecfr_proxy import urls
from ecfr_proxy.errors import UpstreamUnavailable

logger = logging.getLogger("ecfr")

DEFAULT_TIMEOUT = 60.0


def build_http_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Shared async client, created once at startup"""
    limits = httpx.Limits(max_connections=10, max_keepalive_connections=5)
    return httpx.AsyncClient(
        http2=False,
        limits=limits,
        timeout=timeout,
        headers={"User-Agent": "ecfr-proxy"},
    )


def _check(response: httpx.Response):
    if not response.is_success:
        logger.error(f"Failed to retrieve {response.url}: {response.status_code}")
        raise UpstreamUnavailable(
            str(response.url), f"HTTP {response.status_code}", response.status_code
        )


def _with_query(url: str, query_string: str) -> str:
    # appended verbatim, the caller's encoding is kept
    return f"{url}?{query_string}" if query_string else url


class EcfrClient:
    """Thin async wrapper over the eCFR versioner, admin and search APIs."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = DEFAULT_TIMEOUT):
        self.client: httpx.AsyncClient = client
        self.timeout = timeout

    async def get_json(self, url: str):
        try:
            response = await self.client.get(url, timeout=self.timeout)
            _check(response)
            return response.json()
        except httpx.HTTPError as e:
            logger.error(f"Failed to retrieve {url}: {e!r}")
            raise UpstreamUnavailable(url, repr(e)) from e
        except ValueError as e:
            logger.error(f"Invalid JSON from {url}: {e}")
            raise UpstreamUnavailable(url, "invalid JSON") from e

    async def get_titles(self) -> list[dict]:
        data = await self.get_json(f"{urls.VRSN_URL}/titles.json")
        return data.get("titles") or []

    async def get_agencies(self) -> list[dict]:
        data = await self.get_json(f"{urls.ADMN_URL}/agencies.json")
        return data.get("agencies") or []

    async def get_structure(self, date: str, title) -> dict:
        return await self.get_json(urls.structure_url(date, title))

    async def search(self, query_string: str) -> dict:
        return await self.get_json(_with_query(f"{urls.SRCH_URL}/results", query_string))

    async def search_count(self, query_string: str) -> dict:
        return await self.get_json(_with_query(f"{urls.SRCH_URL}/count", query_string))

    @contextlib.asynccontextmanager
    async def open_title_xml(self, date: str, title):
        """
        Stream the full XML of a title at an issue date.

        Yields the response with its body unread, to be consumed with
        ``response.aiter_bytes()``. Network errors raised while the body is
        being read inside the ``async with`` block are converted as well.
        """
        url = urls.full_xml_url(date, title)
        try:
            async with self.client.stream("GET", url, timeout=self.timeout) as response:
                _check(response)
                logger.info(f"Streaming {url}")
                yield response
        except httpx.HTTPError as e:
            logger.error(f"Failed to retrieve {url}: {e!r}")
            raise UpstreamUnavailable(url, repr(e)) from e

    async def get_title_xml(self, date: str, title) -> bytes:
        async with self.open_title_xml(date, title) as response:
            return await response.aread()
