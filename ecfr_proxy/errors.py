"""Error taxonomy shared by the upstream client, the services and the routes."""

import falcon


class EcfrError(Exception):
    """Base error carrying the HTTP status and the message shown to clients."""

    status = falcon.HTTP_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(detail or message)
        self.message = message
        self.detail = detail


class UpstreamUnavailable(EcfrError):
    """The eCFR API returned a non-2xx response or could not be reached."""

    def __init__(self, url: str, detail: str, status_code: int | None = None):
        super().__init__("Failed to fetch data from eCFR", f"{url}: {detail}")
        self.url = url
        self.status_code = status_code


class NotFound(EcfrError):
    """Requested title or agency is not present in the cached metadata."""

    status = falcon.HTTP_NOT_FOUND


class ParseFailure(EcfrError):
    """A document could not be tokenized. Recovered by callers as a zero count."""


async def handle_ecfr_error(req, resp, ex: EcfrError, params):
    resp.status = ex.status
    resp.media = {"error": ex.message}
