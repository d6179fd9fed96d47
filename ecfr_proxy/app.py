import logging

import falcon
import falcon.asgi

from ecfr_proxy import endpoints
from ecfr_proxy.errors import EcfrError, handle_ecfr_error
from ecfr_proxy.services import TitleService

logger = logging.getLogger("ecfr")


def cors_middleware():
    return falcon.CORSMiddleware(
        allow_origins="*",
        expose_headers=[
            "accept",
            "accept-encoding",
            "accept-language",
            "origin",
            "content-type",
        ],
    )


async def handle_unexpected_error(req, resp, ex, params):
    # HTTPError subclasses keep falcon's own handler, this only sees real crashes
    logger.error("Unhandled error on %s %s: %s", req.method, req.path, ex)
    resp.status = falcon.HTTP_INTERNAL_SERVER_ERROR
    resp.media = {"error": "Internal server error"}


def ecfr_app():
    app = falcon.asgi.App(middleware=[cors_middleware()])
    app.add_error_handler(Exception, handle_unexpected_error)
    app.add_error_handler(EcfrError, handle_ecfr_error)
    return app


def create_app(title_service: TitleService) -> falcon.asgi.App:
    app = ecfr_app()
    app.add_route("/health", endpoints.HealthResource())
    app.add_route("/api/titles", endpoints.TitlesResource(title_service))
    app.add_route("/api/agencies", endpoints.AgenciesResource(title_service))
    app.add_route("/api/wordcount/{title_number}", endpoints.WordCountResource(title_service))
    app.add_route(
        "/api/test-agency-sections/{slug}", endpoints.AgencySectionsResource(title_service)
    )
    app.add_route("/api/search", endpoints.SearchResource(title_service))
    app.add_route("/api/search/count", endpoints.SearchCountResource(title_service))
    app.add_route("/api/search/suggestions", endpoints.SuggestionsResource(title_service))
    return app
