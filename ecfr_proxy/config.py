import os
from dataclasses import dataclass

DEFAULT_PORT = 10000

DAY = 24 * 60 * 60


@dataclass(frozen=True)
class Settings:
    """Runtime settings. Only the listen port is read from the environment."""

    port: int = DEFAULT_PORT
    host: str = "0.0.0.0"
    # Full title XML documents can be tens of megabytes
    upstream_timeout: float = 60.0
    metadata_ttl: float = DAY
    word_count_ttl: float = 30 * DAY
    suggestion_ttl: float = DAY / 2
    refresh_check_interval: float = 60 * 60
    # "stream" counts while the XML downloads, "dom" parses the whole document
    word_count_mode: str = "stream"
    max_suggestions: int = 10


def load_settings(environ=os.environ) -> Settings:
    port = environ.get("PORT")
    if not port:
        return Settings()
    return Settings(port=int(port))
