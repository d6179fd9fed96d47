import functools
import logging

from ecfr_proxy.errors import EcfrError

logger = logging.getLogger("ecfr")


def log_errors(coro):
    """Decorator to log errors in coroutines."""

    @functools.wraps(coro)
    async def wrapper(*args, **kwargs):
        try:
            return await coro(*args, **kwargs)
        except EcfrError as e:
            # Expected failures, already described by the raiser
            logger.warning("%s failed: %s", coro.__qualname__, e)
            raise
        except Exception as e:
            logger.error("Error in coroutine %s: %s", coro.__qualname__, e, exc_info=True)
            raise  # Re-raise so the app error handlers shape the response

    return wrapper
