from functools import wraps
import time
import logging

from app.utils.logging_config import log_performance_metric

logger = logging.getLogger(__name__)

SLOW_CALL_SECONDS = 0.1


def performance_monitor(func):
    """Log slow or failing service coroutines."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            execution_time = time.time() - start_time
            logger.error(
                f"{func.__qualname__} failed after {execution_time:.3f} seconds: {e}"
            )
            raise

        execution_time = time.time() - start_time
        if execution_time > SLOW_CALL_SECONDS:
            log_performance_metric(
                operation=func.__qualname__,
                duration_seconds=execution_time,
            )
        return result

    return wrapper
