"""
Retry policy for database writes.

Transient database failures (connection drops, serialization conflicts)
are retried with exponential back-off. Anything else propagates at once.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


def db_retrying(attempts: int = 3, base_delay: float = 1.0) -> Retrying:
    """Build a tenacity controller for retried database work.

    Delays are base_delay, 2 * base_delay, ... capped at 4 * base_delay.
    The last error is re-raised once attempts are exhausted.

    Usage:
        for attempt in db_retrying():
            with attempt:
                repo.save(row)
    """
    return Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=base_delay, min=base_delay, max=base_delay * 4),
        retry=retry_if_exception_type(SQLAlchemyError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
