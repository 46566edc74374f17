"""
Retry policy for read-only queries.

Reads get one extra attempt on failure; mutations are never wrapped, the
caller re-invokes them explicitly.
"""

import logging

from tenacity import before_sleep_log, retry, stop_after_attempt, wait_fixed

logger = logging.getLogger(__name__)

READ_MAX_ATTEMPTS = 2

read_retry = retry(
    stop=stop_after_attempt(READ_MAX_ATTEMPTS),
    wait=wait_fixed(0.2),
    reraise=True,
    before_sleep=before_sleep_log(logger, logging.WARNING),
)
