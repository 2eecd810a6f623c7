"""HTTP client utilities with retry and connection pooling.

Purpose: one configured session for dataset downloads and backend RPCs.

Pattern: requests.Session with urllib3 status retries and tenacity
connection-level retries.

- Dataset GETs are idempotent: retried on connection errors, timeouts and
  retryable HTTP statuses.
- RPC POSTs flip slot state server-side: retried only when the connection
  could not be established, never after a timeout or an HTTP error.
"""
import logging
from typing import Callable, Tuple, Type

import requests
from requests.adapters import HTTPAdapter
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from urllib3.util.retry import Retry

from registration import config

logger = logging.getLogger(__name__)

IDEMPOTENT_RETRY_ON: Tuple[Type[Exception], ...] = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.HTTPError,
)
RPC_RETRY_ON: Tuple[Type[Exception], ...] = (
    requests.exceptions.ConnectionError,
)


def create_http_session(
    max_retries: int = 3,
    backoff_factor: float = 1.0,
    timeout: int = config.HTTP_TIMEOUT_SECONDS,
    wait_min: float = 1,
    wait_max: float = 8
) -> requests.Session:
    """
    Create HTTP session with retry and connection pooling.

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        backoff_factor: urllib3 backoff multiplier for status retries
        timeout: Request timeout in seconds
        wait_min: Minimum tenacity wait between attempts (seconds)
        wait_max: Maximum tenacity wait between attempts (seconds)

    Returns:
        Configured requests.Session whose get/post retry transparently
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
    )

    adapter = HTTPAdapter(
        max_retries=retry_strategy,
        pool_connections=10,
        pool_maxsize=10,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    def with_retry(send: Callable, retry_on: Tuple[Type[Exception], ...]):
        @retry(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=1, min=wait_min, max=wait_max),
            retry=retry_if_exception_type(retry_on),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )
        def send_with_retry(*args, **kwargs):
            kwargs.setdefault('timeout', timeout)
            response = send(*args, **kwargs)
            response.raise_for_status()
            return response
        return send_with_retry

    session.get = with_retry(session.get, IDEMPOTENT_RETRY_ON)
    session.post = with_retry(session.post, RPC_RETRY_ON)

    return session
