"""HTTP session for the clinic backend.

Pattern: requests.Session with connection pooling, a tenacity retry wrapper
around GET, and a shared circuit breaker.

Retries default to zero: a failed fetch is reported to the user, who
refreshes manually.
"""
import logging

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

from calendar_overlay import config
from calendar_overlay.circuit_breaker import CircuitBreaker

# tenacity's before_sleep_log expects a stdlib logger
logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.HTTPError,
)

backend_circuit_breaker = CircuitBreaker(
    failure_threshold=config.BACKEND_FAILURE_THRESHOLD,
    timeout=config.BACKEND_CIRCUIT_TIMEOUT,
    name="clinic-backend",
)


def create_http_session(
    max_retries: int = config.BACKEND_MAX_RETRIES,
    backoff_factor: float = 1.0,
    timeout: int = config.BACKEND_TIMEOUT
) -> requests.Session:
    """
    Create a pooled session whose get() applies a timeout, raises on HTTP
    errors and retries transient failures.

    Args:
        max_retries: Retry attempts after the first call (default from config, 0)
        backoff_factor: urllib3 backoff multiplier
        timeout: Request timeout in seconds

    Returns:
        Configured requests.Session
    """
    session = requests.Session()
    session.headers.update({"Accept": "application/json"})

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    original_get = session.get

    @retry(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    def get_with_retry(*args, **kwargs):
        kwargs.setdefault("timeout", timeout)
        response = original_get(*args, **kwargs)
        response.raise_for_status()
        return response

    session.get = get_with_retry
    return session
