"""
Retry policy for transient Okta API failures.

Okta signals throttling with HTTP 429 and an ``E0000047`` error body; some
edge proxies answer throttled requests with a different status but keep the
Okta error body, so both the status and the error code are consulted.
"""

from typing import Optional

import requests
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

#: E0000047 API call exceeded rate limit, E0000009 internal server error
RETRYABLE_OKTA_ERROR_CODES = frozenset({"E0000047", "E0000009"})


def okta_error_code(response: Optional[requests.Response]) -> Optional[str]:
    """The ``errorCode`` of an Okta error body, if the response carries one."""
    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        code = body.get("errorCode")
        return code if isinstance(code, str) else None
    return None


def is_transient_okta_error(exception: BaseException) -> bool:
    """
    Decide whether a failed Okta call is worth repeating.

    Repeats throttling and server-side failures (429, 5xx, or an Okta rate
    limit / internal error code). Credential rejections and other client
    errors are final.
    """
    if not isinstance(exception, requests.exceptions.HTTPError) or exception.response is None:
        return False
    if exception.response.status_code in RETRYABLE_STATUS_CODES:
        return True
    return okta_error_code(exception.response) in RETRYABLE_OKTA_ERROR_CODES


def log_okta_retry(retry_state: RetryCallState) -> None:
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    response = getattr(exception, "response", None)
    logger.warning(
        "Retrying Okta request",
        call=getattr(retry_state.fn, "__name__", None),
        attempt=retry_state.attempt_number,
        status=getattr(response, "status_code", None),
        okta_error=okta_error_code(response),
        error=str(exception) if exception else None,
    )


#: Idempotent Okta calls only: 3 attempts with 1-10s exponential backoff
OKTA_API_RETRY = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=(
        retry_if_exception_type((requests.exceptions.ConnectionError, requests.exceptions.Timeout))
        | retry_if_exception(is_transient_okta_error)
    ),
    before_sleep=log_okta_retry,
    reraise=True,
)
