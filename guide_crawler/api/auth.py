"""Operator and internal-trigger authorization."""

import hmac

import logfire
from fastapi import HTTPException, Request

from guide_crawler.config import get_settings
from guide_crawler.logging_config import mask_pii

API_KEY_HEADER = "X-API-Key"
API_KEY_QUERY_PARAM = "apiKey"
CRON_SECRET_HEADER = "X-Cron-Secret"


def _matches(candidate: str | None, expected: str) -> bool:
    return candidate is not None and hmac.compare_digest(candidate, expected)


def is_operator(request: Request) -> bool:
    """True when the request carries the operator key (or no key is configured)."""
    expected = get_settings().api_key
    if not expected:
        return True
    provided = request.headers.get(API_KEY_HEADER) or request.query_params.get(
        API_KEY_QUERY_PARAM
    )
    return _matches(provided, expected)


def is_internal_trigger(request: Request) -> bool:
    """True when the request comes from the periodic trigger.

    With a configured cron secret the header must match it; without one
    the header must be ``1``.
    """
    provided = request.headers.get(CRON_SECRET_HEADER)
    expected = get_settings().cron_secret or "1"
    return _matches(provided, expected)


def require_api_key(request: Request) -> None:
    """FastAPI dependency rejecting requests without the operator key."""
    if is_operator(request):
        return
    provided = request.headers.get(API_KEY_HEADER) or request.query_params.get(
        API_KEY_QUERY_PARAM
    )
    logfire.warn(
        "Rejected request without valid operator key",
        path=request.url.path,
        provided_key=mask_pii(provided),
    )
    raise HTTPException(status_code=401, detail="Unauthorized")
