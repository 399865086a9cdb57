"""Shared retry policy for HTTP and RPC transport calls."""

from __future__ import annotations

import logging
from typing import Any

import backoff
import requests

from .constants import RETRY_BASE, RETRY_FACTOR, RETRY_MAX_TRIES, RETRYABLE_HTTP_STATUSES

logger = logging.getLogger(__name__)


def is_permanent_http_error(e: Exception) -> bool:
    """Give up immediately on HTTP errors that retrying cannot fix."""
    return (
        isinstance(e, requests.exceptions.HTTPError)
        and e.response is not None
        and e.response.status_code not in RETRYABLE_HTTP_STATUSES
    )


def _on_backoff(details: Any) -> None:
    logger.warning(
        "%s failed (attempt %d of %d), retrying in %.1fs: %s",
        details["target"].__name__,
        details["tries"],
        RETRY_MAX_TRIES,
        details["wait"],
        details.get("exception"),
    )


# Waits 1s then 2s; three attempts in total.
retry_transport = backoff.on_exception(
    backoff.expo,
    requests.exceptions.RequestException,
    max_tries=RETRY_MAX_TRIES,
    base=RETRY_BASE,
    factor=RETRY_FACTOR,
    giveup=is_permanent_http_error,
    jitter=None,
    on_backoff=_on_backoff,
)
