# contest/services/retry.py
from __future__ import annotations

import functools
import logging

from django.db import InterfaceError, OperationalError, transaction
from tenacity import (
    Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential,
)

from ..conf import contest_setting

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, InterfaceError)


def storage_retrying() -> Retrying:
    """Fresh policy built from CONTEST settings (0.2s, 0.4s, 0.8s by default)."""
    return Retrying(
        stop=stop_after_attempt(contest_setting("STORAGE_RETRY_ATTEMPTS")),
        wait=wait_exponential(
            multiplier=contest_setting("STORAGE_RETRY_BACKOFF"),
            max=contest_setting("STORAGE_RETRY_MAX_BACKOFF"),
        ),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def storage_retry(label: str):
    """
    Retry transient storage failures around a service call.

    Calls nested inside an open transaction run once: the outer block owns
    the retry, a broken transaction cannot be resumed from inside it.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            if transaction.get_connection().in_atomic_block:
                return func(*args, **kwargs)
            for attempt in storage_retrying():
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.info("%s: retry attempt %s", label, attempt.retry_state.attempt_number)
                    result = func(*args, **kwargs)
            return result
        return wrapper
    return decorator
