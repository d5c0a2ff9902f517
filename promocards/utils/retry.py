"""Retry policies for calls to remote services."""

import logging

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import RemoteUnavailable, UploadFailed

logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, UploadFailed):
        return True
    return isinstance(exc, RemoteUnavailable) and exc.transient


def remote_retry(attempts: int = 3) -> AsyncRetrying:
    """Build a retrying controller for one remote call.

    Only connectivity problems and 5xx responses are retried. Auth failures,
    missing templates and timeouts fail the record straight away.

    Usage:
        async for attempt in remote_retry(settings.retry_attempts):
            with attempt:
                response = await client.get(url)
    """
    return AsyncRetrying(
        retry=retry_if_exception(_is_transient),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
        stop=stop_after_attempt(max(1, attempts)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
