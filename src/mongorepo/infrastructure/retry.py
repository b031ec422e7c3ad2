"""Bounded retry for store calls.

Only connectivity failures are retried.  A pymongo ConnectionFailure is
classified by its underlying cause into a closed set of error kinds; the
policy retries an error only when its kind is in the configured transient
set.  Everything else (bad filters, duplicate keys, validation errors,
configuration errors) propagates on the first attempt.

Attempts run back to back with no delay.  When all attempts fail the last
error is re-raised unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from pymongo.errors import ConnectionFailure, NetworkTimeout, ServerSelectionTimeoutError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

DEFAULT_ATTEMPTS = 3


class ErrorKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION_RESET = "connection_reset"
    SOCKET_ERROR = "socket_error"


def classify(exc: BaseException) -> ErrorKind | None:
    """Return the error kind of a store connectivity failure, or None."""
    if not isinstance(exc, ConnectionFailure):
        return None
    if isinstance(exc, (NetworkTimeout, ServerSelectionTimeoutError)):
        return ErrorKind.TIMEOUT
    cause = exc.__cause__ or exc.__context__
    if isinstance(cause, TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(cause, ConnectionResetError):
        return ErrorKind.CONNECTION_RESET
    if isinstance(cause, OSError):
        return ErrorKind.SOCKET_ERROR
    return None


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt bound plus transient classifier.

    Holds no per-call state, so one instance is safely shared by every
    call made through a repository.
    """

    attempts: int = DEFAULT_ATTEMPTS
    transient: frozenset[ErrorKind] = field(default_factory=lambda: frozenset(ErrorKind))

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {self.attempts}")

    @classmethod
    def from_settings(cls, settings) -> RetryPolicy:
        return cls(attempts=settings.retry_attempts, transient=frozenset(settings.transient_errors))

    @classmethod
    def only(cls, kinds: Iterable[ErrorKind], attempts: int = DEFAULT_ATTEMPTS) -> RetryPolicy:
        return cls(attempts=attempts, transient=frozenset(kinds))

    def is_transient(self, exc: BaseException) -> bool:
        return classify(exc) in self.transient

    def _retrying_kwargs(self) -> dict:
        return dict(
            stop=stop_after_attempt(self.attempts),
            retry=retry_if_exception(self.is_transient),
            after=self._log_exhausted,
            before_sleep=self._log_retry,
            reraise=True,
        )

    def execute(self, operation: Callable[[], R]) -> R:
        """Run operation, retrying transient failures."""
        return Retrying(**self._retrying_kwargs())(operation)

    async def execute_async(self, operation: Callable[[], R]) -> R:
        """Run a blocking operation in a worker thread, retrying transient failures.

        The event loop is free while each attempt runs.
        """
        return await AsyncRetrying(**self._retrying_kwargs())(asyncio.to_thread, operation)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception()
        logger.warning(
            "Store call attempt %d/%d failed with %s (%s); retrying",
            retry_state.attempt_number,
            self.attempts,
            type(exc).__name__,
            classify(exc).value,
        )

    def _log_exhausted(self, retry_state: RetryCallState) -> None:
        if retry_state.attempt_number >= self.attempts:
            logger.error(
                "Store call failed after %d attempts: %s",
                self.attempts,
                retry_state.outcome.exception(),
            )
