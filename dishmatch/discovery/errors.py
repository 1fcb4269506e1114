from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_executor: ThreadPoolExecutor | None = None


class DiscoveryError(Exception):
    """Base class for failures surfaced by the discovery engine."""


class CollaboratorError(DiscoveryError):
    """A storage or reference-data call failed; the caller may retry."""

    retryable = True

    def __init__(self, collaborator: str, message: str) -> None:
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="collaborator")
    return _executor


def call_collaborator(
    collaborator: str,
    fn: Callable[..., T],
    *args: Any,
    timeout: float | None = None,
    **kwargs: Any,
) -> T:
    """
    Invoke a collaborator and normalise its failures.

    Any exception raised by *fn* is re-raised as :class:`CollaboratorError`
    chained to the original.  With *timeout* set, the call runs on a shared
    executor and is abandoned once the deadline passes.
    """
    try:
        if timeout is None:
            return fn(*args, **kwargs)
        future = _get_executor().submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            raise CollaboratorError(collaborator, f"no answer within {timeout}s") from exc
    except CollaboratorError:
        logger.warning("Collaborator %s failed", collaborator, exc_info=True)
        raise
    except Exception as exc:
        logger.warning("Collaborator %s failed", collaborator, exc_info=True)
        raise CollaboratorError(collaborator, str(exc) or type(exc).__name__) from exc
