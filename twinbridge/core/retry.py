"""Bounded exponential backoff for rate-limited RPC and HTTP calls."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

import requests

from twinbridge.core.utils import get_logger

LOGGER = get_logger("twinbridge.retry")

T = TypeVar("T")

_RATE_LIMIT_RE = re.compile(r"\b429\b|rate.?limit|too many requests", re.IGNORECASE)


def _status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status", None)
    if isinstance(status, int):
        return status
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code
    return None


def is_rate_limit_error(exc: BaseException) -> bool:
    """Return ``True`` for HTTP 429 responses or rate-limit style messages."""
    if _status_of(exc) == 429:
        return True
    return bool(_RATE_LIMIT_RE.search(str(exc)))


@dataclass(frozen=True)
class RetryPolicy:
    """Retry an awaitable only while ``classifier`` accepts the failure.

    Delays grow as ``base_delay * 2**attempt`` and never exceed ``max_delay``.
    Any failure the classifier rejects propagates on the first attempt.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 4.0
    classifier: Callable[[BaseException], bool] = is_rate_limit_error
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after the zero-based ``attempt`` failed."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    async def run(self, operation: Callable[[], Awaitable[T]], *, label: str = "call") -> T:
        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except Exception as exc:
                if attempt + 1 >= self.max_attempts or not self.classifier(exc):
                    raise
                delay = self.delay_for(attempt)
                LOGGER.warning(
                    "%s rate limited, retrying in %.2fs (attempt %s/%s): %s",
                    label,
                    delay,
                    attempt + 1,
                    self.max_attempts,
                    exc,
                )
                await self.sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["RetryPolicy", "is_rate_limit_error"]
