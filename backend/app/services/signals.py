"""Degrade-to-default policy applied uniformly to every scoring signal query.

A failing or slow signal never aborts a ranking: it resolves to a neutral
default, tagged with the reason so callers can tell "signal absent" apart
from "signal computed as zero".
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Generic, TypeVar

from app.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DegradedReason(str, Enum):
    QUERY_FAILED = "query_failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class SignalResult(Generic[T]):
    name: str
    value: T
    degraded: DegradedReason | None = None

    @property
    def ok(self) -> bool:
        return self.degraded is None


async def degrade(name: str, awaitable: Awaitable[T], default: T, timeout: float | None = None) -> SignalResult[T]:
    """Await one signal query, falling back to ``default`` on error or timeout."""
    if timeout is None:
        timeout = get_settings().signal_timeout_seconds
    try:
        value = await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Signal %s timed out after %.1fs, using default", name, timeout)
        return SignalResult(name=name, value=default, degraded=DegradedReason.TIMED_OUT)
    except Exception:
        logger.warning("Signal %s failed, using default", name, exc_info=True)
        return SignalResult(name=name, value=default, degraded=DegradedReason.QUERY_FAILED)
    return SignalResult(name=name, value=value)


def degraded_signals(*results: SignalResult) -> dict[str, str]:
    """Map signal name to degradation reason for every degraded result."""
    return {r.name: r.degraded.value for r in results if r.degraded is not None}
