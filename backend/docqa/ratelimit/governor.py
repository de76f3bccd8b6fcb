"""Fixed-window admission control keyed by caller identity and policy."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Protocol

from docqa.core.logging import get_logger
from docqa.core.metrics import RATE_LIMIT_DENIALS
from docqa.utils.time import now_ms

logger = get_logger(__name__)

GC_THRESHOLD = 10_000


@dataclass(slots=True, frozen=True)
class RatePolicy:
    name: str
    window_ms: int
    max_requests: int


@dataclass(slots=True, frozen=True)
class Admission:
    allowed: bool
    remaining: int
    reset_in_ms: int


@dataclass(slots=True)
class RateWindow:
    count: int
    window_end: int


class RateStore(Protocol):
    """Backing store for rate windows.

    ``admit`` must perform the check-and-increment atomically for a key; an
    external keyed store can implement it with its own atomic primitives.
    """

    def admit(self, key: tuple[str, str], policy: RatePolicy, now: int) -> Admission: ...


class InMemoryRateStore:
    """Process-local store; state does not survive restarts."""

    def __init__(self, gc_threshold: int = GC_THRESHOLD) -> None:
        self._windows: dict[tuple[str, str], RateWindow] = {}
        self._lock = threading.Lock()
        self._gc_threshold = gc_threshold

    def __len__(self) -> int:
        return len(self._windows)

    def admit(self, key: tuple[str, str], policy: RatePolicy, now: int) -> Admission:
        with self._lock:
            if len(self._windows) > self._gc_threshold:
                self._collect_expired(now)

            window = self._windows.get(key)
            if window is None or window.window_end <= now:
                self._windows[key] = RateWindow(count=1, window_end=now + policy.window_ms)
                return Admission(allowed=True, remaining=policy.max_requests - 1, reset_in_ms=policy.window_ms)

            reset_in = window.window_end - now
            if window.count >= policy.max_requests:
                return Admission(allowed=False, remaining=0, reset_in_ms=reset_in)

            window.count += 1
            return Admission(allowed=True, remaining=policy.max_requests - window.count, reset_in_ms=reset_in)

    def _collect_expired(self, now: int) -> None:
        expired = [key for key, window in self._windows.items() if window.window_end <= now]
        for key in expired:
            del self._windows[key]
        logger.debug("Dropped %s expired rate windows", len(expired))


class RateGovernor:
    """Admission control with an independent window per (identity, policy)."""

    def __init__(
        self,
        store: RateStore | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store if store is not None else InMemoryRateStore()
        self.clock = clock

    def admit(self, identity: str, policy: RatePolicy) -> Admission:
        admission = self.store.admit((identity, policy.name), policy, self.clock())
        if not admission.allowed:
            RATE_LIMIT_DENIALS.labels(policy=policy.name).inc()
            logger.info(
                "Rate limit hit for policy %s",
                policy.name,
                extra={"ctx_identity": identity, "ctx_reset_in_ms": admission.reset_in_ms},
            )
        return admission


@dataclass(slots=True, frozen=True)
class RatePolicies:
    default: RatePolicy
    upload: RatePolicy
    ask: RatePolicy
    health: RatePolicy

    @classmethod
    def from_limits(
        cls,
        window_ms: int = 60_000,
        default: int = 30,
        upload: int = 10,
        ask: int = 20,
        health: int = 60,
    ) -> "RatePolicies":
        return cls(
            default=RatePolicy("default", window_ms, default),
            upload=RatePolicy("upload", window_ms, upload),
            ask=RatePolicy("ask", window_ms, ask),
            health=RatePolicy("health", window_ms, health),
        )


__all__ = [
    "RatePolicy",
    "RatePolicies",
    "Admission",
    "RateWindow",
    "RateStore",
    "InMemoryRateStore",
    "RateGovernor",
]
