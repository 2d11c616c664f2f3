"""Anti-ban send pacing.

Tracks, per session, the time of the last send and an hourly counter, plus
one global hourly counter shared by every session. A send is permitted only
when:

1. the global hourly cap is not reached,
2. the minimum delay since the session's previous send has elapsed,
3. the session hourly cap (half of the global cap) is not reached.

Windows are fixed, 3600 s long, and roll forward lazily when a call observes
that they have expired.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 3600


@dataclass
class SessionLimits:
    last_send_at: float | None
    hourly_count: int
    hourly_reset_at: float


@dataclass(frozen=True)
class SendCheck:
    allowed: bool
    delay_ms: int = 0
    retry_after_seconds: int = 0
    reason: str | None = None


ALLOWED = SendCheck(allowed=True)


class SendRateLimiter:
    """Per-session and global send pacing with a minimum inter-message delay."""

    def __init__(
        self,
        *,
        enabled: bool,
        message_delay_ms: int,
        max_messages_per_hour: int,
        random_delay_min_ms: int = 1000,
        random_delay_max_ms: int = 5000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if message_delay_ms < 0:
            raise ValueError("message_delay_ms must be >= 0")
        if max_messages_per_hour < 1:
            raise ValueError("max_messages_per_hour must be >= 1")
        if random_delay_min_ms < 0 or random_delay_max_ms < random_delay_min_ms:
            raise ValueError("random delay bounds must satisfy 0 <= min <= max")

        self.enabled = enabled
        self.message_delay_ms = message_delay_ms
        self.max_messages_per_hour = max_messages_per_hour
        self.random_delay_min_ms = random_delay_min_ms
        self.random_delay_max_ms = random_delay_max_ms
        self._clock = clock

        self._lock = threading.RLock()
        self._sessions: dict[str, SessionLimits] = {}
        self._global_count = 0
        self._global_reset_at = clock() + WINDOW_SECONDS

    @property
    def session_hourly_limit(self) -> int:
        return self.max_messages_per_hour // 2

    def _roll_global_locked(self, now: float) -> None:
        if now >= self._global_reset_at:
            if self._global_count:
                logger.info(
                    "rate_limit.global_window_reset",
                    extra={"previous_count": self._global_count},
                )
            self._global_count = 0
            self._global_reset_at = now + WINDOW_SECONDS

    @staticmethod
    def _roll_session(limits: SessionLimits, now: float) -> None:
        if now > limits.hourly_reset_at:
            limits.hourly_count = 0
            limits.hourly_reset_at = now + WINDOW_SECONDS

    def _evaluate_locked(self, limits: SessionLimits | None, now: float) -> SendCheck:
        if self._global_count >= self.max_messages_per_hour:
            return SendCheck(
                allowed=False,
                retry_after_seconds=max(1, math.ceil(self._global_reset_at - now)),
                reason=f"Global hourly limit reached ({self.max_messages_per_hour} messages)",
            )

        if limits is None:
            return ALLOWED

        if limits.last_send_at is not None:
            elapsed_ms = (now - limits.last_send_at) * 1000
            if elapsed_ms < self.message_delay_ms:
                remaining_ms = math.ceil(self.message_delay_ms - elapsed_ms)
                remaining_s = math.ceil(remaining_ms / 1000)
                return SendCheck(
                    allowed=False,
                    delay_ms=remaining_ms,
                    retry_after_seconds=max(1, remaining_s),
                    reason=(
                        "Minimum delay between messages not met "
                        f"({remaining_s}s remaining)"
                    ),
                )

        if limits.hourly_count >= self.session_hourly_limit:
            return SendCheck(
                allowed=False,
                retry_after_seconds=max(1, math.ceil(limits.hourly_reset_at - now)),
                reason=f"Session hourly limit reached ({self.session_hourly_limit} messages)",
            )

        return ALLOWED

    def can_send(self, session_id: str) -> SendCheck:
        """Decide whether ``session_id`` may send a message now.

        Creates the session's tracking entry on first use.
        """
        if not self.enabled:
            return ALLOWED

        now = self._clock()
        with self._lock:
            self._roll_global_locked(now)
            if self._global_count >= self.max_messages_per_hour:
                return self._evaluate_locked(None, now)

            limits = self._sessions.get(session_id)
            if limits is None:
                limits = SessionLimits(
                    last_send_at=None,
                    hourly_count=0,
                    hourly_reset_at=now + WINDOW_SECONDS,
                )
                self._sessions[session_id] = limits
            self._roll_session(limits, now)
            return self._evaluate_locked(limits, now)

    def record_send(self, session_id: str) -> None:
        now = self._clock()
        with self._lock:
            self._roll_global_locked(now)
            self._global_count += 1

            limits = self._sessions.get(session_id)
            if limits is None:
                limits = SessionLimits(
                    last_send_at=None,
                    hourly_count=0,
                    hourly_reset_at=now + WINDOW_SECONDS,
                )
                self._sessions[session_id] = limits
            self._roll_session(limits, now)
            limits.last_send_at = now
            limits.hourly_count += 1

            logger.info(
                "rate_limit.send_recorded",
                extra={
                    "session_id": session_id,
                    "global_count": self._global_count,
                    "global_limit": self.max_messages_per_hour,
                    "session_count": limits.hourly_count,
                    "session_limit": self.session_hourly_limit,
                },
            )

    def session_status(self, session_id: str) -> dict:
        """Current pacing status for ``session_id`` without mutating it."""
        now = self._clock()
        with self._lock:
            self._roll_global_locked(now)
            limits = self._sessions.get(session_id)
            if limits is not None:
                limits = replace(limits)
                self._roll_session(limits, now)

            check = self._evaluate_locked(limits, now) if self.enabled else ALLOWED
            return {
                "can_send": check.allowed,
                "time_until_next_message_ms": check.delay_ms,
                "hourly_count": limits.hourly_count if limits else 0,
                "hourly_limit": self.session_hourly_limit,
                "global_count": self._global_count,
                "global_limit": self.max_messages_per_hour,
            }

    def global_stats(self) -> dict:
        now = self._clock()
        with self._lock:
            self._roll_global_locked(now)
            return {
                "global_hourly_count": self._global_count,
                "global_hourly_limit": self.max_messages_per_hour,
                "active_sessions": len(self._sessions),
                "time_until_reset_ms": max(0, int((self._global_reset_at - now) * 1000)),
            }

    def reset_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
        logger.info("rate_limit.session_reset", extra={"session_id": session_id})

    def all_session_limits(self) -> dict[str, SessionLimits]:
        with self._lock:
            return {sid: replace(limits) for sid, limits in self._sessions.items()}

    async def random_delay(self) -> None:
        """Sleep for a random jitter between the configured bounds."""
        if not self.enabled:
            return
        delay_ms = random.uniform(self.random_delay_min_ms, self.random_delay_max_ms)
        await asyncio.sleep(delay_ms / 1000)
