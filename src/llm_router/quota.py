"""Quota tracker — daily and per-minute budgets for a single provider.

Uses fixed windows: a counter accumulates until the clock moves past its
window, then resets to zero once and the window start is re-aligned to the
current day (UTC) or minute. The daily and minute windows are independent;
request and token counters share the minute window.

Callers that race for the same provider use ``try_acquire`` to check and take
a request slot in one critical section, then ``commit`` the slot on success
or ``release`` it on failure.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

import structlog

logger = structlog.get_logger(__name__)

DAY_SECONDS = 24 * 60 * 60
MINUTE_SECONDS = 60


def _truncate(ts: float, period: int) -> float:
    return ts - (ts % period)


@dataclass(frozen=True)
class QuotaSnapshot:
    """Read-only view of a tracker's counters."""

    provider_id: str
    requests_today: int
    requests_this_minute: int
    tokens_this_minute: int
    max_daily: int
    max_per_minute: int
    max_tokens_per_minute: int
    day_window_start: float
    minute_window_start: float

    @property
    def remaining_daily_pct(self) -> float:
        if self.max_daily <= 0:
            return 100.0
        return float(f"{(max(0.0, 1.0 - self.requests_today / self.max_daily) * 100):.1f}")


@dataclass(frozen=True)
class QuotaReservation:
    """A request slot taken by ``try_acquire``; the window starts it was counted in."""

    provider_id: str
    day_window_start: float = 0.0
    minute_window_start: float = 0.0


class QuotaTracker:
    """Per-provider fixed-window quota tracker (daily, RPM, TPM).

    A limit of ``0`` means "unlimited", not "zero capacity".
    """

    def __init__(
        self,
        provider_id: str,
        *,
        max_daily: int = 0,
        max_per_minute: int = 0,
        max_tokens_per_minute: int = 0,
        warning_threshold: float = 0.90,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if min(max_daily, max_per_minute, max_tokens_per_minute) < 0:
            raise ValueError("quota limits must be >= 0 (0 = unlimited)")
        self._provider_id = provider_id
        self._max_daily = max_daily
        self._max_per_minute = max_per_minute
        self._max_tokens_per_minute = max_tokens_per_minute
        self._warning_thr = warning_threshold
        self._clock = clock

        now = clock()
        self._requests_today = 0
        self._day_window_start = _truncate(now, DAY_SECONDS)
        self._requests_this_minute = 0
        self._tokens_this_minute = 0
        self._minute_window_start = _truncate(now, MINUTE_SECONDS)

        self._lock = threading.Lock()
        self._warning_emitted = False

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def max_daily(self) -> int:
        return self._max_daily

    @property
    def max_per_minute(self) -> int:
        return self._max_per_minute

    @property
    def max_tokens_per_minute(self) -> int:
        return self._max_tokens_per_minute

    # ── Admission checks ─────────────────────────────────────
    def can_serve_daily(self) -> bool:
        with self._lock:
            self._roll_day()
            if self._max_daily == 0 or self._requests_today < self._max_daily:
                return True
            logger.debug(
                "quota_daily_exhausted",
                provider=self._provider_id,
                current=self._requests_today,
                limit=self._max_daily,
            )
            return False

    def can_serve_per_minute(self) -> bool:
        with self._lock:
            self._roll_minute()
            if self._max_per_minute == 0 or self._requests_this_minute < self._max_per_minute:
                return True
            logger.debug(
                "quota_rpm_exhausted",
                provider=self._provider_id,
                current=self._requests_this_minute,
                limit=self._max_per_minute,
            )
            return False

    def can_serve_tokens(self, estimated: int) -> bool:
        with self._lock:
            self._roll_minute()
            if self._max_tokens_per_minute == 0:
                return True
            if self._tokens_this_minute + estimated <= self._max_tokens_per_minute:
                return True
            logger.debug(
                "quota_tpm_exhausted",
                provider=self._provider_id,
                used=self._tokens_this_minute,
                estimated=estimated,
                limit=self._max_tokens_per_minute,
            )
            return False

    # ── Recording ────────────────────────────────────────────
    def record_usage(self, tokens_used: int = 0) -> None:
        """Count one successful request and its tokens."""
        with self._lock:
            self._roll_day()
            self._roll_minute()
            self._requests_today += 1
            self._requests_this_minute += 1
            self._tokens_this_minute += max(0, tokens_used)
            self._check_warning()

    # ── Reservations ─────────────────────────────────────────
    def try_acquire(self) -> QuotaReservation | None:
        """Check the daily and per-minute limits and take one request slot.

        Returns ``None`` (taking nothing) when either limit is exhausted.
        """
        with self._lock:
            self._roll_day()
            self._roll_minute()
            if self._max_daily and self._requests_today >= self._max_daily:
                logger.debug(
                    "quota_daily_exhausted",
                    provider=self._provider_id,
                    current=self._requests_today,
                    limit=self._max_daily,
                )
                return None
            if self._max_per_minute and self._requests_this_minute >= self._max_per_minute:
                logger.debug(
                    "quota_rpm_exhausted",
                    provider=self._provider_id,
                    current=self._requests_this_minute,
                    limit=self._max_per_minute,
                )
                return None
            self._requests_today += 1
            self._requests_this_minute += 1
            self._check_warning()
            return QuotaReservation(
                provider_id=self._provider_id,
                day_window_start=self._day_window_start,
                minute_window_start=self._minute_window_start,
            )

    def release(self, reservation: QuotaReservation) -> None:
        """Give back a slot whose request failed.

        A slot counted in a window that has since reset is already gone.
        """
        with self._lock:
            self._roll_day()
            self._roll_minute()
            if reservation.day_window_start == self._day_window_start and self._requests_today > 0:
                self._requests_today -= 1
            if (
                reservation.minute_window_start == self._minute_window_start
                and self._requests_this_minute > 0
            ):
                self._requests_this_minute -= 1

    def commit(self, reservation: QuotaReservation, tokens_used: int = 0) -> None:
        """Keep the slot and add the tokens the request used to the current minute."""
        with self._lock:
            self._roll_minute()
            self._tokens_this_minute += max(0, tokens_used)

    # ── Observation ──────────────────────────────────────────
    @property
    def requests_today(self) -> int:
        with self._lock:
            self._roll_day()
            return self._requests_today

    @property
    def requests_this_minute(self) -> int:
        with self._lock:
            self._roll_minute()
            return self._requests_this_minute

    @property
    def tokens_this_minute(self) -> int:
        with self._lock:
            self._roll_minute()
            return self._tokens_this_minute

    @property
    def remaining_daily(self) -> int | None:
        """Requests left today, or ``None`` when the daily budget is unlimited."""
        with self._lock:
            self._roll_day()
            if self._max_daily == 0:
                return None
            return max(0, self._max_daily - self._requests_today)

    def snapshot(self) -> QuotaSnapshot:
        with self._lock:
            self._roll_day()
            self._roll_minute()
            return QuotaSnapshot(
                provider_id=self._provider_id,
                requests_today=self._requests_today,
                requests_this_minute=self._requests_this_minute,
                tokens_this_minute=self._tokens_this_minute,
                max_daily=self._max_daily,
                max_per_minute=self._max_per_minute,
                max_tokens_per_minute=self._max_tokens_per_minute,
                day_window_start=self._day_window_start,
                minute_window_start=self._minute_window_start,
            )

    def reset(self) -> None:
        """Force-reset all counters (for admin override)."""
        with self._lock:
            now = self._clock()
            self._requests_today = 0
            self._day_window_start = _truncate(now, DAY_SECONDS)
            self._requests_this_minute = 0
            self._tokens_this_minute = 0
            self._minute_window_start = _truncate(now, MINUTE_SECONDS)
            self._warning_emitted = False

    # ── Internals ────────────────────────────────────────────
    def _roll_day(self) -> None:
        """Reset the daily counter once the day window has passed. Caller holds lock."""
        now = self._clock()
        if now - self._day_window_start > DAY_SECONDS:
            self._requests_today = 0
            self._day_window_start = _truncate(now, DAY_SECONDS)
            self._warning_emitted = False
            logger.debug("quota_daily_window_reset", provider=self._provider_id)

    def _roll_minute(self) -> None:
        """Reset both minute counters together. Caller holds lock."""
        now = self._clock()
        if now - self._minute_window_start > MINUTE_SECONDS:
            self._requests_this_minute = 0
            self._tokens_this_minute = 0
            self._minute_window_start = _truncate(now, MINUTE_SECONDS)

    def _check_warning(self) -> None:
        """Emit early warning when approaching the daily limit. Caller holds lock."""
        if self._max_daily <= 0 or self._warning_emitted:
            return
        usage_pct = self._requests_today / self._max_daily
        if usage_pct >= self._warning_thr:
            self._warning_emitted = True
            logger.warning(
                "quota_warning",
                provider=self._provider_id,
                usage_pct=float(f"{(usage_pct * 100):.1f}"),
                requests_today=self._requests_today,
                max_daily=self._max_daily,
            )
