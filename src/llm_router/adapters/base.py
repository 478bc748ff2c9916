"""Quota plumbing shared by the concrete backend adapters."""

from __future__ import annotations

import time
from typing import Callable

from llm_router.ports import Provider
from llm_router.quota import QuotaReservation, QuotaTracker


class QuotaBackedProvider(Provider):
    """``Provider`` whose admission checks delegate to a ``QuotaTracker``.

    Subclasses implement ``send`` (and ``close`` when they hold resources).
    """

    def __init__(
        self,
        *,
        name: str,
        rank: int = 0,
        max_daily: int = 0,
        max_per_minute: int = 0,
        max_tokens_per_minute: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._name = name
        self._rank = rank
        self._quota = QuotaTracker(
            name or type(self).__name__,
            max_daily=max_daily,
            max_per_minute=max_per_minute,
            max_tokens_per_minute=max_tokens_per_minute,
            clock=clock,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def quota(self) -> QuotaTracker:
        return self._quota

    def can_serve_daily(self) -> bool:
        return self._quota.can_serve_daily()

    def can_serve_per_minute(self) -> bool:
        return self._quota.can_serve_per_minute()

    def can_serve_tokens(self, estimated: int) -> bool:
        return self._quota.can_serve_tokens(estimated)

    def record_usage(self, tokens_used: int) -> None:
        self._quota.record_usage(tokens_used)

    def try_acquire(self) -> QuotaReservation | None:
        return self._quota.try_acquire()

    def release(self, reservation: QuotaReservation) -> None:
        self._quota.release(reservation)

    def commit(self, reservation: QuotaReservation, tokens_used: int) -> None:
        self._quota.commit(reservation, tokens_used)

    async def close(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, rank={self._rank})"
