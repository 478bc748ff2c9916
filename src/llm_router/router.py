"""Provider router — the main entry-point for generation requests.

Holds providers in rank order (highest first, registration order on ties) and
walks them once per query: quota-exhausted providers are skipped, failing
providers are recorded, and the first success is returned. When nothing
answers, ``RouterError`` carries one failure record per provider, in the order
they were tried.
"""

from __future__ import annotations

import asyncio
import functools
import time
from dataclasses import dataclass, replace
from types import TracebackType
from typing import Any, Mapping, Sequence

import structlog

from llm_router.exceptions import (
    ConfigError,
    EmptyResponseError,
    ProviderFailure,
    QueryCancelledError,
    QuotaExceededError,
    RouterClosedError,
    RouterError,
)
from llm_router.observability.metrics import PROVIDER_ATTEMPTS, PROVIDER_LATENCY, QUERIES_TOTAL
from llm_router.ports import Provider, ToolExecutor
from llm_router.quota import QuotaReservation
from llm_router.relay import ToolCallRelay
from llm_router.types import Message, QueryOptions, QueryResult, estimate_tokens

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _ProviderEntry:
    """Registration of one provider; rank is frozen at construction."""

    provider: Provider
    rank: int
    name: str
    position: int


class Router:
    """Routes queries across providers by rank and quota, with fallback.

    Usage::

        async with Router([gemini, openrouter]) as router:
            result = await router.query([Message.user("Hello")])

    The router owns its providers: ``close()`` releases all of them.
    """

    def __init__(
        self,
        providers: Sequence[Provider],
        *,
        tool_executor: ToolExecutor | None = None,
        empty_response_is_error: bool = True,
    ) -> None:
        providers = list(providers)
        if not providers:
            raise ConfigError("at least one provider is required")

        entries = [
            _ProviderEntry(provider=p, rank=p.rank, name=name, position=idx)
            for idx, (p, name) in enumerate(zip(providers, self._resolve_names(providers)))
        ]
        # sorted() is stable, so equal ranks keep registration order
        self._entries: tuple[_ProviderEntry, ...] = tuple(
            sorted(entries, key=lambda e: e.rank, reverse=True)
        )
        self._relay = ToolCallRelay(tool_executor) if tool_executor is not None else None
        self._empty_response_is_error = empty_response_is_error
        self._closed = False

        logger.info(
            "router_initialized",
            providers=[f"{e.name}(rank={e.rank})" for e in self._entries],
            tool_relay=self._relay is not None,
        )

    @staticmethod
    def _resolve_names(providers: Sequence[Provider]) -> list[str]:
        """Give unnamed providers a positional placeholder unique in this router."""
        taken = {p.name for p in providers if p.name}
        names: list[str] = []
        for idx, p in enumerate(providers):
            if p.name:
                names.append(p.name)
                continue
            placeholder = f"provider-{idx}"
            while placeholder in taken:
                placeholder += "_"
            taken.add(placeholder)
            names.append(placeholder)
        return names

    @property
    def providers(self) -> list[str]:
        """Provider names in iteration order."""
        return [e.name for e in self._entries]

    @property
    def closed(self) -> bool:
        return self._closed

    # ── Main entry-point ─────────────────────────────────────
    async def query(
        self,
        messages: Sequence[Message | Mapping[str, Any]],
        options: QueryOptions | None = None,
        *,
        timeout: float | None = None,
    ) -> QueryResult:
        """Send ``messages`` to the first provider that can answer.

        Args:
            messages: Conversation; copied before any provider sees it.
            options:  Temperature, model pin, tools.
            timeout:  Optional deadline in seconds for the whole query.

        Returns:
            The first successful provider's result.

        Raises:
            RouterError: If every provider was skipped or failed.
            QueryCancelledError: If ``timeout`` expired mid-iteration.
            RouterClosedError: If the router was closed.
        """
        if self._closed:
            raise RouterClosedError()

        normalized = self._normalize(messages)
        options = options or QueryOptions()
        if self._relay is not None:
            options = self._relay.prepare_options(options)

        failures: list[ProviderFailure] = []
        try:
            return await asyncio.wait_for(
                self._route(normalized, options, failures),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            QUERIES_TOTAL.labels(status="cancelled").inc()
            logger.warning(
                "query_deadline_exceeded",
                timeout_s=timeout,
                attempted=[f.provider_name for f in failures],
            )
            raise QueryCancelledError(failures) from None

    async def query_text(
        self,
        prompt: str,
        *,
        system: str | None = None,
        options: QueryOptions | None = None,
        timeout: float | None = None,
    ) -> QueryResult:
        """Convenience wrapper for a single user prompt."""
        messages = [Message.system(system)] if system else []
        messages.append(Message.user(prompt))
        return await self.query(messages, options, timeout=timeout)

    def has_remaining_requests(self) -> bool:
        """True if any provider still has daily quota (a hint, not a guarantee)."""
        return any(e.provider.can_serve_daily() for e in self._entries)

    # ── Fallback loop ────────────────────────────────────────
    async def _route(
        self,
        messages: tuple[Message, ...],
        options: QueryOptions,
        failures: list[ProviderFailure],
    ) -> QueryResult:
        for entry in self._entries:
            provider = entry.provider

            # Check and take a request slot in one step
            reservation = provider.try_acquire()
            if reservation is None:
                failures.append(ProviderFailure(entry.name, QuotaExceededError(entry.name)))
                PROVIDER_ATTEMPTS.labels(provider=entry.name, outcome="skipped_quota").inc()
                logger.info("provider_skipped_quota", provider=entry.name, rank=entry.rank)
                continue

            log = logger.bind(provider=entry.name, rank=entry.rank, attempt=len(failures) + 1)
            start = time.monotonic()
            try:
                result = await self._attempt(entry, reservation, messages, options)
            except asyncio.CancelledError:
                log.info("provider_request_cancelled")
                raise
            except Exception as exc:
                latency_s = time.monotonic() - start
                PROVIDER_LATENCY.labels(provider=entry.name).observe(latency_s)
                PROVIDER_ATTEMPTS.labels(provider=entry.name, outcome="failure").inc()
                failures.append(ProviderFailure(entry.name, exc))
                log.warning(
                    "provider_request_failed",
                    error=f"{type(exc).__name__}: {exc}",
                    latency_ms=float(f"{latency_s * 1000:.1f}"),
                )
                continue

            latency_s = time.monotonic() - start
            PROVIDER_LATENCY.labels(provider=entry.name).observe(latency_s)
            PROVIDER_ATTEMPTS.labels(provider=entry.name, outcome="success").inc()
            QUERIES_TOTAL.labels(status="success").inc()
            log.info(
                "provider_request_success",
                model=result.model,
                latency_ms=float(f"{latency_s * 1000:.1f}"),
            )
            if failures:
                logger.info(
                    "provider_failover_success",
                    provider=entry.name,
                    attempts=len(failures) + 1,
                    failed_providers=[f.provider_name for f in failures],
                )
            return result

        QUERIES_TOTAL.labels(status="exhausted").inc()
        logger.warning(
            "all_providers_failed",
            failures={f.provider_name: str(f.cause) for f in failures},
        )
        raise RouterError(failures)

    async def _attempt(
        self,
        entry: _ProviderEntry,
        reservation: QuotaReservation,
        messages: tuple[Message, ...],
        options: QueryOptions,
    ) -> QueryResult:
        """One provider attempt, including at most one tool-call round-trip.

        The first send uses the slot taken at admission; the follow-up send
        must take its own.
        """
        result = await self._send_once(entry, messages, options, reservation=reservation)
        if self._relay is not None:
            send = functools.partial(self._send_once, entry)
            result = await self._relay.resolve(send, messages, options, result)
        return result

    async def _send_once(
        self,
        entry: _ProviderEntry,
        messages: Sequence[Message],
        options: QueryOptions,
        *,
        reservation: QuotaReservation | None = None,
    ) -> QueryResult:
        provider = entry.provider
        if reservation is None:
            reservation = provider.try_acquire()
            if reservation is None:
                raise QuotaExceededError(entry.name)

        try:
            result = await provider.send(messages, options)
            if self._empty_response_is_error and result.is_empty:
                raise EmptyResponseError(entry.name, result.model)
        except BaseException:
            # Failed and cancelled calls give their slot back
            provider.release(reservation)
            raise

        provider.commit(reservation, result.total_tokens or estimate_tokens(messages))
        if not result.provider:
            result = replace(result, provider=entry.name)
        return result

    @staticmethod
    def _normalize(messages: Sequence[Message | Mapping[str, Any]]) -> tuple[Message, ...]:
        return tuple(Message.coerce(m) for m in messages)

    # ── Lifecycle ────────────────────────────────────────────
    async def close(self) -> None:
        """Close every provider; a failing close does not stop the others."""
        if self._closed:
            return
        self._closed = True
        for entry in self._entries:
            try:
                await entry.provider.close()
            except Exception as exc:
                logger.warning(
                    "provider_close_failed",
                    provider=entry.name,
                    error=f"{type(exc).__name__}: {exc}",
                )
        logger.info("router_closed", providers=len(self._entries))

    async def __aenter__(self) -> Router:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
