"""OpenAI-compatible chat-completions adapter.

Speaks the ``/chat/completions`` wire format used by OpenAI, OpenRouter and
most function-calling gateways. Each configured model is tried in order
(or only ``force_model``); the first model that answers wins, otherwise the
last model's error is raised.
"""

from __future__ import annotations

import base64
import json
import time
from typing import Any, Callable, Mapping, Sequence

import httpx
import structlog

from llm_router.adapters.base import QuotaBackedProvider
from llm_router.exceptions import ProviderError
from llm_router.types import Message, QueryOptions, QueryResult, Role, ToolCall

logger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = "llm-router/0.1"


class OpenAICompatibleProvider(QuotaBackedProvider):
    """Provider for any API that accepts OpenAI-style chat requests."""

    def __init__(
        self,
        *,
        api_key: str,
        url: str,
        models: Sequence[str],
        name: str = "FunctionCalling",
        rank: int = 0,
        max_daily: int = 0,
        max_per_minute: int = 0,
        max_tokens_per_minute: int = 0,
        timeout: float = 60.0,
        user_agent: str = DEFAULT_USER_AGENT,
        extra_headers: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(
            name=name,
            rank=rank,
            max_daily=max_daily,
            max_per_minute=max_per_minute,
            max_tokens_per_minute=max_tokens_per_minute,
            clock=clock,
        )
        self._url = url
        self._models = list(models)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            **(extra_headers or {}),
        }
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
        )
        logger.info("provider_initialized", provider=name, url=url, models=self._models)

    @property
    def models(self) -> list[str]:
        return list(self._models)

    # ── Provider implementation ──────────────────────────────
    async def send(
        self, messages: Sequence[Message], options: QueryOptions
    ) -> QueryResult:
        models = [options.force_model] if options.force_model else self._models
        if not models:
            raise ProviderError(self.name, "no models configured")

        last_error: ProviderError | None = None
        for model in models:
            try:
                return await self._send_model(model, messages, options)
            except ProviderError as exc:
                last_error = exc
                logger.debug("provider_model_failed", provider=self.name, model=model, error=str(exc))
        raise last_error or ProviderError(self.name, "no model answered")

    async def close(self) -> None:
        await self._client.aclose()

    # ── Wire mapping ─────────────────────────────────────────
    async def _send_model(
        self, model: str, messages: Sequence[Message], options: QueryOptions
    ) -> QueryResult:
        body = self._build_body(model, messages, options)
        try:
            response = await self._client.post(self._url, headers=self._headers, json=body)
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, f"request failed: {type(exc).__name__}: {exc}") from exc

        if response.status_code != 200:
            raise ProviderError(
                self.name,
                f"API request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(self.name, f"failed to parse response: {exc}") from exc
        return self._parse_response(model, data)

    def _build_body(
        self, model: str, messages: Sequence[Message], options: QueryOptions
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": model,
            "messages": [m for message in messages for m in self._render_message(message)],
            "temperature": options.temperature,
        }
        if options.max_tokens:
            body["max_tokens"] = options.max_tokens
        if options.tools:
            body["tools"] = [t.to_openai() for t in options.tools]
        if options.tool_choice:
            body["tool_choice"] = self._render_tool_choice(options.tool_choice)
        return body

    @staticmethod
    def _render_tool_choice(choice: str) -> str | dict[str, Any]:
        if choice in ("auto", "none", "required"):
            return choice
        return {"type": "function", "function": {"name": choice}}

    @staticmethod
    def _render_message(message: Message) -> list[dict[str, Any]]:
        if message.role == Role.TOOL:
            rendered: list[dict[str, Any]] = []
            if message.tool_calls:
                rendered.append({
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.function_name,
                                "arguments": json.dumps(call.arguments),
                            },
                        }
                        for call in message.tool_calls
                    ],
                })
            rendered.extend(
                {"role": "tool", "tool_call_id": r.id, "content": r.content_text()}
                for r in message.tool_results
            )
            return rendered

        if not message.files:
            return [{"role": message.role.value, "content": message.content}]

        # Attachments need the content-array form
        content: list[dict[str, Any]] = []
        if message.content:
            content.append({"type": "text", "text": message.content})
        for f in message.files:
            encoded = base64.b64encode(f.data).decode("ascii")
            content.append({
                "type": "image_url",
                "image_url": {"url": f"data:{f.mime_type};base64,{encoded}"},
            })
        return [{"role": message.role.value, "content": content}]

    def _parse_response(self, model: str, data: dict[str, Any]) -> QueryResult:
        choices = data.get("choices") or []
        if not choices:
            raise ProviderError(self.name, "no response choices received")
        try:
            choice = choices[0]
            message = choice.get("message") or {}
            tool_calls = tuple(
                ToolCall(
                    id=tc.get("id", ""),
                    function_name=tc["function"]["name"],
                    arguments=tc["function"].get("arguments") or {},
                )
                for tc in message.get("tool_calls") or []
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError(self.name, f"malformed response: {exc}") from exc

        usage = data.get("usage") or {}
        return QueryResult(
            content=message.get("content") or "",
            model=model,
            tool_calls=tool_calls,
            finish_reason=choice.get("finish_reason") or "",
            provider=self.name,
            total_tokens=int(usage.get("total_tokens") or 0),
        )


class OpenRouterProvider(OpenAICompatibleProvider):
    """OpenRouter (https://openrouter.ai) — OpenAI wire format plus attribution headers."""

    DEFAULT_URL = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(
        self,
        *,
        api_key: str,
        models: Sequence[str],
        url: str = DEFAULT_URL,
        referer: str = "",
        x_title: str = "",
        name: str = "OpenRouter",
        **kwargs: Any,
    ) -> None:
        headers = {}
        if referer:
            headers["HTTP-Referer"] = referer
        if x_title:
            headers["X-Title"] = x_title
        super().__init__(
            api_key=api_key,
            url=url,
            models=models,
            name=name,
            extra_headers=headers,
            **kwargs,
        )
