"""Gemini adapter — Google Generative Language REST API via httpx.

Gemini only knows ``user`` and ``model`` roles: ``system`` turns are sent as
``user`` and ``assistant`` turns as ``model``. Attachments travel as
``inline_data`` parts, tools as ``function_declarations``. The API key is
sent in the ``x-goog-api-key`` header.
"""

from __future__ import annotations

import base64
import time
from typing import Any, Callable, Sequence

import httpx
import structlog

from llm_router.adapters.base import QuotaBackedProvider
from llm_router.adapters.openai_compat import DEFAULT_USER_AGENT
from llm_router.exceptions import ProviderError
from llm_router.types import Message, QueryOptions, QueryResult, Role, ToolCall

logger = structlog.get_logger(__name__)

_ROLE_MAP: dict[Role, str] = {
    Role.USER: "user",
    Role.SYSTEM: "user",
    Role.ASSISTANT: "model",
}

_TOOL_MODE_MAP: dict[str, str] = {
    "auto": "AUTO",
    "none": "NONE",
    "required": "ANY",
}


class GeminiProvider(QuotaBackedProvider):
    """Provider for Google's Gemini models."""

    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        *,
        api_key: str,
        models: Sequence[str],
        base_url: str = DEFAULT_BASE_URL,
        name: str = "Gemini",
        rank: int = 0,
        max_daily: int = 0,
        max_per_minute: int = 0,
        max_tokens_per_minute: int = 0,
        timeout: float = 60.0,
        user_agent: str = DEFAULT_USER_AGENT,
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
        self._headers = {"x-goog-api-key": api_key}
        self._base_url = base_url.rstrip("/")
        self._models = list(models)
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent, "Content-Type": "application/json"},
        )
        logger.info("provider_initialized", provider=name, models=self._models)

    @property
    def models(self) -> list[str]:
        return list(self._models)

    async def send(
        self, messages: Sequence[Message], options: QueryOptions
    ) -> QueryResult:
        models = [options.force_model] if options.force_model else self._models
        if not models:
            raise ProviderError(self.name, "no models configured")

        last_error: ProviderError | None = None
        for model in models:
            try:
                return await self._generate(model, messages, options)
            except ProviderError as exc:
                last_error = exc
                logger.debug("provider_model_failed", provider=self.name, model=model, error=str(exc))
        raise last_error or ProviderError(self.name, "failed to generate content")

    async def close(self) -> None:
        await self._client.aclose()

    # ── Wire mapping ─────────────────────────────────────────
    async def _generate(
        self, model: str, messages: Sequence[Message], options: QueryOptions
    ) -> QueryResult:
        url = f"{self._base_url}/models/{model}:generateContent"
        try:
            response = await self._client.post(
                url,
                headers=self._headers,
                json=self._build_body(messages, options),
            )
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

    def _build_body(self, messages: Sequence[Message], options: QueryOptions) -> dict[str, Any]:
        contents: list[dict[str, Any]] = []
        for message in messages:
            contents.extend(self._render_message(message))

        generation_config: dict[str, Any] = {"temperature": options.temperature}
        if options.max_tokens:
            generation_config["maxOutputTokens"] = options.max_tokens

        body: dict[str, Any] = {"contents": contents, "generationConfig": generation_config}
        if options.tools:
            body["tools"] = [{
                "function_declarations": [
                    {"name": t.name, "description": t.description, "parameters": t.parameters}
                    for t in options.tools
                ],
            }]
        if options.tool_choice:
            mode = _TOOL_MODE_MAP.get(options.tool_choice)
            config: dict[str, Any] = {"mode": mode or "ANY"}
            if mode is None:
                config["allowedFunctionNames"] = [options.tool_choice]
            body["toolConfig"] = {"functionCallingConfig": config}
        return body

    @staticmethod
    def _render_message(message: Message) -> list[dict[str, Any]]:
        if message.role == Role.TOOL:
            rendered: list[dict[str, Any]] = []
            if message.tool_calls:
                rendered.append({
                    "role": "model",
                    "parts": [
                        {"functionCall": {"name": c.function_name, "args": c.arguments}}
                        for c in message.tool_calls
                    ],
                })
            rendered.append({
                "role": "user",
                "parts": [
                    {"functionResponse": {"name": r.name, "response": {"content": r.content}}}
                    for r in message.tool_results
                ],
            })
            return rendered

        parts: list[dict[str, Any]] = []
        if message.content:
            parts.append({"text": message.content})
        for f in message.files:
            parts.append({
                "inline_data": {
                    "mime_type": f.mime_type,
                    "data": base64.b64encode(f.data).decode("ascii"),
                },
            })
        return [{"role": _ROLE_MAP[message.role], "parts": parts}]

    def _parse_response(self, model: str, data: dict[str, Any]) -> QueryResult:
        candidates = data.get("candidates") or []
        if not candidates:
            raise ProviderError(self.name, "no candidates received")

        candidate = candidates[0]
        text: list[str] = []
        calls: list[ToolCall] = []
        try:
            for part in (candidate.get("content") or {}).get("parts") or []:
                if "text" in part:
                    text.append(part["text"])
                elif "functionCall" in part:
                    fc = part["functionCall"]
                    calls.append(ToolCall(
                        id=fc.get("id") or f"call_{len(calls)}",
                        function_name=fc["name"],
                        arguments=fc.get("args") or {},
                    ))
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError(self.name, f"malformed response: {exc}") from exc

        usage = data.get("usageMetadata") or {}
        return QueryResult(
            content="".join(text),
            model=model,
            tool_calls=tuple(calls),
            finish_reason=candidate.get("finishReason") or "",
            provider=self.name,
            total_tokens=int(usage.get("totalTokenCount") or 0),
        )
