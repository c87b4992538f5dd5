from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from collections.abc import AsyncIterator
from typing import Protocol, cast
from urllib.parse import urlparse

import httpx

from teamchat.core.config import Settings
from teamchat.core.errors import GenerationError
from teamchat.metrics.prometheus import AITurnMetricLabels


logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """External text-generation capability.

    ``stream`` returns a lazy, finite, non-restartable sequence of text deltas.
    Failures surface as ``GenerationError``.
    """

    @property
    def labels(self) -> AITurnMetricLabels: ...

    def stream(self, prompt: str) -> AsyncIterator[str]: ...


_RE_WORD_CHUNK = re.compile(r"\S+\s*|\s+")


class FakeTextGenerator:
    """Offline generator: echoes the prompt word by word."""

    def __init__(self, *, delay_s: float = 0.0) -> None:
        self.delay_s: float = delay_s

    @property
    def labels(self) -> AITurnMetricLabels:
        return AITurnMetricLabels(provider="fake", api="fake", model="fake")

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        reply = f"AI: {prompt}" if prompt else "AI: (empty prompt)"
        for chunk in _RE_WORD_CHUNK.findall(reply):
            await asyncio.sleep(self.delay_s)
            yield chunk


def _normalize_openai_base_url(raw: str) -> str:
    u = raw.strip()
    if u == "":
        raise ValueError("OPENAI_BASE_URL must not be empty")
    p = urlparse(u)
    if not p.scheme or not p.netloc:
        raise ValueError("OPENAI_BASE_URL must be an absolute URL (e.g. https://openrouter.ai/api/v1)")
    u = u.rstrip("/")
    if not u.endswith("/v1"):
        u = u + "/v1"
    return u


def _clamp_timeout_seconds(raw: float | int | str | None) -> float:
    try:
        t = float(raw) if raw is not None else 60.0
    except Exception:
        t = 60.0
    if not math.isfinite(t) or t <= 0:
        t = 60.0
    return float(max(1.0, min(300.0, t)))


class _SSELineStream(Protocol):
    def aiter_lines(self) -> AsyncIterator[str]: ...


async def _iter_sse_data(resp: _SSELineStream) -> AsyncIterator[str]:
    buf: list[str] = []
    async for line in resp.aiter_lines():
        line = str(line)

        if line == "":
            if buf:
                yield "\n".join(buf)
                buf = []
            continue

        if line.startswith(":"):
            continue

        if line.startswith("data:"):
            buf.append(line[len("data:") :].lstrip())
            continue

    if buf:
        yield "\n".join(buf)


def _extract_delta_from_responses(obj: dict[str, object]) -> str | None:
    typ = obj.get("type")
    if typ == "response.output_text.delta":
        delta = obj.get("delta")
        return delta if isinstance(delta, str) and delta != "" else None
    if typ == "response.output_text.done":
        return None
    delta2 = obj.get("delta")
    if isinstance(delta2, str) and delta2 != "":
        return delta2
    return None


def _extract_delta_from_chat_completions(obj: dict[str, object]) -> str | None:
    choices_obj = obj.get("choices")
    if not isinstance(choices_obj, list) or not choices_obj:
        return None
    c0_raw = cast(object, choices_obj[0])
    if not isinstance(c0_raw, dict):
        return None
    c0 = cast(dict[str, object], c0_raw)
    delta_raw = c0.get("delta")
    if not isinstance(delta_raw, dict):
        return None
    delta = cast(dict[str, object], delta_raw)
    content_obj = delta.get("content")
    return content_obj if isinstance(content_obj, str) and content_obj != "" else None


class OpenAICompatibleTextGenerator:
    """Streams deltas from an OpenAI-compatible API (OpenRouter by default)."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None,
        model: str,
        api: str = "chat_completions",
        timeout_s: float = 60.0,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        referer: str | None = None,
        app_title: str | None = None,
    ) -> None:
        self.base_url: str = _normalize_openai_base_url(base_url)
        self.api_key: str | None = api_key
        self.model: str = model
        self.api: str = api.strip().lower()
        self.timeout_s: float = _clamp_timeout_seconds(timeout_s)
        self.system_prompt: str | None = system_prompt
        self.max_tokens: int | None = max_tokens
        self.temperature: float | None = temperature
        self.referer: str | None = referer
        self.app_title: str | None = app_title

    @property
    def labels(self) -> AITurnMetricLabels:
        return AITurnMetricLabels(provider="openai_compatible", api=self.api, model=self.model)

    def _headers(self, api_key: str) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        if self.app_title:
            headers["X-Title"] = self.app_title
        return headers

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self.timeout_s, connect=min(10.0, self.timeout_s))
        return httpx.AsyncClient(base_url=self.base_url, timeout=timeout, trust_env=False)

    async def _stream_sse(
        self,
        *,
        path: str,
        payload: dict[str, object],
        api_key: str,
        extract: "_DeltaExtractor",
    ) -> AsyncIterator[str]:
        async with self._client() as client:
            async with client.stream(
                "POST", path, headers=self._headers(api_key), json=payload
            ) as resp:
                _ = resp.raise_for_status()
                async for data in _iter_sse_data(resp):
                    if data.strip() == "[DONE]":
                        return
                    try:
                        obj = cast(object, json.loads(data))
                    except Exception:
                        logger.debug("skipping non-JSON SSE data chunk")
                        continue
                    if not isinstance(obj, dict):
                        continue
                    delta = extract(cast(dict[str, object], obj))
                    if delta is None:
                        continue
                    yield delta

    def _via_chat_completions(self, prompt: str, api_key: str) -> AsyncIterator[str]:
        messages: list[dict[str, str]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})
        payload: dict[str, object] = {"model": self.model, "messages": messages, "stream": True}
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return self._stream_sse(
            path="chat/completions",
            payload=payload,
            api_key=api_key,
            extract=_extract_delta_from_chat_completions,
        )

    def _via_responses(self, prompt: str, api_key: str) -> AsyncIterator[str]:
        payload: dict[str, object] = {"model": self.model, "input": prompt, "stream": True}
        if self.system_prompt:
            payload["instructions"] = self.system_prompt
        if self.max_tokens is not None:
            payload["max_output_tokens"] = self.max_tokens
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return self._stream_sse(
            path="responses",
            payload=payload,
            api_key=api_key,
            extract=_extract_delta_from_responses,
        )

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        api_key = (self.api_key or "").strip()
        if api_key == "":
            raise GenerationError("AI provider is not configured", error_code="AI_UNCONFIGURED")

        try:
            if self.api in ("responses", "response"):
                async for t in self._via_responses(prompt, api_key):
                    yield t
                return

            if self.api in ("chat", "chat_completions", "chat.completions"):
                async for t in self._via_chat_completions(prompt, api_key):
                    yield t
                return

            yielded = False
            try:
                async for t in self._via_responses(prompt, api_key):
                    yielded = True
                    yield t
                return
            except httpx.HTTPStatusError as e:
                if yielded or e.response.status_code not in (400, 404, 405):
                    raise
                logger.info(
                    "responses API unavailable (status=%s), falling back to chat/completions",
                    e.response.status_code,
                )
            async for t in self._via_chat_completions(prompt, api_key):
                yield t
        except httpx.HTTPStatusError as e:
            raise GenerationError(
                f"AI provider returned HTTP {e.response.status_code}",
                error_code="AI_HTTP_ERROR",
            ) from e
        except httpx.HTTPError as e:
            raise GenerationError(
                f"AI provider request failed: {type(e).__name__}",
                error_code="AI_TRANSPORT_ERROR",
            ) from e


class _DeltaExtractor(Protocol):
    def __call__(self, obj: dict[str, object], /) -> str | None: ...


def create_text_generator(settings: Settings) -> TextGenerator:
    mode = settings.openai_mode.strip().lower()
    if mode == "openai":
        return OpenAICompatibleTextGenerator(
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key_value,
            model=settings.openai_model,
            api=settings.openai_api,
            timeout_s=settings.openai_timeout_seconds,
            system_prompt=settings.ai_system_prompt,
            max_tokens=settings.ai_max_tokens,
            temperature=settings.ai_temperature,
            referer=settings.openai_referer,
            app_title=settings.openai_app_title,
        )
    return FakeTextGenerator()
