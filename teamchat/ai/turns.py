from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import StrEnum

from teamchat.ai.provider import TextGenerator
from teamchat.core.errors import GenerationError
from teamchat.domain.models import Message, NewMessage, with_author
from teamchat.metrics.prometheus import record_ai_turn
from teamchat.storage.base import ChatStorage
from teamchat.ws.broadcaster import Broadcaster
from teamchat.ws.events import message_created, message_updated


logger = logging.getLogger(__name__)

_AI_MENTION_RE = re.compile(r"@ai\s*", re.IGNORECASE)


def clean_prompt(content: str) -> str:
    return _AI_MENTION_RE.sub("", content).strip()


async def _close_stream(stream: AsyncIterator[str]) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception:
        logger.debug("ai stream close failed", exc_info=True)


class TurnState(StrEnum):
    CREATED = "created"
    STREAMING = "streaming"
    FINALIZED = "finalized"
    FAILED = "failed"


@dataclass
class TurnResult:
    trigger_id: str
    message_id: str | None
    state: TurnState
    content: str
    deltas: int
    error: str | None = None


class AITurnGenerator:
    """Runs one AI turn per eligible triggering message.

    created -> streaming -> finalized, with failed reachable from created or
    streaming. Each delta is persisted (full content, overwrite) and
    broadcast before the next one is requested, so updates for a message
    reach every connection in emission order. On failure the turn still
    completes, with the apology text as (or appended to) the final content.
    """

    def __init__(
        self,
        *,
        storage: ChatStorage,
        broadcaster: Broadcaster,
        generator: TextGenerator,
        apology_text: str,
        timeout_s: float,
    ) -> None:
        self._storage: ChatStorage = storage
        self._broadcaster: Broadcaster = broadcaster
        self._generator: TextGenerator = generator
        self._apology_text: str = apology_text
        self._timeout_s: float = timeout_s

    async def run(self, trigger: Message) -> TurnResult:
        labels = self._generator.labels
        start_mono = time.monotonic()
        prompt = clean_prompt(trigger.content)
        state = TurnState.CREATED

        try:
            placeholder = await asyncio.to_thread(
                self._storage.create_message,
                NewMessage(
                    content="",
                    author_user_id=None,
                    is_ai=True,
                    is_typing=False,
                    chat_scope=trigger.chat_scope,
                    private_counterpart_user_id=trigger.private_counterpart_user_id,
                ),
            )
        except Exception as e:
            logger.exception("ai turn abandoned, placeholder not created: trigger_id=%s", trigger.id)
            return TurnResult(
                trigger_id=trigger.id,
                message_id=None,
                state=TurnState.FAILED,
                content="",
                deltas=0,
                error=type(e).__name__,
            )

        logger.info(
            "ai turn started: trigger_id=%s message_id=%s provider=%s model=%s scope=%s",
            trigger.id,
            placeholder.id,
            labels.provider,
            labels.model,
            trigger.chat_scope.value,
        )
        _ = self._broadcaster.broadcast_all(message_created(with_author(placeholder, None)))

        state = TurnState.STREAMING
        content = ""
        deltas = 0
        first_delta_ms: int | None = None
        error: str | None = None

        # The deadline bounds provider reads only; persists are never cancelled.
        deadline = asyncio.get_running_loop().time() + self._timeout_s
        stream = aiter(self._generator.stream(prompt))
        try:
            while True:
                try:
                    async with asyncio.timeout_at(deadline):
                        delta = await anext(stream)
                except StopAsyncIteration:
                    break
                except TimeoutError:
                    raise GenerationError(
                        f"AI turn exceeded {self._timeout_s:g}s", error_code="AI_TIMEOUT"
                    ) from None
                if not delta:
                    continue
                if first_delta_ms is None:
                    first_delta_ms = int((time.monotonic() - start_mono) * 1000)
                content += delta
                deltas += 1
                await asyncio.to_thread(
                    self._storage.update_message_content, placeholder.id, content
                )
                _ = self._broadcaster.broadcast_all(
                    message_updated(message_id=placeholder.id, content=content, is_complete=False)
                )
            if content == "":
                raise GenerationError("AI provider returned no text", error_code="AI_EMPTY_COMPLETION")
        except asyncio.CancelledError:
            await _close_stream(stream)
            raise
        except Exception as e:
            state = TurnState.FAILED
            error = e.error_code if isinstance(e, GenerationError) else type(e).__name__
            logger.warning(
                "ai turn failed, finalizing with apology: trigger_id=%s message_id=%s deltas=%d err=%s",
                trigger.id,
                placeholder.id,
                deltas,
                error,
                exc_info=not isinstance(e, GenerationError),
            )
            content = f"{content}\n\n{self._apology_text}" if content else self._apology_text
            await _close_stream(stream)

        try:
            await asyncio.to_thread(self._storage.update_message_content, placeholder.id, content)
        except Exception:
            logger.exception(
                "ai turn final persist failed: trigger_id=%s message_id=%s", trigger.id, placeholder.id
            )
        _ = self._broadcaster.broadcast_all(
            message_updated(message_id=placeholder.id, content=content, is_complete=True)
        )

        if state != TurnState.FAILED:
            state = TurnState.FINALIZED

        latency_ms = max(0, int((time.monotonic() - start_mono) * 1000))
        record_ai_turn(
            labels=labels,
            latency_ms=latency_ms,
            first_delta_ms=first_delta_ms,
            output_chunks=deltas,
            output_chars=len(content),
            failed=state == TurnState.FAILED,
        )
        logger.info(
            "ai turn %s: trigger_id=%s message_id=%s deltas=%d chars=%d latency_ms=%d",
            state.value,
            trigger.id,
            placeholder.id,
            deltas,
            len(content),
            latency_ms,
        )
        return TurnResult(
            trigger_id=trigger.id,
            message_id=placeholder.id,
            state=state,
            content=content,
            deltas=deltas,
            error=error,
        )
