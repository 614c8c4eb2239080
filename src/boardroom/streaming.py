from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from loguru import logger

from boardroom.upstream import (
    ContentDelta,
    MessageStart,
    MessageStop,
    UpstreamEvent,
    error_message,
    parse_upstream_event,
)


@dataclass(frozen=True)
class StartChunk:
    type: ClassVar[str] = "start"
    message_id: str | None = None

    def to_dict(self) -> dict:
        return {"type": self.type, "messageId": self.message_id}


@dataclass(frozen=True)
class MetadataChunk:
    type: ClassVar[str] = "metadata"
    persona: dict

    def to_dict(self) -> dict:
        return {"type": self.type, "persona": self.persona}


@dataclass(frozen=True)
class TextChunk:
    type: ClassVar[str] = "text"
    text: str

    def to_dict(self) -> dict:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class DoneChunk:
    type: ClassVar[str] = "done"
    full_text: str

    def to_dict(self) -> dict:
        return {"type": self.type, "fullText": self.full_text}


@dataclass(frozen=True)
class ErrorChunk:
    type: ClassVar[str] = "error"
    error: str

    def to_dict(self) -> dict:
        return {"type": self.type, "error": self.error}


@dataclass(frozen=True)
class UnknownChunk:
    type: ClassVar[str] = "unknown"
    kind: str | None = None

    def to_dict(self) -> dict:
        return {"type": self.type}


StreamChunk = Union[StartChunk, MetadataChunk, TextChunk, DoneChunk, ErrorChunk, UnknownChunk]

TERMINAL_CHUNKS = (DoneChunk, ErrorChunk)


def parse_stream_chunk(raw: Any) -> StreamChunk:
    """Map a single raw upstream event to a chunk, without stream context.

    ``done`` chunks produced here carry an empty ``full_text``; only
    ``normalize_events`` knows the concatenated text.
    """
    event = parse_upstream_event(raw)
    failure = error_message(event)
    if failure is not None:
        return ErrorChunk(error=failure)
    if isinstance(event, ContentDelta):
        return TextChunk(text=event.text)
    if isinstance(event, MessageStart):
        return StartChunk(message_id=event.message_id)
    if isinstance(event, MessageStop):
        return DoneChunk(full_text="")
    return UnknownChunk(kind=event.kind)


async def _close_quietly(events: AsyncIterable[UpstreamEvent]) -> None:
    aclose = getattr(events, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as ex:
        logger.warning(f"Failed to release upstream stream: {type(ex).__name__}: {ex}")


async def normalize_events(events: AsyncIterable[Any]) -> AsyncIterator[StreamChunk]:
    """Translate upstream events into chunks ending in exactly one terminal chunk.

    A stop event or the natural end of ``events`` produces ``done`` carrying
    every emitted text fragment concatenated in order. Any exception while
    consuming ``events`` produces a single ``error``. Unrecognized events are
    forwarded as ``unknown``. The upstream iterator is closed on every exit
    path, including when the consumer stops iterating early.
    """
    parts: list[str] = []
    started = False
    iterator = aiter(events)
    try:
        while True:
            try:
                raw = await anext(iterator)
            except StopAsyncIteration:
                break
            except Exception as ex:
                logger.warning(f"Upstream stream failed: {type(ex).__name__}: {ex}")
                yield ErrorChunk(error=str(ex) or type(ex).__name__)
                return

            event = parse_upstream_event(raw)
            failure = error_message(event)
            if failure is not None:
                logger.warning(f"Upstream reported an error: {failure}")
                yield ErrorChunk(error=failure)
                return
            if isinstance(event, ContentDelta):
                parts.append(event.text)
                yield TextChunk(text=event.text)
            elif isinstance(event, MessageStart) and not started:
                started = True
                yield StartChunk(message_id=event.message_id)
            elif isinstance(event, MessageStop):
                break
            else:
                yield UnknownChunk(kind=getattr(event, "kind", "message_start"))

        yield DoneChunk(full_text="".join(parts))
    finally:
        await _close_quietly(iterator)


async def stream_turn(
    events: AsyncIterable[Any],
    *,
    persona: dict | None = None,
    on_complete: Callable[[str], None] | None = None,
) -> AsyncIterator[StreamChunk]:
    """One turn's chunk sequence: an optional metadata prologue, then the
    normalized upstream chunks.

    The upstream is released before the terminal chunk is yielded, so a
    consumer that stops reading at ``done`` or ``error`` leaves nothing open.
    ``on_complete`` receives the full text once, right before ``done`` is
    emitted. It never runs for a stream that errors or is abandoned, so no
    partial record is written. A failing ``on_complete`` is logged and the
    ``done`` chunk is still delivered.
    """
    terminal: StreamChunk | None = None
    try:
        if persona is not None:
            yield MetadataChunk(persona=persona)

        async with aclosing(normalize_events(events)) as chunks:
            async for chunk in chunks:
                if isinstance(chunk, TERMINAL_CHUNKS):
                    terminal = chunk
                    break
                yield chunk
    finally:
        # normalize_events only closes the upstream once it has started iterating.
        await _close_quietly(events)

    if terminal is None:
        return
    if isinstance(terminal, DoneChunk) and on_complete is not None:
        try:
            on_complete(terminal.full_text)
        except Exception as ex:
            logger.opt(exception=ex).error(f"Failed to persist completed response: {ex}")
    yield terminal


def format_sse_event(event_type: str, data: Any, reconnection_token: str | None = None) -> str:
    result = ""
    if reconnection_token:
        result += f"id: {reconnection_token}\n"
    payload = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    result += f"event: {event_type}\ndata: {payload}\n\n"
    return result


async def sse_stream(
    chunks: AsyncIterator[StreamChunk],
    *,
    first_token: int | None = None,
) -> AsyncIterator[str]:
    """Frame chunks as text-event blocks, stopping after the terminal chunk.

    When ``first_token`` is given every block is prefixed with an id line,
    counting up from it. The chunk source is always closed.
    """
    token = first_token

    def next_token() -> str | None:
        nonlocal token
        if token is None:
            return None
        current = str(token)
        token += 1
        return current

    try:
        async for chunk in chunks:
            yield format_sse_event(chunk.type, chunk.to_dict(), next_token())
            if isinstance(chunk, TERMINAL_CHUNKS):
                break
    except Exception as ex:
        logger.warning(f"Chunk source failed: {type(ex).__name__}: {ex}")
        yield format_sse_event("error", ErrorChunk(error=str(ex) or "Stream error").to_dict(), next_token())
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
