from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class ContentDelta:
    text: str


@dataclass(frozen=True)
class MessageStart:
    message_id: str | None = None


@dataclass(frozen=True)
class MessageStop:
    pass


@dataclass(frozen=True)
class OtherEvent:
    kind: str
    raw: Any = None


UpstreamEvent = Union[ContentDelta, MessageStart, MessageStop, OtherEvent]


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def parse_upstream_event(raw: Any) -> UpstreamEvent:
    """Resolve a raw provider event into the closed event union.

    Accepts a JSON string, a dict, or an SDK event object exposing the same
    attributes. Anything that cannot be read becomes an OtherEvent.
    """
    if isinstance(raw, (ContentDelta, MessageStart, MessageStop, OtherEvent)):
        return raw
    try:
        parsed = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    except ValueError:
        return OtherEvent(kind="malformed", raw=raw)

    event_type = _field(parsed, "type")
    if not isinstance(event_type, str):
        return OtherEvent(kind="malformed", raw=raw)

    if event_type == "content_block_delta":
        delta = _field(parsed, "delta")
        text = _field(delta, "text") if delta is not None else None
        if _field(delta, "type") == "text_delta" and isinstance(text, str) and text:
            return ContentDelta(text=text)
        return OtherEvent(kind=event_type, raw=raw)

    if event_type == "message_start":
        message = _field(parsed, "message")
        message_id = _field(message, "id") if message is not None else None
        return MessageStart(message_id=message_id if isinstance(message_id, str) else None)

    if event_type == "message_stop":
        return MessageStop()

    return OtherEvent(kind=event_type, raw=raw)


def error_message(event: UpstreamEvent) -> str | None:
    """Return the failure text carried by an upstream error event, if any."""
    if not isinstance(event, OtherEvent) or event.kind != "error":
        return None
    raw = event.raw
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return "Unknown error"
    error = _field(raw, "error")
    message = _field(error, "message") if error is not None else None
    return message if isinstance(message, str) and message else "Unknown error"
