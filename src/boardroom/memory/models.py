from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Union

KIND_QUICK_AUDIT = "quick_audit"
KIND_BOARD_MEETING = "board_meeting"
SESSION_KINDS = (KIND_QUICK_AUDIT, KIND_BOARD_MEETING)

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

SPEAKER_USER = "user"
SPEAKER_SYSTEM = "system"

TYPE_USER_MESSAGE = "user_message"
TYPE_DIRECTOR_RESPONSE = "director_response"
TYPE_ANSWER = "answer"
TYPE_CHALLENGE = "challenge"
TYPE_GATE_NOTE = "gate_note"
MESSAGE_TYPES = (
    TYPE_USER_MESSAGE,
    TYPE_DIRECTOR_RESPONSE,
    TYPE_ANSWER,
    TYPE_CHALLENGE,
    TYPE_GATE_NOTE,
)

GATE_PASSED = "passed"
GATE_CHALLENGED = "challenged"


@dataclass(frozen=True)
class UserMessageMetadata:
    phase: int | None = None

    def to_json(self) -> dict:
        return {} if self.phase is None else {"phase": self.phase}


@dataclass(frozen=True)
class DirectorMetadata:
    director_name: str
    director_title: str
    phase: int

    def to_json(self) -> dict:
        return {
            "directorName": self.director_name,
            "directorTitle": self.director_title,
            "phase": self.phase,
        }


@dataclass(frozen=True)
class AnswerMetadata:
    question_id: str
    gate_result: str
    attempt_count: int

    def to_json(self) -> dict:
        return {
            "questionId": self.question_id,
            "gateResult": self.gate_result,
            "attemptCount": self.attempt_count,
        }


@dataclass(frozen=True)
class ChallengeMetadata:
    question_id: str
    attempt_count: int

    def to_json(self) -> dict:
        return {"questionId": self.question_id, "attemptCount": self.attempt_count}


@dataclass(frozen=True)
class GateNoteMetadata:
    question_id: str

    def to_json(self) -> dict:
        return {"questionId": self.question_id}


MessageMetadata = Union[
    UserMessageMetadata,
    DirectorMetadata,
    AnswerMetadata,
    ChallengeMetadata,
    GateNoteMetadata,
]


@dataclass(frozen=True)
class Session:
    id: str
    owner_id: str
    kind: str
    current_phase: int
    status: str
    started_at: str
    completed_at: str | None

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED


@dataclass(frozen=True)
class NewMessage:
    """A message that has not been written yet."""

    speaker: str
    content: str
    message_type: str
    metadata: MessageMetadata | None = None


@dataclass(frozen=True)
class Message:
    id: str
    session_id: str
    seq: int
    speaker: str
    content: str
    message_type: str
    created_at: str
    metadata: MessageMetadata | None = field(default=None)

    @property
    def role(self) -> str:
        return "user" if self.speaker == SPEAKER_USER else "assistant"


def encode_metadata(metadata: MessageMetadata | None) -> str:
    if metadata is None:
        return "{}"
    return json.dumps(metadata.to_json(), ensure_ascii=True)


def _parse_json_object(raw: str | None) -> dict:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _as_int(value: object, default: int = 0) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def decode_metadata(message_type: str, raw: str | None) -> MessageMetadata | None:
    """Decode a stored metadata blob into the variant for its message type.

    Unknown message types and empty blobs decode to None; missing keys fall
    back to neutral defaults rather than failing the whole read.
    """
    data = _parse_json_object(raw)
    if message_type == TYPE_USER_MESSAGE:
        phase = data.get("phase")
        return UserMessageMetadata(phase=None if phase is None else _as_int(phase))
    if message_type == TYPE_DIRECTOR_RESPONSE:
        if not data:
            return None
        return DirectorMetadata(
            director_name=str(data.get("directorName", "")),
            director_title=str(data.get("directorTitle", "")),
            phase=_as_int(data.get("phase")),
        )
    if message_type == TYPE_ANSWER:
        return AnswerMetadata(
            question_id=str(data.get("questionId", "")),
            gate_result=str(data.get("gateResult", GATE_PASSED)),
            attempt_count=_as_int(data.get("attemptCount"), 1),
        )
    if message_type == TYPE_CHALLENGE:
        return ChallengeMetadata(
            question_id=str(data.get("questionId", "")),
            attempt_count=_as_int(data.get("attemptCount"), 1),
        )
    if message_type == TYPE_GATE_NOTE:
        return GateNoteMetadata(question_id=str(data.get("questionId", "")))
    return None
