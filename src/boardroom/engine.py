from __future__ import annotations

import random
import sqlite3
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field

from loguru import logger

from boardroom.catalog.personas import DirectorPersona
from boardroom.catalog.phases import DEFAULT_PHASE_PLAN, PhasePlan
from boardroom.catalog.questions import DEFAULT_QUESTIONS, AuditQuestion, QuestionCatalog
from boardroom.engine_config import EngineConfig
from boardroom.errors import Forbidden, InvalidInput, NotFound, PersistenceFailure, SessionClosed, UpstreamFailure
from boardroom.gate import GateResult, SpecificityGate
from boardroom.memory.models import (
    GATE_CHALLENGED,
    GATE_PASSED,
    KIND_BOARD_MEETING,
    KIND_QUICK_AUDIT,
    SESSION_KINDS,
    SPEAKER_SYSTEM,
    SPEAKER_USER,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    TYPE_ANSWER,
    TYPE_CHALLENGE,
    TYPE_DIRECTOR_RESPONSE,
    TYPE_GATE_NOTE,
    TYPE_USER_MESSAGE,
    AnswerMetadata,
    ChallengeMetadata,
    DirectorMetadata,
    GateNoteMetadata,
    Message,
    NewMessage,
    Session,
    UserMessageMetadata,
)
from boardroom.memory.session_store import SessionStore
from boardroom.prompts import build_board_prompt
from boardroom.provider import TokenSource
from boardroom.streaming import DoneChunk, ErrorChunk, StreamChunk, TextChunk, stream_turn


def build_history(messages: list[Message]) -> list[dict]:
    """Role-tagged history in stored order: the user speaker maps to ``user``,
    every other speaker to ``assistant``."""
    return [{"role": m.role, "content": m.content} for m in messages]


def _require_text(text: object, label: str) -> str:
    if not isinstance(text, str) or not text.strip():
        raise InvalidInput(f"{label} is required")
    return text


@dataclass(frozen=True)
class SessionStart:
    session: Session
    opening: dict


@dataclass(frozen=True)
class AnswerResult:
    gate: GateResult
    session: Session
    next_question: AuditQuestion | None

    @property
    def is_complete(self) -> bool:
        return self.session.is_completed

    def to_dict(self) -> dict:
        return {
            "gateResult": self.gate.to_dict(),
            "nextPhase": None if self.is_complete or not self.gate.passed else self.session.current_phase,
            "isComplete": self.is_complete,
            "nextQuestion": None if self.next_question is None else _question_dict(self.next_question),
        }


@dataclass(frozen=True)
class BoardReply:
    response: str
    director: dict
    session: Session

    @property
    def is_complete(self) -> bool:
        return self.session.is_completed

    def to_dict(self) -> dict:
        return {
            "response": self.response,
            "director": self.director,
            "currentPhase": self.session.current_phase,
            "isComplete": self.is_complete,
        }


@dataclass
class _BoardTurn:
    session: Session
    user_text: str
    persona: DirectorPersona
    system_instruction: str
    history: list[dict]
    prior_messages: list[Message]
    outcome: Session | None = field(default=None)


def _question_dict(question: AuditQuestion) -> dict:
    return {
        "id": question.id,
        "question": question.prompt,
        "subtext": question.subtext,
        "placeholder": question.placeholder,
        "position": question.position,
    }


class SessionEngine:
    """Phase/status owner for audits and board meetings.

    Callers must not submit two turns for the same session concurrently;
    the engine does not lock.
    """

    def __init__(
        self,
        sessions: SessionStore,
        source: TokenSource,
        *,
        config: EngineConfig | None = None,
        gate: SpecificityGate | None = None,
        questions: QuestionCatalog = DEFAULT_QUESTIONS,
        phases: PhasePlan = DEFAULT_PHASE_PLAN,
        rng: random.Random | None = None,
    ):
        self._sessions = sessions
        self._source = source
        self._config = config or EngineConfig()
        self._gate = gate or SpecificityGate(
            source,
            max_attempts=self._config.gate_max_attempts,
            judge_max_tokens=self._config.gate_max_tokens,
        )
        self._questions = questions
        self._phases = phases
        self._rng = rng or random.Random()

    # -- lifecycle -------------------------------------------------------

    def start_session(self, owner_id: str, kind: str) -> SessionStart:
        if kind not in SESSION_KINDS:
            raise InvalidInput(f"Unknown session kind: {kind!r}")
        session = self._sessions.create_session(owner_id, kind)
        logger.info(f"Started {kind} session {session.id} for {owner_id}")
        return SessionStart(session=session, opening=self.opening_prompt(session))

    def opening_prompt(self, session: Session) -> dict:
        if session.kind == KIND_QUICK_AUDIT:
            question = self._questions.by_position(session.current_phase)
            return {} if question is None else {"question": _question_dict(question)}
        phase = self._phases.phase(session.current_phase)
        director = self._phases.director_for_phase(session.current_phase)
        return {"director": director.descriptor(), "message": phase.questions[0] if phase.questions else ""}

    def authorize(self, session_id: str, owner_id: str) -> Session:
        session = self._sessions.find_session(session_id, owner_id)
        if session is not None:
            return session
        if self._sessions.get_session(session_id) is not None:
            raise Forbidden(f"Session {session_id} belongs to another user")
        raise NotFound(f"Session not found: {session_id}")

    def list_sessions(self, owner_id: str, *, kind: str | None = None, limit: int = 20) -> list[Session]:
        return self._sessions.list_sessions(owner_id, kind=kind, limit=limit)

    def summarize(self, session_id: str, owner_id: str) -> dict:
        session = self.authorize(session_id, owner_id)
        return self._sessions.build_session_summary(session.id)

    def history(self, session_id: str, owner_id: str) -> list[dict]:
        session = self.authorize(session_id, owner_id)
        return build_history(self._sessions.list_messages(session.id))

    def _load_open_session(self, session_id: str, owner_id: str, kind: str) -> Session:
        session = self.authorize(session_id, owner_id)
        if session.kind != kind:
            raise InvalidInput(f"Session {session_id} is a {session.kind} session, not {kind}")
        if session.is_completed:
            raise SessionClosed(f"Session already completed: {session_id}")
        return session

    def _advance(self, session: Session, phase: int, status: str) -> Session:
        if phase < session.current_phase:
            raise ValueError(f"Phase cannot move backwards ({session.current_phase} -> {phase})")
        if not self._sessions.update_session_phase(session.id, phase, status):
            raise SessionClosed(f"Session {session.id} changed while the turn was in progress")
        updated = self._sessions.get_session(session.id)
        if updated is None:
            raise NotFound(f"Session not found: {session.id}")
        if phase != session.current_phase:
            logger.info(f"Session {session.id} advanced to phase {phase}")
        if status == STATUS_COMPLETED:
            logger.info(f"Session {session.id} completed")
        return updated

    # -- audits ----------------------------------------------------------

    def _attempt_for(self, messages: list[Message], question_id: str) -> int:
        challenged = sum(
            1
            for m in messages
            if m.message_type == TYPE_ANSWER
            and isinstance(m.metadata, AnswerMetadata)
            and m.metadata.question_id == question_id
            and m.metadata.gate_result == GATE_CHALLENGED
        )
        return challenged + 1

    async def submit_answer(
        self,
        session_id: str,
        owner_id: str,
        text: str,
        *,
        attempt_count: int | None = None,
    ) -> AnswerResult:
        text = _require_text(text, "Answer")
        session = self._load_open_session(session_id, owner_id, KIND_QUICK_AUDIT)
        question = self._questions.by_position(session.current_phase)
        if question is None:
            raise NotFound(f"No question at position {session.current_phase}")

        if attempt_count is None:
            attempt_count = self._attempt_for(self._sessions.list_messages(session.id), question.id)
        attempt_count = max(1, int(attempt_count))
        result = await self._gate.evaluate(text, question, attempt_count)

        records = [
            NewMessage(
                speaker=SPEAKER_USER,
                content=text,
                message_type=TYPE_ANSWER,
                metadata=AnswerMetadata(
                    question_id=question.id,
                    gate_result=GATE_PASSED if result.passed else GATE_CHALLENGED,
                    attempt_count=attempt_count,
                ),
            )
        ]
        if not result.passed:
            records.append(
                NewMessage(
                    speaker=SPEAKER_SYSTEM,
                    content=result.challenge_message or result.reason,
                    message_type=TYPE_CHALLENGE,
                    metadata=ChallengeMetadata(question_id=question.id, attempt_count=result.attempt_count),
                )
            )
        elif not result.is_specific:
            records.append(
                NewMessage(
                    speaker=SPEAKER_SYSTEM,
                    content=result.reason,
                    message_type=TYPE_GATE_NOTE,
                    metadata=GateNoteMetadata(question_id=question.id),
                )
            )
        self._sessions.create_messages(session.id, records)

        if not result.passed:
            logger.info(f"Challenged answer to {question.id} in session {session.id} (attempt {attempt_count})")
            return AnswerResult(gate=result, session=session, next_question=question)

        next_phase = session.current_phase + 1
        is_complete = next_phase >= len(self._questions)
        updated = self._advance(session, next_phase, STATUS_COMPLETED if is_complete else STATUS_IN_PROGRESS)
        return AnswerResult(
            gate=result,
            session=updated,
            next_question=None if is_complete else self._questions.by_position(next_phase),
        )

    # -- board meetings --------------------------------------------------

    def _select_persona(self, phase: int, text: str) -> tuple[DirectorPersona, bool]:
        lead = self._phases.director_for_phase(phase)
        probability = self._config.interjection_probability
        if probability <= 0:
            return lead, False
        lowered = text.lower()
        for director in self._phases.personas:
            if director.id == lead.id:
                continue
            triggered = any(trigger.lower() in lowered for trigger in director.interjection_triggers)
            if triggered and self._rng.random() < probability:
                logger.debug(f"{director.id} interjects in phase {phase}")
                return director, True
        return lead, False

    def _next_board_state(self, session: Session, messages: list[Message]) -> tuple[int, str]:
        user_turns = [m for m in messages if m.message_type == TYPE_USER_MESSAGE]
        turns_in_phase = sum(
            1
            for m in user_turns
            if isinstance(m.metadata, UserMessageMetadata) and m.metadata.phase == session.current_phase
        )
        if turns_in_phase < self._config.board_phase_min_turns:
            return session.current_phase, STATUS_IN_PROGRESS
        if session.current_phase < self._phases.terminal_phase:
            return session.current_phase + 1, STATUS_IN_PROGRESS
        if len(user_turns) >= self._config.board_completion_min_user_turns:
            return session.current_phase, STATUS_COMPLETED
        return session.current_phase, STATUS_IN_PROGRESS

    def _prepare_board_turn(self, session_id: str, owner_id: str, text: str) -> _BoardTurn:
        text = _require_text(text, "Message")
        session = self._load_open_session(session_id, owner_id, KIND_BOARD_MEETING)
        messages = self._sessions.list_messages(session.id)
        persona, interjecting = self._select_persona(session.current_phase, text)
        phase = self._phases.phase(session.current_phase)
        return _BoardTurn(
            session=session,
            user_text=text,
            persona=persona,
            system_instruction=build_board_prompt(persona, phase, interjecting=interjecting),
            history=build_history(messages) + [{"role": "user", "content": text}],
            prior_messages=messages,
        )

    def _complete_board_turn(self, turn: _BoardTurn, full_text: str) -> None:
        try:
            self._record_board_turn(turn, full_text)
        except sqlite3.Error as ex:
            raise PersistenceFailure(f"Could not record turn for session {turn.session.id}: {ex}") from ex

    def _record_board_turn(self, turn: _BoardTurn, full_text: str) -> None:
        session = turn.session
        written = self._sessions.create_messages(
            session.id,
            [
                NewMessage(
                    speaker=SPEAKER_USER,
                    content=turn.user_text,
                    message_type=TYPE_USER_MESSAGE,
                    metadata=UserMessageMetadata(phase=session.current_phase),
                ),
                NewMessage(
                    speaker=turn.persona.id,
                    content=full_text,
                    message_type=TYPE_DIRECTOR_RESPONSE,
                    metadata=DirectorMetadata(
                        director_name=turn.persona.name,
                        director_title=turn.persona.title,
                        phase=session.current_phase,
                    ),
                ),
            ],
        )
        phase, status = self._next_board_state(session, turn.prior_messages + written)
        if phase == session.current_phase and status == session.status:
            turn.outcome = session
            return
        turn.outcome = self._advance(session, phase, status)

    def _run_board_turn(self, turn: _BoardTurn) -> AsyncIterator[StreamChunk]:
        events = self._source.stream(
            turn.system_instruction,
            turn.history,
            max_tokens=self._config.response_max_tokens,
        )
        return stream_turn(
            events,
            persona=turn.persona.descriptor(),
            on_complete=lambda full_text: self._complete_board_turn(turn, full_text),
        )

    def open_stream(self, session_id: str, owner_id: str, text: str) -> AsyncIterator[StreamChunk]:
        """Validate the turn now and return its lazy chunk sequence.

        Validation errors are raised by this call, before any chunk exists.
        The user message and the director response are written together
        when the stream reaches ``done``; an abandoned or failed stream
        writes nothing.
        """
        turn = self._prepare_board_turn(session_id, owner_id, text)
        return self._run_board_turn(turn)

    async def submit_message(self, session_id: str, owner_id: str, text: str) -> BoardReply:
        turn = self._prepare_board_turn(session_id, owner_id, text)
        parts: list[str] = []
        full_text: str | None = None
        async with aclosing(self._run_board_turn(turn)) as chunks:
            async for chunk in chunks:
                if isinstance(chunk, TextChunk):
                    parts.append(chunk.text)
                elif isinstance(chunk, DoneChunk):
                    full_text = chunk.full_text
                elif isinstance(chunk, ErrorChunk):
                    raise UpstreamFailure(chunk.error)
        return BoardReply(
            response=full_text if full_text is not None else "".join(parts),
            director=turn.persona.descriptor(),
            session=turn.outcome or self.authorize(session_id, owner_id),
        )
