from __future__ import annotations

import sqlite3
from uuid import uuid4

from boardroom.memory.models import (
    GATE_CHALLENGED,
    SESSION_KINDS,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    TYPE_ANSWER,
    AnswerMetadata,
    Message,
    NewMessage,
    Session,
    decode_metadata,
    encode_metadata,
)
from boardroom.memory.store import MemoryStore, utc_now


class SessionStore:
    def __init__(self, store: MemoryStore):
        self._store = store

    def create_session(self, owner_id: str, kind: str, *, session_id: str | None = None) -> Session:
        if kind not in SESSION_KINDS:
            raise ValueError(f"Unknown session kind: {kind!r}")
        sid = session_id or str(uuid4())
        now = utc_now()
        self._store.execute(
            """
            INSERT INTO sessions (id, owner_id, kind, current_phase, status, started_at, completed_at)
            VALUES (?, ?, ?, 0, ?, ?, NULL)
            """,
            (sid, owner_id, kind, STATUS_IN_PROGRESS, now),
        )
        self._store.commit()
        return Session(
            id=sid,
            owner_id=owner_id,
            kind=kind,
            current_phase=0,
            status=STATUS_IN_PROGRESS,
            started_at=now,
            completed_at=None,
        )

    def get_session(self, session_id: str) -> Session | None:
        row = self._store.execute(
            "SELECT * FROM sessions WHERE id = ? LIMIT 1",
            (session_id,),
        ).fetchone()
        return None if row is None else self._to_session(row)

    def find_session(self, session_id: str, owner_id: str) -> Session | None:
        row = self._store.execute(
            "SELECT * FROM sessions WHERE id = ? AND owner_id = ? LIMIT 1",
            (session_id, owner_id),
        ).fetchone()
        return None if row is None else self._to_session(row)

    def list_sessions(self, owner_id: str, *, kind: str | None = None, limit: int = 20) -> list[Session]:
        if kind is None:
            rows = self._store.execute(
                "SELECT * FROM sessions WHERE owner_id = ? ORDER BY started_at DESC LIMIT ?",
                (owner_id, max(1, limit)),
            ).fetchall()
        else:
            rows = self._store.execute(
                "SELECT * FROM sessions WHERE owner_id = ? AND kind = ? ORDER BY started_at DESC LIMIT ?",
                (owner_id, kind, max(1, limit)),
            ).fetchall()
        return [self._to_session(row) for row in rows]

    def update_session_phase(self, session_id: str, phase: int, status: str) -> bool:
        """Move an open session forward.

        Returns False when the session is missing, already completed, or the
        requested phase is behind the stored one.
        """
        if status not in (STATUS_IN_PROGRESS, STATUS_COMPLETED):
            raise ValueError(f"Unknown session status: {status!r}")
        completed_at = utc_now() if status == STATUS_COMPLETED else None
        cursor = self._store.execute(
            """
            UPDATE sessions
            SET current_phase = ?, status = ?, completed_at = ?
            WHERE id = ? AND status = ? AND current_phase <= ?
            """,
            (phase, status, completed_at, session_id, STATUS_IN_PROGRESS, phase),
        )
        self._store.commit()
        return cursor.rowcount == 1

    def create_message(self, session_id: str, record: NewMessage) -> Message:
        with self._store.transaction():
            return self._insert_message(session_id, record)

    def create_messages(self, session_id: str, records: list[NewMessage]) -> list[Message]:
        with self._store.transaction():
            return [self._insert_message(session_id, record) for record in records]

    def list_messages(self, session_id: str) -> list[Message]:
        rows = self._store.execute(
            """
            SELECT id, session_id, seq, speaker, content, message_type, metadata_json, created_at
            FROM messages
            WHERE session_id = ?
            ORDER BY seq ASC
            """,
            (session_id,),
        ).fetchall()
        return [self._to_message(row) for row in rows]

    def build_session_summary(self, session_id: str) -> dict:
        session = self.get_session(session_id)
        if session is None:
            raise ValueError(f"Session does not exist: {session_id}")

        messages = self.list_messages(session_id)
        type_counts: dict[str, int] = {}
        answers: dict[str, dict] = {}
        last_user_preview = ""
        last_assistant_preview = ""

        for message in messages:
            type_counts[message.message_type] = type_counts.get(message.message_type, 0) + 1
            if message.role == "user":
                last_user_preview = self._preview(message.content)
            else:
                last_assistant_preview = self._preview(message.content)
            if message.message_type == TYPE_ANSWER and isinstance(message.metadata, AnswerMetadata):
                entry = answers.setdefault(
                    message.metadata.question_id,
                    {"attempts": 0, "challenged": 0, "final_answer": None},
                )
                entry["attempts"] += 1
                if message.metadata.gate_result == GATE_CHALLENGED:
                    entry["challenged"] += 1
                else:
                    entry["final_answer"] = message.content

        return {
            "session_id": session.id,
            "kind": session.kind,
            "status": session.status,
            "current_phase": session.current_phase,
            "started_at": session.started_at,
            "completed_at": session.completed_at,
            "message_count": len(messages),
            "message_type_counts": type_counts,
            "answers": answers,
            "last_user_preview": last_user_preview,
            "last_assistant_preview": last_assistant_preview,
        }

    def _insert_message(self, session_id: str, record: NewMessage) -> Message:
        row = self._store.execute(
            "SELECT COALESCE(MAX(seq), 0) AS max_seq FROM messages WHERE session_id = ?",
            (session_id,),
        ).fetchone()
        next_seq = int(row["max_seq"]) + 1
        message_id = str(uuid4())
        now = utc_now()
        self._store.execute(
            """
            INSERT INTO messages (id, session_id, seq, speaker, content, message_type, metadata_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message_id,
                session_id,
                next_seq,
                record.speaker,
                record.content,
                record.message_type,
                encode_metadata(record.metadata),
                now,
            ),
        )
        return Message(
            id=message_id,
            session_id=session_id,
            seq=next_seq,
            speaker=record.speaker,
            content=record.content,
            message_type=record.message_type,
            created_at=now,
            metadata=record.metadata,
        )

    def _to_session(self, row: sqlite3.Row) -> Session:
        return Session(
            id=row["id"],
            owner_id=row["owner_id"],
            kind=row["kind"],
            current_phase=int(row["current_phase"]),
            status=row["status"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )

    def _to_message(self, row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            session_id=row["session_id"],
            seq=int(row["seq"]),
            speaker=row["speaker"],
            content=row["content"],
            message_type=row["message_type"],
            created_at=row["created_at"],
            metadata=decode_metadata(row["message_type"], row["metadata_json"]),
        )

    def _preview(self, text: str, max_chars: int = 140) -> str:
        text = " ".join(text.split())
        if len(text) <= max_chars:
            return text
        return text[: max_chars - 3] + "..."
