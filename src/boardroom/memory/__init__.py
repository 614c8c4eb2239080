from boardroom.memory.session_store import SessionStore
from boardroom.memory.store import MemoryStore

__all__ = [
    "MemoryStore",
    "SessionStore",
]
