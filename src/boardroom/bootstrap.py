from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from boardroom.app_config import AppConfig, RuntimeEnv
from boardroom.engine import SessionEngine
from boardroom.logging_config import setup_logging
from boardroom.memory import MemoryStore, SessionStore
from boardroom.provider import create_provider


@dataclass
class AppRuntime:
    engine: SessionEngine
    memory_store: MemoryStore
    db_path: str
    log_descriptions: list[str]

    def close(self) -> None:
        self.memory_store.close()


def bootstrap_runtime(app: AppConfig, env: RuntimeEnv) -> AppRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)

    source = create_provider(
        app.provider_name,
        env.provider_api_key,
        model=app.model,
        max_tokens=app.max_tokens,
        temperature=app.temperature,
    )

    db_path = Path(app.db_path)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    memory_store = MemoryStore(str(db_path))

    engine = SessionEngine(
        SessionStore(memory_store),
        source,
        config=app.engine_config(),
    )
    return AppRuntime(
        engine=engine,
        memory_store=memory_store,
        db_path=str(db_path),
        log_descriptions=log_descriptions,
    )
