from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from boardroom.engine_config import EngineConfig

_DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-5-20250929",
    "openai": "gpt-4o",
}


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str


@dataclass
class AppConfig:
    provider_name: str
    model: str
    max_tokens: int
    gate_max_tokens: int
    temperature: float
    db_path: str
    owner_id: str
    gate_max_attempts: int
    board_phase_min_turns: int
    board_completion_min_user_turns: int
    interjection_probability: float
    log_level: str
    log_consumers: list | None

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            gate_max_attempts=self.gate_max_attempts,
            gate_max_tokens=self.gate_max_tokens,
            response_max_tokens=self.max_tokens,
            board_phase_min_turns=self.board_phase_min_turns,
            board_completion_min_user_turns=self.board_completion_min_user_turns,
            interjection_probability=self.interjection_probability,
        )


def load_json_config(path: Path | None = None) -> dict:
    config_path = path or Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _positive_int(value: object, name: str) -> int:
    parsed = int(value)  # type: ignore[arg-type]
    if parsed < 1:
        raise ValueError(f"{name} must be at least 1, got {parsed}")
    return parsed


def parse_app_config(config: dict) -> AppConfig:
    provider_name = str(config.get("Provider", "anthropic")).strip().lower()
    probability = float(config.get("InterjectionProbability", 0.0))
    if not 0.0 <= probability <= 1.0:
        raise ValueError(f"InterjectionProbability must be between 0 and 1, got {probability}")
    return AppConfig(
        provider_name=provider_name,
        model=config.get("Model", _DEFAULT_MODELS.get(provider_name, _DEFAULT_MODELS["anthropic"])),
        max_tokens=_positive_int(config.get("MaxTokens", 1024), "MaxTokens"),
        gate_max_tokens=_positive_int(config.get("GateMaxTokens", 256), "GateMaxTokens"),
        temperature=float(config.get("Temperature", 1.0)),
        db_path=str(config.get("DbPath", ".boardroom/boardroom.db")),
        owner_id=str(config.get("OwnerId", "local")).strip() or "local",
        gate_max_attempts=_positive_int(config.get("GateMaxAttempts", 3), "GateMaxAttempts"),
        board_phase_min_turns=_positive_int(config.get("BoardPhaseMinTurns", 2), "BoardPhaseMinTurns"),
        board_completion_min_user_turns=_positive_int(
            config.get("BoardCompletionMinUserTurns", 10), "BoardCompletionMinUserTurns"
        ),
        interjection_probability=probability,
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(provider_name: str) -> RuntimeEnv:
    if provider_name == "openai":
        provider_env_var = "OPENAI_API_KEY"
    else:
        provider_env_var = "ANTHROPIC_API_KEY"
    return RuntimeEnv(
        provider_api_key=os.environ.get(provider_env_var, ""),
        provider_env_var=provider_env_var,
    )
