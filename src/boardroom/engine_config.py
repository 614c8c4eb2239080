from dataclasses import dataclass


@dataclass
class EngineConfig:
    gate_max_attempts: int = 3
    gate_max_tokens: int = 256
    response_max_tokens: int = 1024
    # Board meetings: user turns needed before a phase hands over to the next.
    board_phase_min_turns: int = 2
    # Board meetings: total user turns needed before the terminal phase can close the session.
    board_completion_min_user_turns: int = 10
    interjection_probability: float = 0.0
