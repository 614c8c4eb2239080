from boardroom.catalog.personas import DirectorPersona
from boardroom.catalog.phases import BoardPhase


def build_board_prompt(persona: DirectorPersona, phase: BoardPhase, *, interjecting: bool = False) -> str:
    role_line = (
        "You are interjecting because something the user said triggered your attention."
        if interjecting
        else "You are the lead director for this phase."
    )
    return f"""{persona.instruction}

You are in a quarterly board meeting, currently in the "{phase.name}" phase.
Phase description: {phase.description}

{role_line}

Respond naturally but stay in character. Keep it concise."""


def build_judgment_message(rubric: str, answer: str) -> dict:
    return {"role": "user", "content": f'{rubric}\n\nUser\'s response: "{answer}"'}
