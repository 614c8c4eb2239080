from __future__ import annotations

from dataclasses import dataclass

from boardroom.catalog.personas import DEFAULT_PERSONAS, DirectorPersona, PersonaCatalog


@dataclass(frozen=True)
class BoardPhase:
    index: int
    name: str
    description: str
    lead_director: str
    questions: tuple[str, ...]


class PhasePlan:
    """Ordered board-meeting phases bound to the personas that lead them."""

    def __init__(self, phases: tuple[BoardPhase, ...], personas: PersonaCatalog):
        if not phases:
            raise ValueError("At least one phase is required")
        for expected, phase in enumerate(phases):
            if phase.index != expected:
                raise ValueError(f"Phase {phase.name!r} has index {phase.index}, expected {expected}")
            if personas.get(phase.lead_director) is None:
                raise ValueError(f"Phase {phase.name!r} references unknown director {phase.lead_director!r}")
        self._phases = phases
        self._personas = personas

    def __len__(self) -> int:
        return len(self._phases)

    @property
    def personas(self) -> PersonaCatalog:
        return self._personas

    @property
    def terminal_phase(self) -> int:
        return len(self._phases) - 1

    def phase(self, index: int) -> BoardPhase:
        if 0 <= index < len(self._phases):
            return self._phases[index]
        return self._phases[0]

    def director_for_phase(self, index: int) -> DirectorPersona:
        return self._personas.get(self.phase(index).lead_director) or self._personas.default


BOARD_MEETING_PHASES: tuple[BoardPhase, ...] = (
    BoardPhase(
        index=0,
        name="Opening",
        description="Set the context for the meeting",
        lead_director="strategist",
        questions=(
            "Let's start with the big picture. What quarter are we reviewing, and what did you set out to accomplish?",
        ),
    ),
    BoardPhase(
        index=1,
        name="Last Quarter Review",
        description="Review commitments and results",
        lead_director="accountability_hawk",
        questions=(
            "What were your specific bets from last quarter? Let's see the receipts.",
            "For each bet, were you right or wrong? What's the evidence?",
        ),
    ),
    BoardPhase(
        index=2,
        name="Avoidance Audit",
        description="Surface avoided decisions and conversations",
        lead_director="avoidance_hunter",
        questions=(
            "What decision have you been avoiding? Be specific.",
            "What conversation have you been putting off? Who, about what?",
        ),
    ),
    BoardPhase(
        index=3,
        name="Market Check",
        description="Assess market position and value",
        lead_director="market_reality",
        questions=(
            "How has your market value changed this quarter? What evidence do you have?",
            "Which of your skills is depreciating fastest? What are you doing about it?",
        ),
    ),
    BoardPhase(
        index=4,
        name="Strategy Review",
        description="Evaluate long-term trajectory",
        lead_director="strategist",
        questions=(
            "Zoom out: where is your current path leading in 5 years?",
            "Are you playing the right game, or just playing the current game well?",
        ),
    ),
    BoardPhase(
        index=5,
        name="Next Quarter Bets",
        description="Set falsifiable commitments",
        lead_director="devils_advocate",
        questions=(
            "What are your bets for next quarter? Make them falsifiable.",
            "How will you know if you were wrong? What would make these bets fail?",
        ),
    ),
)

DEFAULT_PHASE_PLAN = PhasePlan(BOARD_MEETING_PHASES, DEFAULT_PERSONAS)
