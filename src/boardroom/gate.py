from __future__ import annotations

import json
import re
from dataclasses import dataclass

from loguru import logger

from boardroom.catalog.questions import AcceptanceCriteria, AuditQuestion
from boardroom.errors import InvalidInput
from boardroom.prompts import build_judgment_message
from boardroom.provider import TokenSource

GATE_MODES = {"strict": 3, "lenient": 2}

DECISION_PASS = "pass"
DECISION_FAIL = "fail"
DECISION_INCONCLUSIVE = "inconclusive"

_BRIEF_CHALLENGE = "Please expand on your answer. A few words isn't enough to work with."
_FORCED_REASON = "Maximum attempts reached - response accepted for review"
_UNAVAILABLE_REASON = "Evaluation unavailable - response accepted for review"

_VAGUE_PHRASES = (
    "things",
    "stuff",
    "something",
    "various",
    "in general",
    "generally",
    "kind of",
    "sort of",
    "maybe",
    "probably",
    "somehow",
    "a lot",
    "working on",
    "work on",
    "make progress",
    "made progress",
    "try to",
    "trying to",
    "improve",
    "issues",
    "etc",
)
_TIME_WORDS = (
    "today", "tomorrow", "yesterday", "tonight", "this week", "next week", "last week",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "january", "february", "april", "june", "july", "august",
    "september", "october", "november", "december", "quarter", "q1", "q2", "q3", "q4",
)

_NUMBER_RE = re.compile(r"\d")
_QUOTED_RE = re.compile(r"[\"“][^\"”]{2,}[\"”]")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_WORD_RE = re.compile(r"[A-Za-z][\w'-]*")
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(frozen=True)
class HeuristicVerdict:
    decision: str
    reason: str
    concrete_signals: int
    vague_signals: int


@dataclass(frozen=True)
class GateResult:
    passed: bool
    is_specific: bool
    reason: str
    attempt_count: int
    challenge_message: str | None = None

    def to_dict(self) -> dict:
        data = {
            "passed": self.passed,
            "isSpecific": self.is_specific,
            "reason": self.reason,
            "attemptCount": self.attempt_count,
        }
        if self.challenge_message is not None:
            data["challengeMessage"] = self.challenge_message
        return data


def _word_count(text: str) -> int:
    return len(text.split())


def _contains_phrase(lowered: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", lowered) is not None


def _count_concrete_signals(text: str) -> int:
    lowered = text.lower()
    signals = 0
    if _NUMBER_RE.search(text):
        signals += 1
    if _QUOTED_RE.search(text):
        signals += 1
    signals += sum(1 for word in _TIME_WORDS if _contains_phrase(lowered, word))

    # Capitalized words that do not open a sentence are treated as names. They
    # count once at most, and not at all when the text is mostly capitalized.
    inner_words = 0
    capitalized = 0
    for sentence in _SENTENCE_SPLIT_RE.split(text.strip()):
        for word in _WORD_RE.findall(sentence)[1:]:
            if word == "I" or word.startswith("I'"):
                continue
            inner_words += 1
            if word[0].isupper():
                capitalized += 1
    if capitalized and capitalized * 2 <= inner_words:
        signals += 1
    return signals


def _count_vague_signals(text: str) -> int:
    lowered = text.lower()
    return sum(1 for phrase in _VAGUE_PHRASES if _contains_phrase(lowered, phrase))


def assess_specificity(answer: str, criteria: AcceptanceCriteria) -> HeuristicVerdict:
    """Cheap deterministic screen run before any model judgment."""
    words = _word_count(answer)
    concrete = _count_concrete_signals(answer)
    vague = _count_vague_signals(answer)

    if words < criteria.min_words:
        return HeuristicVerdict(
            DECISION_FAIL,
            f"Response too brief. Please provide more detail (at least {criteria.min_words} words).",
            concrete,
            vague,
        )
    if concrete >= criteria.min_concrete_signals and vague == 0:
        return HeuristicVerdict(DECISION_PASS, "Response names concrete details.", concrete, vague)
    if concrete == 0 and vague >= 2:
        return HeuristicVerdict(
            DECISION_FAIL,
            "Response relies on general language without names, numbers or dates.",
            concrete,
            vague,
        )
    return HeuristicVerdict(DECISION_INCONCLUSIVE, "", concrete, vague)


def parse_verdict(text: str) -> tuple[bool, str]:
    match = _JSON_OBJECT_RE.search(text or "")
    if match is None:
        return False, "Unable to parse evaluation"
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        return False, "Unable to parse evaluation"
    if not isinstance(parsed, dict):
        return False, "Unable to parse evaluation"
    is_specific = parsed.get("isSpecific") is True
    reason = parsed.get("reason")
    return is_specific, reason if isinstance(reason, str) and reason else "Unable to evaluate"


def challenge_for(question: AuditQuestion, attempt_count: int, reason: str) -> str:
    messages = question.challenge_messages
    if not messages:
        return reason
    base = messages[min(max(attempt_count, 1) - 1, len(messages) - 1)]
    return f"{base}\n\n({reason})"


class SpecificityGate:
    """Decides whether one answer to one audit question is concrete enough.

    Holds no per-session state: the caller supplies the attempt number and
    gets it back incremented when the answer is challenged. Once the attempt
    number reaches ``max_attempts`` a non-passing answer is accepted anyway
    with ``is_specific=False`` so a question can never block forever.
    """

    def __init__(self, source: TokenSource | None, *, max_attempts: int = 3, judge_max_tokens: int = 256):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._source = source
        self._max_attempts = max_attempts
        self._judge_max_tokens = judge_max_tokens

    @classmethod
    def for_mode(cls, source: TokenSource | None, mode: str, **kwargs) -> SpecificityGate:
        if mode not in GATE_MODES:
            raise ValueError(f"Unknown gate mode: {mode!r}. Supported: {', '.join(GATE_MODES)}")
        return cls(source, max_attempts=GATE_MODES[mode], **kwargs)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def evaluate(self, answer: str, question: AuditQuestion, attempt_count: int = 1) -> GateResult:
        if not isinstance(answer, str) or not answer.strip():
            raise InvalidInput("Answer text is required")
        attempt_count = max(1, int(attempt_count))

        verdict = assess_specificity(answer, question.criteria)
        logger.debug(
            f"Gate heuristic for {question.id}: decision={verdict.decision}, "
            f"concrete={verdict.concrete_signals}, vague={verdict.vague_signals}"
        )
        if verdict.decision == DECISION_PASS:
            return GateResult(passed=True, is_specific=True, reason=verdict.reason, attempt_count=attempt_count)

        if attempt_count >= self._max_attempts:
            logger.info(f"Gate force-passed {question.id} at attempt {attempt_count}")
            return GateResult(passed=True, is_specific=False, reason=_FORCED_REASON, attempt_count=attempt_count)

        if verdict.decision == DECISION_FAIL:
            brief = verdict.reason.startswith("Response too brief")
            return GateResult(
                passed=False,
                is_specific=False,
                reason=verdict.reason,
                attempt_count=attempt_count + 1,
                challenge_message=_BRIEF_CHALLENGE if brief else challenge_for(question, attempt_count, verdict.reason),
            )

        if self._source is None:
            return GateResult(passed=True, is_specific=False, reason=_UNAVAILABLE_REASON, attempt_count=attempt_count)

        try:
            text = await self._source.complete(
                "",
                [build_judgment_message(question.criteria.rubric, answer)],
                max_tokens=self._judge_max_tokens,
            )
        except Exception as ex:
            logger.warning(f"Gate judgment unavailable for {question.id}: {type(ex).__name__}: {ex}")
            return GateResult(passed=True, is_specific=False, reason=_UNAVAILABLE_REASON, attempt_count=attempt_count)

        is_specific, reason = parse_verdict(text)
        logger.info(f"Gate judgment for {question.id}: is_specific={is_specific}")
        if is_specific:
            return GateResult(passed=True, is_specific=True, reason=reason, attempt_count=attempt_count)
        return GateResult(
            passed=False,
            is_specific=False,
            reason=reason,
            attempt_count=attempt_count + 1,
            challenge_message=challenge_for(question, attempt_count, reason),
        )
