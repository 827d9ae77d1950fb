"""Extractors that turn free-form completion text into typed records.

Every extractor is total: it never raises on odd input and always returns a
:class:`~wegem_tutor.models.Parsed` or :class:`~wegem_tutor.models.Degraded`
outcome carrying a usable record.
"""

from __future__ import annotations

import re
from typing import List, Optional

from .models import (
    Degraded,
    MarkingResult,
    ParseOutcome,
    Parsed,
    QuizQuestion,
    SymposiumQuestion,
)

QUIZ_BLOCK_DELIMITER = "---"

_QUESTION_PREFIX = re.compile(r"^Q\d+:?\s*")
_ANSWER_PREFIX = re.compile(r"^A\d+:?\s*")
_EXPLANATION_PREFIX = re.compile(r"^E\d+:?\s*")

_TOTAL_SCORE = re.compile(r"(\d+)/100")
_PERCENTAGE = re.compile(r"(\d+)%")

_SYMPOSIUM_ITEM = re.compile(
    r"\[Q(\d+)\](.*?)\[A\d+\](.*?)(?:\[T\d+\](.*?))?(?:\[D\d+\](.*?))?(?=\[Q|$)",
    re.DOTALL,
)
_LEADING_INT = re.compile(r"\s*(\d+)")
_MAX_INT_DIGITS = 9

DEFAULT_TIME_LIMIT = 90
DEFAULT_DIFFICULTY = "medium"

PLACEHOLDER_QUESTION = QuizQuestion(
    id=1,
    question="What would you like to know about this topic?",
    answer="Ask your teacher for details",
    explanation="AI response parsing failed",
    has_diagram=False,
)


def _has_diagram(question: str) -> bool:
    lowered = question.lower()
    return "diagram" in lowered or "draw" in lowered


def _parse_quiz_block(block: str, question_id: int) -> Optional[QuizQuestion]:
    question = answer = explanation = ""
    for raw_line in block.split("\n"):
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("Q") or "?" in line:
            question = _QUESTION_PREFIX.sub("", line).strip()
        elif line.startswith("A"):
            answer = _ANSWER_PREFIX.sub("", line).strip()
        elif line.startswith("E"):
            explanation = _EXPLANATION_PREFIX.sub("", line).strip()

    if not question:
        return None
    return QuizQuestion(
        id=question_id,
        question=question,
        answer=answer or "Check with teacher",
        explanation=explanation or "No explanation provided",
        has_diagram=_has_diagram(question),
    )


def parse_quiz(text: Optional[str]) -> ParseOutcome[List[QuizQuestion]]:
    """Split ``text`` on ``---`` and read one question per block.

    Yields a single placeholder question when nothing parses.
    """

    questions: List[QuizQuestion] = []
    for block in (text or "").split(QUIZ_BLOCK_DELIMITER):
        if not block.strip():
            continue
        parsed = _parse_quiz_block(block, len(questions) + 1)
        if parsed is not None:
            questions.append(parsed)

    if not questions:
        return Degraded(record=[PLACEHOLDER_QUESTION], reason="no quiz questions found")
    return Parsed(record=questions)


def _after_marker(line: str, marker: str) -> str:
    return line.split(marker, 1)[1].strip()


def _clamp_score(digits: str) -> int:
    # Compare by length first; int() refuses very long digit strings.
    digits = digits.lstrip("0") or "0"
    if len(digits) > 3:
        return 100
    return min(100, int(digits))


def _to_int(digits: Optional[str], default: int) -> int:
    if not digits or len(digits) > _MAX_INT_DIGITS:
        return default
    return int(digits)


def parse_marking(text: Optional[str]) -> ParseOutcome[MarkingResult]:
    """Read ``TOTAL:``, ``PERCENTAGE:``, ``FEEDBACK:`` and ``IMPROVEMENT:`` lines.

    Only the marker's own line is captured; later lines win over earlier ones.
    """

    total_score = percentage = 0
    feedback = improvement = ""
    found = False

    for line in (text or "").split("\n"):
        if "TOTAL:" in line:
            match = _TOTAL_SCORE.search(line)
            if match:
                total_score = _clamp_score(match.group(1))
                found = True
        elif "PERCENTAGE:" in line:
            match = _PERCENTAGE.search(line)
            if match:
                percentage = _clamp_score(match.group(1))
                found = True
        elif "FEEDBACK:" in line:
            feedback = _after_marker(line, "FEEDBACK:")
            found = True
        elif "IMPROVEMENT:" in line:
            improvement = _after_marker(line, "IMPROVEMENT:")
            found = True

    result = MarkingResult(
        total_score=total_score,
        percentage=percentage,
        feedback=feedback,
        improvement=improvement,
    )
    if not found:
        return Degraded(record=result, reason="no marking markers found")
    return Parsed(record=result)


def _time_limit(raw: Optional[str]) -> int:
    if not raw:
        return DEFAULT_TIME_LIMIT
    match = _LEADING_INT.match(raw)
    return _to_int(match.group(1), DEFAULT_TIME_LIMIT) if match else DEFAULT_TIME_LIMIT


def parse_symposium(text: Optional[str], count: int) -> ParseOutcome[List[SymposiumQuestion]]:
    """Collect up to ``count`` ``[Qn]``/``[An]``/``[Tn]``/``[Dn]`` items in tag order."""

    questions: List[SymposiumQuestion] = []
    if count > 0:
        for match in _SYMPOSIUM_ITEM.finditer(text or ""):
            questions.append(
                SymposiumQuestion(
                    id=_to_int(match.group(1), len(questions) + 1),
                    question=match.group(2).strip(),
                    answer=match.group(3).strip(),
                    time_limit=_time_limit(match.group(4)),
                    difficulty=(match.group(5) or "").strip() or DEFAULT_DIFFICULTY,
                )
            )
            if len(questions) >= count:
                break

    if not questions:
        return Degraded(record=[], reason="no symposium questions found")
    return Parsed(record=questions)
