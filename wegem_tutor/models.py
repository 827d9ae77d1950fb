"""Records exchanged between the orchestrator, the parsers and callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

ROLES = ("system", "user", "assistant")
MESSAGE_TYPES = ("general", "quiz", "explanation", "marking", "symposium", "question")

LOCAL_FALLBACK_TYPE = "local_fallback"

T = TypeVar("T")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class Exchange:
    """A single turn in the conversation."""

    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown role {self.role!r}")

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class RequestOptions:
    """Per-call settings. Every field has a default."""

    message_type: str = "general"
    subject: str = "General"
    level: str = "Form 3"
    curriculum: str = "8-4-4"
    generate_questions: int = 0


@dataclass(frozen=True, slots=True)
class CallResult:
    """Uniform envelope returned by every AI call, successful or not."""

    success: bool
    message: str
    type: str
    timestamp: str = field(default_factory=utc_now_iso)
    tokens_used: int = 0
    provider: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, message: str, message_type: str, tokens_used: int, provider: str) -> "CallResult":
        return cls(
            success=True,
            message=message,
            type=message_type,
            tokens_used=max(0, int(tokens_used)),
            provider=provider,
        )

    @classmethod
    def fallback(cls, message: str, error: str) -> "CallResult":
        return cls(success=False, message=message, type=LOCAL_FALLBACK_TYPE, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {
                "success": True,
                "message": self.message,
                "type": self.type,
                "tokensUsed": self.tokens_used,
                "provider": self.provider,
                "timestamp": self.timestamp,
            }
        return {
            "success": False,
            "message": self.message,
            "type": self.type,
            "error": self.error,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    id: int
    question: str
    answer: str = "Check with teacher"
    explanation: str = "No explanation provided"
    has_diagram: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
            "explanation": self.explanation,
            "hasDiagram": self.has_diagram,
        }


@dataclass(frozen=True, slots=True)
class Quiz:
    """A generated quiz together with its generation metadata."""

    topic: str
    questions: List[QuizQuestion]
    generated_at: str = field(default_factory=utc_now_iso)
    by_ai: bool = True

    @property
    def count(self) -> int:
        return len(self.questions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "questions": [question.to_dict() for question in self.questions],
            "count": self.count,
            "generatedAt": self.generated_at,
            "byAI": self.by_ai,
        }


@dataclass(frozen=True, slots=True)
class MarkingResult:
    total_score: int = 0
    percentage: int = 0
    feedback: str = ""
    improvement: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalScore": self.total_score,
            "percentage": self.percentage,
            "feedback": self.feedback,
            "improvement": self.improvement,
        }


@dataclass(frozen=True, slots=True)
class SymposiumQuestion:
    id: int
    question: str
    answer: str
    time_limit: int = 90
    difficulty: str = "medium"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
            "timeLimit": self.time_limit,
            "difficulty": self.difficulty,
        }


@dataclass(frozen=True, slots=True)
class Parsed(Generic[T]):
    """Extractor found the markers it was looking for."""

    record: T
    degraded: bool = False


@dataclass(frozen=True, slots=True)
class Degraded(Generic[T]):
    """Extractor fell back to a default-filled record."""

    record: T
    reason: str = ""
    degraded: bool = True


ParseOutcome = Union[Parsed[T], Degraded[T]]
