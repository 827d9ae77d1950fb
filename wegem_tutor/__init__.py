"""WeGEM tutor: structured quizzes, marking and symposium questions from a chat completion endpoint."""

from .client import Completion, CompletionClient, MetricsTracker
from .config import AIConfig, AppPaths
from .errors import (
    ActivityLogError,
    APIError,
    ConfigurationError,
    HTTPStatusError,
    ResponseFormatError,
    TransportError,
)
from .history import ConversationHistory
from .models import (
    CallResult,
    Exchange,
    MarkingResult,
    Quiz,
    QuizQuestion,
    RequestOptions,
    SymposiumQuestion,
)
from .orchestrator import ConnectionState, TutorOrchestrator

__all__ = [
    "AIConfig",
    "APIError",
    "ActivityLogError",
    "AppPaths",
    "CallResult",
    "Completion",
    "CompletionClient",
    "ConfigurationError",
    "ConnectionState",
    "ConversationHistory",
    "Exchange",
    "HTTPStatusError",
    "MarkingResult",
    "MetricsTracker",
    "Quiz",
    "QuizQuestion",
    "RequestOptions",
    "ResponseFormatError",
    "SymposiumQuestion",
    "TransportError",
    "TutorOrchestrator",
]

__version__ = "2.0.0"
