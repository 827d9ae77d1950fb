"""End-to-end tutor operations on top of the completion endpoint."""

from __future__ import annotations

import asyncio
import enum
from typing import Any, Dict, List, Mapping, Optional

from .client import CompletionClient
from .config import AIConfig
from .errors import APIError
from .events import ActivityEvent, EventSink
from .fallback import local_response
from .history import ConversationHistory
from .logs import LOGGER
from .models import (
    CallResult,
    MarkingResult,
    Quiz,
    RequestOptions,
    SymposiumQuestion,
)
from .parsers import parse_marking, parse_quiz, parse_symposium
from .prompts import PromptBuilder, detect_subject, extract_subject

PROVIDER_DISPLAY_NAMES = {"deepseek": "DeepSeek"}


class ConnectionState(enum.Enum):
    UNKNOWN = "unknown"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class TutorOrchestrator:
    """Owns the conversation history and runs every AI call for the host app.

    Construct one instance per process and pass it to the call sites that
    need it.  No call ever raises for a completion failure: the result is a
    :class:`CallResult` with ``success=False`` and a local fallback message.
    """

    def __init__(
        self,
        config: AIConfig,
        client: CompletionClient,
        history: Optional[ConversationHistory] = None,
        sink: Optional[EventSink] = None,
        prompts: Optional[PromptBuilder] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._history = history or ConversationHistory(config.history_limit)
        self._sink = sink
        self._prompts = prompts or PromptBuilder(config.system_prompt, config.history_window)
        self._state = ConnectionState.UNKNOWN

    @classmethod
    async def create(
        cls,
        config: AIConfig,
        client: CompletionClient,
        sink: Optional[EventSink] = None,
    ) -> "TutorOrchestrator":
        orchestrator = cls(config, client, sink=sink)
        await orchestrator.connect()
        return orchestrator

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    async def connect(self) -> ConnectionState:
        """Probe the endpoint once and record the outcome.

        Later calls return the recorded state without probing again.
        """

        if self._state is not ConnectionState.UNKNOWN:
            return self._state
        if not self._config.has_api_key:
            LOGGER.warning("API key not set. Using local mode.")
            self._state = ConnectionState.DISCONNECTED
            return self._state

        connected = await asyncio.to_thread(self._client.probe)
        self._state = ConnectionState.CONNECTED if connected else ConnectionState.DISCONNECTED
        return self._state

    async def call(self, message: str, options: Optional[RequestOptions] = None) -> CallResult:
        options = options or RequestOptions()
        messages = self._prompts.build_messages(message, options, self._history)
        LOGGER.info(
            "Dispatching %s request with %d messages", options.message_type, len(messages)
        )

        try:
            completion = await asyncio.to_thread(self._client.chat_completion, messages)
        except APIError as exc:
            LOGGER.error("Completion failed (%s): %s", exc.kind, exc)
            return CallResult.fallback(local_response(message, options), str(exc))

        self._history.record_exchange(message, completion.content)
        return CallResult.ok(
            completion.content,
            options.message_type,
            completion.total_tokens,
            self._config.provider,
        )

    async def ask(
        self,
        question: str,
        level: str = "Form 3",
        curriculum: str = "8-4-4",
    ) -> CallResult:
        """Chat entry point: guesses the subject from the question text."""

        result = await self.call(
            question,
            RequestOptions(subject=detect_subject(question), level=level, curriculum=curriculum),
        )
        if result.success:
            self._emit("ai_chat", {"question": question, "response": result.message})
        return result

    async def generate_quiz(self, topic: str, count: int = 10, difficulty: str = "medium") -> Quiz:
        prompt = self._prompts.quiz_prompt(topic, count, difficulty)
        result = await self.call(
            prompt,
            RequestOptions(
                message_type="quiz",
                subject=extract_subject(topic),
                generate_questions=count,
            ),
        )
        outcome = parse_quiz(self._reply_text(result))
        if outcome.degraded:
            LOGGER.warning("Quiz response for %r could not be parsed; using placeholder", topic)

        quiz = Quiz(topic=topic, questions=outcome.record)
        self._emit("quiz_generated", {"topic": topic, "questionCount": quiz.count})
        return quiz

    async def mark_answers(
        self,
        student_answers: Any,
        correct_answers: Any,
        context: Optional[Mapping[str, Any]] = None,
    ) -> MarkingResult:
        context = context or {}
        subject = str(context.get("subject", "General"))
        level = str(context.get("level", "Form 3"))
        prompt = self._prompts.marking_prompt(
            student_answers, correct_answers, {"subject": subject, "level": level}
        )
        result = await self.call(
            prompt, RequestOptions(message_type="marking", subject=subject, level=level)
        )
        outcome = parse_marking(self._reply_text(result))
        if outcome.degraded:
            LOGGER.warning("Marking response had no recognisable markers")

        marking = outcome.record
        self._emit("answers_marked", {"subject": subject, "totalScore": marking.total_score})
        return marking

    async def generate_symposium_questions(
        self, subject: str, count: int = 15
    ) -> List[SymposiumQuestion]:
        prompt = self._prompts.symposium_prompt(subject, count)
        result = await self.call(
            prompt, RequestOptions(message_type="symposium", subject=subject)
        )
        outcome = parse_symposium(self._reply_text(result), count)
        if outcome.degraded:
            LOGGER.warning("Symposium response for %r yielded no questions", subject)

        questions = outcome.record
        self._emit("symposium_created", {"subject": subject, "questionCount": len(questions)})
        return questions

    async def explain_topic(self, topic: str, level: str = "Form 3") -> str:
        prompt = self._prompts.explanation_prompt(topic, level)
        options = RequestOptions(message_type="explanation", level=level)
        result = await self.call(prompt, options)
        self._emit("topic_explained", {"topic": topic, "level": level, "byAI": result.success})
        if not result.success:
            return local_response(topic, options)
        return result.message

    @staticmethod
    def _reply_text(result: CallResult) -> str:
        # Fallback text echoes the prompt template, so it is never parsed.
        return result.message if result.success else ""

    def get_status(self) -> Dict[str, Any]:
        return {
            "connected": self.is_connected,
            "provider": PROVIDER_DISPLAY_NAMES.get(self._config.provider, self._config.provider),
            "hasApiKey": self._config.has_api_key,
            "historyLength": len(self._history),
        }

    def metrics_snapshot(self) -> Dict[str, Any]:
        return self._client.metrics.snapshot()

    def export_history(self) -> List[Dict[str, str]]:
        return self._history.export()

    def _emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self._sink is None or not self._config.sync_all_activities:
            return
        try:
            self._sink.emit(ActivityEvent(type=event_type, payload=payload))
        except Exception as exc:
            LOGGER.warning("Could not deliver %s activity event: %s", event_type, exc)

    def shutdown(self) -> None:
        LOGGER.info("Shutting down tutor orchestrator")
        self._client.close()
