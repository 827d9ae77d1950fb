"""Prompt composition for chat calls and the structured generation flows.

The quiz, marking and symposium templates emit the exact delimiters read back
by :mod:`wegem_tutor.parsers` (``---`` blocks with ``Q``/``A``/``E`` lines,
``TOTAL:``/``PERCENTAGE:``/``FEEDBACK:``/``IMPROVEMENT:`` lines, and
``[Qn]``/``[An]``/``[Tn]``/``[Dn]`` tags).
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict, List, Mapping, Tuple

from .history import ConversationHistory
from .models import RequestOptions

SUBJECT_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("math", "Mathematics"),
    ("bio", "Biology"),
    ("chem", "Chemistry"),
    ("phy", "Physics"),
    ("eng", "English"),
    ("kisw", "Kiswahili"),
    ("geo", "Geography"),
    ("hist", "History"),
    ("cre", "CRE"),
    ("business", "Business"),
)

CHAT_SUBJECT_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("math", "calc"), "Mathematics"),
    (("bio",), "Biology"),
    (("chem",), "Chemistry"),
    (("phy",), "Physics"),
    (("english",), "English"),
    (("kiswahili",), "Kiswahili"),
)

QUIZ_TEMPLATE = """Generate {count} KCSE-style questions about "{topic}".

REQUIREMENTS:
1. Format: QUESTION | ANSWER | EXPLANATION
2. Include {diagram_count} diagram-based questions
3. Difficulty: {difficulty}
4. Kenyan context only
5. Separate with "---"

Example format:
Q1: What is photosynthesis?
A1: Process where plants make food using sunlight
E1: Chlorophyll captures light energy

---"""

MARKING_TEMPLATE = """MARKING SCHEME - {subject} - {level}

STUDENT ANSWERS:
{student_answers}

CORRECT ANSWERS:
{correct_answers}

MARKING INSTRUCTIONS:
1. Score each answer (0-10 marks)
2. Follow KNEC marking scheme
3. Provide constructive feedback
4. Calculate total and percentage
5. Suggest improvement areas

Format response as:
TOTAL: X/100
PERCENTAGE: Y%
FEEDBACK: [individual feedback]
IMPROVEMENT: [areas to improve]"""

SYMPOSIUM_TEMPLATE = """Generate {count} competition questions for Kenyan school symposium.

SUBJECT: {subject}
LEVEL: Secondary School
TIME PER QUESTION: 90 seconds

FORMAT for each question:
[Q1] Question text
[A1] Exact answer
[T1] 90
[D1] medium

Make questions challenging but fair. Include visual/diagram questions."""

EXPLANATION_TEMPLATE = """Explain "{topic}" to a Kenyan {level} student.

TEACHING APPROACH:
1. Start with simple definition
2. Use Kenyan real-life examples
3. Include diagrams (describe how to draw)
4. Common mistakes to avoid
5. KCSE exam tips

Make it engaging and practical."""

CONTEXT_TEMPLATE = """[STUDENT LEVEL: {level}]
[SUBJECT: {subject}]
[CURRICULUM: {curriculum}]
[REQUEST TYPE: {message_type}]

User asks: "{message}"

Please respond as a dedicated Kenyan tutor."""


def extract_subject(text: str) -> str:
    """Map a topic to a subject name using the first matching keyword."""

    lowered = text.lower()
    for keyword, subject in SUBJECT_KEYWORDS:
        if keyword in lowered:
            return subject
    return "General"


def detect_subject(text: str) -> str:
    """Subject guess for free-form chat questions."""

    lowered = text.lower()
    for keywords, subject in CHAT_SUBJECT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return subject
    return "General"


class PromptBuilder:
    """Builds the outbound message sequence for the completion endpoint.

    The builder only reads the history; it never appends to it.
    """

    def __init__(self, system_prompt: str, history_window: int = 6) -> None:
        self._system_prompt = system_prompt
        self._history_window = history_window

    def system_message(self, options: RequestOptions) -> Dict[str, str]:
        content = (
            f"{self._system_prompt}\n\n"
            f"Current Student: {options.level}, {options.curriculum}, Subject: {options.subject}"
        )
        return {"role": "system", "content": content}

    @staticmethod
    def context_prompt(message: str, options: RequestOptions) -> str:
        return CONTEXT_TEMPLATE.format(
            level=options.level,
            subject=options.subject,
            curriculum=options.curriculum,
            message_type=options.message_type,
            message=message,
        )

    def build_messages(
        self,
        message: str,
        options: RequestOptions,
        history: ConversationHistory,
    ) -> List[Dict[str, str]]:
        messages = [self.system_message(options)]
        messages.extend(history.as_payload(self._history_window))
        messages.append({"role": "user", "content": self.context_prompt(message, options)})
        return messages

    @staticmethod
    def quiz_prompt(topic: str, count: int, difficulty: str) -> str:
        return QUIZ_TEMPLATE.format(
            count=count,
            topic=topic,
            diagram_count=math.ceil(count * 3 / 10),
            difficulty=difficulty,
        )

    @staticmethod
    def marking_prompt(
        student_answers: Any,
        correct_answers: Any,
        context: Mapping[str, Any],
    ) -> str:
        return MARKING_TEMPLATE.format(
            subject=context.get("subject", "General"),
            level=context.get("level", "Form 3"),
            student_answers=json.dumps(student_answers, indent=2, ensure_ascii=False),
            correct_answers=json.dumps(correct_answers, indent=2, ensure_ascii=False),
        )

    @staticmethod
    def symposium_prompt(subject: str, count: int) -> str:
        return SYMPOSIUM_TEMPLATE.format(count=count, subject=subject)

    @staticmethod
    def explanation_prompt(topic: str, level: str) -> str:
        return EXPLANATION_TEMPLATE.format(topic=topic, level=level)
