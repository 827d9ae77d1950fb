"""Local replies used when the completion endpoint cannot be reached."""

from __future__ import annotations

from .models import RequestOptions

_FALLBACK_TEMPLATES = {
    "quiz": (
        'I\'d generate quiz questions about "{message}" for {level} students.\n\n'
        "(Connect to DeepSeek AI for actual quiz generation)"
    ),
    "explanation": (
        'This topic "{message}" is important in Kenyan {level} curriculum.\n\n'
        "(Enable DeepSeek AI for detailed explanations)"
    ),
    "general": (
        'As WeGEM tutor, I understand your question about "{message}".\n\n'
        "Please add your DeepSeek API key to enable AI features."
    ),
}


def local_response(message: str, options: RequestOptions) -> str:
    """Return a short templated reply for ``options.message_type``.

    Types without a dedicated template share the general reply.
    """

    template = _FALLBACK_TEMPLATES.get(options.message_type, _FALLBACK_TEMPLATES["general"])
    return template.format(message=message, level=options.level)
