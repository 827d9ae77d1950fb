"""Configuration for the completion endpoint and tutor runtime."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from .errors import ConfigurationError

DEFAULT_SYSTEM_PROMPT = """You are "WeGEM AI" - an expert Kenyan tutor specialized in 8-4-4 and CBC curriculum.

IMPORTANT INSTRUCTIONS:
1. You ONLY teach Kenyan curriculum content
2. Format: Question → Answer → Explanation → Example
3. Difficulty levels: Form 1-4 or Grade 1-12 appropriate
4. Use Kenyan examples (shillings, local contexts, etc.)
5. KCSE exam-style questions with marking schemes

SUBJECT SPECIALTIES:
- Mathematics: Show working steps
- Sciences: Practical experiments & diagrams
- Languages: Kiswahili and English
- Humanities: Kenyan history & geography

RESPONSE RULES:
- For explanations: Clear, step-by-step, with examples
- For questions: Follow KCSE paper structure
- For marking: Use KNEC marking schemes
- For diagrams: Describe clearly for drawing
- Always relate to real Kenyan life

FORMATTING:
Use markdown for clarity:
**Bold** for key terms
*Italic* for emphasis
- Bullet points for lists
``` for code/math equations

Never mention you're an AI. You are "WeGEM AI Tutor"."""

SETUP_INSTRUCTIONS = """HOW TO GET A DEEPSEEK API KEY:

1. Visit: https://platform.deepseek.com
2. Sign up with email
3. Go to the "API Keys" section
4. Click "Create new API key"
5. Copy the key (starts with 'sk-')
6. Export it as WEGEM_API_KEY or add "api_key" to wegem_config.json"""


@dataclass(slots=True)
class AppPaths:
    """Container for filesystem paths used by the application."""

    base_dir: Path = field(default_factory=lambda: Path.cwd())
    config_file_name: str = "wegem_config.json"
    activity_log_file_name: str = "wegem_activity.json"

    @property
    def config_path(self) -> Path:
        return self.base_dir / self.config_file_name

    @property
    def activity_log_path(self) -> Path:
        return self.base_dir / self.activity_log_file_name


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class AIConfig:
    """Settings for the completion endpoint and the conversation window.

    An empty ``api_key`` is valid: the tutor then runs in local fallback
    mode and the connectivity probe is skipped.
    """

    api_key: str = ""
    model: str = "deepseek-chat"
    base_url: str = "https://api.deepseek.com/v1/chat/completions"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_tokens: int = 2000
    temperature: float = 0.7
    timeout: float = 60.0
    history_limit: int = 10
    history_window: int = 6
    provider: str = "deepseek"
    sync_all_activities: bool = True
    admin_email: str = ""

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @classmethod
    def from_env(cls, paths: AppPaths) -> "AIConfig":
        """Load configuration from environment variables or disk.

        Precedence order (highest to lowest): environment variables, the JSON
        configuration file, defaults.  A minimal file looks like:

        ```json
        {
            "api_key": "sk-...",
            "model": "deepseek-chat"
        }
        ```
        """

        config_data: Dict[str, Any] = {}
        if paths.config_path.exists():
            try:
                config_data = json.loads(paths.config_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise ConfigurationError(
                    f"Configuration file {paths.config_path} contains invalid JSON"
                ) from exc
            if not isinstance(config_data, dict):
                raise ConfigurationError(
                    f"Configuration file {paths.config_path} must contain a JSON object"
                )

        defaults = cls()
        try:
            data = {
                "api_key": os.getenv("WEGEM_API_KEY")
                or os.getenv("DEEPSEEK_API_KEY")
                or config_data.get("api_key", defaults.api_key),
                "model": os.getenv("WEGEM_MODEL") or config_data.get("model", defaults.model),
                "base_url": os.getenv("WEGEM_BASE_URL")
                or config_data.get("base_url", defaults.base_url),
                "system_prompt": os.getenv("WEGEM_SYSTEM_PROMPT")
                or config_data.get("system_prompt", defaults.system_prompt),
                "max_tokens": int(
                    os.getenv("WEGEM_MAX_TOKENS", config_data.get("max_tokens", defaults.max_tokens))
                ),
                "temperature": float(
                    os.getenv(
                        "WEGEM_TEMPERATURE",
                        config_data.get("temperature", defaults.temperature),
                    )
                ),
                "timeout": float(
                    os.getenv("WEGEM_TIMEOUT", config_data.get("timeout", defaults.timeout))
                ),
                "history_limit": int(
                    os.getenv(
                        "WEGEM_HISTORY_LIMIT",
                        config_data.get("history_limit", defaults.history_limit),
                    )
                ),
                "history_window": int(
                    config_data.get("history_window", defaults.history_window)
                ),
                "provider": config_data.get("provider", defaults.provider),
                "sync_all_activities": _env_flag(
                    "WEGEM_SYNC_ACTIVITIES",
                    bool(config_data.get("sync_all_activities", defaults.sync_all_activities)),
                ),
                "admin_email": os.getenv("WEGEM_ADMIN_EMAIL")
                or config_data.get("admin_email", defaults.admin_email),
            }
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid numeric configuration value: {exc}") from exc

        config = cls(**data)
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration fields and raise :class:`ConfigurationError`."""

        if not self.base_url or not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError("Base URL must include an http:// or https:// scheme")
        if not self.model:
            raise ConfigurationError("Model name is required")
        try:
            self.api_key.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise ConfigurationError(
                "API key contains characters that cannot be sent in an HTTP header"
            ) from exc
        if self.max_tokens < 1:
            raise ConfigurationError("max_tokens must be at least 1")
        if not 0.0 <= self.temperature <= 2.0:
            raise ConfigurationError("Temperature must be between 0 and 2")
        if self.timeout <= 0:
            raise ConfigurationError("Timeout must be positive")
        if self.history_limit < 1:
            raise ConfigurationError("History limit must be at least 1")
        if not 0 <= self.history_window <= self.history_limit:
            raise ConfigurationError("History window must be between 0 and the history limit")
