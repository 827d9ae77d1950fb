"""HTTP client for the chat completion endpoint."""

from __future__ import annotations

import statistics
import threading
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from .config import AIConfig
from .errors import APIError, HTTPStatusError, ResponseFormatError, TransportError
from .logs import LOGGER


@dataclass(frozen=True, slots=True)
class Completion:
    content: str
    total_tokens: int = 0


class MetricsTracker:
    """Latency of successful completions and failure counts per error kind."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._durations: List[float] = []
        self._tokens = 0
        self._failures: Counter[str] = Counter()

    def record_success(self, duration: float, tokens: int = 0) -> None:
        with self._lock:
            self._durations.append(duration)
            self._tokens += tokens

    def record_failure(self, kind: str) -> None:
        with self._lock:
            self._failures[kind] += 1

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            durations = list(self._durations)
            tokens = self._tokens
            failures = dict(self._failures)
        if len(durations) > 1:
            p95 = statistics.quantiles(durations, n=100)[94]
        else:
            p95 = durations[0] if durations else 0.0
        return {
            "count": len(durations),
            "mean": statistics.fmean(durations) if durations else 0.0,
            "p95": p95,
            "tokens": tokens,
            "failures": sum(failures.values()),
            "failures_by_kind": failures,
        }


class CompletionClient:
    """Performs single, non-retried requests against the completion endpoint.

    Failures are classified as :class:`TransportError` (no response),
    :class:`HTTPStatusError` (non-2xx) or :class:`ResponseFormatError`
    (2xx without ``choices[0].message.content``).
    """

    def __init__(
        self,
        config: AIConfig,
        metrics: Optional[MetricsTracker] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config
        self._metrics = metrics or MetricsTracker()
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    @property
    def metrics(self) -> MetricsTracker:
        return self._metrics

    def close(self) -> None:
        self._session.close()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._config.api_key}"}

    def _post(self, payload: Dict[str, Any]) -> requests.Response:
        try:
            return self._session.post(
                self._config.base_url,
                json=payload,
                headers=self._headers(),
                timeout=self._config.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Network failure contacting completion endpoint: {exc}") from exc
        except UnicodeError as exc:
            # http.client encodes header values as latin-1.
            raise TransportError(f"Request could not be encoded: {exc}") from exc

    def chat_completion(self, messages: List[Dict[str, str]]) -> Completion:
        """Send a chat completion request and return the assistant's reply."""

        payload = {
            "model": self._config.model,
            "messages": messages,
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
            "stream": False,
        }

        start = time.perf_counter()
        try:
            response = self._post(payload)
            if not 200 <= response.status_code < 300:
                raise HTTPStatusError(response.status_code, self._summarise_http_error(response))
            try:
                data = response.json()
            except ValueError as exc:
                raise ResponseFormatError("Malformed JSON received from completion endpoint") from exc
            completion = Completion(
                content=self._extract_content(data),
                total_tokens=self._extract_total_tokens(data),
            )
        except APIError as exc:
            self._metrics.record_failure(exc.kind)
            raise

        duration = time.perf_counter() - start
        self._metrics.record_success(duration, completion.total_tokens)
        LOGGER.debug("Received completion in %.2fs", duration)
        return completion

    def probe(self) -> bool:
        """Issue a minimal request and report whether the endpoint accepted it.

        Never raises; the result is diagnostic only.
        """

        payload = {
            "model": self._config.model,
            "messages": [{"role": "system", "content": "Test connection"}],
            "max_tokens": 10,
        }
        try:
            response = self._post(payload)
        except TransportError as exc:
            LOGGER.warning("Completion endpoint connection error: %s", exc)
            return False
        if 200 <= response.status_code < 300:
            LOGGER.info("Completion endpoint connected (%s)", self._config.model)
            return True
        LOGGER.warning("Completion endpoint probe failed with HTTP %s", response.status_code)
        return False

    @staticmethod
    def _extract_content(data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ResponseFormatError("Unexpected response structure from completion endpoint") from exc
        if not isinstance(content, str):
            raise ResponseFormatError("Completion content is not text")
        return content

    @staticmethod
    def _extract_total_tokens(data: Dict[str, Any]) -> int:
        usage = data.get("usage")
        if not isinstance(usage, dict):
            return 0
        try:
            return max(0, int(usage.get("total_tokens") or 0))
        except (TypeError, ValueError, OverflowError):
            return 0

    @staticmethod
    def _summarise_http_error(response: requests.Response) -> Optional[str]:
        """Flatten an error body such as ``{"error": {"message": ...}}`` into text."""

        try:
            data = response.json()
        except ValueError:
            text = getattr(response, "text", "") or ""
            return text.strip()[:200] or None

        parts: List[str] = []

        def _collect(value: Any) -> None:
            if isinstance(value, str):
                if value.strip():
                    parts.append(value.strip())
            elif isinstance(value, dict):
                for item in value.values():
                    _collect(item)
            elif isinstance(value, list):
                for item in value:
                    _collect(item)

        _collect(data.get("error", data) if isinstance(data, dict) else data)
        return " ".join(parts) or None
