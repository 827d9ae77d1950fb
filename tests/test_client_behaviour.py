"""Regression tests for the completion client and configuration loading."""

from __future__ import annotations

import json
import os
import tempfile
import unittest
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
from unittest import mock

import requests

from wegem_tutor import config as config_module
from wegem_tutor.client import CompletionClient, MetricsTracker
from wegem_tutor.config import AIConfig, AppPaths
from wegem_tutor.errors import (
    ConfigurationError,
    HTTPStatusError,
    ResponseFormatError,
    TransportError,
)


class FakeResponse:
    """Minimal stand-in for :class:`requests.Response`."""

    def __init__(self, status_code: int, payload: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


@dataclass
class RecordedRequest:
    args: Tuple[Any, ...]
    kwargs: Dict[str, Any]


class StrictSession:
    """Session double that records every POST and replays canned responses."""

    def __init__(self, post_responses: Iterable[Any]) -> None:
        self.headers: Dict[str, str] = {}
        self._post_responses = list(post_responses)
        self.post_requests: List[RecordedRequest] = []
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def post(self, *args: Any, **kwargs: Any) -> Any:
        if len(args) != 1:
            raise AssertionError(f"Expected exactly one positional argument for POST, got {args}")
        if "json" not in kwargs:
            raise AssertionError("POST invocations must include a JSON payload")
        if not self._post_responses:
            raise AssertionError("No post responses configured for StrictSession")
        self.post_requests.append(RecordedRequest(args=args, kwargs=kwargs))
        response = self._post_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class HeaderEncodingSession(StrictSession):
    """Encodes header values the way ``http.client`` does before replaying."""

    def post(self, *args: Any, **kwargs: Any) -> Any:
        for value in kwargs.get("headers", {}).values():
            value.encode("latin-1")
        return super().post(*args, **kwargs)


def _success_payload(content: str, tokens: Optional[int] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if tokens is not None:
        payload["usage"] = {"total_tokens": tokens}
    return payload


class TestCompletionClientBehaviour(unittest.TestCase):
    """Validates the wire format and failure classification."""

    def setUp(self) -> None:
        self.config = AIConfig(
            api_key="sk-test",
            model="deepseek-chat",
            base_url="https://api.example.test/v1/chat/completions",
            max_tokens=512,
            temperature=0.4,
            timeout=5.0,
        )
        self.metrics = MetricsTracker()

    def _client(self, *responses: Any) -> Tuple[CompletionClient, StrictSession]:
        session = StrictSession(responses)
        return CompletionClient(self.config, self.metrics, session=session), session

    def test_chat_completion_sends_bearer_and_full_body(self) -> None:
        client, session = self._client(FakeResponse(200, _success_payload("Habari", tokens=42)))
        messages = [{"role": "user", "content": "Hello"}]

        completion = client.chat_completion(messages)

        self.assertEqual(completion.content, "Habari")
        self.assertEqual(completion.total_tokens, 42)
        recorded = session.post_requests[0]
        self.assertEqual(recorded.args[0], self.config.base_url)
        self.assertEqual(recorded.kwargs["headers"]["Authorization"], "Bearer sk-test")
        self.assertEqual(recorded.kwargs["timeout"], 5.0)
        self.assertEqual(
            recorded.kwargs["json"],
            {
                "model": "deepseek-chat",
                "messages": messages,
                "max_tokens": 512,
                "temperature": 0.4,
                "stream": False,
            },
        )
        self.assertEqual(session.headers["Content-Type"], "application/json")

    def test_missing_usage_reports_zero_tokens(self) -> None:
        client, _ = self._client(FakeResponse(200, _success_payload("ok")))
        self.assertEqual(client.chat_completion([]).total_tokens, 0)

    def test_content_is_returned_verbatim(self) -> None:
        client, _ = self._client(FakeResponse(200, _success_payload("  Q1: spaced?\n")))
        self.assertEqual(client.chat_completion([]).content, "  Q1: spaced?\n")

    def test_connection_error_is_transport(self) -> None:
        client, _ = self._client(requests.ConnectionError("dns failure"))
        with self.assertRaises(TransportError):
            client.chat_completion([])
        self.assertEqual(self.metrics.snapshot()["failures"], 1)

    def test_timeout_is_transport(self) -> None:
        client, session = self._client(requests.Timeout("slow"))
        with self.assertRaises(TransportError):
            client.chat_completion([])
        self.assertEqual(len(session.post_requests), 1)

    def test_non_2xx_carries_status_code(self) -> None:
        error_body = {"error": {"message": "Authentication Fails", "type": "invalid_request_error"}}
        client, _ = self._client(FakeResponse(401, error_body))
        with self.assertRaises(HTTPStatusError) as ctx:
            client.chat_completion([])
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertIn("Authentication Fails", str(ctx.exception))

    def test_no_retry_after_server_error(self) -> None:
        client, session = self._client(FakeResponse(503, text="unavailable"), FakeResponse(200, _success_payload("late")))
        with self.assertRaises(HTTPStatusError):
            client.chat_completion([])
        self.assertEqual(len(session.post_requests), 1)

    def test_missing_choices_is_malformed(self) -> None:
        client, _ = self._client(FakeResponse(200, {"choices": []}))
        with self.assertRaises(ResponseFormatError):
            client.chat_completion([])

    def test_non_json_body_is_malformed(self) -> None:
        client, _ = self._client(FakeResponse(200, None, text="<html>"))
        with self.assertRaises(ResponseFormatError):
            client.chat_completion([])

    def test_summarise_http_error_flattens_nested_payload(self) -> None:
        detail_payload = {
            "error": {
                "message": "Model not found",
                "more": [{"description": "Check the model name."}, "See the documentation."],
            }
        }
        summary = CompletionClient._summarise_http_error(FakeResponse(400, detail_payload))
        assert summary is not None
        self.assertIn("Model not found", summary)
        self.assertIn("Check the model name.", summary)
        self.assertIn("documentation", summary)

    def test_probe_reports_status_without_raising(self) -> None:
        client, session = self._client(
            FakeResponse(200, _success_payload("pong")),
            FakeResponse(500, text="boom"),
            requests.ConnectionError("offline"),
        )
        self.assertTrue(client.probe())
        self.assertFalse(client.probe())
        self.assertFalse(client.probe())
        first = session.post_requests[0].kwargs["json"]
        self.assertEqual(first["max_tokens"], 10)
        self.assertEqual(first["messages"], [{"role": "system", "content": "Test connection"}])

    def test_non_finite_usage_reports_zero_tokens(self) -> None:
        for tokens in (float("inf"), float("-inf"), float("nan"), "many", None):
            with self.subTest(tokens=tokens):
                payload = _success_payload("ok")
                payload["usage"] = {"total_tokens": tokens}
                client, _ = self._client(FakeResponse(200, payload))
                completion = client.chat_completion([])
                self.assertEqual(completion.content, "ok")
                self.assertEqual(completion.total_tokens, 0)

    def test_unencodable_api_key_is_transport(self) -> None:
        config = AIConfig(api_key="sk-’abc", base_url=self.config.base_url)
        session = HeaderEncodingSession([FakeResponse(200, _success_payload("never sent"))])
        client = CompletionClient(config, self.metrics, session=session)
        with self.assertRaises(TransportError):
            client.chat_completion([])
        self.assertFalse(client.probe())
        self.assertEqual(session.post_requests, [])
        self.assertEqual(self.metrics.snapshot()["failures_by_kind"], {"transport": 1})

    def test_close_closes_session(self) -> None:
        client, session = self._client()
        client.close()
        self.assertTrue(session.closed)


class TestMetricsTracker(unittest.TestCase):
    def test_failures_are_counted_by_kind(self) -> None:
        metrics = MetricsTracker()
        metrics.record_success(0.1, tokens=30)
        metrics.record_failure("transport")
        metrics.record_failure("http_status")
        metrics.record_failure("transport")
        snapshot = metrics.snapshot()
        self.assertEqual(snapshot["count"], 1)
        self.assertEqual(snapshot["tokens"], 30)
        self.assertEqual(snapshot["failures"], 3)
        self.assertEqual(snapshot["failures_by_kind"], {"transport": 2, "http_status": 1})
        self.assertAlmostEqual(snapshot["p95"], 0.1)

    def test_client_records_malformed_failures(self) -> None:
        metrics = MetricsTracker()
        session = StrictSession([FakeResponse(200, {"choices": []})])
        client = CompletionClient(AIConfig(api_key="sk-test"), metrics, session=session)
        with self.assertRaises(ResponseFormatError):
            client.chat_completion([])
        self.assertEqual(metrics.snapshot()["failures_by_kind"], {"malformed": 1})

    def test_empty_snapshot(self) -> None:
        snapshot = MetricsTracker().snapshot()
        self.assertEqual(snapshot["count"], 0)
        self.assertEqual(snapshot["failures_by_kind"], {})


class TestAIConfigLoading(unittest.TestCase):
    """Covers configuration precedence and validation."""

    def setUp(self) -> None:
        tmp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(tmp_dir.cleanup)
        self.paths = AppPaths(base_dir=Path(tmp_dir.name))

    def test_defaults_without_file_or_env(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            config = AIConfig.from_env(self.paths)
        self.assertEqual(config.model, "deepseek-chat")
        self.assertEqual(config.history_limit, 10)
        self.assertEqual(config.max_tokens, 2000)
        self.assertFalse(config.has_api_key)

    def test_environment_overrides_file(self) -> None:
        self.paths.config_path.write_text(
            json.dumps({"api_key": "sk-file", "model": "file-model", "temperature": 0.2}),
            encoding="utf-8",
        )
        env = {"WEGEM_API_KEY": "sk-env", "WEGEM_MAX_TOKENS": "300"}
        with mock.patch.dict(os.environ, env, clear=True):
            config = AIConfig.from_env(self.paths)
        self.assertEqual(config.api_key, "sk-env")
        self.assertEqual(config.model, "file-model")
        self.assertEqual(config.max_tokens, 300)
        self.assertAlmostEqual(config.temperature, 0.2)

    def test_invalid_json_file_raises(self) -> None:
        self.paths.config_path.write_text("{invalid", encoding="utf-8")
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ConfigurationError):
                AIConfig.from_env(self.paths)

    def test_invalid_numeric_env_raises(self) -> None:
        with mock.patch.dict(os.environ, {"WEGEM_TIMEOUT": "soon"}, clear=True):
            with self.assertRaises(ConfigurationError):
                AIConfig.from_env(self.paths)

    def test_validate_rejects_bad_values(self) -> None:
        for bad in (
            AIConfig(base_url="api.deepseek.com"),
            AIConfig(timeout=0),
            AIConfig(temperature=3.0),
            AIConfig(history_window=11),
        ):
            with self.subTest(config=bad):
                with self.assertRaises(ConfigurationError):
                    bad.validate()

    def test_validate_rejects_key_outside_latin1(self) -> None:
        with self.assertRaises(ConfigurationError):
            AIConfig(api_key="sk-’abc").validate()
        AIConfig(api_key="sk-plain").validate()

    def test_blank_key_is_not_a_key(self) -> None:
        self.assertFalse(AIConfig(api_key="   ").has_api_key)
        self.assertTrue(AIConfig(api_key="sk-1").has_api_key)

    def test_system_prompt_mentions_curricula(self) -> None:
        self.assertIn("8-4-4", config_module.DEFAULT_SYSTEM_PROMPT)


if __name__ == "__main__":  # pragma: no cover - convenience entry point
    unittest.main(verbosity=2)
