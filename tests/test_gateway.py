import json
import unittest
from unittest.mock import patch

import requests

from config import Settings
from errors import EmptyResponseError, MalformedResponseError, UpstreamError
from gateway import AIGateway, CallProfile, strip_code_fences


class _FakeResponse:
    def __init__(self, status_code, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


class _DummySession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _ok(content, usage=None):
    payload = {"choices": [{"message": {"content": content}}]}
    if usage:
        payload["usage"] = usage
    return _FakeResponse(200, payload)


class AIGatewayTests(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(
            openai_api_key="sk-test",
            ai_base_url="https://llm.example/v1/chat/completions",
            ai_timeout=12.5,
            mentor_history_turns=2,
        )

    def _gateway(self, *responses):
        session = _DummySession(responses)
        return AIGateway(self.settings, session=session), session

    def test_complete_sends_expected_payload(self):
        gateway, session = self._gateway(_ok("  Hello there  ", {"prompt_tokens": 10, "completion_tokens": 3}))

        result = gateway.complete("system text", "user text", gateway.profile("onboarding_feedback"))

        self.assertEqual(result, "Hello there")
        self.assertEqual(len(session.calls), 1)
        call = session.calls[0]
        self.assertEqual(call["url"], "https://llm.example/v1/chat/completions")
        self.assertEqual(call["timeout"], 12.5)
        self.assertEqual(call["headers"], {"Authorization": "Bearer sk-test"})
        self.assertEqual(
            call["json"],
            {
                "model": "gpt-3.5-turbo",
                "messages": [
                    {"role": "system", "content": "system text"},
                    {"role": "user", "content": "user text"},
                ],
                "max_tokens": 200,
                "temperature": 0.7,
            },
        )

    def test_mentor_profile_uses_mentor_model(self):
        gateway, session = self._gateway(_ok("Hi"))

        gateway.complete("sys", "hello", gateway.profile("mentor_chat"))

        self.assertEqual(session.calls[0]["json"]["model"], "gpt-4o-mini")
        self.assertEqual(session.calls[0]["json"]["max_tokens"], 500)

    def test_history_is_truncated_and_roles_normalised(self):
        gateway, session = self._gateway(_ok("Reply"))
        history = [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "second"},
            {"role": "mentor", "content": "third"},
            {"role": "user", "content": "   "},
        ]

        gateway.complete("sys", "now", gateway.profile("mentor_chat"), history=history)

        messages = session.calls[0]["json"]["messages"]
        self.assertEqual(
            messages,
            [
                {"role": "system", "content": "sys"},
                {"role": "assistant", "content": "third"},
                {"role": "user", "content": "now"},
            ],
        )

    def test_non_2xx_raises_upstream_error(self):
        gateway, session = self._gateway(_FakeResponse(429, {"error": "rate limited"}))

        with self.assertRaises(UpstreamError) as ctx:
            gateway.complete("sys", "user", gateway.profile("learning_path"))

        self.assertEqual(ctx.exception.upstream_status, 429)
        self.assertEqual(len(session.calls), 1)

    def test_transport_failure_raises_upstream_error_without_retry(self):
        gateway, session = self._gateway(requests.ConnectionError("refused"))

        with self.assertRaises(UpstreamError):
            gateway.complete("sys", "user", gateway.profile("learning_path"))
        self.assertEqual(len(session.calls), 1)

    def test_missing_choices_is_malformed(self):
        gateway, _ = self._gateway(_FakeResponse(200, {"id": "x"}))

        with self.assertRaises(MalformedResponseError):
            gateway.complete("sys", "user", gateway.profile("learning_path"))

    def test_non_json_body_is_malformed(self):
        gateway, _ = self._gateway(_FakeResponse(200, None, text="<html>oops</html>"))

        with self.assertRaises(MalformedResponseError):
            gateway.complete("sys", "user", gateway.profile("learning_path"))

    def test_blank_content_is_empty_response(self):
        gateway, _ = self._gateway(_ok("   "))

        with self.assertRaises(EmptyResponseError):
            gateway.complete("sys", "user", gateway.profile("mentor_chat"))

    def test_missing_api_key_fails_without_calling_upstream(self):
        session = _DummySession([])
        gateway = AIGateway(Settings(openai_api_key=None), session=session)

        with self.assertRaises(UpstreamError):
            gateway.complete("sys", "user", gateway.profile("mentor_chat"))
        self.assertEqual(session.calls, [])

    def test_complete_json_strips_fences(self):
        gateway, _ = self._gateway(_ok('```json\n[{"a": 1}]\n```'))

        data = gateway.complete_json("sys", "user", gateway.profile("personalized_quiz"))

        self.assertEqual(data, [{"a": 1}])

    def test_complete_json_rejects_prose(self):
        gateway, _ = self._gateway(_ok("Sure! Here are your questions."))

        with self.assertRaises(MalformedResponseError):
            gateway.complete_json("sys", "user", gateway.profile("personalized_quiz"))

    def test_each_call_emits_one_log_record(self):
        gateway, _ = self._gateway(_ok("Hi"), _FakeResponse(500, {"error": "down"}))

        with patch("gateway._LLM_LOGGER.info") as log_info:
            gateway.complete("sys", "user", gateway.profile("mentor_chat"), prompt_version="mentor.v1")
            with self.assertRaises(UpstreamError):
                gateway.complete("sys", "user", gateway.profile("mentor_chat"))

        self.assertEqual(log_info.call_count, 2)
        first = json.loads(log_info.call_args_list[0].args[0])
        second = json.loads(log_info.call_args_list[1].args[0])
        self.assertEqual(first["outcome"], "ok")
        self.assertEqual(first["prompt_version"], "mentor.v1")
        self.assertEqual(first["call"], "mentor_chat")
        self.assertEqual(second["outcome"], "UpstreamError")
        self.assertEqual(second["prompt_version"], "default")

    def test_default_transport_is_requests_module(self):
        gateway = AIGateway(self.settings)

        with patch("gateway.requests.post", return_value=_ok("From requests")) as post:
            result = gateway.complete("sys", "user", gateway.profile("onboarding_feedback"))

        self.assertEqual(result, "From requests")
        self.assertEqual(post.call_args.kwargs["timeout"], 12.5)


class CallProfileTests(unittest.TestCase):
    def test_temperature_bounds(self):
        with self.assertRaises(ValueError):
            CallProfile("x", "m", 10, temperature=1.5)
        with self.assertRaises(ValueError):
            CallProfile("x", "m", 10, temperature=-0.1)

    def test_max_tokens_must_be_positive(self):
        with self.assertRaises(ValueError):
            CallProfile("x", "m", 0)

    def test_profile_overrides_return_copy(self):
        gateway = AIGateway(Settings(openai_api_key="k"))
        warm = gateway.profile("learning_path", temperature=0.2)

        self.assertEqual(warm.temperature, 0.2)
        self.assertEqual(gateway.profile("learning_path").temperature, 0.7)


def test_strip_code_fences_variants():
    assert strip_code_fences("```json\n{}\n```") == "{}"
    assert strip_code_fences("```\n[1]\n```") == "[1]"
    assert strip_code_fences("  plain  ") == "plain"


if __name__ == "__main__":
    unittest.main()
