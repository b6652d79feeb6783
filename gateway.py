"""Client for the hosted OpenAI-style chat-completion API."""

import json
import logging
import re
import time
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Sequence
from uuid import uuid4

import requests

from config import Settings
from errors import EmptyResponseError, MalformedResponseError, UpstreamError

logger = logging.getLogger(__name__)

_LLM_LOGGER = logging.getLogger("renovate.llm")
if not _LLM_LOGGER.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(message)s"))
    _LLM_LOGGER.addHandler(_handler)
_LLM_LOGGER.setLevel(logging.INFO)
_LLM_LOGGER.propagate = False

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(frozen=True)
class CallProfile:
    """Model, output budget and sampling temperature for one kind of call."""

    name: str
    model: str
    max_tokens: int
    temperature: float = 0.7

    def __post_init__(self):
        if not 0.0 <= float(self.temperature) <= 1.0:
            raise ValueError(f"temperature must be within [0.0, 1.0], got {self.temperature}")
        if int(self.max_tokens) <= 0:
            raise ValueError("max_tokens must be positive")


def default_profiles(settings: Settings) -> dict[str, CallProfile]:
    temperature = settings.ai_temperature
    return {
        "onboarding_feedback": CallProfile("onboarding_feedback", settings.content_model, 200, temperature),
        "learning_path": CallProfile("learning_path", settings.content_model, 1200, temperature),
        "mentor_chat": CallProfile("mentor_chat", settings.mentor_model, 500, temperature),
        "personalized_quiz": CallProfile("personalized_quiz", settings.content_model, 800, temperature),
    }


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


class AIGateway:
    def __init__(self, settings: Settings, *, session: Optional[requests.Session] = None):
        self.settings = settings
        self.profiles = default_profiles(settings)
        self._http = session or requests

    def profile(self, name: str, **overrides: Any) -> CallProfile:
        base = self.profiles[name]
        return replace(base, **overrides) if overrides else base

    def _messages(
        self,
        system_prompt: str,
        user_prompt: str,
        history: Optional[Sequence[Mapping[str, Any]]],
    ) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": system_prompt}]
        turns = list(history or ())
        limit = self.settings.mentor_history_turns
        turns = turns[-limit:] if limit else []
        for turn in turns:
            content = str(turn.get("content") or "").strip()
            if not content:
                continue
            role = "user" if turn.get("role") == "user" else "assistant"
            messages.append({"role": role, "content": content})
        messages.append({"role": "user", "content": user_prompt})
        return messages

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        profile: CallProfile,
        *,
        history: Optional[Sequence[Mapping[str, Any]]] = None,
        prompt_version: Optional[str] = None,
    ) -> str:
        """Send one chat request and return the first choice's text.

        Raises UpstreamError, MalformedResponseError or EmptyResponseError; there are
        no retries.
        """
        payload = {
            "model": profile.model,
            "messages": self._messages(system_prompt, user_prompt, history),
            "max_tokens": int(profile.max_tokens),
            "temperature": float(profile.temperature),
        }
        request_id = str(uuid4())
        start = time.perf_counter()
        outcome = "error"
        tokens_in: Optional[int] = None
        tokens_out: Optional[int] = None
        try:
            if not self.settings.openai_api_key:
                raise UpstreamError("AI gateway is not configured (OPENAI_API_KEY missing)")
            try:
                r = self._http.post(
                    self.settings.ai_base_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.settings.openai_api_key}"},
                    timeout=self.settings.ai_timeout,
                )
            except requests.RequestException as e:
                raise UpstreamError(f"LLM request failed: {e}") from e

            if not 200 <= r.status_code < 300:
                raise UpstreamError(
                    f"LLM-HTTP {r.status_code}: {(r.text or '')[:300]}",
                    upstream_status=r.status_code,
                )

            try:
                data = r.json()
            except ValueError as e:
                raise MalformedResponseError(f"LLM returned non-JSON body: {e}") from e

            usage = data.get("usage") if isinstance(data, dict) else None
            if isinstance(usage, dict):
                tokens_in = _coerce_int(usage.get("prompt_tokens"))
                tokens_out = _coerce_int(usage.get("completion_tokens"))

            try:
                choice = data["choices"][0]
            except (KeyError, IndexError, TypeError) as e:
                raise MalformedResponseError(f"Unexpected LLM response: {str(data)[:300]}") from e

            content = None
            if isinstance(choice, dict):
                message = choice.get("message")
                content = message.get("content") if isinstance(message, dict) else choice.get("text")
            if not isinstance(content, str) or not content.strip():
                raise EmptyResponseError("LLM returned no content")
            outcome = "ok"
            return content.strip()
        except Exception as exc:
            outcome = type(exc).__name__
            raise
        finally:
            log_record = {
                "event": "llm_call",
                "request_id": request_id,
                "call": profile.name,
                "model": profile.model,
                "prompt_version": prompt_version or "default",
                "latency_ms": int((time.perf_counter() - start) * 1000),
                "tokens_in": tokens_in,
                "tokens_out": tokens_out,
                "outcome": outcome,
            }
            _LLM_LOGGER.info(json.dumps(log_record, ensure_ascii=False))

    def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        profile: CallProfile,
        **kwargs: Any,
    ) -> Any:
        """Like :meth:`complete` but parses the reply as JSON.

        Markdown code fences around the payload are tolerated.
        """
        text = self.complete(system_prompt, user_prompt, profile, **kwargs)
        try:
            return json.loads(strip_code_fences(text))
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse %s response as JSON: %.200s", profile.name, text)
            raise MalformedResponseError(f"Invalid JSON response from AI: {e}") from e


def _coerce_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
