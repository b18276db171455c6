"""Chat-completion providers used by the classifier, decomposer and agents."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Protocol

import structlog

logger = structlog.get_logger()

DEFAULT_API_URL = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_MODEL = "llama-3.1-8b-instant"


class LLMError(RuntimeError):
    """Raised when the LLM gateway cannot produce a completion."""


@dataclass
class ChatMessage:
    role: str
    content: str


@dataclass
class ChatRequest:
    """One system + user exchange sent to the gateway."""

    messages: List[ChatMessage]
    model: str = DEFAULT_MODEL
    temperature: float = 0.7
    max_tokens: int = 4000
    api_key: str | None = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, system: str, user: str, **kwargs: Any) -> "ChatRequest":
        return cls(
            messages=[ChatMessage("system", system), ChatMessage("user", user)],
            **kwargs,
        )

    def payload(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "messages": [{"role": m.role, "content": m.content} for m in self.messages],
        }


class LLMProvider(Protocol):
    """Interface for language model providers."""

    def complete(self, request: ChatRequest) -> str:  # pragma: no cover - interface
        """Return the completion text for the given request."""


class StaticResponseProvider:
    """Provider that replays a finite list of responses (useful for tests)."""

    def __init__(self, responses: Iterable[str | BaseException]):
        self._responses = iter(responses)
        self.requests: List[ChatRequest] = []

    def complete(self, request: ChatRequest) -> str:
        self.requests.append(request)
        try:
            response = next(self._responses)
        except StopIteration as exc:  # pragma: no cover - debug guard
            raise LLMError("StaticResponseProvider exhausted") from exc
        if isinstance(response, BaseException):
            raise response
        return response


class ChatCompletionProvider:
    """Calls an OpenAI-compatible chat completions endpoint over HTTP."""

    def __init__(
        self,
        *,
        api_url: str = DEFAULT_API_URL,
        api_key: str | None = None,
        timeout: float = 120.0,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout

    def complete(self, request: ChatRequest) -> str:
        api_key = request.api_key or self.api_key
        if not api_key:
            raise LLMError("An API key is required for the LLM gateway")
        body = json.dumps(request.payload()).encode("utf-8")
        http_request = urllib.request.Request(
            url=self.api_url,
            data=body,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
            method="POST",
        )
        logger.debug(
            "llm.request",
            api_url=self.api_url,
            model=request.model,
            payload_bytes=len(body),
        )
        try:
            with urllib.request.urlopen(http_request, timeout=self.timeout) as response:
                raw = response.read()
        except urllib.error.HTTPError as exc:
            raise LLMError(f"LLM gateway returned HTTP {exc.code}: {exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise LLMError(f"LLM gateway unreachable at {self.api_url}: {exc.reason}") from exc
        except TimeoutError as exc:
            raise LLMError(f"LLM gateway timed out after {self.timeout:.1f}s") from exc
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise LLMError(f"LLM gateway returned invalid JSON: {exc}") from exc
        return extract_completion(data)


def extract_completion(data: Any) -> str:
    """Return ``choices[0].message.content`` or an empty string when absent."""

    if not isinstance(data, dict):
        raise LLMError(f"Unexpected LLM payload: {data!r}")
    if "error" in data:
        raise LLMError(f"LLM gateway error: {data['error']}")
    choices = data.get("choices") or []
    if not isinstance(choices, list):
        raise LLMError(f"Unexpected LLM payload: choices={choices!r}")
    if not choices:
        return ""
    choice = choices[0]
    if not isinstance(choice, dict):
        raise LLMError(f"Unexpected LLM payload: choice={choice!r}")
    message = choice.get("message") or {}
    if not isinstance(message, dict):
        raise LLMError(f"Unexpected LLM payload: message={message!r}")
    content = message.get("content")
    return content if isinstance(content, str) else ""
