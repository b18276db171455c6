"""Agent invokers: single-attempt adapters that run one agent on one task."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple, Union

import structlog

from ..errors import AgentInvocationFailed
from ..llm.provider import ChatCompletionProvider, ChatRequest, LLMError, LLMProvider
from .catalog import AGENT_PROFILES, AgentId, AgentProfile
from .transparency import parse_reasoning

if TYPE_CHECKING:  # pragma: no cover
    from ..config import AppConfig

logger = structlog.get_logger()


@dataclass
class AgentOutput:
    """Text produced by an agent plus whatever the agent service returned alongside it."""

    output: str
    conversation_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class AgentInvoker(Protocol):
    """Interface implemented by every agent backend."""

    def invoke(
        self,
        agent: AgentId,
        task: str,
        *,
        api_key: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> AgentOutput:  # pragma: no cover - interface
        """Run ``agent`` on ``task`` once; raise AgentInvocationFailed on any failure."""


StaticReply = Union[str, BaseException, Callable[[AgentId, str], str]]


class StaticAgentInvoker:
    """Invoker that answers from a fixed table (tests and offline demos)."""

    def __init__(
        self,
        replies: Optional[Mapping[Union[AgentId, str], StaticReply]] = None,
        *,
        template: str = "{agent} analysis for: {task}",
    ) -> None:
        self._replies = {AgentId(key): value for key, value in (replies or {}).items()}
        self.template = template
        self.calls: List[Tuple[AgentId, str, Optional[str]]] = []

    def invoke(
        self,
        agent: AgentId,
        task: str,
        *,
        api_key: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> AgentOutput:
        self.calls.append((agent, task, conversation_id))
        reply = self._replies.get(agent)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            text = reply(agent, task)
        elif reply is None:
            text = self.template.format(agent=agent.value, task=task)
        else:
            text = reply
        return AgentOutput(output=text, conversation_id=conversation_id or f"static-{agent.value}")


class RemoteAgentInvoker:
    """Calls the hosted agent function over HTTP."""

    def __init__(
        self,
        url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        profiles: Optional[Mapping[AgentId, AgentProfile]] = None,
    ) -> None:
        if not url:
            raise ValueError("RemoteAgentInvoker requires an agent function url")
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.profiles = dict(profiles or AGENT_PROFILES)

    @classmethod
    def from_config(cls, config: "AppConfig", **params: Any) -> "RemoteAgentInvoker":
        params.setdefault("timeout", config.llm.timeout)
        return cls(profiles=config.profiles(), **params)

    def build_payload(self, agent: AgentId, task: str, conversation_id: Optional[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "agent_type": agent.value,
            "prompt": task,
            "enabled_tools": list(self.profiles[agent].tools),
        }
        if conversation_id:
            payload["conversation_id"] = conversation_id
        return payload

    def invoke(
        self,
        agent: AgentId,
        task: str,
        *,
        api_key: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> AgentOutput:
        payload = self.build_payload(agent, task, conversation_id)
        headers = {"Content-Type": "application/json"}
        token = self.api_key or api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        request = urllib.request.Request(
            url=self.url,
            data=json.dumps(payload).encode("utf-8"),
            headers=headers,
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read()
        except urllib.error.HTTPError as exc:
            raise AgentInvocationFailed(agent.value, f"Agent function returned HTTP {exc.code}: {exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise AgentInvocationFailed(agent.value, f"Agent function unreachable at {self.url}: {exc.reason}") from exc
        except TimeoutError as exc:
            raise AgentInvocationFailed(agent.value, f"Agent function timed out after {self.timeout:.1f}s") from exc
        return self.parse_response(agent, body)

    @staticmethod
    def parse_response(agent: AgentId, body: str | bytes) -> AgentOutput:
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise AgentInvocationFailed(agent.value, f"Agent function returned invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise AgentInvocationFailed(agent.value, f"Agent function returned unexpected payload: {data!r}")
        if "error" in data:
            raise AgentInvocationFailed(agent.value, str(data["error"]))
        output = data.get("output")
        if not isinstance(output, str):
            raise AgentInvocationFailed(agent.value, "Agent function response has no output text")
        metadata = {key: value for key, value in data.items() if key not in ("output", "conversation_id")}
        return AgentOutput(output=output, conversation_id=data.get("conversation_id"), metadata=metadata)


class LLMAgentInvoker:
    """Runs an agent by prompting the chat-completion gateway with the agent's profile."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        profiles: Optional[Mapping[AgentId, AgentProfile]] = None,
        model: str = "llama-3.1-8b-instant",
        temperature: float = 0.7,
        max_tokens: int = 4000,
        include_reasoning: bool = True,
    ) -> None:
        self.provider = provider
        self.profiles = dict(profiles or AGENT_PROFILES)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.include_reasoning = include_reasoning

    @classmethod
    def from_config(cls, config: "AppConfig", **params: Any) -> "LLMAgentInvoker":
        provider = ChatCompletionProvider(
            api_url=config.llm.api_url,
            api_key=config.llm.api_key,
            timeout=config.llm.timeout,
        )
        params.setdefault("model", config.llm.model)
        return cls(provider, profiles=config.profiles(), **params)

    def invoke(
        self,
        agent: AgentId,
        task: str,
        *,
        api_key: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> AgentOutput:
        profile = self.profiles[agent]
        request = ChatRequest.build(
            profile.system_prompt(self.include_reasoning),
            task,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            api_key=api_key,
        )
        try:
            text = self.provider.complete(request)
        except LLMError as exc:
            raise AgentInvocationFailed(agent.value, str(exc)) from exc
        metadata: Dict[str, Any] = {}
        if self.include_reasoning:
            metadata["reasoning"] = parse_reasoning(text).to_dict()
        return AgentOutput(output=text, conversation_id=conversation_id, metadata=metadata)
