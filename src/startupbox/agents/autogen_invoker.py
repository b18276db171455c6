"""Autogen-powered invoker: each agent runs as an AssistantAgent with its tools registered."""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional

from autogen import AssistantAgent, UserProxyAgent, register_function

from ..errors import AgentInvocationFailed
from ..llm.provider import DEFAULT_API_URL, DEFAULT_MODEL
from ..tools.base import Tool, ToolContext
from ..tools.builtin import register_builtin_tools
from ..tools.registry import ToolRegistry
from .catalog import AGENT_PROFILES, AgentId, AgentProfile
from .invoker import AgentOutput
from .transparency import parse_reasoning

if TYPE_CHECKING:  # pragma: no cover
    from ..config import AppConfig


def _base_url(api_url: str) -> str:
    suffix = "/chat/completions"
    return api_url[: -len(suffix)] if api_url.endswith(suffix) else api_url.rstrip("/")


class AutogenAgentInvoker:
    """Runs one agent per call through a two-party autogen chat."""

    def __init__(
        self,
        *,
        api_url: str = DEFAULT_API_URL,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        timeout: float = 120.0,
        max_turns: int = 6,
        profiles: Optional[Mapping[AgentId, AgentProfile]] = None,
        tool_registry: Optional[ToolRegistry] = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_turns = max_turns
        self.profiles = dict(profiles or AGENT_PROFILES)
        if tool_registry is None:
            tool_registry = ToolRegistry()
            register_builtin_tools(tool_registry)
        self.tool_registry = tool_registry

    @classmethod
    def from_config(cls, config: "AppConfig", **params: Any) -> "AutogenAgentInvoker":
        registry = ToolRegistry()
        register_builtin_tools(registry)
        registry.configure_from_specs(config.tool_specs)
        params.setdefault("api_url", config.llm.api_url)
        params.setdefault("api_key", config.llm.api_key)
        params.setdefault("model", config.llm.model)
        params.setdefault("timeout", config.llm.timeout)
        return cls(profiles=config.profiles(), tool_registry=registry, **params)

    def invoke(
        self,
        agent: AgentId,
        task: str,
        *,
        api_key: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> AgentOutput:
        profile = self.profiles[agent]
        key = api_key or self.api_key
        if not key:
            raise AgentInvocationFailed(agent.value, "An API key is required for the autogen invoker")
        try:
            assistant = self._build_assistant(profile, key)
            user = self._build_user(agent)
            tools = self.tool_registry.select(profile.tools)
            for name, tool in tools.items():
                register_function(
                    self._wrap_tool(name, tool, agent, conversation_id),
                    caller=assistant,
                    executor=user,
                    name=name,
                    description=tool.description or name,
                )
            result = user.initiate_chat(assistant, message=self.build_task_prompt(profile, task), max_turns=self.max_turns)
        except Exception as exc:
            raise AgentInvocationFailed(agent.value, f"Autogen chat failed: {exc}") from exc
        text = self.extract_content(result)
        return AgentOutput(
            output=text,
            conversation_id=conversation_id,
            metadata={"tools": sorted(tools), "reasoning": parse_reasoning(text).to_dict()},
        )

    def _build_assistant(self, profile: AgentProfile, api_key: str) -> AssistantAgent:
        config_list = [{"model": self.model, "base_url": _base_url(self.api_url), "api_key": api_key}]
        system_message = textwrap.dedent(
            f"""
            {profile.system_prompt(include_reasoning=False)}
            Use the registered functions when they help. When you finish, respond with:
            FINAL: <your deliverable>.
            """
        ).strip()
        return AssistantAgent(
            name=profile.agent.value.replace("-", "_"),
            llm_config={"timeout": self.timeout, "config_list": config_list, "cache_seed": None},
            system_message=system_message,
        )

    def _build_user(self, agent: AgentId) -> UserProxyAgent:
        return UserProxyAgent(
            name=f"{agent.value.replace('-', '_')}_runner",
            human_input_mode="NEVER",
            code_execution_config=False,
            is_termination_msg=self.is_final_message,
        )

    @staticmethod
    def _wrap_tool(name: str, tool: Tool, agent: AgentId, conversation_id: Optional[str]) -> Callable[[str], str]:
        def _tool_func(input_text: str) -> str:
            result = tool.run(
                input_text=input_text,
                context=ToolContext(agent=agent.value, conversation_id=conversation_id, metadata={"tool": name}),
            )
            return result.content

        _tool_func.__name__ = name
        _tool_func.__doc__ = tool.description or name
        return _tool_func

    @staticmethod
    def build_task_prompt(profile: AgentProfile, task: str) -> str:
        return textwrap.dedent(
            f"""
            Task for the {profile.label}: {task}
            Available tools: {list(profile.tools)}
            When completed, respond with 'FINAL: <deliverable>'.
            """
        ).strip()

    @staticmethod
    def extract_content(result: Any) -> str:
        if isinstance(result, str):
            return _strip_final(result)
        if isinstance(result, dict):
            return _strip_final(result.get("content", "") or "")
        summary = getattr(result, "summary", None)
        if isinstance(summary, str) and summary.strip():
            return _strip_final(summary)
        chat_history = getattr(result, "chat_history", None)
        if isinstance(chat_history, list):
            for item in reversed(chat_history):
                if isinstance(item, dict):
                    content = item.get("content")
                    if isinstance(content, str) and content.strip():
                        return _strip_final(content)
        return _strip_final(str(result))

    @staticmethod
    def is_final_message(message: Dict[str, Any]) -> bool:
        content = (message or {}).get("content", "") or ""
        return content.strip().upper().startswith("FINAL:")


def _strip_final(content: str) -> str:
    text = content.strip()
    if text.upper().startswith("FINAL:"):
        return text[len("FINAL:") :].strip()
    return text
