"""Configuration helpers for the orchestrator."""

from __future__ import annotations

import dataclasses
import importlib
import os
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

import yaml

from .agents.catalog import AGENT_PROFILES, AgentId, AgentProfile
from .llm.provider import DEFAULT_API_URL, DEFAULT_MODEL

API_KEY_ENV_VARS = ("STARTUPBOX_API_KEY", "GROQ_API_KEY")
CONFIG_ENV_VAR = "STARTUPBOX_CONFIG"
DB_URL_ENV_VAR = "STARTUPBOX_DB_URL"
DEFAULT_INVOKER = "startupbox.agents.invoker:LLMAgentInvoker"


class ConfigError(RuntimeError):
    """Raised when configuration files are invalid."""


def _env_api_key() -> Optional[str]:
    for name in API_KEY_ENV_VARS:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return None


@dataclass
class LLMSpec:
    """Gateway settings shared by the classifier, decomposer and agents."""

    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    api_key: Optional[str] = None
    timeout: float = 120.0
    classifier_temperature: float = 0.3
    classifier_max_tokens: int = 500
    decomposer_temperature: float = 0.5
    decomposer_max_tokens: int = 400

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "LLMSpec":
        data = data or {}
        if not isinstance(data, Mapping):
            raise ConfigError("llm must be a mapping")
        try:
            return cls(
                api_url=str(data.get("api_url", DEFAULT_API_URL)),
                model=str(data.get("model", DEFAULT_MODEL)),
                api_key=data.get("api_key") or _env_api_key(),
                timeout=float(data.get("timeout", 120.0)),
                classifier_temperature=float(data.get("classifier_temperature", 0.3)),
                classifier_max_tokens=int(data.get("classifier_max_tokens", 500)),
                decomposer_temperature=float(data.get("decomposer_temperature", 0.5)),
                decomposer_max_tokens=int(data.get("decomposer_max_tokens", 400)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid llm settings: {exc}") from exc


@dataclass
class InvokerSpec:
    """Which agent invoker to build and with what parameters."""

    type: str = DEFAULT_INVOKER
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "InvokerSpec":
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigError("invoker must be a mapping")
        params = data.get("params") or {}
        if not isinstance(params, Mapping):
            raise ConfigError("invoker.params must be a mapping")
        return cls(type=str(data.get("type", DEFAULT_INVOKER)), params=dict(params))


@dataclass
class SessionSpec:
    """Initial values for a new session."""

    credits: int = 50
    activity_capacity: int = 10
    user_name: str = ""

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "SessionSpec":
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigError("session must be a mapping")
        try:
            spec = cls(
                credits=int(data.get("credits", 50)),
                activity_capacity=int(data.get("activity_capacity", 10)),
                user_name=str(data.get("user_name", "")),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid session settings: {exc}") from exc
        if spec.credits < 0:
            raise ConfigError("session.credits must not be negative")
        if spec.activity_capacity < 1:
            raise ConfigError("session.activity_capacity must be at least 1")
        return spec


@dataclass
class AgentOverride:
    """Per-agent adjustments applied on top of the built-in profile."""

    tools: Optional[List[str]] = None
    instructions: Optional[str] = None
    knowledge: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, name: str, data: Optional[Mapping[str, Any]]) -> "AgentOverride":
        data = data or {}
        if not isinstance(data, Mapping):
            raise ConfigError(f"Agent '{name}' settings must be a mapping")
        tools = data.get("tools")
        if tools is not None and not isinstance(tools, list):
            raise ConfigError(f"Agent '{name}' tools must be a list")
        return cls(
            tools=list(tools) if tools is not None else None,
            instructions=data.get("instructions"),
            knowledge=[str(item) for item in data.get("knowledge", [])],
        )

    def apply(self, profile: AgentProfile) -> AgentProfile:
        changes: Dict[str, Any] = {}
        if self.tools is not None:
            changes["tools"] = tuple(self.tools)
        if self.instructions:
            changes["instructions"] = self.instructions
        if self.knowledge:
            changes["knowledge"] = tuple(self.knowledge)
        return dataclasses.replace(profile, **changes)


@dataclass
class ToolSpec:
    """Configuration for a tool instance."""

    name: str
    type: str
    args: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "ToolSpec":
        if not isinstance(data, Mapping) or "type" not in data:
            raise ConfigError(f"Tool '{name}' requires a type path")
        return cls(name=name, type=str(data["type"]), args=dict(data.get("args", {})))


@dataclass
class AppConfig:
    """Representation of the YAML configuration."""

    name: str = "startup-box"
    llm: LLMSpec = field(default_factory=LLMSpec)
    invoker: InvokerSpec = field(default_factory=InvokerSpec)
    session: SessionSpec = field(default_factory=SessionSpec)
    agents: Dict[AgentId, AgentOverride] = field(default_factory=dict)
    tool_specs: Dict[str, ToolSpec] = field(default_factory=dict)
    database_url: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Any, *, name: str = "startup-box") -> "AppConfig":
        if data is None:
            data = {}
        if not isinstance(data, MutableMapping):
            raise ConfigError("Configuration root must be a mapping")
        for section in ("agents", "tools"):
            if not isinstance(data.get(section) or {}, Mapping):
                raise ConfigError(f"{section} must be a mapping")
        agents: Dict[AgentId, AgentOverride] = {}
        for key, info in (data.get("agents") or {}).items():
            agent = AgentId.parse(str(key))
            if agent is None:
                raise ConfigError(f"Unknown agent '{key}' in configuration")
            agents[agent] = AgentOverride.from_mapping(str(key), info)
        tool_specs = {
            tool_name: ToolSpec.from_mapping(tool_name, info)
            for tool_name, info in (data.get("tools") or {}).items()
        }
        database_url = data.get("database_url") or os.getenv(DB_URL_ENV_VAR, "").strip() or None
        return cls(
            name=str(data.get("name", name)),
            llm=LLMSpec.from_mapping(data.get("llm")),
            invoker=InvokerSpec.from_mapping(data.get("invoker")),
            session=SessionSpec.from_mapping(data.get("session")),
            agents=agents,
            tool_specs=tool_specs,
            database_url=database_url,
        )

    @classmethod
    def from_yaml(cls, text: str) -> "AppConfig":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML: {exc}") from exc
        return cls.from_mapping(data)

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "AppConfig":
        config_path = pathlib.Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config not found: {config_path}")
        try:
            data = yaml.safe_load(config_path.read_text())
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        return cls.from_mapping(data, name=config_path.stem)

    @classmethod
    def load(cls, path: str | pathlib.Path | None = None) -> "AppConfig":
        """Load ``path``, else ``$STARTUPBOX_CONFIG``, else built-in defaults."""

        path = path or os.getenv(CONFIG_ENV_VAR, "").strip() or None
        if path:
            return cls.from_file(path)
        return cls.from_mapping({})

    def profiles(self) -> Dict[AgentId, AgentProfile]:
        profiles = dict(AGENT_PROFILES)
        for agent, override in self.agents.items():
            profiles[agent] = override.apply(profiles[agent])
        return profiles


def import_string(path: str) -> Any:
    """Return attribute from module specified by path "module:qualname"."""

    if ":" not in path:
        raise ConfigError(f"Import path '{path}' must use module:qualname format")
    module_path, attr = path.split(":", 1)
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ConfigError(f"Cannot import module '{module_path}': {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"Module '{module_path}' has no attribute '{attr}'") from exc


def instantiate_from_path(path: str, *args: Any, **kwargs: Any) -> Any:
    """Import and instantiate a class given its dotted path."""

    cls = import_string(path)
    return cls(*args, **kwargs)
