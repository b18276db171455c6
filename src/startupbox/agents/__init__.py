"""Agent catalogue exports."""

from .catalog import AGENT_PROFILES, AgentId, AgentProfile, agent_catalogue, filter_agents, get_profile

__all__ = ["AGENT_PROFILES", "AgentId", "AgentProfile", "agent_catalogue", "filter_agents", "get_profile"]
