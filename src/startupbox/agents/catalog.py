"""The fixed set of agents the orchestrator can dispatch work to."""

from __future__ import annotations

import textwrap
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple


class AgentId(str, Enum):
    """Closed enumeration of agent identifiers; values match the wire format."""

    MARKET_ANALYST = "market-analyst"
    BRANDING = "branding"
    CONTENT = "content"
    OUTREACH = "outreach"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, token: str) -> Optional["AgentId"]:
        """Return the agent for an exact identifier, or ``None``."""

        try:
            return cls(token)
        except ValueError:
            return None


DEFAULT_TOOLS: Tuple[str, ...] = ("calculator", "web_search", "data_analyzer")


@dataclass(frozen=True)
class AgentProfile:
    """Dispatch table entry: how an agent is shown, described and invoked."""

    agent: AgentId
    label: str
    description: str
    tools: Tuple[str, ...] = DEFAULT_TOOLS
    instructions: str = ""
    knowledge: Tuple[str, ...] = field(default_factory=tuple)

    def system_prompt(self, include_reasoning: bool = True) -> str:
        header = f"You are an intelligent {self.agent.value} agent. {self.instructions}".strip()
        knowledge = "\n".join(self.knowledge) or "No prior knowledge"
        mode = "ENABLED - Show your thinking step-by-step" if include_reasoning else "DISABLED"
        body = f"{header}\n\nREASONING MODE: {mode}\n\nKnowledge Base:\n{knowledge}\n"
        if not include_reasoning:
            return body + "\nProvide your output directly and concisely."
        return body + textwrap.dedent(
            """
            When responding, structure your output as:

            ## Reasoning Chain
            Step 1: [Understanding the request]
            Step 2: [Analyzing available information]
            Step 3: [Considering options]
            Step 4: [Making recommendation]

            ## Sources Used
            - [List knowledge entries referenced]

            ## Alternatives Considered
            - Option A: [Description with pros/cons]
            - Option B: [Description with pros/cons]
            - Option C (Selected): [Why this was chosen]

            ## Confidence Score
            [0-100]% confidence based on available data

            ## Main Output
            [Your actual deliverable]
            """
        )


AGENT_PROFILES: Dict[AgentId, AgentProfile] = {
    AgentId.MARKET_ANALYST: AgentProfile(
        agent=AgentId.MARKET_ANALYST,
        label="Market Analyst",
        description="Competitive analysis, market research, trends",
        instructions="You provide detailed, actionable market insights.",
    ),
    AgentId.BRANDING: AgentProfile(
        agent=AgentId.BRANDING,
        label="Branding Agent",
        description="Brand identity, taglines, positioning, pitches",
        instructions="You craft memorable brand identities and positioning.",
    ),
    AgentId.CONTENT: AgentProfile(
        agent=AgentId.CONTENT,
        label="Content Agent",
        description="LinkedIn posts, blog articles, marketing content",
        instructions="You write engaging marketing content for startups.",
    ),
    AgentId.OUTREACH: AgentProfile(
        agent=AgentId.OUTREACH,
        label="Outreach Agent",
        description="Email sequences, cold outreach campaigns",
        instructions="You write personalised outreach sequences that convert.",
    ),
}


def get_profile(agent: AgentId) -> AgentProfile:
    return AGENT_PROFILES[agent]


def agent_catalogue() -> str:
    """Render the agent list embedded in the classifier prompt."""

    return "\n".join(f"- {profile.agent.value}: {profile.description}" for profile in AGENT_PROFILES.values())


def filter_agents(tokens: Iterable[str]) -> List[AgentId]:
    """Keep tokens that exactly match a canonical identifier, in order."""

    agents: List[AgentId] = []
    for token in tokens:
        agent = AgentId.parse(token)
        if agent is not None:
            agents.append(agent)
    return agents
