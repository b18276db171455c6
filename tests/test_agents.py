from startupbox.agents.catalog import AGENT_PROFILES, AgentId, agent_catalogue, filter_agents
from startupbox.agents.transparency import parse_reasoning

REASONED_OUTPUT = """## Reasoning Chain
Step 1: Understand the coffee market
Step 2: Compare competitors

## Sources Used
- Industry report 2024
- Competitor pricing page

## Alternatives Considered
- Option A: Premium pricing
- Option B (Selected): Mid-market pricing
not a bullet

## Confidence Score
85% confidence based on available data

## Main Output
Price the subscription at $12/month."""


def test_every_agent_has_a_profile():
    assert set(AGENT_PROFILES) == set(AgentId)
    assert AGENT_PROFILES[AgentId.MARKET_ANALYST].label == "Market Analyst"


def test_parse_is_exact():
    assert AgentId.parse("content") is AgentId.CONTENT
    assert AgentId.parse("Content") is None
    assert AgentId.parse(" content") is None
    assert filter_agents(["outreach", "nope", "branding"]) == [AgentId.OUTREACH, AgentId.BRANDING]


def test_catalogue_lists_all_agents():
    lines = agent_catalogue().splitlines()

    assert lines[0] == "- market-analyst: Competitive analysis, market research, trends"
    assert len(lines) == 4


def test_system_prompt_modes():
    profile = AGENT_PROFILES[AgentId.CONTENT]

    assert "## Reasoning Chain" in profile.system_prompt()
    assert "REASONING MODE: DISABLED" in profile.system_prompt(include_reasoning=False)
    assert "No prior knowledge" in profile.system_prompt()


def test_parse_reasoning_sections():
    trace = parse_reasoning(REASONED_OUTPUT)

    assert trace.chain == ["Step 1: Understand the coffee market", "Step 2: Compare competitors"]
    assert trace.sources == ["- Industry report 2024", "- Competitor pricing page"]
    assert trace.alternatives == ["- Option A: Premium pricing", "- Option B (Selected): Mid-market pricing"]
    assert trace.confidence == 0.85
    assert trace.main_output == "Price the subscription at $12/month."


def test_parse_reasoning_without_sections():
    trace = parse_reasoning("Just a plain answer.")

    assert trace.chain == []
    assert trace.confidence == 0.80
    assert trace.main_output is None
