import io
import json
import urllib.request

import pytest

from startupbox.agents.catalog import AgentId
from startupbox.agents.invoker import LLMAgentInvoker, StaticAgentInvoker
from startupbox.config import AppConfig
from startupbox.errors import ClassificationFailed, CreditsExhausted
from startupbox.llm.provider import ChatCompletionProvider, LLMError, StaticResponseProvider
from startupbox.orchestration.orchestrator import ROUTER, Orchestrator, build_invoker

SIMPLE_RESPONSE = (
    "INTENT: help with pricing\n"
    "COMPLEXITY: simple\n"
    "AGENTS: market-analyst, content\n"
    "MODEL: llama-3.1-8b-instant\n"
    "WORKFLOW: research then write\n"
    "CONFIDENCE: 90\n"
    "TIME: 5 minutes\n"
    "SUBTASKS: N/A"
)

COMPLEX_RESPONSE = (
    "INTENT: launch a startup\n"
    "COMPLEXITY: complex\n"
    "AGENTS: market-analyst, branding\n"
    "CONFIDENCE: 70\n"
    "SUBTASKS: listed by the decomposer"
)


def make_orchestrator(responses, invoker=None, config=None):
    return Orchestrator.from_config(
        config or AppConfig(),
        provider=StaticResponseProvider(responses),
        invoker=invoker or StaticAgentInvoker(),
    )


def test_orchestrate_simple_flow():
    invoker = StaticAgentInvoker()
    orchestrator = make_orchestrator([SIMPLE_RESPONSE], invoker)
    session = orchestrator.new_session("key")

    result = orchestrator.orchestrate(session, "Help me price my SaaS")

    assert [item.agent for item in result.results] == [AgentId.MARKET_ANALYST, AgentId.CONTENT]
    assert [task for _, task, _ in invoker.calls] == ["Help me price my SaaS"] * 2
    assert session.credits == 49
    router = [record for record in session.activity.log.dump() if record.agent == ROUTER]
    assert [(record.title, record.status) for record in router] == [("Analyzed task intent", "completed")]


def test_orchestrate_consumes_one_credit_regardless_of_agent_count():
    response = SIMPLE_RESPONSE.replace("market-analyst, content", "market-analyst, branding, content, outreach")
    orchestrator = make_orchestrator([response])
    session = orchestrator.new_session("key")

    result = orchestrator.orchestrate(session, "Do it all")

    assert len(result.results) == 4
    assert session.credits == 49


def test_complex_flow_decomposes_and_pairs_subtasks():
    invoker = StaticAgentInvoker()
    orchestrator = make_orchestrator(
        [COMPLEX_RESPONSE, "1. Size the market\n2. Name the company\n3. Announce on LinkedIn"], invoker
    )
    session = orchestrator.new_session("key")

    result = orchestrator.orchestrate(session, "Launch my startup")

    assert result.analysis.subtasks == ("Size the market", "Name the company", "Announce on LinkedIn")
    assert [(agent, task) for agent, task, _ in invoker.calls] == [
        (AgentId.MARKET_ANALYST, "Size the market"),
        (AgentId.BRANDING, "Name the company"),
    ]


def test_decomposition_failure_continues_with_raw_input():
    invoker = StaticAgentInvoker()
    orchestrator = make_orchestrator([COMPLEX_RESPONSE, LLMError("rate limited")], invoker)
    session = orchestrator.new_session("key")

    result = orchestrator.orchestrate(session, "Launch my startup")

    assert result.analysis.subtasks == ()
    assert "rate limited" in result.decomposition_error
    assert [task for _, task, _ in invoker.calls] == ["Launch my startup"] * 2
    titles = [record.title for record in session.activity.log.dump() if record.agent == ROUTER]
    assert titles == ["Analyzed task intent", "Task decomposition failed"]


def test_classification_failure_records_activity_and_raises():
    orchestrator = make_orchestrator([LLMError("HTTP 401: Unauthorized")])
    session = orchestrator.new_session("key")

    with pytest.raises(ClassificationFailed):
        orchestrator.orchestrate(session, "Help me")

    latest = session.activity.log.dump()[0]
    assert (latest.agent, latest.title, latest.status) == (ROUTER, "Task analysis failed", "failed")
    assert session.credits == 49


def test_empty_input_is_rejected_before_spending_credit():
    orchestrator = make_orchestrator([])
    session = orchestrator.new_session("key")

    with pytest.raises(ClassificationFailed):
        orchestrator.orchestrate(session, "   ")

    assert session.credits == 50


def test_out_of_credits():
    orchestrator = make_orchestrator([SIMPLE_RESPONSE])
    session = orchestrator.new_session("key")
    session.credits = 0

    with pytest.raises(CreditsExhausted):
        orchestrator.orchestrate(session, "Help me")

    assert session.activity.log.dump()[0].title == "No credits remaining"


def test_analyze_only_does_not_dispatch():
    invoker = StaticAgentInvoker()
    orchestrator = make_orchestrator([SIMPLE_RESPONSE], invoker)
    session = orchestrator.new_session("key")

    result = orchestrator.orchestrate(session, "Help me", execute=False)

    assert result.results == []
    assert result.analysis.confidence == 90
    assert invoker.calls == []


def test_session_defaults_come_from_config():
    config = AppConfig.from_mapping({"session": {"credits": 3, "activity_capacity": 2, "user_name": "Ada"}})
    orchestrator = make_orchestrator([], config=config)

    session = orchestrator.new_session("key")

    assert session.credits == 3
    assert session.user_name == "Ada"
    assert session.activity.log.max_items == 2


def test_store_receives_result_and_activity():
    class FakeStore:
        def __init__(self):
            self.saved = []
            self.activity = []

        def save_result(self, run_id, user_input, result):
            self.saved.append((run_id, user_input, result))

        def append_activity(self, record):
            self.activity.append(record)

    store = FakeStore()
    orchestrator = Orchestrator.from_config(
        AppConfig(),
        provider=StaticResponseProvider([SIMPLE_RESPONSE]),
        invoker=StaticAgentInvoker(),
        store=store,
    )
    session = orchestrator.new_session("key")

    orchestrator.orchestrate(session, "Help me", run_id="run-1")

    assert store.saved[0][0] == "run-1"
    assert store.saved[0][1] == "Help me"
    assert len(store.activity) == len(session.activity.log)


def test_build_invoker_uses_configured_class():
    config = AppConfig.from_mapping(
        {"invoker": {"type": "startupbox.agents.invoker:StaticAgentInvoker", "params": {"template": "{agent}!"}}}
    )

    invoker = build_invoker(config)

    assert isinstance(invoker, StaticAgentInvoker)
    assert invoker.invoke(AgentId.BRANDING, "x").output == "branding!"


def test_default_invoker_talks_to_the_gateway():
    assert isinstance(build_invoker(AppConfig()), LLMAgentInvoker)


class GatewayResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def gateway(monkeypatch, bodies):
    replies = iter(bodies)
    monkeypatch.setattr(urllib.request, "urlopen", lambda request, timeout=None: GatewayResponse(next(replies)))
    return Orchestrator.from_config(
        AppConfig(),
        provider=ChatCompletionProvider(api_url="http://gateway.local/v1/chat/completions"),
        invoker=StaticAgentInvoker(),
    )


def completion(text):
    return json.dumps({"choices": [{"message": {"role": "assistant", "content": text}}]}).encode("utf-8")


@pytest.mark.parametrize(
    "body",
    [
        json.dumps({"choices": ["oops"]}).encode("utf-8"),
        json.dumps({"choices": [{"message": "hi"}]}).encode("utf-8"),
        b'{"choices": [{"message": {"content": "\xff"}}]}',
    ],
)
def test_malformed_classifier_reply_records_failed_activity(monkeypatch, body):
    orchestrator = gateway(monkeypatch, [body])
    session = orchestrator.new_session("key")

    with pytest.raises(ClassificationFailed):
        orchestrator.orchestrate(session, "Help me")

    latest = session.activity.log.dump()[0]
    assert (latest.agent, latest.title, latest.status) == (ROUTER, "Task analysis failed", "failed")


def test_malformed_decomposer_reply_continues_run(monkeypatch):
    orchestrator = gateway(monkeypatch, [completion(COMPLEX_RESPONSE), json.dumps({"choices": [42]}).encode("utf-8")])
    session = orchestrator.new_session("key")

    result = orchestrator.orchestrate(session, "Launch my startup")

    assert result.analysis.subtasks == ()
    assert result.decomposition_error is not None
    assert [item.status for item in result.results] == ["completed", "completed"]
