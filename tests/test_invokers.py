import io
import json
import urllib.error
import urllib.request

import pytest

from startupbox.agents.autogen_invoker import AutogenAgentInvoker
from startupbox.agents.catalog import AGENT_PROFILES, AgentId
from startupbox.agents.invoker import LLMAgentInvoker, RemoteAgentInvoker, StaticAgentInvoker
from startupbox.errors import AgentInvocationFailed
from startupbox.llm.provider import (
    ChatCompletionProvider,
    ChatRequest,
    LLMError,
    StaticResponseProvider,
    extract_completion,
)


class FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def fake_urlopen(body, captured):
    def _urlopen(request, timeout=None):
        captured.append((request, timeout))
        return FakeResponse(json.dumps(body).encode("utf-8"))

    return _urlopen


def test_remote_invoker_posts_agent_payload(monkeypatch):
    captured = []
    body = {
        "output": "Here is your market analysis",
        "conversation_id": "conv-7",
        "rag_context": [],
        "tool_usage": [{"tool": "calculator"}],
        "memory": {"shortTerm": 2},
    }
    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen(body, captured))
    invoker = RemoteAgentInvoker("http://agents.local/rag-agent", timeout=3)

    output = invoker.invoke(AgentId.MARKET_ANALYST, "Size the market", api_key="anon", conversation_id="conv-6")

    request, timeout = captured[0]
    assert timeout == 3
    assert request.get_header("Authorization") == "Bearer anon"
    assert json.loads(request.data) == {
        "agent_type": "market-analyst",
        "prompt": "Size the market",
        "enabled_tools": ["calculator", "web_search", "data_analyzer"],
        "conversation_id": "conv-6",
    }
    assert output.output == "Here is your market analysis"
    assert output.conversation_id == "conv-7"
    assert output.metadata["tool_usage"] == [{"tool": "calculator"}]


def test_remote_invoker_http_error(monkeypatch):
    def _urlopen(request, timeout=None):
        raise urllib.error.HTTPError(request.full_url, 500, "Internal Server Error", {}, None)

    monkeypatch.setattr(urllib.request, "urlopen", _urlopen)
    invoker = RemoteAgentInvoker("http://agents.local/rag-agent")

    with pytest.raises(AgentInvocationFailed) as excinfo:
        invoker.invoke(AgentId.BRANDING, "Name it")

    assert excinfo.value.agent == "branding"
    assert "HTTP 500" in str(excinfo.value)


@pytest.mark.parametrize(
    "body",
    ['{"error": "OpenAI API error: quota"}', '{"conversation_id": "x"}', "not json", "[1, 2]"],
)
def test_remote_parse_response_failures(body):
    with pytest.raises(AgentInvocationFailed):
        RemoteAgentInvoker.parse_response(AgentId.CONTENT, body)


def test_remote_invoker_requires_url():
    with pytest.raises(ValueError):
        RemoteAgentInvoker("")


def test_llm_invoker_parses_reasoning():
    provider = StaticResponseProvider(["## Reasoning Chain\nStep 1: think\n\n## Confidence Score\n64% sure"])
    invoker = LLMAgentInvoker(provider)

    output = invoker.invoke(AgentId.OUTREACH, "Write a cold email", api_key="key", conversation_id="c1")

    request = provider.requests[0]
    assert request.messages[0].content == AGENT_PROFILES[AgentId.OUTREACH].system_prompt()
    assert request.messages[1].content == "Write a cold email"
    assert output.conversation_id == "c1"
    assert output.metadata["reasoning"]["chain"] == ["Step 1: think"]
    assert output.metadata["reasoning"]["confidence"] == 0.64


def test_llm_invoker_wraps_errors():
    invoker = LLMAgentInvoker(StaticResponseProvider([LLMError("HTTP 429: Too Many Requests")]))

    with pytest.raises(AgentInvocationFailed, match="429"):
        invoker.invoke(AgentId.CONTENT, "Write")


def test_static_invoker_replies():
    invoker = StaticAgentInvoker({"branding": lambda agent, task: task.upper()})

    assert invoker.invoke(AgentId.BRANDING, "name it").output == "NAME IT"
    assert invoker.invoke(AgentId.CONTENT, "post").conversation_id == "static-content"


def test_chat_completion_provider(monkeypatch):
    captured = []
    body = {"choices": [{"message": {"role": "assistant", "content": "INTENT: x"}}]}
    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen(body, captured))
    provider = ChatCompletionProvider(api_url="http://gateway.local/v1/chat/completions", timeout=9)

    text = provider.complete(ChatRequest.build("sys", "user", api_key="gsk", temperature=0.3, max_tokens=500))

    request, timeout = captured[0]
    assert text == "INTENT: x"
    assert timeout == 9
    assert request.get_header("Authorization") == "Bearer gsk"
    payload = json.loads(request.data)
    assert payload["temperature"] == 0.3
    assert payload["max_tokens"] == 500
    assert [message["role"] for message in payload["messages"]] == ["system", "user"]


def test_chat_completion_provider_requires_key():
    with pytest.raises(LLMError):
        ChatCompletionProvider().complete(ChatRequest.build("sys", "user"))


def test_extract_completion():
    assert extract_completion({"choices": []}) == ""
    assert extract_completion({"choices": [{"message": {"content": "hi"}}]}) == "hi"
    with pytest.raises(LLMError):
        extract_completion({"error": {"message": "invalid api key"}})


def test_autogen_helpers():
    profile = AGENT_PROFILES[AgentId.MARKET_ANALYST]

    prompt = AutogenAgentInvoker.build_task_prompt(profile, "Size the market")

    assert prompt.startswith("Task for the Market Analyst: Size the market")
    assert AutogenAgentInvoker.is_final_message({"content": "final: done"})
    assert not AutogenAgentInvoker.is_final_message({"content": None})
    assert AutogenAgentInvoker.extract_content("FINAL: the report") == "the report"
    assert AutogenAgentInvoker.extract_content({"content": "plain"}) == "plain"
