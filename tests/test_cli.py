import json

from typer.testing import CliRunner

from startupbox import cli
from startupbox.agents.catalog import AgentId
from startupbox.agents.invoker import StaticAgentInvoker
from startupbox.llm.provider import LLMError, StaticResponseProvider
from startupbox.orchestration.orchestrator import Orchestrator

runner = CliRunner()

RESPONSE = "INTENT: launch help\nCOMPLEXITY: simple\nAGENTS: branding, outreach\nCONFIDENCE: 75\nTIME: 15 minutes"


def patch_orchestrator(monkeypatch, responses, invoker=None):
    def build(config):
        return Orchestrator.from_config(
            config,
            provider=StaticResponseProvider(responses),
            invoker=invoker or StaticAgentInvoker(),
        )

    monkeypatch.setattr(cli, "build_orchestrator", build)
    monkeypatch.delenv("STARTUPBOX_CONFIG", raising=False)
    monkeypatch.delenv("STARTUPBOX_DB_URL", raising=False)


def test_agents_command():
    result = runner.invoke(cli.app, ["agents"])

    assert result.exit_code == 0
    assert "market-analyst" in result.stdout
    assert "outreach" in result.stdout


def test_analyze_command(monkeypatch):
    patch_orchestrator(monkeypatch, [RESPONSE])

    result = runner.invoke(cli.app, ["analyze", "Launch my brand", "--api-key", "key"])

    assert result.exit_code == 0
    assert "launch help" in result.stdout
    assert "Found 2 agents" in result.stdout


def test_run_command_writes_json(monkeypatch, tmp_path):
    invoker = StaticAgentInvoker({AgentId.OUTREACH: RuntimeError("smtp down")})
    patch_orchestrator(monkeypatch, [RESPONSE], invoker)
    output = tmp_path / "result.json"

    result = runner.invoke(cli.app, ["run", "Launch my brand", "--api-key", "key", "--output", str(output)])

    assert result.exit_code == 0
    assert "1 of 2 agents failed" in result.stdout
    data = json.loads(output.read_text())
    assert [item["status"] for item in data["results"]] == ["completed", "failed"]


def test_run_command_reports_classification_failure(monkeypatch):
    patch_orchestrator(monkeypatch, [LLMError("HTTP 401: Unauthorized")])

    result = runner.invoke(cli.app, ["run", "Launch my brand", "--api-key", "key"])

    assert result.exit_code == 1
    assert "Workflow failed" in result.stdout


def test_activity_requires_database(monkeypatch):
    patch_orchestrator(monkeypatch, [])

    result = runner.invoke(cli.app, ["activity"])

    assert result.exit_code == 1
    assert "No database configured" in result.stdout


def test_inspect_and_bad_config(tmp_path):
    path = tmp_path / "demo.yaml"
    path.write_text("session:\n  credits: 12\ninvoker:\n  type: startupbox.agents.invoker:StaticAgentInvoker\n")

    result = runner.invoke(cli.app, ["inspect", "--config", str(path)])

    assert result.exit_code == 0
    assert "credits=12" in result.stdout
    assert "StaticAgentInvoker" in result.stdout

    missing = runner.invoke(cli.app, ["inspect", "--config", str(tmp_path / "missing.yaml")])
    assert missing.exit_code == 2
    assert "Configuration error" in missing.stdout


def test_invalid_value_in_config_exits_cleanly(tmp_path):
    path = tmp_path / "typo.yaml"
    path.write_text("session:\n  credits: lots\n")

    result = runner.invoke(cli.app, ["agents", "--config", str(path)])

    assert result.exit_code == 2
    assert "Configuration error" in result.stdout
