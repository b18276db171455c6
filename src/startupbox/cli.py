"""Command line interface for the startup-box orchestrator."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .agents.catalog import AgentId
from .config import AppConfig, ConfigError
from .errors import OrchestrationError
from .log import configure_logging
from .orchestration.analysis import TaskAnalysis
from .orchestration.orchestrator import Orchestrator

app = typer.Typer(help="AI Startup-in-a-Box orchestrator CLI")
console = Console()

STATUS_STYLES = {
    "in-progress": "[cyan]thinking...",
    "completed": "[green]completed",
    "failed": "[red]failed",
}


def build_orchestrator(config: AppConfig) -> Orchestrator:
    return Orchestrator.from_config(config)


def _load_config(config_path: Optional[Path], debug: bool) -> AppConfig:
    configure_logging(debug)
    try:
        return AppConfig.load(config_path)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/] {exc}")
        raise typer.Exit(code=2) from exc


def _load(config_path: Optional[Path], debug: bool) -> tuple[AppConfig, Orchestrator]:
    config = _load_config(config_path, debug)
    try:
        return config, build_orchestrator(config)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/] {exc}")
        raise typer.Exit(code=2) from exc


def _render_analysis(analysis: TaskAnalysis) -> None:
    table = Table(title="Task Analysis", show_lines=True)
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Intent", analysis.intent or "-")
    table.add_row("Complexity", analysis.complexity.value)
    table.add_row("Agents", ", ".join(agent.value for agent in analysis.recommended_agents) or "-")
    table.add_row("Model", analysis.recommended_model)
    table.add_row("Workflow", analysis.suggested_workflow or "-")
    table.add_row("Confidence", f"{analysis.confidence}%")
    table.add_row("Estimated time", analysis.estimated_time)
    if analysis.subtasks:
        table.add_row("Subtasks", "\n".join(f"{i}. {task}" for i, task in enumerate(analysis.subtasks, 1)))
    console.print(table)


@app.command()
def agents(config_path: Optional[Path] = typer.Option(None, "--config", help="YAML configuration")) -> None:
    """List the agents the orchestrator can dispatch to."""

    config = _load_config(config_path, debug=False)
    table = Table(title="Agents", show_lines=True)
    table.add_column("ID")
    table.add_column("Label")
    table.add_column("Description")
    table.add_column("Tools")
    for profile in config.profiles().values():
        table.add_row(profile.agent.value, profile.label, profile.description, ", ".join(profile.tools))
    console.print(table)


@app.command()
def analyze(
    user_input: str = typer.Argument(..., help="What you need help with"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML configuration"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="LLM gateway API key"),
    debug: bool = typer.Option(False, help="Enable debug logging"),
) -> None:
    """Classify a request (and decompose it when complex) without running agents."""

    _, orchestrator = _load(config_path, debug)
    session = orchestrator.new_session(api_key)
    try:
        result = orchestrator.orchestrate(session, user_input, execute=False)
    except OrchestrationError as exc:
        console.print(f"[bold red]Analysis failed:[/] {exc}")
        raise typer.Exit(code=1) from exc
    _render_analysis(result.analysis)
    if result.decomposition_error:
        console.print(f"[yellow]Decomposition failed:[/] {result.decomposition_error}")
    console.print(f"Found {len(result.analysis.recommended_agents)} agents to help with this task.")


@app.command()
def run(
    user_input: str = typer.Argument(..., help="What you need help with"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML configuration"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="LLM gateway API key"),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the result as JSON"),
    debug: bool = typer.Option(False, help="Enable debug logging"),
) -> None:
    """Classify the request and run every recommended agent in order."""

    _, orchestrator = _load(config_path, debug)
    session = orchestrator.new_session(api_key)
    progress = Progress(
        SpinnerColumn(style="cyan"),
        TextColumn("[progress.description]{task.description}"),
        TextColumn("{task.fields[status]}"),
        transient=False,
    )
    rows: Dict[AgentId, int] = {}

    def on_progress(agent: AgentId, status: str) -> None:
        if agent not in rows:
            rows[agent] = progress.add_task(agent.value, status="[yellow]pending")
        progress.update(rows[agent], status=STATUS_STYLES.get(status, status))

    try:
        with progress:
            result = orchestrator.orchestrate(session, user_input, on_progress=on_progress)
    except OrchestrationError as exc:
        console.print(f"[bold red]Workflow failed:[/] {exc}")
        raise typer.Exit(code=1) from exc

    _render_analysis(result.analysis)
    table = Table(title="Agent outputs", show_lines=True)
    table.add_column("Agent")
    table.add_column("Status")
    table.add_column("Output")
    for item in result.results:
        table.add_row(item.agent.value, item.status, item.output)
    console.print(table)
    if output is not None:
        path = result.write(output)
        console.print(f"Result written to {path}")
    if result.failed:
        console.print(f"[yellow]{len(result.failed)} of {len(result.results)} agents failed.[/]")


@app.command()
def activity(
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML configuration"),
    limit: int = typer.Option(10, help="Number of records to show"),
) -> None:
    """Show recent activity recorded in the database."""

    _, orchestrator = _load(config_path, debug=False)
    if orchestrator.store is None:
        console.print("[yellow]No database configured; activity is kept per session only.[/]")
        raise typer.Exit(code=1)
    table = Table(title="Recent activity")
    table.add_column("When")
    table.add_column("Agent")
    table.add_column("Title")
    table.add_column("Status")
    for record in orchestrator.store.list_activity(limit):
        table.add_row(record.timestamp, record.agent, record.title, record.status)
    console.print(table)


@app.command()
def inspect(config_path: Optional[Path] = typer.Option(None, "--config", help="Config to inspect")) -> None:
    """Print the gateway, invoker, session and agent settings in effect."""

    config = _load_config(config_path, debug=False)
    console.print(f"[bold]Project:[/] {config.name}")
    console.print(f"[bold]Gateway:[/] {config.llm.api_url} (model={config.llm.model})")
    console.print(f"[bold]API key:[/] {'set' if config.llm.api_key else 'missing'}")
    console.print(f"[bold]Invoker:[/] {config.invoker.type}")
    console.print(
        f"[bold]Session:[/] credits={config.session.credits} activity_capacity={config.session.activity_capacity}"
    )
    console.print(f"[bold]Database:[/] {'enabled' if config.database_url else 'disabled'}")
    console.print("[bold]Agents[/]")
    for profile in config.profiles().values():
        console.print(f"- {profile.agent.value}: tools={list(profile.tools)}")


if __name__ == "__main__":  # pragma: no cover
    app()
