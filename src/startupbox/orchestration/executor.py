"""Sequential, best-effort dispatch of the recommended agents."""

from __future__ import annotations

import json
import pathlib
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Literal, Optional

import structlog

from ..agents.catalog import AgentId, get_profile
from ..agents.invoker import AgentInvoker
from ..errors import AgentInvocationFailed
from ..memory.session import SessionContext
from .analysis import TaskAnalysis

logger = structlog.get_logger()

ResultStatus = Literal["completed", "failed"]
ProgressCallback = Callable[[AgentId, str], None]

CANCELLED_MESSAGE = "Workflow cancelled"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class AgentResult:
    agent: AgentId
    output: str
    status: ResultStatus
    task: str = ""
    timestamp: str = field(default_factory=_now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "completed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent": self.agent.value,
            "output": self.output,
            "status": self.status,
            "task": self.task,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
        }


@dataclass
class OrchestratorResult:
    """Terminal artifact of one orchestration run."""

    analysis: TaskAnalysis
    results: List[AgentResult] = field(default_factory=list)
    decomposition_error: Optional[str] = None

    @property
    def failed(self) -> List[AgentResult]:
        return [result for result in self.results if not result.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.analysis.to_dict(),
            "results": [result.to_dict() for result in self.results],
            "decomposition_error": self.decomposition_error,
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def write(self, path: str | pathlib.Path) -> pathlib.Path:
        target = pathlib.Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.to_json())
        return target


class WorkflowExecutor:
    """Runs each recommended agent in order; one failure never stops the rest."""

    def __init__(self, invoker: AgentInvoker) -> None:
        self.invoker = invoker
        self.logger = logger.bind(component="workflow_executor")

    def run(
        self,
        api_key: str,
        user_input: str,
        analysis: TaskAnalysis,
        on_progress: Optional[ProgressCallback] = None,
        *,
        session: Optional[SessionContext] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> OrchestratorResult:
        results: List[AgentResult] = []
        self.logger.info("workflow.started", agents=[agent.value for agent in analysis.recommended_agents])
        for index, agent in enumerate(analysis.recommended_agents):
            task = analysis.task_for(index, user_input)
            if cancel_event is not None and cancel_event.is_set():
                results.append(AgentResult(agent=agent, output=CANCELLED_MESSAGE, status="failed", task=task))
                self._report(session, agent, f"{get_profile(agent).label} cancelled", "failed")
                if on_progress:
                    on_progress(agent, "failed")
                continue
            if on_progress:
                on_progress(agent, "in-progress")
            self._report(session, agent, f"Started {get_profile(agent).label}", "in-progress")
            result = self._dispatch(api_key, agent, task, session)
            results.append(result)
            if result.ok:
                self._report(session, agent, f"Executed {agent.value}", "completed")
            else:
                self._report(session, agent, f"{agent.value} failed: {result.output}", "failed")
            if on_progress:
                on_progress(agent, result.status)
        self.logger.info(
            "workflow.completed",
            total=len(results),
            failed=sum(1 for result in results if not result.ok),
        )
        return OrchestratorResult(analysis=analysis, results=results)

    def _dispatch(
        self,
        api_key: str,
        agent: AgentId,
        task: str,
        session: Optional[SessionContext],
    ) -> AgentResult:
        conversation_id = session.conversation_for(agent) if session else None
        try:
            output = self.invoker.invoke(agent, task, api_key=api_key, conversation_id=conversation_id)
        except AgentInvocationFailed as exc:
            self.logger.warning("workflow.agent.failed", agent=agent.value, error=str(exc))
            return AgentResult(agent=agent, output=str(exc), status="failed", task=task)
        except Exception as exc:
            # Any invoker error is isolated to this agent.
            self.logger.warning("workflow.agent.crashed", agent=agent.value, error=repr(exc))
            return AgentResult(agent=agent, output=str(exc) or "Failed", status="failed", task=task)
        if session is not None:
            session.remember_conversation(agent, output.conversation_id)
            session.update_shared_context(agent.value, output.output)
        metadata = dict(output.metadata)
        if output.conversation_id:
            metadata["conversation_id"] = output.conversation_id
        self.logger.info("workflow.agent.completed", agent=agent.value, output_chars=len(output.output))
        return AgentResult(agent=agent, output=output.output, status="completed", task=task, metadata=metadata)

    @staticmethod
    def _report(session: Optional[SessionContext], agent: AgentId, title: str, status: str) -> None:
        if session is not None:
            session.activity.record(agent.value, title, status)  # type: ignore[arg-type]
