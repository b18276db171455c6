"""Intent classification, decomposition and workflow execution."""

from .analysis import Complexity, IntentClassifier, TaskAnalysis, parse_task_analysis
from .decomposer import TaskDecomposer, parse_subtasks
from .executor import AgentResult, OrchestratorResult, WorkflowExecutor
from .orchestrator import Orchestrator, build_invoker

__all__ = [
    "AgentResult",
    "Complexity",
    "IntentClassifier",
    "Orchestrator",
    "OrchestratorResult",
    "TaskAnalysis",
    "TaskDecomposer",
    "WorkflowExecutor",
    "build_invoker",
    "parse_subtasks",
    "parse_task_analysis",
]
