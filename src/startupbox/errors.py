"""Exception hierarchy shared by the orchestration core."""

from __future__ import annotations


class OrchestrationError(RuntimeError):
    """Base class for failures surfaced by the orchestrator."""


class ClassificationFailed(OrchestrationError):
    """Raised when intent classification cannot produce an analysis."""


class DecompositionFailed(OrchestrationError):
    """Raised when a complex task cannot be broken into subtasks."""


class AgentInvocationFailed(OrchestrationError):
    """Raised by agent invokers; recovered per agent by the workflow executor."""

    def __init__(self, agent: str, message: str) -> None:
        super().__init__(message)
        self.agent = agent


class CreditsExhausted(OrchestrationError):
    """Raised when a session has no credits left to start a run."""
