"""Caller-facing orchestration API wired from configuration."""

from __future__ import annotations

import threading
import uuid
from typing import TYPE_CHECKING, List, Optional

import structlog

from ..agents.invoker import AgentInvoker
from ..config import AppConfig, import_string
from ..errors import ClassificationFailed, CreditsExhausted, DecompositionFailed
from ..llm.provider import ChatCompletionProvider, LLMProvider
from ..memory.session import SessionContext
from .analysis import IntentClassifier, TaskAnalysis
from .decomposer import TaskDecomposer
from .executor import OrchestratorResult, ProgressCallback, WorkflowExecutor

if TYPE_CHECKING:  # pragma: no cover
    from ..persistence.postgres import PostgresRunStore

logger = structlog.get_logger()

ROUTER = "Smart Router"


def build_invoker(config: AppConfig) -> AgentInvoker:
    """Instantiate the invoker named by ``config.invoker.type``."""

    cls = import_string(config.invoker.type)
    params = dict(config.invoker.params)
    if hasattr(cls, "from_config"):
        return cls.from_config(config, **params)
    return cls(**params)


class Orchestrator:
    """Classify, optionally decompose, then dispatch agents one after another."""

    def __init__(
        self,
        classifier: IntentClassifier,
        decomposer: TaskDecomposer,
        executor: WorkflowExecutor,
        *,
        config: Optional[AppConfig] = None,
        store: Optional["PostgresRunStore"] = None,
    ) -> None:
        self.classifier = classifier
        self.decomposer = decomposer
        self.executor = executor
        self.config = config or AppConfig()
        self.store = store
        self.logger = logger.bind(component="orchestrator")

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        provider: Optional[LLMProvider] = None,
        invoker: Optional[AgentInvoker] = None,
        store: Optional["PostgresRunStore"] = None,
    ) -> "Orchestrator":
        llm = config.llm
        if provider is None:
            provider = ChatCompletionProvider(api_url=llm.api_url, api_key=llm.api_key, timeout=llm.timeout)
        if invoker is None:
            invoker = build_invoker(config)
        if store is None and config.database_url:
            from ..persistence.postgres import PostgresRunStore

            store = PostgresRunStore(config.database_url)
        return cls(
            IntentClassifier(
                provider,
                model=llm.model,
                temperature=llm.classifier_temperature,
                max_tokens=llm.classifier_max_tokens,
            ),
            TaskDecomposer(
                provider,
                model=llm.model,
                temperature=llm.decomposer_temperature,
                max_tokens=llm.decomposer_max_tokens,
            ),
            WorkflowExecutor(invoker),
            config=config,
            store=store,
        )

    def new_session(self, api_key: Optional[str] = None) -> SessionContext:
        spec = self.config.session
        sinks = (self.store.append_activity,) if self.store is not None else ()
        return SessionContext.create(
            api_key=api_key or self.config.llm.api_key or "",
            credits=spec.credits,
            user_name=spec.user_name,
            activity_capacity=spec.activity_capacity,
            sinks=sinks,
        )

    def classify_intent(self, api_key: str, user_input: str) -> TaskAnalysis:
        return self.classifier.classify(api_key, user_input)

    def decompose_task(self, api_key: str, complex_task: str) -> List[str]:
        return self.decomposer.decompose(api_key, complex_task)

    def run_workflow(
        self,
        api_key: str,
        user_input: str,
        analysis: TaskAnalysis,
        on_progress: Optional[ProgressCallback] = None,
        *,
        session: Optional[SessionContext] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> OrchestratorResult:
        return self.executor.run(
            api_key,
            user_input,
            analysis,
            on_progress,
            session=session,
            cancel_event=cancel_event,
        )

    def orchestrate(
        self,
        session: SessionContext,
        user_input: str,
        *,
        on_progress: Optional[ProgressCallback] = None,
        execute: bool = True,
        cancel_event: Optional[threading.Event] = None,
        run_id: Optional[str] = None,
    ) -> OrchestratorResult:
        """Run one workflow end to end; costs exactly one session credit."""

        if not user_input or not user_input.strip():
            session.activity.record(ROUTER, "Task analysis failed", "failed")
            raise ClassificationFailed("Please describe what you need help with.")
        if not session.deduct_credit():
            session.activity.record(ROUTER, "No credits remaining", "failed")
            raise CreditsExhausted("You have run out of credits.")

        try:
            analysis = self.classify_intent(session.api_key, user_input)
        except ClassificationFailed:
            session.activity.record(ROUTER, "Task analysis failed", "failed")
            raise

        decomposition_error = None
        if analysis.is_complex:
            try:
                analysis = analysis.with_subtasks(self.decompose_task(session.api_key, user_input))
            except DecompositionFailed as exc:
                self.logger.warning("orchestrate.decomposition_failed", error=str(exc))
                session.activity.record(ROUTER, "Task decomposition failed", "failed")
                analysis = analysis.with_subtasks(())
                decomposition_error = str(exc)
        session.activity.record(ROUTER, "Analyzed task intent", "completed")

        if execute:
            result = self.run_workflow(
                session.api_key,
                user_input,
                analysis,
                on_progress,
                session=session,
                cancel_event=cancel_event,
            )
        else:
            result = OrchestratorResult(analysis=analysis)
        result.decomposition_error = decomposition_error
        if self.store is not None and execute:
            self.store.save_result(run_id or str(uuid.uuid4()), user_input, result)
        return result
