"""Intent classification: one LLM call parsed into a TaskAnalysis."""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

import structlog

from ..agents.catalog import AgentId, agent_catalogue, filter_agents
from ..errors import ClassificationFailed
from ..llm.provider import DEFAULT_MODEL, ChatRequest, LLMError, LLMProvider

logger = structlog.get_logger()

NUMBERED_LINE = re.compile(r"^[0-9]+\.")
_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")

DEFAULT_CONFIDENCE = 80
DEFAULT_ESTIMATED_TIME = "10 minutes"

CLASSIFIER_SYSTEM_PROMPT = "You are an expert task analyzer for AI agent orchestration."


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TaskAnalysis:
    """Structured classification of a user request."""

    intent: str = ""
    complexity: Complexity = Complexity.MODERATE
    recommended_agents: Tuple[AgentId, ...] = ()
    recommended_model: str = DEFAULT_MODEL
    suggested_workflow: str = ""
    confidence: int = DEFAULT_CONFIDENCE
    estimated_time: str = DEFAULT_ESTIMATED_TIME
    subtasks: Optional[Tuple[str, ...]] = None

    @property
    def is_complex(self) -> bool:
        return self.complexity is Complexity.COMPLEX

    def with_subtasks(self, subtasks: Iterable[str]) -> "TaskAnalysis":
        return dataclasses.replace(self, subtasks=tuple(subtasks))

    def task_for(self, index: int, user_input: str) -> str:
        """Subtask paired with the agent at ``index``, else the raw input."""

        if self.subtasks is not None and index < len(self.subtasks):
            return self.subtasks[index]
        return user_input

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent,
            "complexity": self.complexity.value,
            "recommended_agents": [agent.value for agent in self.recommended_agents],
            "recommended_model": self.recommended_model,
            "suggested_workflow": self.suggested_workflow,
            "confidence": self.confidence,
            "estimated_time": self.estimated_time,
            "subtasks": list(self.subtasks) if self.subtasks is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskAnalysis":
        subtasks = data.get("subtasks")
        try:
            complexity = Complexity(data.get("complexity", Complexity.MODERATE.value))
        except ValueError:
            complexity = Complexity.MODERATE
        return cls(
            intent=str(data.get("intent", "")),
            complexity=complexity,
            recommended_agents=tuple(filter_agents(data.get("recommended_agents", []))),
            recommended_model=str(data.get("recommended_model", DEFAULT_MODEL)),
            suggested_workflow=str(data.get("suggested_workflow", "")),
            confidence=int(data.get("confidence", DEFAULT_CONFIDENCE)),
            estimated_time=str(data.get("estimated_time", DEFAULT_ESTIMATED_TIME)),
            subtasks=tuple(subtasks) if subtasks is not None else None,
        )


def _parse_confidence(text: str) -> Optional[int]:
    match = _LEADING_INT.match(text)
    if not match:
        return None
    return max(0, min(100, int(match.group(1))))


def parse_task_analysis(response: str) -> TaskAnalysis:
    """Parse the line-prefixed classifier response.

    Any line starting with ``<digits>.`` is treated as a subtask wherever it
    appears, not only after the ``SUBTASKS:`` marker.
    """

    fields: Dict[str, Any] = {}
    subtasks: Optional[list[str]] = None
    for line in response.split("\n"):
        if not line.strip():
            continue
        if line.startswith("INTENT:"):
            fields["intent"] = line[len("INTENT:") :].strip()
        elif line.startswith("COMPLEXITY:"):
            value = line[len("COMPLEXITY:") :].strip().lower()
            if value in {c.value for c in Complexity}:
                fields["complexity"] = Complexity(value)
        elif line.startswith("AGENTS:"):
            tokens = [token.strip() for token in line[len("AGENTS:") :].strip().split(",")]
            fields["recommended_agents"] = tuple(filter_agents(tokens))
        elif line.startswith("MODEL:"):
            fields["recommended_model"] = line[len("MODEL:") :].strip()
        elif line.startswith("WORKFLOW:"):
            fields["suggested_workflow"] = line[len("WORKFLOW:") :].strip()
        elif line.startswith("CONFIDENCE:"):
            confidence = _parse_confidence(line[len("CONFIDENCE:") :])
            if confidence is not None:
                fields["confidence"] = confidence
        elif line.startswith("TIME:"):
            fields["estimated_time"] = line[len("TIME:") :].strip()
        elif line.startswith("SUBTASKS:"):
            if line[len("SUBTASKS:") :].strip() != "N/A":
                subtasks = []
        elif NUMBERED_LINE.match(line):
            if subtasks is None:
                subtasks = []
            subtasks.append(NUMBERED_LINE.sub("", line, count=1).strip())
    if subtasks is not None:
        fields["subtasks"] = tuple(subtasks)
    return TaskAnalysis(**fields)


def build_classifier_prompt(user_input: str) -> str:
    return f"""You are an AI task analyzer. Analyze this user request and provide a structured response.

User Request: "{user_input}"

Available Agents:
{agent_catalogue()}

Analyze and respond in this EXACT format:

INTENT: [One line describing what user wants]
COMPLEXITY: [simple/moderate/complex]
AGENTS: [comma-separated list of recommended agents]
MODEL: {DEFAULT_MODEL}
WORKFLOW: [Brief description of suggested workflow]
CONFIDENCE: [number 0-100]
TIME: [estimated time like "5 minutes" or "15 minutes"]
SUBTASKS: [if complex, list numbered subtasks, otherwise write "N/A"]

Be concise and specific."""


class IntentClassifier:
    """Asks the LLM to classify free-form input."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ) -> None:
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.logger = logger.bind(component="intent_classifier")

    def classify(self, api_key: str, user_input: str) -> TaskAnalysis:
        if not user_input or not user_input.strip():
            raise ClassificationFailed("Please describe what you need help with.")
        if not api_key:
            raise ClassificationFailed("An API key is required. Please add it in Settings.")
        request = ChatRequest.build(
            CLASSIFIER_SYSTEM_PROMPT,
            build_classifier_prompt(user_input),
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            api_key=api_key,
        )
        try:
            response = self.provider.complete(request)
        except LLMError as exc:
            self.logger.error("classification.failed", error=str(exc))
            raise ClassificationFailed(f"Failed to analyze task: {exc}") from exc
        analysis = parse_task_analysis(response)
        self.logger.info(
            "classification.completed",
            complexity=analysis.complexity.value,
            agents=[agent.value for agent in analysis.recommended_agents],
            confidence=analysis.confidence,
        )
        return analysis
