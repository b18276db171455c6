"""Breaks complex tasks into a numbered list of subtasks."""

from __future__ import annotations

from typing import List

import structlog

from ..errors import DecompositionFailed
from ..llm.provider import DEFAULT_MODEL, ChatRequest, LLMError, LLMProvider
from .analysis import NUMBERED_LINE

logger = structlog.get_logger()

DECOMPOSER_SYSTEM_PROMPT = "You are an expert at breaking down complex tasks into manageable subtasks."


def parse_subtasks(response: str) -> List[str]:
    """Keep only ``<digits>.`` lines, prefix stripped and trimmed."""

    return [NUMBERED_LINE.sub("", line, count=1).strip() for line in response.split("\n") if NUMBERED_LINE.match(line)]


def build_decomposer_prompt(complex_task: str) -> str:
    return f"""Break down this complex task into 5-7 specific, actionable subtasks.

Complex Task: "{complex_task}"

Provide ONLY a numbered list of subtasks, nothing else. Each subtask should be specific and executable.

Example format:
1. Research competitor pricing strategies
2. Analyze target audience demographics
3. Identify unique value propositions

Now break down the task above:"""


class TaskDecomposer:
    def __init__(
        self,
        provider: LLMProvider,
        *,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.5,
        max_tokens: int = 400,
    ) -> None:
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.logger = logger.bind(component="task_decomposer")

    def decompose(self, api_key: str, complex_task: str) -> List[str]:
        if not complex_task or not complex_task.strip():
            raise DecompositionFailed("Cannot decompose an empty task")
        request = ChatRequest.build(
            DECOMPOSER_SYSTEM_PROMPT,
            build_decomposer_prompt(complex_task),
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            api_key=api_key,
        )
        try:
            response = self.provider.complete(request)
        except LLMError as exc:
            self.logger.error("decomposition.failed", error=str(exc))
            raise DecompositionFailed(f"Failed to decompose task: {exc}") from exc
        subtasks = parse_subtasks(response)
        self.logger.info("decomposition.completed", subtasks=len(subtasks))
        return subtasks
