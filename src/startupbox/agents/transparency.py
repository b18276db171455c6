"""Extract the reasoning sections agents are asked to include in their output."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

DEFAULT_CONFIDENCE = 0.80

_CONFIDENCE = re.compile(r"## Confidence Score\n([0-9]+)%")


def _section(text: str, title: str) -> str | None:
    match = re.search(rf"## {re.escape(title)}\n([\s\S]*?)(?=\n## |\Z)", text)
    return match.group(1) if match else None


@dataclass
class ReasoningTrace:
    chain: List[str] = field(default_factory=list)
    alternatives: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    confidence: float = DEFAULT_CONFIDENCE
    main_output: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def parse_reasoning(output: str) -> ReasoningTrace:
    """Parse ``## Reasoning Chain`` style sections; missing sections stay empty."""

    trace = ReasoningTrace()
    if "## Reasoning Chain" not in output:
        return trace
    chain = _section(output, "Reasoning Chain")
    if chain is not None:
        trace.chain = [line.strip() for line in chain.split("\n") if line.strip()]
    alternatives = _section(output, "Alternatives Considered")
    if alternatives is not None:
        trace.alternatives = [line.strip() for line in alternatives.split("\n") if line.strip().startswith("-")]
    sources = _section(output, "Sources Used")
    if sources is not None:
        trace.sources = [line.strip() for line in sources.split("\n") if line.strip().startswith("-")]
    match = _CONFIDENCE.search(output)
    if match:
        trace.confidence = int(match.group(1)) / 100
    main = _section(output, "Main Output")
    if main is not None and main.strip():
        trace.main_output = main.strip()
    return trace
