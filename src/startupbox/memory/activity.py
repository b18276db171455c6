"""Bounded activity history used as an audit trail of orchestration steps."""

from __future__ import annotations

import itertools
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Literal

import structlog

ActivityStatus = Literal["completed", "in-progress", "failed"]
ACTIVITY_STATUSES = ("completed", "in-progress", "failed")

logger = structlog.get_logger()


@dataclass(frozen=True)
class ActivityRecord:
    id: int
    agent: str
    title: str
    status: ActivityStatus
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActivityRecord":
        return cls(
            id=int(data["id"]),
            agent=str(data["agent"]),
            title=str(data["title"]),
            status=data["status"],
            timestamp=str(data["timestamp"]),
        )


class ActivityLog:
    """Stores the most recent activity records, newest first."""

    def __init__(self, max_items: int = 10, records: Iterable[ActivityRecord] = ()) -> None:
        self.max_items = max_items
        self._items: List[ActivityRecord] = list(records)[:max_items]
        start = max((item.id for item in self._items), default=0) + 1
        self._ids = itertools.count(start)

    def add(self, agent: str, title: str, status: ActivityStatus) -> ActivityRecord:
        if status not in ACTIVITY_STATUSES:
            raise ValueError(f"Unknown activity status '{status}'")
        record = ActivityRecord(
            id=next(self._ids),
            agent=agent,
            title=title,
            status=status,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self._items.insert(0, record)
        del self._items[self.max_items :]
        return record

    def dump(self) -> List[ActivityRecord]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


ActivitySink = Callable[[ActivityRecord], None]


class ActivityReporter:
    """Fire-and-forget recorder; a failing sink never reaches the caller."""

    def __init__(self, log: ActivityLog | None = None, sinks: Iterable[ActivitySink] = ()) -> None:
        self.log = log if log is not None else ActivityLog()
        self.sinks: List[ActivitySink] = list(sinks)

    def record(self, agent: str, title: str, status: ActivityStatus) -> ActivityRecord | None:
        try:
            record = self.log.add(agent, title, status)
        except ValueError as exc:
            logger.warning("activity.rejected", agent=agent, title=title, error=str(exc))
            return None
        for sink in self.sinks:
            try:
                sink(record)
            except Exception as exc:
                logger.warning("activity.sink_failed", agent=agent, title=title, error=str(exc))
        return record
