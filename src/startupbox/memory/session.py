"""Per-session state passed explicitly into the orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..agents.catalog import AgentId
from .activity import ActivityLog, ActivityRecord, ActivityReporter, ActivitySink

DEFAULT_CREDITS = 50


@dataclass
class SessionContext:
    """Credits, credentials, activity history and shared cross-agent context.

    The hosting application creates one per user session, persists it with
    :meth:`to_dict` if it wants to, and discards it when the session ends.
    """

    api_key: str = ""
    credits: int = DEFAULT_CREDITS
    user_name: str = ""
    initial_credits: int = DEFAULT_CREDITS
    activity: ActivityReporter = field(default_factory=ActivityReporter)
    shared_context: Dict[str, Any] = field(default_factory=dict)
    conversations: Dict[AgentId, str] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        *,
        api_key: str = "",
        credits: int = DEFAULT_CREDITS,
        user_name: str = "",
        activity_capacity: int = 10,
        sinks: tuple[ActivitySink, ...] = (),
    ) -> "SessionContext":
        return cls(
            api_key=api_key,
            credits=credits,
            initial_credits=credits,
            user_name=user_name,
            activity=ActivityReporter(ActivityLog(max_items=activity_capacity), sinks=sinks),
        )

    def deduct_credit(self) -> bool:
        if self.credits > 0:
            self.credits -= 1
            return True
        return False

    def reset_credits(self) -> None:
        self.credits = self.initial_credits

    def update_shared_context(self, key: str, value: Any) -> None:
        self.shared_context[key] = value

    def conversation_for(self, agent: AgentId) -> Optional[str]:
        return self.conversations.get(agent)

    def remember_conversation(self, agent: AgentId, conversation_id: Optional[str]) -> None:
        if conversation_id:
            self.conversations[agent] = conversation_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "credits": self.credits,
            "initial_credits": self.initial_credits,
            "user_name": self.user_name,
            "activity_capacity": self.activity.log.max_items,
            "recent_activity": [record.to_dict() for record in self.activity.log.dump()],
            "shared_context": dict(self.shared_context),
            "conversations": {agent.value: cid for agent, cid in self.conversations.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, api_key: str = "") -> "SessionContext":
        records = [ActivityRecord.from_dict(item) for item in data.get("recent_activity", [])]
        log = ActivityLog(max_items=int(data.get("activity_capacity", 10)), records=records)
        conversations = {}
        for key, cid in (data.get("conversations") or {}).items():
            agent = AgentId.parse(key)
            if agent is not None:
                conversations[agent] = cid
        credits = int(data.get("credits", DEFAULT_CREDITS))
        return cls(
            api_key=api_key,
            credits=credits,
            initial_credits=int(data.get("initial_credits", DEFAULT_CREDITS)),
            user_name=str(data.get("user_name", "")),
            activity=ActivityReporter(log),
            shared_context=dict(data.get("shared_context") or {}),
            conversations=conversations,
        )
