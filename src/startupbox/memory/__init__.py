"""Session and activity state owned by the hosting application."""

from .activity import ActivityLog, ActivityRecord, ActivityReporter
from .session import SessionContext

__all__ = ["ActivityLog", "ActivityRecord", "ActivityReporter", "SessionContext"]
