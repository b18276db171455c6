"""Optional persistence backends."""

from .postgres import PostgresRunStore, RunRecord

__all__ = ["PostgresRunStore", "RunRecord"]
