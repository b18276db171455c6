"""Postgres persistence for orchestration runs and activity."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import psycopg
from psycopg.rows import dict_row

from ..memory.activity import ActivityRecord
from ..orchestration.executor import OrchestratorResult


@dataclass
class RunRecord:
    run_id: str
    user_input: str
    analysis: Dict[str, Any]
    results: List[Dict[str, Any]]
    decomposition_error: Optional[str]
    created_at: float


def _load_json(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return value
    return json.loads(value)


class PostgresRunStore:
    def __init__(self, db_url: str) -> None:
        self.db_url = db_url
        self._ensure_schema()

    def _connect(self) -> psycopg.Connection:
        return psycopg.connect(self.db_url, row_factory=dict_row)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS startupbox_runs (
                    run_id TEXT PRIMARY KEY,
                    user_input TEXT NOT NULL,
                    analysis JSONB NOT NULL,
                    results JSONB NOT NULL,
                    decomposition_error TEXT,
                    created_at TIMESTAMPTZ NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS startupbox_activity (
                    id BIGSERIAL PRIMARY KEY,
                    agent TEXT NOT NULL,
                    title TEXT NOT NULL,
                    status TEXT NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL
                )
                """
            )
            conn.commit()

    def save_result(self, run_id: str, user_input: str, result: OrchestratorResult) -> None:
        payload = result.to_dict()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO startupbox_runs (
                    run_id, user_input, analysis, results, decomposition_error, created_at
                ) VALUES (%s,%s,%s,%s,%s,%s)
                ON CONFLICT (run_id) DO UPDATE SET
                    analysis=excluded.analysis,
                    results=excluded.results,
                    decomposition_error=excluded.decomposition_error
                """,
                (
                    run_id,
                    user_input,
                    json.dumps(payload["analysis"]),
                    json.dumps(payload["results"]),
                    result.decomposition_error,
                    datetime.now(timezone.utc),
                ),
            )
            conn.commit()

    def append_activity(self, record: ActivityRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO startupbox_activity (agent, title, status, created_at)
                VALUES (%s, %s, %s, %s)
                """,
                (record.agent, record.title, record.status, datetime.fromisoformat(record.timestamp)),
            )
            conn.commit()

    def list_runs(self, limit: int = 50) -> List[RunRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT run_id, user_input, analysis, results, decomposition_error, created_at
                FROM startupbox_runs
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (limit,),
            ).fetchall()
        return [
            RunRecord(
                run_id=row["run_id"],
                user_input=row["user_input"],
                analysis=_load_json(row["analysis"]),
                results=_load_json(row["results"]),
                decomposition_error=row["decomposition_error"],
                created_at=row["created_at"].timestamp(),
            )
            for row in rows
        ]

    def list_activity(self, limit: int = 10) -> List[ActivityRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, agent, title, status, created_at
                FROM startupbox_activity
                ORDER BY id DESC
                LIMIT %s
                """,
                (limit,),
            ).fetchall()
        return [
            ActivityRecord(
                id=int(row["id"]),
                agent=row["agent"],
                title=row["title"],
                status=row["status"],
                timestamp=row["created_at"].isoformat(),
            )
            for row in rows
        ]
