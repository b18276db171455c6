import json
from datetime import datetime, timezone

from startupbox.agents.catalog import AgentId
from startupbox.memory.activity import ActivityRecord
from startupbox.orchestration.analysis import TaskAnalysis
from startupbox.orchestration.executor import AgentResult, OrchestratorResult
from startupbox.persistence.postgres import PostgresRunStore


class FakeCursor:
    def __init__(self, rows):
        self.rows = rows

    def fetchall(self):
        return self.rows


class FakeConnection:
    def __init__(self, rows=()):
        self.statements = []
        self.rows = list(rows)
        self.commits = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.statements.append((" ".join(sql.split()), params))
        return FakeCursor(self.rows)

    def commit(self):
        self.commits += 1


class FakeStore(PostgresRunStore):
    def __init__(self, rows=()):
        self.connection = FakeConnection(rows)
        super().__init__("postgresql://fake/startupbox")

    def _connect(self):
        return self.connection


def test_schema_created_on_init():
    store = FakeStore()

    statements = [sql for sql, _ in store.connection.statements]
    assert statements[0].startswith("CREATE TABLE IF NOT EXISTS startupbox_runs")
    assert statements[1].startswith("CREATE TABLE IF NOT EXISTS startupbox_activity")
    assert store.connection.commits == 1


def test_save_result_serialises_analysis_and_results():
    store = FakeStore()
    result = OrchestratorResult(
        analysis=TaskAnalysis(intent="pricing", recommended_agents=(AgentId.CONTENT,)),
        results=[AgentResult(agent=AgentId.CONTENT, output="post", status="completed")],
    )

    store.save_result("run-1", "Help me", result)

    sql, params = store.connection.statements[-1]
    assert sql.startswith("INSERT INTO startupbox_runs")
    assert params[0:2] == ("run-1", "Help me")
    assert json.loads(params[2])["intent"] == "pricing"
    assert json.loads(params[3])[0]["output"] == "post"
    assert params[4] is None


def test_append_activity():
    store = FakeStore()
    record = ActivityRecord(
        id=1, agent="Smart Router", title="Analyzed task intent", status="completed", timestamp="2024-05-01T10:00:00+00:00"
    )

    store.append_activity(record)

    sql, params = store.connection.statements[-1]
    assert sql.startswith("INSERT INTO startupbox_activity")
    assert params[:3] == ("Smart Router", "Analyzed task intent", "completed")
    assert params[3] == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)


def test_list_runs_and_activity_map_rows():
    created = datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    rows = [
        {
            "run_id": "run-1",
            "user_input": "Help me",
            "analysis": {"intent": "pricing"},
            "results": "[]",
            "decomposition_error": None,
            "created_at": created,
            "id": 7,
            "agent": "content",
            "title": "Executed content",
            "status": "completed",
        }
    ]
    store = FakeStore(rows)

    runs = store.list_runs(5)
    activity = store.list_activity(3)

    assert runs[0].analysis == {"intent": "pricing"}
    assert runs[0].results == []
    assert runs[0].created_at == created.timestamp()
    assert activity[0].id == 7
    assert activity[0].timestamp == created.isoformat()
    assert store.connection.statements[-1][1] == (3,)
