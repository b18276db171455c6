"""FastAPI service exposing the orchestrator with live run updates over websockets."""

from __future__ import annotations

import asyncio
import json
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.websockets import WebSocketState

from .. import __version__
from ..agents.catalog import AgentId
from ..config import AppConfig
from ..errors import ClassificationFailed, CreditsExhausted, DecompositionFailed, OrchestrationError
from ..memory.session import SessionContext
from ..orchestration.orchestrator import Orchestrator

logger = structlog.get_logger().bind(component="web")

app = FastAPI(title="startup-box", version=__version__)

ORCHESTRATOR: Optional[Orchestrator] = None
SESSIONS: Dict[str, SessionContext] = {}
DEFAULT_SESSION = "default"

ERROR_STATUS = {
    ClassificationFailed: 502,
    DecompositionFailed: 502,
    CreditsExhausted: 402,
}


def get_orchestrator() -> Orchestrator:
    global ORCHESTRATOR
    if ORCHESTRATOR is None:
        ORCHESTRATOR = Orchestrator.from_config(AppConfig.load())
    return ORCHESTRATOR


def get_session(session_id: str, api_key: Optional[str] = None) -> SessionContext:
    session = SESSIONS.get(session_id)
    if session is None:
        session = get_orchestrator().new_session(api_key)
        SESSIONS[session_id] = session
    elif api_key:
        session.api_key = api_key
    return session


@app.exception_handler(OrchestrationError)
async def orchestration_error_handler(request: Request, exc: OrchestrationError) -> JSONResponse:
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    return JSONResponse(status_code=status, content={"detail": str(exc), "error": type(exc).__name__})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


class AnalyzeRequest(BaseModel):
    input: str
    api_key: Optional[str] = None
    session_id: str = DEFAULT_SESSION


class WorkflowRequest(AnalyzeRequest):
    pass


@dataclass
class RunState:
    user_input: str
    session_id: str
    history: List[Dict[str, Any]] = field(default_factory=list)
    subscribers: List[asyncio.Queue] = field(default_factory=list)
    task: asyncio.Task | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    completed: bool = False
    total_agents: int = 0
    finished_agents: int = 0
    started_at: float = field(default_factory=time.time)


RUNS: Dict[str, RunState] = {}
MAX_RUNS = 100


def _evict_finished_runs() -> None:
    """Drop the oldest completed runs once more than MAX_RUNS are held."""

    excess = len(RUNS) - MAX_RUNS
    if excess <= 0:
        return
    finished = sorted((state.started_at, run_id) for run_id, state in RUNS.items() if state.completed)
    for _, run_id in finished[:excess]:
        del RUNS[run_id]


def broadcast(state: RunState, event: Dict[str, Any]) -> None:
    state.history.append(event)
    for queue in list(state.subscribers):
        queue.put_nowait(event)


def _require_input(text: str) -> None:
    if not text.strip():
        raise HTTPException(status_code=400, detail="Please describe what you need help with.")


@app.get("/api/meta")
async def meta() -> Dict[str, Any]:
    return {"name": "startup-box", "version": __version__}


@app.get("/api/agents")
async def list_agents() -> Dict[str, Any]:
    profiles = get_orchestrator().config.profiles()
    return {
        "agents": [
            {
                "id": profile.agent.value,
                "label": profile.label,
                "description": profile.description,
                "tools": list(profile.tools),
            }
            for profile in profiles.values()
        ]
    }


@app.post("/api/analyze")
async def analyze(request: AnalyzeRequest) -> Dict[str, Any]:
    _require_input(request.input)
    orchestrator = get_orchestrator()
    session = get_session(request.session_id, request.api_key)
    result = await asyncio.to_thread(orchestrator.orchestrate, session, request.input, execute=False)
    return {
        "analysis": result.analysis.to_dict(),
        "decomposition_error": result.decomposition_error,
        "credits": session.credits,
    }


@app.post("/api/workflow")
async def run_workflow(request: WorkflowRequest) -> Dict[str, Any]:
    _require_input(request.input)
    orchestrator = get_orchestrator()
    session = get_session(request.session_id, request.api_key)
    result = await asyncio.to_thread(orchestrator.orchestrate, session, request.input)
    payload = result.to_dict()
    payload["credits"] = session.credits
    return payload


@app.post("/api/runs")
async def start_run(request: WorkflowRequest) -> Dict[str, Any]:
    _require_input(request.input)
    run_id = str(uuid.uuid4())
    state = RunState(user_input=request.input, session_id=request.session_id)
    RUNS[run_id] = state
    _evict_finished_runs()
    session = get_session(request.session_id, request.api_key)
    state.task = asyncio.create_task(execute_run(run_id, session))
    return {"run_id": run_id}


@app.post("/api/runs/{run_id}/stop")
async def stop_run(run_id: str) -> Dict[str, Any]:
    state = RUNS.get(run_id)
    if state is None:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    state.cancel_event.set()
    return {"run_id": run_id, "stop_requested": True, "completed": state.completed}


async def execute_run(run_id: str, session: SessionContext) -> None:
    state = RUNS[run_id]
    orchestrator = get_orchestrator()
    loop = asyncio.get_running_loop()

    def on_progress(agent: AgentId, status: str) -> None:
        if status != "in-progress":
            state.finished_agents += 1
        event = {"type": "status", "agent": agent.value, "status": status}
        loop.call_soon_threadsafe(broadcast, state, event)

    broadcast(state, {"type": "started", "run_id": run_id, "input": state.user_input})
    started = time.perf_counter()
    try:
        result = await asyncio.to_thread(
            orchestrator.orchestrate,
            session,
            state.user_input,
            on_progress=on_progress,
            cancel_event=state.cancel_event,
            run_id=run_id,
        )
    except OrchestrationError as exc:
        logger.warning("run.failed", run_id=run_id, error=str(exc))
        broadcast(state, {"type": "error", "message": str(exc), "error": type(exc).__name__})
        broadcast(state, {"type": "complete", "results": [], "duration": time.perf_counter() - started})
    except Exception as exc:
        logger.exception("run.crashed", run_id=run_id)
        broadcast(state, {"type": "error", "message": str(exc), "error": type(exc).__name__})
        broadcast(state, {"type": "complete", "results": [], "duration": time.perf_counter() - started})
    else:
        state.total_agents = len(result.analysis.recommended_agents)
        broadcast(state, {"type": "analysis", "analysis": result.analysis.to_dict()})
        broadcast(
            state,
            {
                "type": "complete",
                "results": [item.to_dict() for item in result.results],
                "decomposition_error": result.decomposition_error,
                "duration": time.perf_counter() - started,
                "stopped": state.cancel_event.is_set(),
            },
        )
    state.completed = True


@app.websocket("/ws/{run_id}")
async def websocket_endpoint(websocket: WebSocket, run_id: str) -> None:
    if run_id not in RUNS:
        await websocket.close(code=1008)
        return
    state = RUNS[run_id]
    queue: asyncio.Queue = asyncio.Queue()
    backlog = list(state.history)
    state.subscribers.append(queue)
    await websocket.accept()
    closed = False
    try:
        completed = False
        for event in backlog:
            await websocket.send_text(json.dumps(event))
            completed = completed or event.get("type") == "complete"
        while not completed:
            event = await queue.get()
            await websocket.send_text(json.dumps(event))
            if event.get("type") == "complete":
                completed = True
    except WebSocketDisconnect:
        closed = True
    finally:
        if queue in state.subscribers:
            state.subscribers.remove(queue)
        if not closed and websocket.client_state != WebSocketState.DISCONNECTED:
            try:
                await websocket.close()
            except RuntimeError:
                pass


@app.get("/api/runs")
async def list_runs() -> Dict[str, Any]:
    summary = []
    for run_id, state in RUNS.items():
        summary.append(
            {
                "run_id": run_id,
                "input": state.user_input,
                "session_id": state.session_id,
                "completed": state.completed,
                "agents_total": state.total_agents,
                "agents_finished": state.finished_agents,
                "started_at": state.started_at,
            }
        )
    orchestrator = get_orchestrator()
    stored = []
    if orchestrator.store is not None:
        stored = [
            {
                "run_id": record.run_id,
                "input": record.user_input,
                "analysis": record.analysis,
                "results": record.results,
                "decomposition_error": record.decomposition_error,
                "created_at": record.created_at,
            }
            for record in await asyncio.to_thread(orchestrator.store.list_runs)
        ]
    return {"runs": summary, "stored": stored}


@app.get("/api/activity")
async def list_activity(session_id: str = DEFAULT_SESSION, limit: int = 10) -> Dict[str, Any]:
    orchestrator = get_orchestrator()
    if orchestrator.store is not None:
        records = await asyncio.to_thread(orchestrator.store.list_activity, limit)
    else:
        records = get_session(session_id).activity.log.dump()[:limit]
    return {"activity": [record.to_dict() for record in records]}


@app.get("/api/session")
async def session_state(session_id: str = DEFAULT_SESSION) -> Dict[str, Any]:
    return get_session(session_id).to_dict()
