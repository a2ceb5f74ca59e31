"""FastAPI application entrypoints for the StepJS debugger.

This module exposes HTTP endpoints used by the debugger frontend and tests.
Handlers are intentionally small: they look up an `ExecutionSession` in the
in-process registry (`backend.sessions`), run one command on it and return
the published state. Server-side caps are enforced so clients cannot raise
the resource/safety limits of a session.
"""

import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .. import sessions
from ..stepjs.session import ExecutionSession

app = FastAPI(title="StepJS Debugger API", version="0.1")


def _cap_settings(settings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Enforce server-side safe caps for session tunables.

    Clients may include a `settings` object with per-session tunables. The
    server must not trust these entirely; `_cap_settings` establishes a
    conservative ceiling using a fresh `ExecutionSession()` defaults and then
    applies the client's requested values up to those ceilings.

    Returns a dict suitable for passing directly into `ExecutionSession`.
    """
    # create a fresh session to obtain server-side safe defaults
    defaults = ExecutionSession()
    safe = {
        "max_steps": defaults.max_steps,
        "max_time_s": defaults.max_time_s,
        "max_call_depth": defaults.max_call_depth,
        "max_call_steps": defaults.max_call_steps,
        "max_output_lines": defaults.max_output_lines,
    }
    if not settings:
        return safe
    caps: Dict[str, Any] = {}
    # coerce and clamp numeric values to the server's safe maximums
    caps["max_steps"] = min(int(settings.get("max_steps", safe["max_steps"])), safe["max_steps"])
    caps["max_time_s"] = min(float(settings.get("max_time_s", safe["max_time_s"])), safe["max_time_s"])
    caps["max_call_depth"] = min(int(settings.get("max_call_depth", safe["max_call_depth"])), safe["max_call_depth"])
    caps["max_call_steps"] = min(int(settings.get("max_call_steps", safe["max_call_steps"])), safe["max_call_steps"])
    caps["max_output_lines"] = min(int(settings.get("max_output_lines", safe["max_output_lines"])), safe["max_output_lines"])
    # behaviour switches are not limits and pass through
    caps["strict"] = bool(settings.get("strict", defaults.strict))
    caps["seed"] = int(settings.get("seed", defaults.seed))
    return caps


def _public_state(state: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a session state into the camelCase shape the frontend reads."""
    return {
        "variables": state["variables"],
        "currentLine": state["current_line"],
        "callStack": state["call_stack"],
        "output": state["output"],
        "isComplete": state["is_complete"],
        "error": state["error"],
        "warnings": state["warnings"],
        "steps": state["steps"],
    }


def _require(session_id: str) -> ExecutionSession:
    session = sessions.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    return session


class SessionSettings(BaseModel):
    """Client-requested session tunables. Unset fields keep the server defaults."""
    max_steps: Optional[int] = None
    max_time_s: Optional[float] = None
    max_call_depth: Optional[int] = None
    max_call_steps: Optional[int] = None
    max_output_lines: Optional[int] = None
    strict: Optional[bool] = None
    seed: Optional[int] = None


class RunRequest(BaseModel):
    """Pydantic model for the `/run` and `/sessions` request bodies.

    Fields:
        code: JavaScript source text.
        settings: optional session tunables; will be capped server-side.
    """
    code: str
    settings: Optional[SessionSettings] = None


def _requested_settings(req: RunRequest) -> Dict[str, Any]:
    if req.settings is None:
        return {}
    return req.settings.model_dump(exclude_none=True)


class CodeRequest(BaseModel):
    code: str


@app.post("/run")
async def run_code(req: RunRequest):
    """Run a program to completion in a throwaway session.

    Any unexpected exception is turned into a ServerError payload so callers
    always receive the same JSON shape.
    """
    start = time.time()
    try:
        session = ExecutionSession(req.code, _cap_settings(_requested_settings(req)))
        result = _public_state(session.run_to_end())
    except Exception as e:
        return {
            "variables": [],
            "currentLine": 0,
            "callStack": [],
            "output": [],
            "isComplete": False,
            "error": {"name": "ServerError", "message": str(e), "line": 0},
            "warnings": [],
            "steps": 0,
            "duration_ms": int((time.time() - start) * 1000),
        }
    result["duration_ms"] = int((time.time() - start) * 1000)
    return result


@app.post("/sessions")
async def create_session(req: RunRequest):
    session_id = sessions.create_session(req.code, _cap_settings(_requested_settings(req)))
    return {"session_id": session_id, "state": _public_state(_require(session_id).state)}


@app.get("/sessions")
async def list_sessions():
    return sessions.list_sessions()


@app.get("/sessions/{session_id}")
async def get_state(session_id: str):
    return _public_state(_require(session_id).state)


@app.post("/sessions/{session_id}/step")
async def step(session_id: str):
    session = _require(session_id)
    session.step()
    return _public_state(session.state)


@app.post("/sessions/{session_id}/step-back")
async def step_back(session_id: str):
    session = _require(session_id)
    session.step_back()
    return _public_state(session.state)


@app.post("/sessions/{session_id}/run")
async def run_to_end(session_id: str):
    return _public_state(_require(session_id).run_to_end())


@app.post("/sessions/{session_id}/reset")
async def reset(session_id: str):
    return _public_state(_require(session_id).reset())


@app.put("/sessions/{session_id}/code")
async def replace_code(session_id: str, req: CodeRequest):
    return _public_state(_require(session_id).initialize_code(req.code))


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    if not sessions.delete_session(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    return {"deleted": session_id}
