import logging
import os
import threading
import uuid
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from .stepjs.session import ExecutionSession

logger = logging.getLogger(__name__)

# Upper bound on live debugger sessions kept in memory (oldest are evicted)
MAX_SESSIONS = int(os.environ.get('STEPJS_MAX_SESSIONS') or 100)

_sessions: "OrderedDict[str, ExecutionSession]" = OrderedDict()
_lock = threading.Lock()


def create_session(code: str, settings: Optional[Dict[str, Any]] = None) -> str:
    """Create a session for `code` and return its id.

    The registry is a plain in-process mapping; sessions are not persisted
    and disappear when the server restarts.
    """
    session = ExecutionSession(code, settings)
    session_id = uuid.uuid4().hex
    with _lock:
        _sessions[session_id] = session
        while len(_sessions) > MAX_SESSIONS:
            evicted, _ = _sessions.popitem(last=False)
            logger.info('evicted session %s', evicted)
    logger.info('created session %s', session_id)
    return session_id


def get_session(session_id: str) -> Optional[ExecutionSession]:
    with _lock:
        session = _sessions.get(session_id)
        if session is not None:
            _sessions.move_to_end(session_id)
        return session


def delete_session(session_id: str) -> bool:
    with _lock:
        removed = _sessions.pop(session_id, None) is not None
    if removed:
        logger.info('deleted session %s', session_id)
    return removed


def list_sessions() -> List[Dict[str, Any]]:
    with _lock:
        items = list(_sessions.items())
    return [
        {
            'session_id': session_id,
            'line_count': session.line_count,
            'is_complete': session.complete,
            'has_error': session.error is not None,
        }
        for session_id, session in items
    ]


def clear_sessions():
    """Drop every session (used by tests)."""
    with _lock:
        _sessions.clear()
