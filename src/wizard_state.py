# src/wizard_state.py
from __future__ import annotations
from typing import Any, MutableMapping, Optional
import logging

from vmtb_core.canvas_bridge import CanvasBridge
from vmtb_core.document import DocumentRedactor, PageLoadGuard
from vmtb_core.session import CaseWorkflowSession

logger = logging.getLogger(__name__)

SESSION_KEY = "workflow_session"

# Keys that belong to one case flow and die with it.
# Widget nonces are not listed: reused widget keys would replay stale drawings.
WIZARD_SCOPED_KEYS = {
    # Step / navigation
    'wizard_step',
    'current_index',
    'visit_marker',

    # Redaction view
    'redactor',
    'canvas_bridge',
    'load_guard',
    'zoom',

    # Gate feedback
    'gate_missing',
    'flash',
}

STEPS = ("metadata", "upload", "anonymize", "digitize", "review")


def get_session(ss: MutableMapping[str, Any]) -> CaseWorkflowSession:
    """Return the workflow session, creating it on first use."""
    session = ss.get(SESSION_KEY)
    if session is None:
        session = CaseWorkflowSession()
        ss[SESSION_KEY] = session
    return session


def init_wizard_state(ss: MutableMapping[str, Any]) -> None:
    """Ensure all wizard keys exist with safe defaults."""
    get_session(ss)
    ss.setdefault('wizard_step', STEPS[0])
    ss.setdefault('current_index', 0)
    ss.setdefault('redactor', None)
    ss.setdefault('canvas_bridge', None)
    ss.setdefault('canvas_nonce', 0)
    ss.setdefault('load_guard', PageLoadGuard())
    ss.setdefault('zoom', 1.0)
    ss.setdefault('gate_missing', [])
    ss.setdefault('flash', None)
    ss.setdefault('visit_marker', None)


def open_redactor(ss: MutableMapping[str, Any], file_id: str) -> DocumentRedactor:
    """
    Point the redaction view at `file_id`.

    The shared load guard makes pending loads for the previous file stale.
    """
    session = get_session(ss)
    redactor: Optional[DocumentRedactor] = ss.get('redactor')
    if redactor is None or redactor.session is not session:
        redactor = DocumentRedactor(session, file_id, guard=ss['load_guard'])
        ss['redactor'] = redactor
    elif redactor.file_id != file_id:
        redactor.go_to_file(file_id)
    reset_canvas_widget(ss)
    return redactor


def reset_canvas_widget(ss: MutableMapping[str, Any]) -> None:
    """Start a fresh, empty widget bound to the redactor's current canvas."""
    redactor: Optional[DocumentRedactor] = ss.get('redactor')
    ss['canvas_nonce'] = ss.get('canvas_nonce', 0) + 1
    if redactor is None or redactor.canvas is None:
        ss['canvas_bridge'] = None
    else:
        ss['canvas_bridge'] = CanvasBridge(redactor.canvas)


def reset_wizard_state(ss: MutableMapping[str, Any], *, reason: str | None = None) -> str | None:
    """
    Tear down the current case flow.

    Works on any dict-like mapping so it can be tested without a
    Streamlit runtime.

    Returns:
        The session id that was torn down (if any)
    """
    session: Optional[CaseWorkflowSession] = ss.get(SESSION_KEY)
    previous_id = session.session_id if session is not None else None
    if session is not None:
        session.teardown()

    for k in list(ss.keys()):
        if k in WIZARD_SCOPED_KEYS:
            ss.pop(k, None)

    ss[SESSION_KEY] = CaseWorkflowSession()
    init_wizard_state(ss)

    logger.info(
        "wizard_state_reset (%s); previous_session=%s new_session=%s",
        reason or "unspecified",
        previous_id or "none",
        ss[SESSION_KEY].session_id,
    )
    return previous_id
