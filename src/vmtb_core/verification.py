# src/vmtb_core/verification.py
"""
Per-file verification state machine.

Each (file, stage) pair is in one of three states:

    UNVISITED      - never confirmed (new uploads start here for both stages)
    VISITED_CLEAN  - confirmed, no edits since
    VISITED_DIRTY  - confirmed earlier, edited since; needs re-confirmation

Transitions (all return an updated copy, never mutate):

    visit(stage)                 → VISITED_CLEAN
    after_redaction_edit(CREATE) → anonymization UNVISITED, digitization UNVISITED
    after_redaction_edit(MODIFY) → anonymization VISITED_DIRTY (if visited),
                                   digitization UNVISITED
    mark_dirty(stage)            → VISITED_DIRTY if the stage had been visited,
                                   else UNVISITED; visited flag cleared
    after_text_edit(new == old)  → no change

In MODIFY mode, original files that were never edited are exempt from
re-verification (see is_exempt()). Only VISITED_CLEAN satisfies the
validity gate (see needs_review()).

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

import json
import logging
import time
from enum import Enum
from typing import Collection, Dict, Optional, Union

from .model import Stage, UploadedFile, utc_now_iso

logger = logging.getLogger(__name__)


class StageState(str, Enum):
    UNVISITED = "unvisited"
    VISITED_CLEAN = "visited-clean"
    VISITED_DIRTY = "visited-dirty"


class SessionMode(str, Enum):
    CREATE = "CREATE"
    MODIFY = "MODIFY"


_VISITED_FIELD = {
    Stage.ANONYMIZATION: "anonymized_visited",
    Stage.DIGITIZATION: "digitized_visited",
}


def is_visited(file: UploadedFile, stage: Stage) -> bool:
    return bool(getattr(file, _VISITED_FIELD[Stage(stage)]))


def stage_state(file: UploadedFile, stage: Stage) -> StageState:
    stage = Stage(stage)
    if stage in file.pending_reconfirmation:
        return StageState.VISITED_DIRTY
    if is_visited(file, stage):
        return StageState.VISITED_CLEAN
    return StageState.UNVISITED


def needs_review(file: UploadedFile, stage: Stage) -> bool:
    """True unless the stage is VISITED_CLEAN. Every validity check goes through this."""
    return stage_state(file, stage) != StageState.VISITED_CLEAN


def visit(file: UploadedFile, stage: Stage, *, now: Optional[float] = None) -> UploadedFile:
    """User opened / confirmed the stage view for this file."""
    stage = Stage(stage)
    return file.copy_with(**{
        _VISITED_FIELD[stage]: True,
        "dirty": False,
        "pending_reconfirmation": file.pending_reconfirmation - {stage},
        "last_visited_at": time.time() if now is None else now,
    })


def set_visited(file: UploadedFile, stage: Stage, visited: bool) -> UploadedFile:
    """Raw flag setter; the stage ends up clean or unvisited. Leaves dirty / timestamps alone."""
    stage = Stage(stage)
    pending = file.pending_reconfirmation - {stage}
    return file.copy_with(**{_VISITED_FIELD[stage]: visited, "pending_reconfirmation": pending})


def mark_dirty(file: UploadedFile, stage: Stage) -> UploadedFile:
    """Stage content changed; the stage must be confirmed again."""
    stage = Stage(stage)
    pending = file.pending_reconfirmation
    if is_visited(file, stage) or stage in pending:
        pending = pending | {stage}
    return file.copy_with(**{
        _VISITED_FIELD[stage]: False,
        "dirty": True,
        "pending_reconfirmation": pending,
    })


def after_redaction_edit(file: UploadedFile, mode: SessionMode, **changes) -> UploadedFile:
    """
    Apply a redaction edit (new anonymized raster or pages) to a file.

    Digitization is always reset to UNVISITED: redacted content must be
    re-digitized. Anonymization is reset to UNVISITED in CREATE mode and
    kept visited but dirty in MODIFY mode.
    """
    now = utc_now_iso()
    pending = file.pending_reconfirmation - {Stage.DIGITIZATION}
    anonymized_visited = file.anonymized_visited
    if SessionMode(mode) == SessionMode.CREATE:
        anonymized_visited = False
        pending = pending - {Stage.ANONYMIZATION}
    elif anonymized_visited:
        pending = pending | {Stage.ANONYMIZATION}

    updated = file.copy_with(
        anonymized_visited=anonymized_visited,
        digitized_visited=False,
        dirty=True,
        pending_reconfirmation=pending,
        anonymized_changed_at=now,
        last_modified_at=now,
        **changes,
    )
    logger.debug(
        "Redaction edit on %s (%s): anonymization=%s digitization=%s",
        file.id, SessionMode(mode).value,
        stage_state(updated, Stage.ANONYMIZATION).value,
        stage_state(updated, Stage.DIGITIZATION).value,
    )
    return updated


ExtractedText = Union[str, Dict[str, str]]


def canonical_text(data: ExtractedText) -> str:
    """Stable text form of extracted data, used to detect no-op edits."""
    if isinstance(data, dict):
        return json.dumps(data, indent=2, ensure_ascii=False)
    return data


def parse_extracted_text(text: str) -> Dict[str, str]:
    """Parse edited JSON; free text that is not a JSON object is kept under "content"."""
    try:
        parsed = json.loads(text)
    except ValueError:
        return {"content": text}
    if not isinstance(parsed, dict):
        return {"content": text}
    return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in parsed.items()}


def text_changed(file: UploadedFile, new_text: str) -> bool:
    saved = canonical_text(file.extracted_data) if file.extracted_data else "{}"
    return new_text != saved


def after_text_edit(file: UploadedFile, new_text: str) -> UploadedFile:
    """
    Apply an edit of the extracted text.

    Identical text is a no-op; otherwise the data is stored and the
    digitization stage requires re-confirmation.
    """
    if not text_changed(file, new_text):
        return file
    updated = file.copy_with(
        extracted_data=parse_extracted_text(new_text),
        last_modified_at=utc_now_iso(),
    )
    return mark_dirty(updated, Stage.DIGITIZATION)


def is_exempt(
    file_id: str,
    original_ids: Collection[str],
    edited_ids: Collection[str],
) -> bool:
    """Untouched pre-existing files never block resubmission of a modified case."""
    return file_id in original_ids and file_id not in edited_ids
