# src/vmtb_core/session.py
"""
Case workflow session.

One CaseWorkflowSession exists per active create/edit flow. It is passed
explicitly to every wizard step and is never a module-level singleton.
Nothing here is persisted: an external storage collaborator receives the
final rasters and extracted text at submit time, after which the caller
ends the session with reset() / teardown().

Query methods are pure derivations over current state and never raise.
Mutations addressing an unknown file id raise UnknownFileError.

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import SessionClosedError, UnknownFileError
from .model import PatientData, Stage, UploadedFile, utc_now_iso
from .verification import (
    SessionMode,
    after_redaction_edit,
    after_text_edit,
    canonical_text,
    is_exempt,
    mark_dirty,
    needs_review,
    set_visited,
    visit,
)

logger = logging.getLogger(__name__)


def _normalize_name(name: str) -> str:
    return name.lower().strip()


class CaseWorkflowSession:
    """
    In-memory state of a case creation or modification flow.

    Attributes:
        current_patient: Patient/case header for the flow
        uploaded_files: Documents in wizard order
        is_edit_mode: True when modifying an existing case
        editing_case_id: Id of the case being modified
        original_files: Snapshot of files as loaded for editing
        edited_file_ids: Files modified during an edit session
        existing_document_names: Names already stored for the case (duplicate check)
    """

    def __init__(self) -> None:
        self.session_id: str = uuid.uuid4().hex
        self.current_patient: Optional[PatientData] = None
        self.uploaded_files: List[UploadedFile] = []
        self.is_edit_mode: bool = False
        self.editing_case_id: Optional[str] = None
        self.original_files: List[UploadedFile] = []
        self.edited_file_ids: List[str] = []
        self.existing_document_names: List[str] = []
        self._closed = False

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def mode(self) -> SessionMode:
        return SessionMode.MODIFY if self.is_edit_mode else SessionMode.CREATE

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _require_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Workflow session {self.session_id} is closed")

    def reset(self, *, reason: Optional[str] = None) -> str:
        """
        Clear all workflow state and start a fresh session identity.

        Returns the previous session id.
        """
        previous = self.session_id
        self.current_patient = None
        self.uploaded_files = []
        self.is_edit_mode = False
        self.editing_case_id = None
        self.original_files = []
        self.edited_file_ids = []
        self.existing_document_names = []
        self.session_id = uuid.uuid4().hex
        self._closed = False
        logger.info(
            "Workflow session reset (%s); previous_session=%s new_session=%s",
            reason or "unspecified", previous, self.session_id,
        )
        return previous

    def teardown(self) -> None:
        """
        End the session. State is cleared and the session is marked closed;
        mutations raise SessionClosedError until the next reset().
        """
        self.reset(reason="teardown")
        self._closed = True

    def start_case(self, patient: PatientData) -> None:
        """Begin a new case in CREATE mode, discarding any previous flow."""
        self._require_open()
        self.current_patient = patient
        self.is_edit_mode = False
        self.editing_case_id = None
        self.uploaded_files = []
        self.edited_file_ids = []
        self.original_files = []
        self.existing_document_names = []

    def setup_edit_mode(
        self,
        case_id: str,
        patient: PatientData,
        files: Sequence[Union[UploadedFile, Mapping[str, Any]]],
        existing_document_names: Optional[Sequence[str]] = None,
    ) -> None:
        """
        Load an existing case for modification.

        Stored records without visited flags count as already verified.
        """
        self._require_open()
        loaded = [
            f.copy_with() if isinstance(f, UploadedFile) else UploadedFile.from_record(f)
            for f in files
        ]
        self.current_patient = patient
        self.uploaded_files = loaded
        self.is_edit_mode = True
        self.editing_case_id = case_id
        self.original_files = [f.copy_with() for f in loaded]
        self.edited_file_ids = []
        if existing_document_names is not None:
            self.existing_document_names = list(existing_document_names)
        logger.info("Edit mode set up for case %s with %d file(s)", case_id, len(loaded))

    def clear_edit_mode(self) -> None:
        self._require_open()
        self.current_patient = None
        self.uploaded_files = []
        self.is_edit_mode = False
        self.editing_case_id = None
        self.original_files = []
        self.edited_file_ids = []
        self.existing_document_names = []

    # ═══════════════════════════════════════════════════════════════════════
    # FILE LOOKUP
    # ═══════════════════════════════════════════════════════════════════════

    def get_file(self, file_id: str) -> Optional[UploadedFile]:
        for f in self.uploaded_files:
            if f.id == file_id:
                return f
        return None

    def index_of(self, file_id: str) -> int:
        for i, f in enumerate(self.uploaded_files):
            if f.id == file_id:
                return i
        return -1

    def _update(self, file_id: str, fn: Callable[[UploadedFile], UploadedFile]) -> UploadedFile:
        self._require_open()
        index = self.index_of(file_id)
        if index < 0:
            raise UnknownFileError(file_id)
        updated = fn(self.uploaded_files[index])
        self.uploaded_files[index] = updated
        return updated

    # ═══════════════════════════════════════════════════════════════════════
    # UPLOAD STEP
    # ═══════════════════════════════════════════════════════════════════════

    def is_file_name_duplicate(self, name: str) -> bool:
        """Case- and whitespace-insensitive check against uploads and stored documents."""
        normalized = _normalize_name(name)
        if any(_normalize_name(f.name) == normalized for f in self.uploaded_files):
            return True
        return any(_normalize_name(n) == normalized for n in self.existing_document_names)

    def add_uploaded_file(self, file: UploadedFile) -> bool:
        """Add a new upload with fresh flags. Returns False for a duplicate name."""
        self._require_open()
        if self.is_file_name_duplicate(file.name):
            logger.warning("Duplicate upload rejected for file id %s", file.id)
            return False
        now = utc_now_iso()
        self.uploaded_files.append(file.copy_with(
            created_at=now,
            uploaded_at=now,
            anonymized_visited=False,
            digitized_visited=False,
            dirty=False,
            pending_reconfirmation=frozenset(),
        ))
        return True

    def remove_uploaded_file(self, file_id: str) -> None:
        self._require_open()
        self.uploaded_files = [f for f in self.uploaded_files if f.id != file_id]

    def update_file_category(self, file_id: str, category: str) -> None:
        self._update(file_id, lambda f: f.copy_with(file_category=category))

    def update_file_name(self, file_id: str, name: str) -> None:
        self._update(file_id, lambda f: f.copy_with(name=name))

    def update_file_extracted_data(self, file_id: str, data: dict) -> None:
        self._update(file_id, lambda f: f.copy_with(extracted_data=dict(data)))

    def update_pdf_pages(self, file_id: str, pdf_pages: Sequence[str]) -> None:
        self._update(file_id, lambda f: f.copy_with(
            pdf_pages=list(pdf_pages),
            anonymized_pages=list(f.anonymized_pages[:len(pdf_pages)]),
            is_pdf_renderable=True,
        ))

    def set_pdf_renderable(self, file_id: str, renderable: bool) -> None:
        self._update(file_id, lambda f: f.copy_with(is_pdf_renderable=renderable))

    def clear_uploaded_files(self) -> None:
        self._require_open()
        # existing_document_names come from storage and survive
        self.uploaded_files = []
        self.edited_file_ids = []
        self.original_files = []

    def mark_file_as_edited(self, file_id: str) -> None:
        self._require_open()
        if file_id not in self.edited_file_ids:
            self.edited_file_ids.append(file_id)

    # ═══════════════════════════════════════════════════════════════════════
    # VISITED / DIRTY MUTATIONS
    # ═══════════════════════════════════════════════════════════════════════

    def set_anonymized_visited(self, file_id: str, visited: bool) -> None:
        self._update(file_id, lambda f: set_visited(f, Stage.ANONYMIZATION, visited))

    def set_digitized_visited(self, file_id: str, visited: bool) -> None:
        self._update(file_id, lambda f: set_visited(f, Stage.DIGITIZATION, visited))

    def mark_anonymized_visited(self, file_id: str) -> None:
        self._update(file_id, lambda f: visit(f, Stage.ANONYMIZATION))
        logger.debug("Anonymization visited: %s", file_id)

    def mark_digitized_visited(self, file_id: str) -> None:
        self._update(file_id, lambda f: visit(f, Stage.DIGITIZATION))
        logger.debug("Digitization visited: %s", file_id)

    def mark_anonymized_dirty(self, file_id: str) -> None:
        self._update(file_id, lambda f: mark_dirty(f, Stage.ANONYMIZATION))

    def mark_digitized_dirty(self, file_id: str) -> None:
        self._update(file_id, lambda f: mark_dirty(f, Stage.DIGITIZATION))

    # ═══════════════════════════════════════════════════════════════════════
    # REDACTION / DIGITIZATION CONTENT
    # ═══════════════════════════════════════════════════════════════════════

    def update_anonymized_image(self, file_id: str, raster: str) -> None:
        """Replace the redacted raster of a single-raster document."""
        self._update(file_id, lambda f: after_redaction_edit(
            f, self.mode, anonymized_data_url=raster,
        ))

    def update_anonymized_pdf_pages(self, file_id: str, pages: Sequence[Optional[str]]) -> None:
        """Replace the page-indexed redacted rasters of a multi-page document."""
        self._update(file_id, lambda f: after_redaction_edit(
            f, self.mode, anonymized_pages=list(pages),
        ))

    def set_anonymized_page(self, file_id: str, page_index: int, raster: str) -> None:
        """
        Store the redacted raster of exactly one page.

        Unredacted slots below `page_index` stay None; other pages are untouched.
        """
        f = self.get_file(file_id)
        if f is None:
            raise UnknownFileError(file_id)
        if f.pdf_pages and not 0 <= page_index < len(f.pdf_pages):
            raise IndexError(f"Page {page_index} out of range for file {file_id}")
        pages = list(f.anonymized_pages)
        if len(pages) <= page_index:
            pages.extend([None] * (page_index + 1 - len(pages)))
        pages[page_index] = raster
        self.update_anonymized_pdf_pages(file_id, pages)

    def save_extracted_text(self, file_id: str, text: str) -> bool:
        """
        Save edited extracted text for a file.

        Returns True if the content changed. Unchanged text leaves every
        flag alone. In MODIFY mode a change relative to the original
        snapshot marks the file as edited.
        """
        before = self.get_file(file_id)
        if before is None:
            raise UnknownFileError(file_id)
        after = self._update(file_id, lambda f: after_text_edit(f, text))
        changed = after is not before

        if changed and self.is_edit_mode:
            original = next((o for o in self.original_files if o.id == file_id), None)
            original_text = canonical_text(original.extracted_data) if original and original.extracted_data else "{}"
            if text != original_text:
                self.mark_file_as_edited(file_id)
        return changed

    # ═══════════════════════════════════════════════════════════════════════
    # VALIDITY GATE
    # ═══════════════════════════════════════════════════════════════════════

    def files_with_visit(self, file_id: str, stage: Stage) -> List[UploadedFile]:
        """
        Current files with `file_id` marked visited for `stage`, without
        committing the change. Validate against this at the moment of a
        "proceed" click.
        """
        return [visit(f, stage) if f.id == file_id else f for f in self.uploaded_files]

    def _is_exempt(self, f: UploadedFile) -> bool:
        if not self.is_edit_mode:
            return False
        return is_exempt(f.id, {o.id for o in self.original_files}, set(self.edited_file_ids))

    def get_missing_anonymization(self, files: Optional[Sequence[UploadedFile]] = None) -> List[str]:
        files_to_check = self.uploaded_files if files is None else files
        return [f.name for f in files_to_check if needs_review(f, Stage.ANONYMIZATION)]

    def get_missing_digitization(self, files: Optional[Sequence[UploadedFile]] = None) -> List[str]:
        files_to_check = self.uploaded_files if files is None else files
        return [f.name for f in files_to_check if needs_review(f, Stage.DIGITIZATION)]

    def _is_complete(self, f: UploadedFile) -> bool:
        return not needs_review(f, Stage.ANONYMIZATION) and not needs_review(f, Stage.DIGITIZATION)

    def is_create_valid(self) -> bool:
        return all(self._is_complete(f) for f in self.uploaded_files)

    def is_modify_valid(self) -> bool:
        return all(self._is_exempt(f) or self._is_complete(f) for f in self.uploaded_files)

    def is_submission_valid(self) -> bool:
        return self.is_modify_valid() if self.is_edit_mode else self.is_create_valid()

    def first_incomplete_index(
        self, files: Optional[Sequence[UploadedFile]] = None,
    ) -> Optional[Tuple[Stage, int]]:
        """
        Locate the first file the user must revisit.

        Anonymization gaps take precedence over digitization gaps.
        Returns (stage, index) or None when nothing is missing.
        """
        files_to_check = list(self.uploaded_files if files is None else files)
        for i, f in enumerate(files_to_check):
            if needs_review(f, Stage.ANONYMIZATION):
                return Stage.ANONYMIZATION, i
        for i, f in enumerate(files_to_check):
            if needs_review(f, Stage.DIGITIZATION):
                return Stage.DIGITIZATION, i
        return None
