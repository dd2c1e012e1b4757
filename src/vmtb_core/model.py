# src/vmtb_core/model.py
"""
Data model for the case creation / edit workflow.

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.

UploadedFile Lifecycle:
-----------------------
created on upload → mutated through the wizard steps (anonymize, digitize)
→ persisted by an external storage collaborator at final submit, or
discarded when the session is reset.

Updates are applied copy-on-write (see UploadedFile.copy_with) so a caller
can validate against a just-computed list of files before committing it
to the session.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def generate_file_id() -> str:
    return f"doc_{uuid.uuid4().hex[:12]}"


class DocumentKind(str, Enum):
    IMAGE = "image"
    PDF = "pdf"
    OTHER = "other"

    @classmethod
    def from_mime(cls, mime_type: str) -> "DocumentKind":
        if mime_type == "application/pdf":
            return cls.PDF
        if mime_type.startswith("image/"):
            return cls.IMAGE
        return cls.OTHER


class Stage(str, Enum):
    """Per-file verification stages."""
    ANONYMIZATION = "anonymization"
    DIGITIZATION = "digitization"


@dataclass
class PatientData:
    """Patient and case header captured before upload."""
    name: str = ""
    age: str = ""
    sex: str = ""
    cancer_type: str = ""
    case_name: str = ""


@dataclass
class UploadedFile:
    """
    A user-added document and its workflow flags.

    Display rule: anonymized rasters always win over originals
    (see display_raster()).
    """
    id: str
    name: str
    type: str                                   # MIME type
    data_url: str                               # original raster or PDF source
    file_category: str = "Clinical Notes"
    size: int = 0

    # Redaction output
    anonymized_data_url: Optional[str] = None   # single-raster documents
    pdf_pages: List[str] = field(default_factory=list)
    anonymized_pages: List[Optional[str]] = field(default_factory=list)
    is_pdf_renderable: bool = True

    # Digitization output (opaque to the anonymization core)
    extracted_data: Dict[str, str] = field(default_factory=dict)

    # Verification flags
    anonymized_visited: bool = False
    digitized_visited: bool = False
    dirty: bool = False
    pending_reconfirmation: FrozenSet[Stage] = frozenset()

    # Timestamps
    created_at: Optional[str] = None
    uploaded_at: Optional[str] = None
    last_visited_at: Optional[float] = None
    last_modified_at: Optional[str] = None
    anonymized_changed_at: Optional[str] = None

    @classmethod
    def create(
        cls,
        name: str,
        mime_type: str,
        data_url: str,
        *,
        file_category: str = "Clinical Notes",
        size: int = 0,
    ) -> "UploadedFile":
        """Create a freshly uploaded file (both stages unvisited)."""
        return cls(
            id=generate_file_id(),
            name=name,
            type=mime_type,
            data_url=data_url,
            file_category=file_category,
            size=size,
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any], *, default_visited: bool = True) -> "UploadedFile":
        """
        Build a file from a stored document record.

        Unknown keys are ignored. Visited flags absent from the record
        default to `default_visited`.
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in record.items() if k in known}
        values.setdefault("anonymized_visited", default_visited)
        values.setdefault("digitized_visited", default_visited)
        for list_field in ("pdf_pages", "anonymized_pages"):
            if values.get(list_field) is None:
                values[list_field] = []
        if values.get("extracted_data") is None:
            values["extracted_data"] = {}
        values["pending_reconfirmation"] = frozenset(
            Stage(s) for s in values.get("pending_reconfirmation") or ()
        )
        return cls(**values)

    @property
    def kind(self) -> DocumentKind:
        return DocumentKind.from_mime(self.type)

    @property
    def is_pdf(self) -> bool:
        return self.kind == DocumentKind.PDF

    @property
    def is_anonymizable(self) -> bool:
        """Images always are; PDFs only once they rendered to page rasters."""
        if self.kind == DocumentKind.IMAGE:
            return True
        return self.is_pdf and self.is_pdf_renderable

    @property
    def page_count(self) -> int:
        return len(self.pdf_pages) if self.is_pdf else 1

    def anonymized_page(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.anonymized_pages):
            return self.anonymized_pages[index]
        return None

    def display_raster(self, page_index: int = 0) -> Optional[str]:
        """Raster to show / edit: the redacted version when one exists."""
        if self.is_pdf:
            redacted = self.anonymized_page(page_index)
            if redacted:
                return redacted
            if 0 <= page_index < len(self.pdf_pages):
                return self.pdf_pages[page_index]
            return None
        return self.anonymized_data_url or self.data_url

    def copy_with(self, **changes) -> "UploadedFile":
        """Return an updated copy; list and dict fields are not shared."""
        changes.setdefault("pdf_pages", list(self.pdf_pages))
        changes.setdefault("anonymized_pages", list(self.anonymized_pages))
        changes.setdefault("extracted_data", dict(self.extracted_data))
        updated = replace(self, **changes)
        if updated.pdf_pages and len(updated.anonymized_pages) > len(updated.pdf_pages):
            raise ValueError(
                f"anonymized_pages ({len(updated.anonymized_pages)}) exceeds "
                f"pdf_pages ({len(updated.pdf_pages)}) for file {self.id}"
            )
        return updated


@dataclass
class ValidationResult:
    """Outcome of a wizard validation step."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    unverified_documents: List[str] = field(default_factory=list)
