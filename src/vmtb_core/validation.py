# src/vmtb_core/validation.py
"""
Wizard validation and the "proceed" gates.

validate_* functions report per-step problems as ValidationResult records.
The gates mark the file on screen as visited in a just-computed copy of the
file list, validate against that copy, and only commit the visit to the
session when the gate passes.

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .model import PatientData, Stage, UploadedFile, ValidationResult
from .session import CaseWorkflowSession
from .verification import needs_review

logger = logging.getLogger(__name__)

MAX_PATIENT_AGE = 150


# ═══════════════════════════════════════════════════════════════════════════════
# STEP VALIDATION
# ═══════════════════════════════════════════════════════════════════════════════

def _parse_age(age) -> Optional[int]:
    try:
        return int(str(age).strip())
    except (TypeError, ValueError):
        return None


def validate_metadata(patient: Optional[PatientData]) -> ValidationResult:
    errors: List[str] = []
    patient = patient or PatientData()
    age = _parse_age(patient.age)

    if not patient.name.strip():
        errors.append("Patient name is required")
    if not age or age < 0 or age > MAX_PATIENT_AGE:
        errors.append("Valid patient age is required")
    if not patient.sex:
        errors.append("Patient sex is required")
    if not patient.case_name.strip():
        errors.append("Case name is required")
    if not patient.cancer_type:
        errors.append("Cancer type is required")

    return ValidationResult(valid=not errors, errors=errors)


def validate_documents_uploaded(files: Sequence[UploadedFile]) -> ValidationResult:
    errors = [] if files else ["At least one document must be uploaded"]
    return ValidationResult(valid=not errors, errors=errors)


def _validate_stage(files: Sequence[UploadedFile], stage: Stage) -> ValidationResult:
    unvisited = [f.name for f in files if needs_review(f, stage)]
    errors = []
    if unvisited:
        errors.append(f"{len(unvisited)} document(s) require review for {stage.value}")
    return ValidationResult(valid=not unvisited, errors=errors, unverified_documents=unvisited)


def validate_anonymization(files: Sequence[UploadedFile]) -> ValidationResult:
    return _validate_stage(files, Stage.ANONYMIZATION)


def validate_digitization(files: Sequence[UploadedFile]) -> ValidationResult:
    return _validate_stage(files, Stage.DIGITIZATION)


def _combine(results: Sequence[ValidationResult]) -> ValidationResult:
    errors = [e for r in results for e in r.errors]
    unverified: List[str] = []
    for r in results:
        for name in r.unverified_documents:
            if name not in unverified:
                unverified.append(name)
    return ValidationResult(valid=not errors, errors=errors, unverified_documents=unverified)


def validate_all(patient: Optional[PatientData], files: Sequence[UploadedFile]) -> ValidationResult:
    """Run every step validation; unverified names are de-duplicated in order."""
    return _combine([
        validate_metadata(patient),
        validate_documents_uploaded(files),
        validate_anonymization(files),
        validate_digitization(files),
    ])


def validate_submission(session: CaseWorkflowSession) -> ValidationResult:
    """
    validate_all() for the session's current flow.

    In MODIFY mode untouched original files are exempt from the
    anonymization and digitization checks.
    """
    files = session.uploaded_files
    blocking = _blocking(session, files)
    return _combine([
        validate_metadata(session.current_patient),
        validate_documents_uploaded(files),
        validate_anonymization(blocking),
        validate_digitization(blocking),
    ])


# ═══════════════════════════════════════════════════════════════════════════════
# PROCEED GATES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GateDecision:
    """
    Outcome of a proceed click.

    Attributes:
        allowed: True when the wizard may advance
        missing: Names of files still needing review
        redirect_stage: Stage of the first incomplete file (when blocked)
        redirect_index: Index of the first incomplete file (when blocked)
    """
    allowed: bool
    missing: List[str] = field(default_factory=list)
    redirect_stage: Optional[Stage] = None
    redirect_index: Optional[int] = None


def _blocking(session: CaseWorkflowSession, files: Sequence[UploadedFile]) -> List[UploadedFile]:
    if not session.is_edit_mode:
        return list(files)
    original_ids = {f.id for f in session.original_files}
    edited_ids = set(session.edited_file_ids)
    return [f for f in files if f.id not in original_ids or f.id in edited_ids]


def _decide(
    session: CaseWorkflowSession,
    files: List[UploadedFile],
    stages: Sequence[Stage],
) -> GateDecision:
    candidates = _blocking(session, files)
    missing: List[str] = []
    if Stage.ANONYMIZATION in stages:
        missing += session.get_missing_anonymization(candidates)
    if Stage.DIGITIZATION in stages:
        missing += [n for n in session.get_missing_digitization(candidates) if n not in missing]
    if not missing:
        return GateDecision(allowed=True)

    target = session.first_incomplete_index(candidates)
    redirect_stage, redirect_index = None, None
    if target is not None:
        redirect_stage, candidate_index = target
        target_id = candidates[candidate_index].id
        redirect_index = next(i for i, f in enumerate(files) if f.id == target_id)
    logger.info("Proceed blocked: %d document(s) incomplete", len(missing))
    return GateDecision(
        allowed=False,
        missing=missing,
        redirect_stage=redirect_stage,
        redirect_index=redirect_index,
    )


def _current_id(session: CaseWorkflowSession, current_index: int) -> Optional[str]:
    if 0 <= current_index < len(session.uploaded_files):
        return session.uploaded_files[current_index].id
    return None


def proceed_to_digitization(session: CaseWorkflowSession, current_index: int) -> GateDecision:
    """Go to Digitization: the file on screen counts as reviewed for anonymization."""
    file_id = _current_id(session, current_index)
    files = session.files_with_visit(file_id, Stage.ANONYMIZATION) if file_id else list(session.uploaded_files)
    decision = _decide(session, files, [Stage.ANONYMIZATION])
    if decision.allowed and file_id:
        session.mark_anonymized_visited(file_id)
    return decision


def proceed_to_submit(session: CaseWorkflowSession, current_index: int) -> GateDecision:
    """Create Case / Modify Case: both stages must be complete."""
    file_id = _current_id(session, current_index)
    files = session.files_with_visit(file_id, Stage.DIGITIZATION) if file_id else list(session.uploaded_files)
    decision = _decide(session, files, [Stage.ANONYMIZATION, Stage.DIGITIZATION])
    if decision.allowed and file_id:
        session.mark_digitized_visited(file_id)
    return decision
