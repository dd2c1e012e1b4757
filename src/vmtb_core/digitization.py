# src/vmtb_core/digitization.py
"""
Placeholder digitization.

Produces canned extracted fields per document category so the digitize
step has something to review. No OCR or model inference happens here.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Sequence

if TYPE_CHECKING:
    from .session import CaseWorkflowSession

FILE_CATEGORIES = (
    "Clinical Notes",
    "Pathology",
    "Radiology",
    "Lab Results",
    "Genomic Report",
    "Other",
)

_MOCK_FIELDS: Dict[str, Dict[str, str]] = {
    "Clinical Notes": {
        "Patient History": "Patient presents with persistent cough for 3 months",
        "Chief Complaint": "Shortness of breath and chest pain",
        "Physical Examination": "Decreased breath sounds in right lower lobe",
        "Assessment": "Suspected lung malignancy",
        "Plan": "Order CT scan and biopsy",
    },
    "Pathology": {
        "Specimen Type": "Lung tissue biopsy",
        "Diagnosis": "Non-small cell lung carcinoma",
        "Histologic Type": "Adenocarcinoma",
        "Grade": "Moderately differentiated",
        "Margins": "Negative for malignancy",
    },
    "Radiology": {
        "Examination": "CT Chest with contrast",
        "Findings": "Right lower lobe mass 4.2 x 3.8 cm",
        "Lymph Nodes": "Mediastinal lymphadenopathy noted",
        "Impression": "Primary lung malignancy with nodal involvement",
        "Recommendation": "PET scan for staging",
    },
    "Lab Results": {
        "Tumor Markers": "CEA: 12.5 ng/mL (elevated)",
        "CBC": "WBC 8.2, Hgb 11.5, Plt 245",
        "Metabolic Panel": "Within normal limits",
        "LFTs": "Mildly elevated ALT",
        "Creatinine": "1.1 mg/dL",
    },
    "Genomic Report": {
        "EGFR Mutation": "Positive - Exon 19 deletion",
        "ALK Rearrangement": "Negative",
        "ROS1": "Negative",
        "PD-L1 Expression": "45%",
        "TMB": "Intermediate (8 mut/Mb)",
    },
}


def generate_mock_extracted_data(file_category: str) -> Dict[str, str]:
    """Canned fields for `file_category`, or a generic pending-review record."""
    fields = _MOCK_FIELDS.get(file_category)
    if fields is not None:
        return dict(fields)
    return {
        "Document Type": file_category,
        "Content Summary": "Document uploaded successfully",
        "Status": "Pending review",
    }


def prefill_extracted_data(session: CaseWorkflowSession, file_ids: Sequence[str] = ()) -> int:
    """
    Seed mock extracted data for files (all files when `file_ids` is empty).

    Files that already carry extracted data are left alone. Returns the
    number of files seeded.
    """
    targets = set(file_ids)
    seeded = 0
    for f in list(session.uploaded_files):
        if targets and f.id not in targets:
            continue
        if f.extracted_data:
            continue
        session.update_file_extracted_data(f.id, generate_mock_extracted_data(f.file_category))
        seeded += 1
    return seeded
