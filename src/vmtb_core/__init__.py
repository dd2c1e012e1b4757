# src/vmtb_core/__init__.py
"""
vMTB Core - document redaction and case verification logic.

This package contains pure Python logic with ZERO Streamlit dependencies.
All modules here accept/return plain Python objects, PIL images and data URLs.

Architecture:
- geometry.py: Hit-test primitives and display → raster mapping
- shapes.py: Redaction shape model and whole-shape erase
- render.py: Preview composite and burn-in
- raster.py: Image / data URL codecs
- pdf_rasterizer.py: PDF → page rasters (PyMuPDF)
- canvas.py: Interactive redaction canvas (tools, pointer input, undo, commit)
- document.py: Multi-page redaction bound to a workflow session
- verification.py: Per-file visited / dirty state machine
- session.py: CaseWorkflowSession (upload, edit mode, validity gate)
- validation.py: Wizard step validation and proceed gates
- digitization.py: Placeholder extracted data
- canvas_bridge.py: drawable-canvas JSON → pointer replay

HARD RULE: Import of `streamlit` is FORBIDDEN in this package.
"""

# Errors / config
from .errors import (
    VmtbCoreError,
    RasterDecodeError,
    PdfRasterizationError,
    UnknownFileError,
    SessionClosedError,
)
from .config import (
    RedactionConfig,
    WorkflowConfig,
    DEFAULT_REDACTION_CONFIG,
    DEFAULT_WORKFLOW_CONFIG,
)

# Model types
from .model import (
    DocumentKind,
    PatientData,
    Stage,
    UploadedFile,
    ValidationResult,
)

# Shapes and rendering
from .shapes import (
    Point,
    ShapeType,
    RectangleShape,
    EllipseShape,
    FreehandShape,
    EraseStroke,
    RedactionShape,
    apply_erase,
    shape_hit_by,
)
from .render import burn_in, draw_shape, render_preview

# Raster codecs
from .raster import (
    data_url_to_image,
    image_to_data_url,
)
from .pdf_rasterizer import RasterizedPdf, rasterize_pdf, rasterize_pdf_async

# Canvas
from .canvas import CommitResult, RedactionCanvas, Tool, Viewport, NOTHING_TO_REDACT
from .canvas_bridge import CanvasBridge, drawing_mode_for
from .document import DocumentRedactor, PageLoadGuard, LoadToken

# Workflow
from .verification import SessionMode, StageState, needs_review, stage_state
from .session import CaseWorkflowSession
from .validation import (
    GateDecision,
    proceed_to_digitization,
    proceed_to_submit,
    validate_all,
    validate_anonymization,
    validate_digitization,
    validate_documents_uploaded,
    validate_metadata,
    validate_submission,
)
from .digitization import FILE_CATEGORIES, generate_mock_extracted_data

__all__ = [
    # Errors / config
    'VmtbCoreError',
    'RasterDecodeError',
    'PdfRasterizationError',
    'UnknownFileError',
    'SessionClosedError',
    'RedactionConfig',
    'WorkflowConfig',
    'DEFAULT_REDACTION_CONFIG',
    'DEFAULT_WORKFLOW_CONFIG',

    # Model
    'DocumentKind',
    'PatientData',
    'Stage',
    'UploadedFile',
    'ValidationResult',

    # Shapes / rendering
    'Point',
    'ShapeType',
    'RectangleShape',
    'EllipseShape',
    'FreehandShape',
    'EraseStroke',
    'RedactionShape',
    'apply_erase',
    'shape_hit_by',
    'burn_in',
    'draw_shape',
    'render_preview',

    # Rasters
    'data_url_to_image',
    'image_to_data_url',
    'RasterizedPdf',
    'rasterize_pdf',
    'rasterize_pdf_async',

    # Canvas
    'CommitResult',
    'RedactionCanvas',
    'Tool',
    'Viewport',
    'NOTHING_TO_REDACT',
    'CanvasBridge',
    'drawing_mode_for',
    'DocumentRedactor',
    'PageLoadGuard',
    'LoadToken',

    # Workflow
    'SessionMode',
    'StageState',
    'stage_state',
    'needs_review',
    'CaseWorkflowSession',
    'GateDecision',
    'proceed_to_digitization',
    'proceed_to_submit',
    'validate_all',
    'validate_anonymization',
    'validate_digitization',
    'validate_documents_uploaded',
    'validate_metadata',
    'validate_submission',
    'FILE_CATEGORIES',
    'generate_mock_extracted_data',
]
