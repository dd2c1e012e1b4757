# src/vmtb_core/config.py
"""
Configuration for the redaction engine and the case workflow.

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(frozen=True)
class RedactionConfig:
    """Settings for canvas rendering, erase hit-testing and PDF rasterization."""
    # PDF rasterization
    pdf_scale: float = 2.0
    max_pdf_pages: int = 50

    # Brush / outline
    default_brush_radius: int = 16
    brush_sizes: Dict[str, int] = field(
        default_factory=lambda: {"small": 8, "medium": 16, "large": 24}
    )
    default_thickness: int = 2

    # Erase intersection threshold = brush radius * factor
    erase_threshold_factor: float = 1.5

    # Editing overlay opacity (0..1)
    preview_fill_alpha: float = 0.7
    preview_stroke_alpha: float = 0.9

    # Raster export
    export_format: str = "PNG"

    def brush_radius(self, size_name: str) -> int:
        """Resolve a named brush size ("small", "medium", "large")."""
        try:
            return self.brush_sizes[size_name]
        except KeyError:
            raise ValueError(f"Unknown brush size: {size_name}") from None


@dataclass(frozen=True)
class WorkflowConfig:
    """Settings for the case creation/edit wizard."""
    log_level: str = "INFO"
    max_file_name_length: int = 100
    allowed_mime_types: Tuple[str, ...] = (
        "image/png",
        "image/jpeg",
        "application/pdf",
        "text/plain",
    )

    def is_allowed(self, mime_type: str) -> bool:
        return mime_type in self.allowed_mime_types


DEFAULT_REDACTION_CONFIG = RedactionConfig()
DEFAULT_WORKFLOW_CONFIG = WorkflowConfig()
