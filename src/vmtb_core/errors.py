# src/vmtb_core/errors.py
"""
Exception types raised by the vMTB redaction core.

Validity checks never raise; these are reserved for genuine failures
(unreadable rasters, unrenderable PDFs, unknown file ids).
"""


class VmtbCoreError(RuntimeError):
    """Base class for all core errors."""


class RasterDecodeError(VmtbCoreError):
    """Raised when a data URL or byte payload is not a decodable image."""


class PdfRasterizationError(VmtbCoreError):
    """Raised when a PDF cannot be opened or no page could be rendered."""


class UnknownFileError(VmtbCoreError, KeyError):
    """Raised when a mutation addresses a file id not present in the session."""

    def __init__(self, file_id: str):
        super().__init__(file_id)
        self.file_id = file_id

    def __str__(self) -> str:
        return f"Unknown file id: {self.file_id}"


class SessionClosedError(VmtbCoreError):
    """Raised when a torn-down workflow session is mutated."""
