# src/vmtb_core/document.py
"""
Document-level redaction.

Binds a RedactionCanvas to the file/page currently shown in the
anonymization step and writes commits back through the workflow session.

Page Index Rule:
    The page a commit belongs to is captured when the commit starts.
    Navigating afterwards never redirects a result to another page.

Async Page Loads:
    Rasterizing a PDF can outlive the view that requested it. Every load
    takes a LoadToken from a PageLoadGuard; a completion whose token no
    longer matches the active view is dropped.

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .canvas import CommitResult, RedactionCanvas
from .config import DEFAULT_REDACTION_CONFIG, RedactionConfig
from .errors import PdfRasterizationError, UnknownFileError
from .model import UploadedFile
from .pdf_rasterizer import PageRenderer, RasterizedPdf, rasterize_pdf, rasterize_pdf_async
from .raster import data_url_to_bytes, data_url_to_image
from .session import CaseWorkflowSession

logger = logging.getLogger(__name__)

NOT_ANONYMIZABLE = "not_anonymizable"


# ═══════════════════════════════════════════════════════════════════════════════
# FRESHNESS GUARD
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LoadToken:
    file_id: str
    generation: int


class PageLoadGuard:
    """
    Freshness token for asynchronous page loads.

    begin() issues a token for the active view; any later begin() or
    invalidate() makes older tokens stale.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._file_id: Optional[str] = None

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self, file_id: str) -> LoadToken:
        self._generation += 1
        self._file_id = file_id
        return LoadToken(file_id, self._generation)

    def invalidate(self, file_id: Optional[str] = None) -> None:
        """The active view changed."""
        self._generation += 1
        self._file_id = file_id

    def is_current(self, token: LoadToken) -> bool:
        return token.generation == self._generation and token.file_id == self._file_id

    def apply(self, token: LoadToken, fn: Callable[[], None]) -> bool:
        """Run `fn` only if `token` is still current. Returns whether it ran."""
        if not self.is_current(token):
            logger.debug(
                "Dropping stale load for %s (generation %d, active %d)",
                token.file_id, token.generation, self._generation,
            )
            return False
        fn()
        return True


# ═══════════════════════════════════════════════════════════════════════════════
# DOCUMENT REDACTOR
# ═══════════════════════════════════════════════════════════════════════════════

class DocumentRedactor:
    """
    Redaction view over one file of the session at a time.

    Args:
        session: Workflow session that owns the files
        file_id: File to open
        config: Redaction settings
        guard: Shared freshness guard (a new one by default)
    """

    def __init__(
        self,
        session: CaseWorkflowSession,
        file_id: str,
        config: RedactionConfig = DEFAULT_REDACTION_CONFIG,
        guard: Optional[PageLoadGuard] = None,
    ):
        self.session = session
        self.config = config
        self.guard = guard or PageLoadGuard()
        self.file_id = file_id
        self.page_index = 0
        self.canvas: Optional[RedactionCanvas] = None
        self.go_to_file(file_id)

    @property
    def file(self) -> UploadedFile:
        f = self.session.get_file(self.file_id)
        if f is None:
            raise UnknownFileError(self.file_id)
        return f

    @property
    def page_count(self) -> int:
        return self.file.page_count

    @property
    def needs_pdf_load(self) -> bool:
        f = self.file
        return f.is_pdf and f.is_pdf_renderable and not f.pdf_pages

    def _open_canvas(self) -> None:
        f = self.file
        url = f.display_raster(self.page_index) if f.is_anonymizable else None
        if url is None:
            self.canvas = None
            return
        self.canvas = RedactionCanvas(data_url_to_image(url), self.config)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def go_to_file(self, file_id: str) -> None:
        """Show another file. Pending loads for the previous view become stale."""
        if self.session.get_file(file_id) is None:
            raise UnknownFileError(file_id)
        self.file_id = file_id
        self.page_index = 0
        self.guard.invalidate(file_id)
        self._open_canvas()

    def go_to_page(self, index: int) -> None:
        """Show another page of the current file; uncommitted shapes are discarded."""
        if not 0 <= index < self.page_count:
            raise IndexError(f"Page {index} out of range (0..{self.page_count - 1})")
        self.page_index = index
        self._open_canvas()

    # ------------------------------------------------------------------
    # PDF loading
    # ------------------------------------------------------------------

    def _pdf_source(self) -> bytes:
        return data_url_to_bytes(self.file.data_url)

    def _apply_pages(self, file_id: str, result: RasterizedPdf) -> None:
        self.session.update_pdf_pages(file_id, result.pages)
        self.page_index = 0
        self._open_canvas()

    def _mark_unrenderable(self, file_id: str) -> None:
        if self.session.get_file(file_id) is not None:
            self.session.set_pdf_renderable(file_id, False)

    def load_pdf_pages(self, renderer: Optional[PageRenderer] = None) -> RasterizedPdf:
        """
        Rasterize the current PDF and store its pages on the file.

        Raises:
            PdfRasterizationError: the file is marked non-renderable first
        """
        file_id = self.file_id
        token = self.guard.begin(file_id)
        try:
            result = rasterize_pdf(
                self._pdf_source(),
                scale=self.config.pdf_scale,
                max_pages=self.config.max_pdf_pages,
                renderer=renderer,
            )
        except PdfRasterizationError:
            self._mark_unrenderable(file_id)
            raise
        self.guard.apply(token, lambda: self._apply_pages(file_id, result))
        return result

    async def load_pdf_pages_async(
        self, renderer: Optional[PageRenderer] = None,
    ) -> Optional[RasterizedPdf]:
        """
        Awaitable load_pdf_pages().

        Returns None when the view changed before the load finished; the
        result is then discarded.
        """
        file_id = self.file_id
        token = self.guard.begin(file_id)
        source = self._pdf_source()
        try:
            result = await rasterize_pdf_async(
                source,
                scale=self.config.pdf_scale,
                max_pages=self.config.max_pdf_pages,
                renderer=renderer,
            )
        except PdfRasterizationError:
            if not self.guard.is_current(token):
                logger.debug("Dropping stale PDF failure for %s", file_id)
                return None
            self._mark_unrenderable(file_id)
            raise
        if not self.guard.apply(token, lambda: self._apply_pages(file_id, result)):
            return None
        return result

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def anonymize(self) -> CommitResult:
        """Burn the canvas shapes in and store the result on the file/page."""
        if self.canvas is None:
            return CommitResult(committed=False, reason=NOT_ANONYMIZABLE)

        file_id = self.file_id
        page_index = self.page_index
        is_pdf = self.file.is_pdf

        result = self.canvas.commit()
        if not result.committed:
            return result

        if is_pdf:
            self.session.set_anonymized_page(file_id, page_index, result.data_url)
        else:
            self.session.update_anonymized_image(file_id, result.data_url)
        if self.session.is_edit_mode:
            self.session.mark_file_as_edited(file_id)

        logger.info("Anonymized %s page %d", file_id, page_index + 1)
        return result
