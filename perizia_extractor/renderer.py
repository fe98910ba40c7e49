"""Page rasterization, blank-page detection and the request workspace"""
import logging
import os
import shutil
from typing import List, Optional, Sequence

import fitz  # PyMuPDF
import numpy as np

from .config import RENDER_JPEG_QUALITY, RENDER_MAX_PAGES, RENDER_SCALE, TEMP_ROOT
from .errors import RenderFailure
from .models import RenderedPage

logger = logging.getLogger(__name__)

WHITENESS_STRIDE = 50
BLANK_WHITENESS = 0.97
BLANK_MAX_BYTES = 8000


def workspace_dir(doc_id: str, root: Optional[str] = None) -> str:
    return os.path.join(root or TEMP_ROOT, f"perizia-{doc_id}")


def page_image_path(doc_id: str, page_number: int, root: Optional[str] = None,
                    extension: str = "jpg") -> str:
    """Where a rendered page is (or will be) stored"""
    return os.path.join(workspace_dir(doc_id, root), f"page-{page_number}.{extension}")


def cleanup_workspace(doc_id: str, root: Optional[str] = None) -> None:
    shutil.rmtree(workspace_dir(doc_id, root), ignore_errors=True)


class RenderWorkspace:
    """
    Temporary directory holding one document's rendered pages.

    Used as a context manager; the directory is removed on exit. With
    ``keep=True`` it survives a successful exit so the images can be
    served for debugging, and the caller owns its removal.
    """

    def __init__(self, doc_id: str, root: Optional[str] = None, keep: bool = False):
        self.doc_id = doc_id
        self.root = root or TEMP_ROOT
        self.keep = keep
        self.path = workspace_dir(doc_id, self.root)

    def __enter__(self) -> "RenderWorkspace":
        os.makedirs(self.path, exist_ok=True)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None or not self.keep:
            self.cleanup()

    def page_path(self, page_number: int) -> str:
        return page_image_path(self.doc_id, page_number, self.root)

    def cleanup(self) -> None:
        cleanup_workspace(self.doc_id, self.root)
        logger.debug("Removed workspace %s", self.path)


class RenderBatch:
    """Rendered pages plus the document's page count"""
    def __init__(self, pages: List[RenderedPage], total_pages: int, pages_requested: List[int]):
        self.pages = pages
        self.total_pages = total_pages
        self.pages_requested = pages_requested

    @property
    def blank_pages(self) -> List[int]:
        return [p.page_number for p in self.pages if p.is_blank]


def select_default_pages(total: int, max_pages: int) -> List[int]:
    """
    First (max_pages - 2) pages plus the last 2.

    select_default_pages(26, 10) -> [1, 2, 3, 4, 5, 6, 7, 8, 25, 26]
    """
    if total <= max_pages:
        return list(range(1, total + 1))
    last_count = min(2, max_pages)
    first_count = max_pages - last_count
    pages = list(range(1, first_count + 1))
    pages.extend(range(max(first_count + 1, total - last_count + 1), total + 1))
    return sorted(set(pages))


def is_blank_page(whiteness: float, byte_size: int) -> bool:
    """Blank when almost white, or when the encoded image is suspiciously small.

    An unknown whiteness (-1) alone never makes a page blank.
    """
    return (whiteness >= 0 and whiteness > BLANK_WHITENESS) or byte_size < BLANK_MAX_BYTES


def compute_whiteness(samples: bytes, channels: int, stride: int = WHITENESS_STRIDE) -> float:
    """Mean brightness in [0, 1] of every ``stride``-th pixel, or -1 if unreadable"""
    try:
        pixels = np.frombuffer(samples, dtype=np.uint8).reshape(-1, channels)
        sampled = pixels[::stride, :3].astype(np.float64)
        if sampled.size == 0:
            return 1.0
        return float(sampled.mean(axis=1).mean() / 255.0)
    except ValueError:
        return -1.0


class PageRenderer:
    """Rasterizes PDF pages to JPEG with PyMuPDF"""

    def __init__(self, scale: float = RENDER_SCALE, jpeg_quality: int = RENDER_JPEG_QUALITY,
                 max_pages: int = RENDER_MAX_PAGES):
        self.scale = scale
        self.jpeg_quality = jpeg_quality
        self.max_pages = max_pages

    def render(self, pdf_bytes: bytes, workspace: RenderWorkspace,
               page_list: Optional[Sequence[int]] = None) -> RenderBatch:
        """
        Render a subset of pages into the workspace

        Args:
            pdf_bytes: PDF file as bytes
            workspace: Open RenderWorkspace receiving page-<n>.jpg files
            page_list: Explicit 1-based pages; defaults to select_default_pages

        Returns:
            RenderBatch. A page that fails to render is a blank placeholder
            carrying the error.

        Raises:
            RenderFailure: the document itself cannot be opened
        """
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as e:
            raise RenderFailure(f"impossibile aprire il PDF: {e}") from e

        try:
            total = len(doc)
            if page_list is not None:
                requested = sorted({p for p in page_list if 1 <= p <= total})
            else:
                requested = select_default_pages(total, self.max_pages)

            pages = []
            for page_number in requested:
                disk_path = workspace.page_path(page_number)
                try:
                    pages.append(self._render_page(doc, page_number, disk_path))
                except RenderFailure as e:
                    logger.warning("Render failed: %s", e)
                    pages.append(RenderedPage(
                        page_number=page_number,
                        image_bytes=b"",
                        width=0,
                        height=0,
                        whiteness=-1.0,
                        is_blank=True,
                        disk_path=disk_path,
                        error=e.message,
                    ))
        finally:
            doc.close()

        batch = RenderBatch(pages, total, requested)
        logger.info("Rendered %d/%d page(s), %d blank", len(pages), total, len(batch.blank_pages))
        return batch

    def _render_page(self, doc, page_number: int, disk_path: str) -> RenderedPage:
        try:
            pix = doc[page_number - 1].get_pixmap(matrix=fitz.Matrix(self.scale, self.scale),
                                                  alpha=False)
            whiteness = compute_whiteness(pix.samples, pix.n)
            jpeg = pix.tobytes("jpg", jpg_quality=self.jpeg_quality)
            with open(disk_path, "wb") as f:
                f.write(jpeg)
        except Exception as e:
            raise RenderFailure(str(e), page=page_number) from e

        return RenderedPage(
            page_number=page_number,
            image_bytes=jpeg,
            width=pix.width,
            height=pix.height,
            whiteness=whiteness,
            is_blank=is_blank_page(whiteness, len(jpeg)),
            disk_path=disk_path,
        )
