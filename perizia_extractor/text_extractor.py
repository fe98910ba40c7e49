"""Text extraction from PDF using PyMuPDF and pdfplumber"""
import io
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import fitz  # PyMuPDF
import pdfplumber

from .config import MIN_ENGINE_CHARS
from .errors import InvalidDocument
from .layout import collapse_newlines, group_lines, render_lines, words_from_fitz
from .models import ExtractionResult, PageText, ParsedDocument

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
MAX_ERROR_CHARS = 400


class TextExtractor(ABC):
    """One text extraction strategy. Implementations hold no state."""

    name = "base"

    @abstractmethod
    def extract(self, pdf_bytes: bytes) -> ParsedDocument:
        """
        Extract per-page text from PDF bytes

        Args:
            pdf_bytes: PDF file as bytes

        Returns:
            ParsedDocument; pages without text are left out
        """


class LayoutTextExtractor(TextExtractor):
    """Rebuilds lines and paragraphs from word coordinates (PyMuPDF)"""

    name = "layout"

    def extract(self, pdf_bytes: bytes) -> ParsedDocument:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        try:
            pages = []
            for page_num in range(len(doc)):
                words = words_from_fitz(doc[page_num].get_text("words"))
                text = render_lines(group_lines(words))
                if text:
                    pages.append(PageText(page=page_num + 1, text=text))
            return ParsedDocument(pages=tuple(pages), total_pages=len(doc))
        finally:
            doc.close()


class PlumberTextExtractor(TextExtractor):
    """pdfplumber's built-in text rendering"""

    name = "pdfplumber"

    def extract(self, pdf_bytes: bytes) -> ParsedDocument:
        pages = []
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            for index, page in enumerate(pdf.pages):
                text = collapse_newlines(page.extract_text() or "")
                if text:
                    pages.append(PageText(page=index + 1, text=text))
            total = len(pdf.pages)
        return ParsedDocument(pages=tuple(pages), total_pages=total)


class DirectTextExtractor(TextExtractor):
    """Plain page-by-page text with no layout reconstruction (PyMuPDF)"""

    name = "direct"

    def extract(self, pdf_bytes: bytes) -> ParsedDocument:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        try:
            pages = []
            for page_num in range(len(doc)):
                text = collapse_newlines(doc[page_num].get_text("text"))
                if text:
                    pages.append(PageText(page=page_num + 1, text=text))
            return ParsedDocument(pages=tuple(pages), total_pages=len(doc))
        finally:
            doc.close()


def default_extractors() -> Sequence[TextExtractor]:
    """Strategies in priority order"""
    return (LayoutTextExtractor(), PlumberTextExtractor(), DirectTextExtractor())


def _text_length(document: ParsedDocument) -> int:
    return len(document.text.strip())


class TextExtractionChain:
    """Tries extraction strategies in order and keeps the best text"""

    def __init__(self, extractors: Optional[Sequence[TextExtractor]] = None,
                 min_chars: int = MIN_ENGINE_CHARS):
        self.extractors = tuple(extractors) if extractors is not None else tuple(default_extractors())
        self.min_chars = min_chars

    def extract(self, pdf_bytes: bytes) -> ExtractionResult:
        """
        Extract text, falling back through the strategies.

        The first strategy reaching ``min_chars`` wins. Below that, a later
        strategy replaces the best text so far only when it is at least as
        long, so a partial result is never dropped for an empty one. Once a
        strategy after the first has answered and some text is in hand, the
        chain stops; later strategies run only after a raise or while every
        result is still empty. The engine is reported as ``failed`` only when
        every strategy raised; an empty but successful extraction (a scan) is
        returned as is.

        Args:
            pdf_bytes: PDF file as bytes

        Returns:
            ExtractionResult with the chosen engine and the error trail

        Raises:
            InvalidDocument: the bytes do not start with a PDF header
        """
        magic = pdf_bytes[:5]
        if magic != PDF_MAGIC:
            raise InvalidDocument(f"Il file non è un PDF valido (header: {magic!r})")

        errors: List[str] = []
        best: Optional[ExtractionResult] = None

        for position, extractor in enumerate(self.extractors):
            try:
                document = extractor.extract(pdf_bytes)
            except Exception as e:
                message = f"{extractor.name} failed: {str(e)[:MAX_ERROR_CHARS]}"
                errors.append(message)
                logger.warning(message)
                continue

            length = _text_length(document)
            if best is None or length >= _text_length(best.document):
                best = ExtractionResult(document=document, engine=extractor.name)

            if length >= self.min_chars:
                break

            note = f"{extractor.name}: testo troppo corto ({length} char, {document.total_pages} pag)"
            errors.append(note)
            logger.info(note)

            if position > 0 and _text_length(best.document) > 0:
                break

        if best is None:
            logger.error("All extraction engines failed")
            return ExtractionResult(document=ParsedDocument(pages=(), total_pages=0),
                                    engine="failed", errors=tuple(errors))

        logger.info("Text extracted with %s: %d chars on %d page(s)",
                    best.engine, _text_length(best.document), best.page_count)
        return ExtractionResult(document=best.document, engine=best.engine, errors=tuple(errors))
