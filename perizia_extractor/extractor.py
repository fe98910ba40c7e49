"""Main extraction orchestrator"""
import logging
import math
import uuid
from collections import Counter
from typing import Dict, List, Optional, Sequence

from .config import KEEP_DEBUG_IMAGES, MAX_PDF_MB, OPENAI_API_KEY, TEMP_ROOT
from .errors import DocumentTooLarge
from .field_extractors import extract_all_fields
from .keywords import FIELD_KEYWORDS, FIELD_LABELS, FIELD_TYPES
from .llm_client import OpenAICompletionClient
from .models import AnalysisResult, DebugInfo, FieldResult, FieldStatus, PageText
from .ocr import VisionOcr, ocr_pages_to_text
from .renderer import PageRenderer, RenderWorkspace
from .section_finder import count_keyword_hits
from .text_extractor import TextExtractionChain
from .text_quality import classify_text

logger = logging.getLogger(__name__)

REPEATED_LINE_MIN_CHARS = 15
REPEATED_LINE_PAGE_SHARE = 0.6


def make_vision_ocr(api_key: Optional[str] = OPENAI_API_KEY) -> Optional[VisionOcr]:
    """Vision OCR backed by OpenAI, or None when no key is configured"""
    if not api_key:
        logger.info("No OPENAI_API_KEY, scanned documents cannot be OCR'd")
        return None
    return VisionOcr(OpenAICompletionClient(api_key=api_key))


def detect_repeated_line(pages: Sequence[PageText]) -> Optional[str]:
    """A line present on at least 60% of pages (3 pages minimum), e.g. a portal header"""
    if len(pages) < 3:
        return None
    counts: Counter = Counter()
    for page in pages:
        lines = {line.strip() for line in page.text.split("\n")}
        counts.update(line for line in lines if len(line) > REPEATED_LINE_MIN_CHARS)
    threshold = math.ceil(len(pages) * REPEATED_LINE_PAGE_SHARE)
    for line, count in counts.most_common(1):
        if count >= threshold:
            return line
    return None


def extraction_warnings(fields: Dict[str, FieldResult], pages: Sequence[PageText]) -> List[str]:
    warnings = []
    for field_type in FIELD_TYPES:
        if fields[field_type].status == FieldStatus.NOT_FOUND:
            hints = ", ".join(FIELD_KEYWORDS[field_type][:8])
            warnings.append(f"{FIELD_LABELS[field_type]}: 0 sezioni trovate. Cerca: {hints}")

    if all(r.status == FieldStatus.NOT_FOUND for r in fields.values()) and any(p.text for p in pages):
        warnings.append("TUTTE LE VOCI VUOTE: PDF potrebbe usare terminologia non coperta "
                        "dai keywords o avere problemi di encoding")

    repeated = detect_repeated_line(pages)
    if repeated:
        warnings.append(f"Riga ripetuta su quasi tutte le pagine (watermark?): {repeated[:80]}")
    return warnings


class PeriziaExtractor:
    """Main orchestrator for perizia analysis"""

    def __init__(self,
                 text_chain: Optional[TextExtractionChain] = None,
                 renderer: Optional[PageRenderer] = None,
                 vision_ocr: Optional[VisionOcr] = None,
                 use_vision: bool = True,
                 max_pdf_mb: int = MAX_PDF_MB,
                 temp_root: str = TEMP_ROOT,
                 keep_images: bool = KEEP_DEBUG_IMAGES):
        self.text_chain = text_chain or TextExtractionChain()
        self.renderer = renderer or PageRenderer()
        if vision_ocr is None and use_vision:
            vision_ocr = make_vision_ocr()
        self.vision_ocr = vision_ocr
        self.max_pdf_bytes = max_pdf_mb * 1024 * 1024
        self.temp_root = temp_root
        self.keep_images = keep_images

    def analyze(self, pdf_bytes: bytes, doc_id: Optional[str] = None,
                page_list: Optional[Sequence[int]] = None) -> AnalysisResult:
        """
        Main analysis method

        Args:
            pdf_bytes: PDF file as bytes
            doc_id: Identifier for the request workspace; generated when omitted
            page_list: Pages to render when the text layer is unusable

        Returns:
            AnalysisResult with the four field results and debug information

        Raises:
            InvalidDocument: not a PDF, or larger than the configured limit
            AllEnginesFailed: no extraction strategy could read the file
            QualityRejected: the text layer is unusable and no OCR is configured
        """
        if len(pdf_bytes) > self.max_pdf_bytes:
            raise DocumentTooLarge(len(pdf_bytes), self.max_pdf_bytes)

        doc_id = doc_id or str(uuid.uuid4())

        # 1. Text layer
        extraction = self.text_chain.extract(pdf_bytes)
        extraction.raise_for_failure()

        # 2. Quality gate
        quality = classify_text(extraction.text, max(extraction.page_count, 1))

        rendered_pages: List[int] = []
        blank_pages: List[int] = []
        ocr_statuses: Dict[int, str] = {}

        if quality.usable:
            mode = "text"
            pages = list(extraction.document.pages)
        else:
            if self.vision_ocr is None:
                raise quality.to_error(preview=extraction.text[:300])

            # 3. Render and OCR
            mode = "vision_ocr"
            logger.info("Text layer rejected (%s), falling back to vision OCR", quality.reason)
            with RenderWorkspace(doc_id, self.temp_root, keep=self.keep_images) as workspace:
                batch = self.renderer.render(pdf_bytes, workspace, page_list)
                ocr_results = self.vision_ocr.transcribe(batch.pages)
            pages = ocr_pages_to_text(ocr_results)
            rendered_pages = list(batch.pages_requested)
            blank_pages = batch.blank_pages
            ocr_statuses = {r.page: r.status.value for r in ocr_results}

        # 4. Fields
        fields = extract_all_fields(pages)

        warnings = extraction_warnings(fields, pages)
        if mode == "vision_ocr" and not pages:
            warnings.append("OCR non ha prodotto testo utilizzabile")

        debug = DebugInfo(
            page_chars={p.page: len(p.text) for p in pages},
            keyword_hits={f: count_keyword_hits(pages, f) for f in FIELD_TYPES},
            rendered_pages=tuple(rendered_pages),
            blank_pages=tuple(blank_pages),
            ocr_statuses=ocr_statuses,
            engine_errors=extraction.errors,
            warnings=tuple(warnings),
        )
        for warning in warnings:
            logger.warning(warning)

        return AnalysisResult(
            doc_id=doc_id,
            analysis_mode=mode,
            engine=extraction.engine,
            total_pages=extraction.page_count,
            pages_analyzed=len(pages),
            quality=quality,
            fields=fields,
            debug=debug,
            pages=tuple(pages),
        )
