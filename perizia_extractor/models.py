"""Data model shared across the pipeline"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import AllEnginesFailed, QualityRejected


class FieldStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"


class OcrStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    SKIPPED_BLANK = "skipped_blank"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass(frozen=True)
class PageText:
    """Text of a single page (1-based)"""
    page: int
    text: str


@dataclass(frozen=True)
class ParsedDocument:
    """Pages in document order plus the document's real page count"""
    pages: Tuple[PageText, ...]
    total_pages: int

    @property
    def text(self) -> str:
        return "\n\n".join(p.text for p in self.pages)


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of the text extraction chain"""
    document: ParsedDocument
    engine: str
    errors: Tuple[str, ...] = ()

    @property
    def text(self) -> str:
        return self.document.text

    @property
    def page_count(self) -> int:
        return self.document.total_pages

    @property
    def failed(self) -> bool:
        return self.engine == "failed"

    @property
    def error(self) -> Optional[str]:
        return " | ".join(self.errors) if self.errors else None

    def raise_for_failure(self) -> None:
        if self.failed:
            raise AllEnginesFailed(list(self.errors))


@dataclass(frozen=True)
class TextQualityMetrics:
    length: int
    avg_chars_per_page: float
    watermark_hits: int
    repetition_score: float
    unique_token_ratio: float


@dataclass(frozen=True)
class TextQualityResult:
    usable: bool
    reason: str
    human_reason: str
    metrics: TextQualityMetrics

    def to_error(self, preview: str = ""):
        return QualityRejected(self.reason, self.human_reason, asdict(self.metrics), preview)


@dataclass(frozen=True)
class SectionCandidate:
    """A keyword-anchored text window on one page"""
    text: str
    page: int
    start_offset: int
    end_offset: int
    matched_keywords: Tuple[str, ...]
    is_title: bool
    score: int


@dataclass(frozen=True)
class Citation:
    page: int
    snippet: str
    start_offset: Optional[int] = None
    end_offset: Optional[int] = None


@dataclass(frozen=True)
class ExtractedAmount:
    raw: str
    value: float
    start_index: int


@dataclass(frozen=True)
class ExtractedDate:
    raw: str
    normalized: str
    start_index: int


@dataclass(frozen=True)
class RenderedPage:
    """A rasterized page. whiteness == -1 means it could not be computed."""
    page_number: int
    image_bytes: bytes
    width: int
    height: int
    whiteness: float
    is_blank: bool
    disk_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def byte_size(self) -> int:
        return len(self.image_bytes)


@dataclass(frozen=True)
class OcrPageResult:
    page: int
    text: str
    chars: int
    status: OcrStatus
    note: Optional[str] = None

    @property
    def preview(self) -> str:
        return self.text[:300]


# Field payloads. Keys stay in Italian, the vocabulary of the documents.

@dataclass(frozen=True)
class AntecedentAct:
    tipo_atto: str
    data: Optional[str]
    descrizione: str


@dataclass(frozen=True)
class LegalCost:
    descrizione: str
    importo: Optional[float]
    ultimi_due_anni: bool


@dataclass(frozen=True)
class Irregularity:
    categoria: str
    descrizione: str
    gravita: str
    impatto: str
    costo_stimato: Optional[float]
    stima_presente: bool


@dataclass(frozen=True)
class ExpertValue:
    valore: Optional[float]
    tipo: str
    valore_min: Optional[float]
    valore_max: Optional[float]
    data_contesto: Optional[str]
    importi: Tuple[float, ...] = ()


@dataclass(frozen=True)
class Candidate:
    """A scored field value. value is None for the not-found sentinel."""
    value: Any
    confidence: float
    reason: str
    citations: Tuple[Citation, ...] = ()

    @property
    def found(self) -> bool:
        return self.value is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": asdict(self.value) if self.value is not None else None,
            "confidence": self.confidence,
            "reason": self.reason,
            "citations": [{"page": c.page, "snippet": c.snippet} for c in self.citations],
        }


@dataclass(frozen=True)
class FieldResult:
    field: str
    status: FieldStatus
    confidence: float
    citations: Tuple[Citation, ...]
    candidates: Tuple[Candidate, ...]
    summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "confidence": self.confidence,
            "summary": self.summary,
            "citations": [{"page": c.page, "snippet": c.snippet} for c in self.citations],
            "candidates": [c.to_dict() for c in self.candidates],
        }


@dataclass(frozen=True)
class DebugInfo:
    page_chars: Dict[int, int] = field(default_factory=dict)
    keyword_hits: Dict[str, int] = field(default_factory=dict)
    rendered_pages: Tuple[int, ...] = ()
    blank_pages: Tuple[int, ...] = ()
    ocr_statuses: Dict[int, str] = field(default_factory=dict)
    engine_errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisResult:
    doc_id: str
    analysis_mode: str
    engine: str
    total_pages: int
    pages_analyzed: int
    quality: TextQualityResult
    fields: Dict[str, FieldResult]
    debug: DebugInfo
    pages: Tuple[PageText, ...] = ()  # analyzed text, kept out of to_dict

    def to_dict(self) -> Dict[str, Any]:
        return {
            "doc_id": self.doc_id,
            "analysis_mode": self.analysis_mode,
            "engine": self.engine,
            "total_pages": self.total_pages,
            "pages_analyzed": self.pages_analyzed,
            "quality": {
                "usable": self.quality.usable,
                "reason": self.quality.reason,
                "human_reason": self.quality.human_reason,
                "metrics": asdict(self.quality.metrics),
            },
            "fields": {name: result.to_dict() for name, result in self.fields.items()},
            "debug": asdict(self.debug),
        }


def field_items(result: FieldResult) -> List[Any]:
    """Payload records of a field result, skipping the not-found sentinel"""
    return [c.value for c in result.candidates if c.found]
