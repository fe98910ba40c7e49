"""Decides whether an extracted text layer is usable or needs OCR"""
import logging
from collections import Counter
from typing import Tuple

from .keywords import WATERMARK_PATTERNS
from .models import TextQualityMetrics, TextQualityResult

logger = logging.getLogger(__name__)

MIN_TOTAL_CHARS = 1200
MIN_AVG_CHARS_PER_PAGE = 200
MAX_REPETITION_SCORE = 0.20
MAX_WATERMARK_DENSITY = 0.25
WATERMARK_DENSITY_MAX_LEN = 8000
MIN_UNIQUE_TOKEN_RATIO = 0.12
UNIQUE_TOKENS_MAX_LEN = 6000


def measure(text: str, page_count: int = 1) -> TextQualityMetrics:
    """Compute the full set of quality metrics for a text layer"""
    length = len(text)
    avg_chars = length / page_count if page_count > 0 else float(length)

    lower = text.lower()
    watermark_hits = sum(lower.count(pattern) for pattern in WATERMARK_PATTERNS)

    lines = [line.strip().lower() for line in text.split("\n")]
    lines = [line for line in lines if len(line) > 15]
    repetition = 0.0
    if len(lines) > 10:
        most_common = Counter(lines).most_common(1)[0][1]
        repetition = most_common / len(lines)

    tokens = [token for token in lower.split() if len(token) > 2]
    unique_ratio = len(set(tokens)) / len(tokens) if tokens else 0.0

    return TextQualityMetrics(
        length=length,
        avg_chars_per_page=avg_chars,
        watermark_hits=watermark_hits,
        repetition_score=repetition,
        unique_token_ratio=unique_ratio,
    )


def decide(metrics: TextQualityMetrics) -> Tuple[str, str]:
    """
    Apply the rejection rules in order; the first that matches wins.

    Returns:
        (reason tag, Italian message); the tag is "ok" for usable text
    """
    if metrics.length < MIN_TOTAL_CHARS:
        return "too_short", f"Testo troppo breve ({metrics.length} car totali)"

    if metrics.avg_chars_per_page < MIN_AVG_CHARS_PER_PAGE:
        return ("low_avg_chars_per_page",
                f"Media troppo bassa ({round(metrics.avg_chars_per_page)} car/pag)")

    if metrics.repetition_score > MAX_REPETITION_SCORE:
        return ("repeated_disclaimer",
                f"Disclaimer ripetuto rilevato (score {metrics.repetition_score:.2f})")

    density = (metrics.watermark_hits * 40) / max(metrics.length, 1)
    if density > MAX_WATERMARK_DENSITY and metrics.length < WATERMARK_DENSITY_MAX_LEN:
        return ("watermark_dominated",
                f"Layer di testo dominato da watermark ({metrics.watermark_hits} occorrenze)")

    if metrics.unique_token_ratio < MIN_UNIQUE_TOKEN_RATIO and metrics.length < UNIQUE_TOKENS_MAX_LEN:
        return ("low_unique_tokens",
                f"Vocabolario troppo ripetitivo (ratio {metrics.unique_token_ratio:.2f})")

    return "ok", "Testo estraibile e utilizzabile"


def classify_text(text: str, page_count: int = 1) -> TextQualityResult:
    """
    Classify a concatenated text layer.

    Short or sparse documents are rejected on length alone, before the
    repetition and vocabulary metrics are computed.

    Args:
        text: All pages joined
        page_count: Pages in the document

    Returns:
        TextQualityResult with usable flag, reason tag and metrics
    """
    length = len(text)
    avg_chars = length / page_count if page_count > 0 else float(length)

    if length < MIN_TOTAL_CHARS or avg_chars < MIN_AVG_CHARS_PER_PAGE:
        metrics = TextQualityMetrics(length, avg_chars, 0, 0.0, 0.0)
    else:
        metrics = measure(text, page_count)

    reason, message = decide(metrics)
    logger.info("Text quality: %s (%s)", reason, message)
    return TextQualityResult(usable=reason == "ok", reason=reason,
                             human_reason=message, metrics=metrics)
