"""Vision OCR over rendered pages"""
import logging
from typing import Dict, List, Optional, Sequence

from .config import OCR_BATCH_SIZE
from .errors import RateLimited
from .keywords import OCR_RANKING_KEYWORDS
from .llm_client import CompletionClient
from .models import OcrPageResult, OcrStatus, PageText, RenderedPage
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

MIN_OCR_CHARS = 50
BLANK_SENTINEL = "BLANK"
EMPTY_PAGE_PLACEHOLDER = "(pagina vuota o non leggibile)"

OCR_SYSTEM_PROMPT = """You are a precise OCR engine for Italian legal real-estate appraisal documents (perizie immobiliari).

Your ONLY task: transcribe ALL readable body text from the provided page image(s).

STRICT RULES:
1. Output PLAIN TEXT only: no markdown, no HTML, no JSON.
2. Keep the original paragraph and line-break structure.
3. IGNORE these elements (do not transcribe them):
   - Diagonal or repeated watermark text (e.g. "Pubblicazione ufficiale ad uso esclusivo personale")
   - "ASTE GIUDIZIARIE" logos / stamps
   - Page headers / footers that are repeated on every page
4. Do NOT summarize or paraphrase, copy the text verbatim.
5. If a page is genuinely blank or contains ONLY watermarks/logos, output exactly: BLANK"""


def page_marker(page: int) -> str:
    return f"===PAGINA {page}==="


def build_ocr_prompt(page_numbers: Sequence[int]) -> str:
    if len(page_numbers) == 1:
        return f"Trascrivi il testo della Pagina {page_numbers[0]}. Output solo testo plain."

    order = ", ".join(f"immagine {i + 1} = Pagina {p}" for i, p in enumerate(page_numbers))
    layout = "".join(f"{page_marker(p)}\n<testo pagina {p}>\n" for p in page_numbers)
    return (
        f"Trascrivi il testo di queste {len(page_numbers)} pagine del documento.\n"
        f"Ordine delle immagini: {order}.\n"
        "Usa ESATTAMENTE questo formato di separazione:\n"
        f"{layout}"
        "Output solo testo plain, nessuna spiegazione aggiuntiva."
    )


def parse_batch_response(raw_text: str, page_numbers: Sequence[int]) -> Dict[int, str]:
    """
    Split a batched answer on ===PAGINA N=== markers.

    A single-page answer without its marker is taken whole. In a multi-page
    batch a page whose marker is missing is left out of the result.
    """
    parsed: Dict[int, str] = {}

    for i, page in enumerate(page_numbers):
        marker = page_marker(page)
        idx = raw_text.find(marker)

        if idx == -1:
            if len(page_numbers) == 1:
                parsed[page] = raw_text.strip()
            continue

        content_start = idx + len(marker)
        content_end = len(raw_text)
        if i + 1 < len(page_numbers):
            next_idx = raw_text.find(page_marker(page_numbers[i + 1]), content_start)
            if next_idx != -1:
                content_end = next_idx

        parsed[page] = raw_text[content_start:content_end].strip()

    return parsed


def interpret_ocr_text(page: int, raw: str) -> OcrPageResult:
    """Turn one page's transcription into a result, spotting the blank sentinel"""
    text = raw.strip()
    if not text or text.lower().startswith(BLANK_SENTINEL.lower()):
        return OcrPageResult(page=page, text="", chars=0, status=OcrStatus.EMPTY,
                             note=raw or "(model returned BLANK)")

    status = OcrStatus.OK if len(text) >= MIN_OCR_CHARS else OcrStatus.EMPTY
    return OcrPageResult(page=page, text=text, chars=len(text), status=status)


class VisionOcr:
    """Transcribes rendered pages through a vision-capable completion client"""

    def __init__(self, client: CompletionClient, retry_policy: Optional[RetryPolicy] = None,
                 batch_size: int = OCR_BATCH_SIZE):
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.batch_size = batch_size

    def transcribe(self, pages: Sequence[RenderedPage]) -> List[OcrPageResult]:
        """
        OCR every non-blank page, two pages per call

        Args:
            pages: Output of PageRenderer.render

        Returns:
            One OcrPageResult per input page, sorted by page number. Failures
            are reported through the status, never raised.
        """
        results: List[OcrPageResult] = []
        to_process: List[RenderedPage] = []

        for page in pages:
            if page.is_blank:
                results.append(OcrPageResult(
                    page=page.page_number, text="", chars=0, status=OcrStatus.SKIPPED_BLANK,
                    note=f"whiteness={page.whiteness:.3f}, bytes={page.byte_size}",
                ))
            elif not page.image_bytes:
                results.append(OcrPageResult(
                    page=page.page_number, text="", chars=0, status=OcrStatus.FAILED,
                    note=page.error or "render produced no image",
                ))
            else:
                to_process.append(page)

        for i in range(0, len(to_process), self.batch_size):
            results.extend(self._transcribe_batch(to_process[i:i + self.batch_size]))

        results.sort(key=lambda r: r.page)
        counts: Dict[str, int] = {}
        for result in results:
            counts[result.status.value] = counts.get(result.status.value, 0) + 1
        logger.info("OCR finished on %d page(s): %s", len(results), counts)
        return results

    def _transcribe_batch(self, batch: List[RenderedPage]) -> List[OcrPageResult]:
        page_numbers = [p.page_number for p in batch]
        try:
            raw = self.retry_policy.call(
                self.client.complete,
                OCR_SYSTEM_PROMPT,
                build_ocr_prompt(page_numbers),
                [p.image_bytes for p in batch],
            )
        except RateLimited as e:
            logger.warning("OCR pages %s rate limited after retries: %s", page_numbers, e)
            return [self._failure(n, OcrStatus.RATE_LIMITED, str(e)) for n in page_numbers]
        except Exception as e:
            logger.warning("OCR pages %s failed: %s", page_numbers, e)
            return [self._failure(n, OcrStatus.FAILED, str(e)) for n in page_numbers]

        parsed = parse_batch_response(raw.strip(), page_numbers)
        results = []
        for number in page_numbers:
            if number not in parsed:
                results.append(OcrPageResult(
                    page=number, text="", chars=0, status=OcrStatus.EMPTY,
                    note=f"[batch parse failed] {raw[:200]}",
                ))
            else:
                results.append(interpret_ocr_text(number, parsed[number]))
        return results

    @staticmethod
    def _failure(page: int, status: OcrStatus, message: str) -> OcrPageResult:
        return OcrPageResult(page=page, text="", chars=0, status=status, note=message)


def ocr_avg_chars(results: Sequence[OcrPageResult]) -> float:
    """Average characters over pages with status ok"""
    ok = [r for r in results if r.status == OcrStatus.OK]
    if not ok:
        return 0.0
    return sum(r.chars for r in ok) / len(ok)


def ocr_pages_to_text(results: Sequence[OcrPageResult]) -> List[PageText]:
    """Usable OCR pages, in page order, for the field extractors"""
    return [PageText(page=r.page, text=r.text)
            for r in sorted(results, key=lambda r: r.page)
            if r.status == OcrStatus.OK]


def keyword_score(text: str) -> int:
    lower = text.lower()
    return sum(1 for terms in OCR_RANKING_KEYWORDS.values() for term in terms if term in lower)


def rank_pages_by_keywords(results: Sequence[OcrPageResult]) -> List[OcrPageResult]:
    """Most relevant pages first; ties keep their original order"""
    return sorted(results, key=lambda r: -keyword_score(r.text))


def _payload_block(result: OcrPageResult) -> str:
    body = result.text.strip() or EMPTY_PAGE_PLACEHOLDER
    return f"{page_marker(result.page)}\n{body}"


def build_ocr_payload(results: Sequence[OcrPageResult], max_chars: Optional[int] = None) -> str:
    """
    Join pages (OCR results or PageText) under ===PAGINA N=== headers, in page order.

    With ``max_chars`` the least relevant pages are dropped until the payload
    fits; the most relevant page is cut if it alone exceeds the budget.
    """
    ordered = sorted(results, key=lambda r: r.page)
    if max_chars is None:
        return "\n\n".join(_payload_block(r) for r in ordered)

    kept = set()
    used = 0
    for result in rank_pages_by_keywords(ordered):
        block_len = len(_payload_block(result)) + (2 if kept else 0)
        if used + block_len <= max_chars:
            kept.add(result.page)
            used += block_len

    if not kept and ordered:
        best = rank_pages_by_keywords(ordered)[0]
        return _payload_block(best)[:max_chars]

    return "\n\n".join(_payload_block(r) for r in ordered if r.page in kept)
