"""Keyword-anchored section finder"""
import logging
import re
from typing import List, Sequence

from .config import MAX_CANDIDATES
from .keywords import FIELD_KEYWORDS, normalize_apostrophes
from .models import PageText, SectionCandidate

logger = logging.getLogger(__name__)

WINDOW_SIZE = 1500
HALF_WINDOW = WINDOW_SIZE // 2

_OUTLINE_PREFIX = re.compile(r"^\d+[.)]\s*\d*\.?\s*")
_SECTION_WORD = re.compile(r"^(capitolo|sezione|art\.?\s|paragrafo|punto)", re.IGNORECASE)
_BOLD_MARKUP = re.compile(r"^[*_]{2}.+[*_]{2}$")


def is_title_like(line: str) -> bool:
    """Heading heuristic: all caps, outline numbering, section words or bold markup."""
    trimmed = line.strip()
    if len(trimmed) > 120 or len(trimmed) < 3:
        return False
    if trimmed == trimmed.upper() and len(trimmed) > 3:
        return True
    if _OUTLINE_PREFIX.match(trimmed):
        return True
    if _SECTION_WORD.match(trimmed):
        return True
    if _BOLD_MARKUP.match(trimmed):
        return True
    return False


def _fold(text: str) -> str:
    """Lower-case without shifting offsets"""
    lowered = text.lower()
    if len(lowered) != len(text):
        lowered = "".join(ch if len(ch.lower()) != 1 else ch.lower() for ch in text)
    return normalize_apostrophes(lowered)


def _hit_line(text: str, idx: int, keyword_len: int) -> str:
    line_start = max(0, text.rfind("\n", 0, idx))
    line_end = text.find("\n", idx + keyword_len)
    if line_end == -1:
        line_end = min(len(text), idx + keyword_len + 80)
    return text[line_start:line_end]


def find_section_candidates(pages: Sequence[PageText],
                            field_type: str,
                            max_candidates: int = MAX_CANDIDATES) -> List[SectionCandidate]:
    """
    Find text windows around keyword hits for one field.

    Every occurrence of every field keyword opens a window of 750 characters
    on each side. Windows are scored by how many field keywords they contain,
    with a bonus when the hit sits on a heading line and another when three
    or more keywords co-occur. A window starting within 750 characters of an
    earlier window on the same page is dropped.

    Args:
        pages: Document pages in order
        field_type: One of keywords.FIELD_TYPES
        max_candidates: Number of best windows to return

    Returns:
        Candidates sorted by score, best first
    """
    keywords = FIELD_KEYWORDS[field_type]
    candidates: List[SectionCandidate] = []

    for page in pages:
        text = page.text
        text_lower = _fold(text)

        for keyword in keywords:
            search_from = 0
            while True:
                idx = text_lower.find(keyword, search_from)
                if idx == -1:
                    break
                search_from = idx + 1

                start = max(0, idx - HALF_WINDOW)
                end = min(len(text), idx + len(keyword) + HALF_WINDOW)

                if any(c.page == page.page and abs(c.start_offset - start) < HALF_WINDOW
                       for c in candidates):
                    continue

                window = text[start:end]
                window_lower = text_lower[start:end]
                matched = tuple(kw for kw in keywords if kw in window_lower)
                is_title = is_title_like(_hit_line(text, idx, len(keyword)))

                score = len(matched)
                if is_title:
                    score += 3
                if len(matched) >= 3:
                    score += 2

                candidates.append(SectionCandidate(
                    text=window,
                    page=page.page,
                    start_offset=start,
                    end_offset=end,
                    matched_keywords=matched,
                    is_title=is_title,
                    score=score,
                ))

    # sorted() is stable, so equal scores keep discovery order
    candidates = sorted(candidates, key=lambda c: -c.score)
    logger.debug("%s: %d section candidate(s)", field_type, len(candidates))
    return candidates[:max_candidates]


def count_keyword_hits(pages: Sequence[PageText], field_type: str) -> int:
    """Total keyword occurrences for a field, used in debug output"""
    total = 0
    for page in pages:
        text_lower = _fold(page.text)
        for keyword in FIELD_KEYWORDS[field_type]:
            total += text_lower.count(keyword)
    return total
