"""Line and paragraph reconstruction from positioned words"""
import re
from typing import List, Optional, Sequence, Tuple

_EXTRA_NEWLINES = re.compile(r"\n{3,}")


class WordBox:
    """A word with its bounding box (x0, y0, x1, y1), top-left origin"""
    def __init__(self, text: str, bbox: Tuple[float, float, float, float]):
        self.text = text
        self.bbox = bbox

    @property
    def height(self) -> float:
        return self.bbox[3] - self.bbox[1]

    def __repr__(self):
        return f"WordBox(text='{self.text[:30]}', bbox={self.bbox})"


def words_from_fitz(raw_words: Sequence[tuple]) -> List[WordBox]:
    """Convert PyMuPDF ``page.get_text("words")`` tuples to WordBox objects"""
    words = []
    for item in raw_words:
        text = str(item[4]).strip()
        if text:
            words.append(WordBox(text, (item[0], item[1], item[2], item[3])))
    return words


def group_lines(words: List[WordBox], y_tolerance: float = 2.0) -> List[List[WordBox]]:
    """
    Group words sharing a baseline into lines

    Args:
        words: Words of one page
        y_tolerance: Maximum baseline difference for words on the same line

    Returns:
        Lines top to bottom, each sorted left to right
    """
    if not words:
        return []

    sorted_words = sorted(words, key=lambda w: (w.bbox[3], w.bbox[0]))

    lines = []
    current = [sorted_words[0]]
    baseline = sorted_words[0].bbox[3]

    for word in sorted_words[1:]:
        if abs(word.bbox[3] - baseline) <= y_tolerance:
            current.append(word)
            continue
        lines.append(sorted(current, key=lambda w: w.bbox[0]))
        current = [word]
        baseline = word.bbox[3]

    lines.append(sorted(current, key=lambda w: w.bbox[0]))
    return lines


def _line_box(line: List[WordBox]) -> Tuple[float, float]:
    return min(w.bbox[1] for w in line), max(w.bbox[3] for w in line)


def render_lines(lines: List[List[WordBox]], paragraph_gap: float = 1.0) -> str:
    """
    Join lines into page text.

    A blank line separates two lines whose vertical gap exceeds
    ``paragraph_gap`` times the previous line's height.
    """
    parts: List[str] = []
    previous: Optional[Tuple[float, float]] = None

    for line in lines:
        top, bottom = _line_box(line)
        if previous is not None:
            prev_top, prev_bottom = previous
            height = max(prev_bottom - prev_top, 1.0)
            parts.append("\n\n" if top - prev_bottom > height * paragraph_gap else "\n")
        parts.append(" ".join(w.text for w in line))
        previous = (top, bottom)

    return collapse_newlines("".join(parts))


def collapse_newlines(text: str) -> str:
    return _EXTRA_NEWLINES.sub("\n\n", text).strip()
