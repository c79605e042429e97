"""Keep model-supplied highlight spans inside the analyzed message.

Models often quote the right phrase but miscount its offsets, or send no
usable offsets at all. A span whose offsets do not select its quoted text is
moved to the first occurrence of that text. A span that can be neither trusted
nor relocated is dropped, so every highlight returned satisfies
``0 <= start < end <= len(original)``.
"""
import logging
import re
from typing import List, Optional, Tuple

from greyrock.schemas import Highlight

logger = logging.getLogger(__name__)


def _in_bounds(original: str, start: Optional[int], end: Optional[int]) -> bool:
    if start is None or end is None:
        return False
    return 0 <= start < end <= len(original)


def _locate(original: str, phrase: str) -> Optional[Tuple[int, int]]:
    # Offsets always come from `original` itself; lower() can change lengths
    if not phrase:
        return None
    index = original.find(phrase)
    if index != -1:
        return index, index + len(phrase)
    match = re.search(re.escape(phrase), original, re.IGNORECASE)
    if match:
        return match.start(), match.end()
    return None


def normalize_highlights(original: str, highlights: List[Highlight]) -> List[Highlight]:
    normalized = []
    for highlight in highlights:
        if _in_bounds(original, highlight.start, highlight.end) \
                and original[highlight.start:highlight.end] == highlight.text:
            normalized.append(highlight)
            continue

        span = _locate(original, highlight.text)
        if span is not None and _in_bounds(original, *span):
            start, end = span
            normalized.append(highlight.model_copy(update={
                "start": start,
                "end": end,
                "text": original[start:end],
            }))
        elif _in_bounds(original, highlight.start, highlight.end):
            normalized.append(highlight.model_copy(update={
                "text": original[highlight.start:highlight.end],
            }))
        else:
            logger.debug("Dropping highlight outside message: %r (%s-%s)",
                         highlight.text, highlight.start, highlight.end)

    return sorted(normalized, key=lambda h: (h.start, h.end))
