"""Offset repair for re-loaded reports.

Reports pass through spreadsheets, editors and HTML tooling before they are
reviewed, which can shift a part's offset (line ending changes, escaped
entities, stripped invisible characters). repair_part tries, in order:

1) the part as recorded
2) the HTML-encoded word at the recorded offset
3) the word at the recorded offset once control/format characters are removed
4) a linear search for the word, forward from the offset and then backward

Parts are immutable; a repaired part is a new FailurePart.
"""

from __future__ import annotations
import html
import unicodedata
from typing import Optional

from ..errors import OffsetRepairError
from ..failures import FailurePart, located_at


def html_encode(text: str) -> str:
    """HTML-encode like .NET WebUtility.HtmlEncode (&#39; for quotes, Latin-1 as numeric entities)."""
    escaped = html.escape(text, quote=True).replace("&#x27;", "&#39;")
    return "".join(f"&#{ord(ch)};" if 0xA0 <= ord(ch) <= 0xFF else ch for ch in escaped)


def strip_invisible(text: str) -> str:
    """Remove every control, format, surrogate, private-use and unassigned character."""
    return "".join(ch for ch in text if not unicodedata.category(ch).startswith("C"))


def repair_part(problem_value: str, part: FailurePart, search_bound: Optional[int] = None) -> FailurePart:
    if part.located_in(problem_value):
        return part

    encoded = html_encode(part.word)
    if located_at(problem_value, part.offset, encoded):
        return FailurePart(encoded, part.classification, part.offset)

    if located_at(strip_invisible(problem_value), part.offset, part.word):
        end = part.offset + len(part.word) + 1
        if 0 <= part.offset and end <= len(problem_value):
            new_word = problem_value[part.offset:end]
            if strip_invisible(new_word) != part.word:
                raise OffsetRepairError(
                    f"Could not fix hidden unicode characters for part {part.word!r} in {problem_value!r}"
                )
            return FailurePart(new_word, part.classification, part.offset)

    bound = len(problem_value) if search_bound is None else search_bound
    last_start = len(problem_value) - len(part.word)

    for offset in range(max(part.offset, 0), min(last_start, part.offset + bound) + 1):
        if located_at(problem_value, offset, part.word):
            return FailurePart(part.word, part.classification, offset)

    for offset in range(min(part.offset, last_start), max(part.offset - bound, 0) - 1, -1):
        if located_at(problem_value, offset, part.word):
            return FailurePart(part.word, part.classification, offset)

    raise OffsetRepairError(
        f"Could not fix up offset {part.offset} for part {part.word!r} in {problem_value!r}"
    )
