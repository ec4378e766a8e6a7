"""Position mapping between text anchors and remote line numbers.

Local comments point into a document with character offsets plus the literal
text they were attached to (the anchor). Pull-request review comments point
at 1-based line numbers in the file. The functions here convert in both
directions. They are pure: no I/O, no shared state.
"""

from __future__ import annotations

from typing import NamedTuple


class LinePosition(NamedTuple):
    """A remote line address. ``start_line`` is set only for multi-line ranges."""

    line: int
    start_line: int | None = None


class AnchorSpan(NamedTuple):
    anchor_start: int
    anchor_end: int
    anchor_text: str


def char_offset_to_line_number(text: str, offset: int) -> int:
    """Convert a character offset to a 1-based line number (clamped to the text)."""
    clamped = max(0, min(offset, len(text)))
    return text.count("\n", 0, clamped) + 1


def line_number_to_char_offset(text: str, line_number: int) -> int:
    """Return the offset of the first character of a 1-based line (clamped)."""
    lines = text.split("\n")
    offset = 0
    for i in range(min(line_number - 1, len(lines))):
        offset += len(lines[i]) + 1  # +1 for the \n
    return min(offset, len(text))


def find_occurrences(text: str, needle: str) -> list[int]:
    """Return the start offset of every (possibly overlapping) occurrence of needle."""
    if not needle:
        return []
    occurrences = []
    start = text.find(needle)
    while start != -1:
        occurrences.append(start)
        start = text.find(needle, start + 1)
    return occurrences


def resolve_line_from_anchor(
    document_text: str | None,
    anchor_text: str,
    approx_offset: int | None = None,
) -> LinePosition | None:
    """Find the remote line for a text anchor.

    The anchor is matched as a contiguous substring, so multi-line anchors
    work as-is. When it occurs more than once the occurrence nearest to
    ``approx_offset`` wins. When it does not occur at all (or is blank) the
    line is computed from ``approx_offset`` directly, without a start line.

    For a multi-line match ``line`` is the last line of the range and
    ``start_line`` the first, the way the remote host addresses ranges.

    Returns None only when there is no document text to look in.
    """
    if document_text is None:
        return None

    occurrences = find_occurrences(document_text, anchor_text) if anchor_text.strip() else []
    if not occurrences:
        return LinePosition(line=char_offset_to_line_number(document_text, approx_offset or 0))

    best = occurrences[0]
    if approx_offset is not None and len(occurrences) > 1:
        best = min(occurrences, key=lambda occ: abs(occ - approx_offset))

    start_line = char_offset_to_line_number(document_text, best)
    end_line = char_offset_to_line_number(document_text, best + len(anchor_text) - 1)
    if end_line == start_line:
        return LinePosition(line=start_line)
    return LinePosition(line=end_line, start_line=start_line)


def resolve_anchor_from_line(
    document_text: str | None,
    line_number: int | None,
    diff_context: str | None = None,
) -> AnchorSpan:
    """Build a text anchor for a remote comment that only carries a line number.

    The trimmed text of the target line becomes the anchor. If that line is
    ambiguous (blank, or its text appears more than once in the document)
    and a diff excerpt is available, the last non-empty line of the excerpt
    is preferred. Without a line (file-level comment) or without document
    text, the excerpt alone supplies the anchor text at offset 0.
    """
    context_line = _last_diff_line(diff_context)

    if document_text is None or not line_number or line_number < 1:
        return AnchorSpan(0, 0, context_line)

    lines = document_text.split("\n")
    line_idx = min(line_number - 1, len(lines) - 1)
    raw = lines[line_idx]
    anchor_text = raw.strip()
    line_start = line_number_to_char_offset(document_text, line_idx + 1)
    anchor_start = line_start + (len(raw) - len(raw.lstrip()))

    ambiguous = not anchor_text or len(find_occurrences(document_text, anchor_text)) > 1
    if ambiguous and context_line and context_line != anchor_text:
        occurrences = find_occurrences(document_text, context_line)
        if occurrences:
            nearest = min(occurrences, key=lambda occ: abs(occ - line_start))
            return AnchorSpan(nearest, nearest + len(context_line), context_line)
        return AnchorSpan(anchor_start, anchor_start + len(context_line), context_line)

    return AnchorSpan(anchor_start, anchor_start + len(anchor_text), anchor_text)


def _last_diff_line(diff_context: str | None) -> str:
    """Last non-empty new-file line of a diff excerpt, with the diff marker stripped."""
    if not diff_context:
        return ""
    for line in reversed(diff_context.splitlines()):
        if line.startswith("@@") or line.startswith("-"):
            continue  # hunk header / removed line: not in the new file
        if line[:1] in ("+", " "):
            line = line[1:]
        if line.strip():
            return line.strip()
    return ""
