"""
StreamingMarkerFilter - strips ``[[ ## field ## ]]`` markers from a live
token stream, including markers split across any number of chunks.
"""

from __future__ import annotations

import re

from structiq.repair.markers import MARKER_RE

# Every proper prefix of a marker. A complete marker never reaches this
# check because it is removed first.
_PREFIX_RE = re.compile(
    r"\[(?:\[\s*(?:#(?:#\s*(?:\w+\s*(?:#(?:#\s*\]?)?)?)?)?)?)?"
)


def _drop_markers(text: str) -> str:
    while True:
        cleaned = MARKER_RE.sub("", text)
        if cleaned == text:
            return cleaned
        text = cleaned


def _marker_prefix_start(text: str) -> int:
    """Index of the earliest ``[`` whose tail could still grow into a marker."""
    for match in re.finditer(r"\[", text):
        if _PREFIX_RE.fullmatch(text, match.start()):
            return match.start()
    return len(text)


class StreamingMarkerFilter:
    """Per-stream filter; create one per stream and discard it at the end.

    ``process()`` returns the displayable part of each chunk and withholds
    any tail that could still become a marker. ``flush()`` returns what is
    still withheld, verbatim: an incomplete trailing marker is ordinary
    content, not an error.
    """

    def __init__(self) -> None:
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def process(self, chunk: str) -> str:
        text = _drop_markers(self._pending + chunk)
        cut = _marker_prefix_start(text)
        self._pending = text[cut:]
        return text[:cut]

    def flush(self) -> str:
        residue, self._pending = self._pending, ""
        return residue
