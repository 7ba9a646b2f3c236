"""
StreamingBuffer - accumulates raw streamed text for the final parse.

A stream cut short (stop sequence, token limit, dropped connection)
often ends inside a marker or a JSON object. ``finalize()`` repairs the
common cases so the adapter still sees well-formed headers.
"""

from __future__ import annotations

import re
from typing import List, Optional

_TRAILING_OPEN_MARKER_RE = re.compile(r"\[\[\s*##\s*(\w+)\s*##\s*$")
_SINGLE_BRACKET_MARKER_RE = re.compile(r"\[\[\s*##\s*(\w+)\s*##\s*\](?!\])")
_LINE_OPEN_MARKER_RE = re.compile(r"^(\s*)\[\[\s*##\s*(\w+)\s*##\s*$")
_TAIL_MARKER_RE = re.compile(r"\[\[\s*##\s*(\w+)(?:\s*##?\s*\]?)?\s*$")


class StreamingBuffer:
    """Raw text of one stream."""

    def __init__(self) -> None:
        self._parts: List[str] = []

    def write(self, chunk: str) -> None:
        self._parts.append(chunk)

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def __len__(self) -> int:
        return sum(len(p) for p in self._parts)

    def finalize(self) -> str:
        """Text with incomplete markers closed and dangling ``,``/``{`` trimmed."""
        content = self._repair_incomplete_markers(self.text)
        return self._clean_trailing_artifacts(content)

    def detect_incomplete_marker(self) -> Optional[str]:
        """Field name of a marker left open at the end of the stream, if any."""
        match = _TAIL_MARKER_RE.search(self.text[-100:])
        return match.group(1) if match else None

    @staticmethod
    def _repair_incomplete_markers(content: str) -> str:
        content = _SINGLE_BRACKET_MARKER_RE.sub(r"[[ ## \1 ## ]]", content)
        lines = [
            _LINE_OPEN_MARKER_RE.sub(r"\1[[ ## \2 ## ]]", line) for line in content.split("\n")
        ]
        content = "\n".join(lines)
        if _TRAILING_OPEN_MARKER_RE.search(content):
            content = _TRAILING_OPEN_MARKER_RE.sub(r"[[ ## \1 ## ]]", content)
        return content

    @staticmethod
    def _clean_trailing_artifacts(content: str) -> str:
        content = content.rstrip()
        if content.endswith(","):
            content = content[:-1]
        if content.endswith("{"):
            content = content[:-1]
        return content
