"""Incremental byte-to-line decoding for streamed response bodies."""

from __future__ import annotations

import codecs


class LineDecoder:
    """Split a byte stream into text lines across arbitrary chunk boundaries.

    Decoding is stateful, so a multi-byte UTF-8 sequence split between two
    chunks is reassembled rather than replaced.  The buffer only ever holds
    the pieces of the current partial line, and each decoded piece is
    scanned for ``\\n`` once.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._parts: list[str] = []

    def feed(self, chunk: bytes) -> list[str]:
        """Consume *chunk* and return the lines it completed."""
        text = self._decoder.decode(chunk)
        if "\n" not in text:
            if text:
                self._parts.append(text)
            return []
        lines = text.split("\n")
        lines[0] = "".join(self._parts) + lines[0]
        tail = lines.pop()
        self._parts = [tail] if tail else []
        return [_strip_cr(line) for line in lines]

    def flush(self) -> list[str]:
        """Return the unterminated tail line, if any, and reset."""
        self._parts.append(self._decoder.decode(b"", final=True))
        tail = "".join(self._parts)
        self._parts = []
        lines = tail.split("\n")
        if lines[-1] == "":
            lines.pop()
        return [_strip_cr(line) for line in lines]

    @property
    def pending(self) -> str:
        return "".join(self._parts)


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line
