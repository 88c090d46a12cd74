"""Reassembly of complete lines from appended byte chunks."""

from __future__ import annotations

_TERMINATOR = b"\n"


class LineSplitter:
    """Turn a stream of appended bytes into complete text lines.

    Bytes after the last line terminator are held back as the pending
    fragment and prepended to the next chunk, so a line written across
    several reads is emitted exactly once, and only when it is complete.
    """

    def __init__(self) -> None:
        self._pending = b""

    @property
    def pending(self) -> bytes:
        """Unterminated trailing bytes waiting for more input."""
        return self._pending

    def feed(self, new_bytes: bytes) -> list[str]:
        """Append ``new_bytes`` and return every line completed by them."""
        if not new_bytes:
            return []

        buffer = self._pending + new_bytes
        *complete, self._pending = buffer.split(_TERMINATOR)
        return [_decode(raw) for raw in complete]

    def reset(self) -> None:
        """Drop the pending fragment (file truncated or replaced)."""
        self._pending = b""


def _decode(raw: bytes) -> str:
    # CRLF logs end every segment with a carriage return
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw.decode("utf-8", errors="replace")
