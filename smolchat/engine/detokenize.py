"""Incremental token -> text conversion.

Decoding tokens one at a time breaks multi-byte characters and loses the
leading-space handling of sentencepiece/BPE vocabularies. Instead we decode a
short window of ids and emit only the new suffix. A piece whose text ends in
the Unicode replacement character is an incomplete UTF-8 sequence: it is held
back (empty piece) until the following token completes it.
"""

from __future__ import annotations

from typing import Callable, Sequence

_INCOMPLETE = "\ufffd"


class IncrementalDetokenizer:
    def __init__(self, decode: Callable[[Sequence[int]], str]) -> None:
        self._decode = decode
        self._ids: list[int] = []
        self._prefix_offset = 0
        self._read_offset = 0

    def reset(self) -> None:
        self._ids.clear()
        self._prefix_offset = 0
        self._read_offset = 0

    def push(self, token_id: int) -> str:
        """Add one token and return its text piece (possibly empty)."""
        self._ids.append(int(token_id))
        prefix_text = self._decode(self._ids[self._prefix_offset : self._read_offset])
        new_text = self._decode(self._ids[self._prefix_offset :])
        if len(new_text) > len(prefix_text) and not new_text.endswith(_INCOMPLETE):
            piece = new_text[len(prefix_text) :]
            self._prefix_offset = self._read_offset
            self._read_offset = len(self._ids)
            return piece
        return ""

    def flush(self) -> str:
        """Return any text still held back (e.g. a dangling partial character)."""
        if self._read_offset >= len(self._ids):
            return ""
        prefix_text = self._decode(self._ids[self._prefix_offset : self._read_offset])
        new_text = self._decode(self._ids[self._prefix_offset :])
        self._prefix_offset = self._read_offset = len(self._ids)
        return new_text[len(prefix_text) :]
