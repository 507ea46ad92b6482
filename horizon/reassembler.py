"""
Message reassembly for streamed responses.

Turns the frames of one exchange into a single display string. Two inbound
shapes are supported:

- structured updates carrying the whole current text plus a completion flag,
  which replace the accumulator, and
- raw text chunks, which are appended.

Everything here is synchronous and side-effect free: each function maps
(previous accumulator, frame) to a new accumulator.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .types import StreamAccumulator


# Tokenizers sometimes emit a space before closing punctuation
_TRAILING_SPACE_BEFORE_PUNCT = re.compile(r"\s+([,'`\"])$")


@dataclass(frozen=True)
class StreamUpdate:
    """Result of applying one frame."""
    accumulator: StreamAccumulator
    # Finished response text, set only when the exchange just completed
    completed: Optional[str] = None


def clean_trailing_punctuation(text: str) -> str:
    """Drop whitespace immediately before a trailing , ' ` or \"."""
    return _TRAILING_SPACE_BEFORE_PUNCT.sub(r"\1", text)


def apply_structured(acc: StreamAccumulator, content: str, is_complete: bool) -> StreamUpdate:
    if is_complete:
        return StreamUpdate(accumulator=StreamAccumulator(), completed=content)
    return StreamUpdate(accumulator=StreamAccumulator(current_text=content, is_active=True))


def apply_chunk(acc: StreamAccumulator, chunk: str) -> StreamUpdate:
    if not acc.is_active:
        return StreamUpdate(accumulator=StreamAccumulator(current_text=chunk, is_active=True))
    text = clean_trailing_punctuation(acc.current_text + chunk)
    return StreamUpdate(accumulator=StreamAccumulator(current_text=text, is_active=True))


class MessageReassembler:
    """Holds the accumulator of the exchange in flight."""

    def __init__(self):
        self.accumulator = StreamAccumulator()

    @property
    def current_text(self) -> str:
        return self.accumulator.current_text

    @property
    def is_active(self) -> bool:
        return self.accumulator.is_active

    def begin_exchange(self) -> None:
        self.accumulator = StreamAccumulator()

    def structured(self, content: str, is_complete: bool) -> Optional[str]:
        """Apply a structured update; returns the finished text on completion."""
        update = apply_structured(self.accumulator, content, is_complete)
        self.accumulator = update.accumulator
        return update.completed

    def chunk(self, text: str) -> None:
        self.accumulator = apply_chunk(self.accumulator, text).accumulator
