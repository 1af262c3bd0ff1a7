"""Engine request and response types.

These types are used internally by the engine and adapters.
They are independent of any HTTP/API layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StopReason(str, Enum):
    """Why a decode loop ended."""

    END_OF_SEQUENCE = "end_of_sequence"
    MAX_TOKENS = "max_tokens"
    INVALID_TOKEN = "invalid_token"
    DECODE_FAILURE = "decode_failure"


@dataclass(frozen=True)
class GenerationRequest:
    """Request for text generation."""

    prompt: str
    max_tokens: int = 512

    def validate(self) -> None:
        if not isinstance(self.prompt, str):
            raise ValueError("'prompt' must be a string.")
        if isinstance(self.max_tokens, bool) or not isinstance(self.max_tokens, int):
            raise ValueError("'max_tokens' must be an integer.")
        if self.max_tokens <= 0:
            raise ValueError(f"'max_tokens' must be > 0, got {self.max_tokens}.")


@dataclass(frozen=True)
class Timing:
    prefill_s: float | None = None
    decode_s: float | None = None
    total_s: float | None = None
    tok_per_s: float | None = None


@dataclass(frozen=True)
class GenerationResult:
    """Response from text generation.

    ``text`` always holds everything produced before the loop stopped, including
    for ``INVALID_TOKEN`` and ``DECODE_FAILURE``.
    """

    text: str
    tokens_emitted: int
    stop_reason: StopReason
    prompt_tokens: int = 0
    timing: Timing = field(default_factory=Timing)

    @property
    def partial(self) -> bool:
        return self.stop_reason in (StopReason.INVALID_TOKEN, StopReason.DECODE_FAILURE)


@dataclass
class ModelInfo:
    """Information about a loaded model."""

    model_path: str
    model_family: str
    dtype: str
    device: str
    context_capacity: int
    thread_count: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)
