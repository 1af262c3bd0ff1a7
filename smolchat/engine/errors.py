"""Exception types raised by the generation engine.

Failures that happen before any token is committed are raised to the caller.
Failures after partial generation are reported through
``GenerationResult.stop_reason`` instead (see ``session.py``).
"""

from __future__ import annotations


class SmolchatError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class LoadError(SmolchatError):
    """Model weights or tokenizer could not be loaded."""

    def __init__(self, model_path: str, reason: str) -> None:
        super().__init__(f"Failed to load model {model_path!r}: {reason}")
        self.model_path = model_path
        self.reason = reason


class GenerationError(SmolchatError):
    """A generation request was rejected before producing any output."""


class TokenizeError(GenerationError):
    """The tokenizer failed on the prompt."""


class ContextOverflowError(GenerationError):
    """The tokenized prompt does not fit into the inference context."""

    def __init__(self, prompt_tokens: int, capacity: int) -> None:
        super().__init__(
            f"Prompt too long: {prompt_tokens} tokens (context capacity={capacity})."
        )
        self.prompt_tokens = prompt_tokens
        self.capacity = capacity


class DecodeError(GenerationError):
    """The model failed a forward pass."""
