"""Base adapter interface for model families."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

if TYPE_CHECKING:
    import torch


@dataclass
class InferenceContext:
    """Mutable per-generation state: KV cache, next write position, last logits.

    Exactly one context is live per model. It must be cleared before every new
    generation so no cache state leaks across requests.
    """

    capacity: int
    past_key_values: Any = None
    position: int = 0
    logits: torch.Tensor | None = None

    def clear(self) -> None:
        self.past_key_values = None
        self.position = 0
        self.logits = None

    @property
    def remaining(self) -> int:
        return max(self.capacity - self.position, 0)


class BaseAdapter(ABC):
    """
    Abstract base class for model-family adapters.

    Each supported model family implements this interface so the generation
    session can drive tokenize / prefill / decode without knowing
    model-specific details.
    """

    @abstractmethod
    def load(self, model_path: str, **kwargs) -> None:
        """
        Load model and tokenizer from the given path or HF repo.

        Args:
            model_path: Local path or HF Hub model identifier.
            **kwargs: Loading options (context_capacity, thread_count, dtype, device, ...).
        """

    @abstractmethod
    def new_context(self) -> InferenceContext:
        """Create an empty inference context sized to the configured capacity."""

    @abstractmethod
    def tokenize(self, text: str) -> list[int]:
        """
        Convert text to token ids.

        BOS/special markers are added; special-token substrings inside `text`
        are treated as literal text, never as control tokens.

        Raises:
            TokenizeError: If the tokenizer fails.
        """

    @abstractmethod
    def prefill(self, context: InferenceContext, token_ids: Sequence[int]) -> None:
        """
        Run the whole prompt as one batch at positions 0..n-1.

        Only the last position's logits are kept, in `context.logits`.

        Raises:
            DecodeError: On engine-level failure.
        """

    @abstractmethod
    def decode(self, context: InferenceContext, token_id: int) -> None:
        """
        Run a single-token step at `context.position` and advance it by one.

        Raises:
            DecodeError: On engine-level failure or when the context is full.
        """

    @abstractmethod
    def detokenize(self, token_ids: Sequence[int]) -> str:
        """Convert ids back to text; special tokens render as empty text."""

    @property
    @abstractmethod
    def eos_token_id(self) -> int | None:
        """End-of-sequence token id, or None if the vocabulary has none."""

    @property
    @abstractmethod
    def vocab_size(self) -> int:
        """Number of valid token ids."""

    @property
    @abstractmethod
    def model_info(self) -> dict[str, Any]:
        """
        Return metadata about the loaded model.

        Returns:
            Dict with keys like 'model_path', 'dtype', 'context_capacity', etc.
        """

    def unload(self) -> None:
        """
        Unload the model and free resources.

        Default implementation does nothing; override if cleanup is needed.
        """
