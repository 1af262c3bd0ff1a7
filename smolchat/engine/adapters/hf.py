"""Adapter for Hugging Face `transformers` causal language models."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Sequence

from ..errors import DecodeError, LoadError, TokenizeError
from .base import BaseAdapter, InferenceContext

if TYPE_CHECKING:
    import torch

logger = logging.getLogger(__name__)


class TransformersAdapter(BaseAdapter):
    """
    Adapter for any `AutoModelForCausalLM` checkpoint.

    All model calls operate on a caller-owned `InferenceContext`; the adapter
    itself only holds the immutable model + tokenizer.

    Thread Safety:
        This adapter is NOT thread-safe. Do not drive generation concurrently
        from multiple threads on the same adapter instance. The generation
        worker serializes access.

    Example:
        >>> adapter = TransformersAdapter()
        >>> adapter.load("google/gemma-3-1b-it", context_capacity=2048, thread_count=4)
        >>> ctx = adapter.new_context()
        >>> ids = adapter.tokenize("Hello!")
        >>> adapter.prefill(ctx, ids)
        >>> ctx.logits.shape
        torch.Size([262144])
    """

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    def __init__(self) -> None:
        self._model = None
        self._tokenizer = None
        self._model_path: str | None = None
        self._device: str = "cpu"
        self._dtype = None
        self._context_capacity: int = 2048
        self._thread_count: int | None = None
        self._forward_params: frozenset[str] = frozenset()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def model(self):
        """Access the underlying model (for advanced use cases)."""
        return self._model

    @property
    def tokenizer(self):
        """Access the tokenizer."""
        return self._tokenizer

    @property
    def device(self) -> str:
        """Device the model is loaded on."""
        return self._device

    @property
    def context_capacity(self) -> int:
        return self._context_capacity

    @property
    def eos_token_id(self) -> int | None:
        """EOS token ID, or None if tokenizer not loaded."""
        if self._tokenizer is None:
            return None
        return self._tokenizer.eos_token_id

    @property
    def vocab_size(self) -> int:
        self._ensure_loaded()
        config_size = getattr(getattr(self._model, "config", None), "vocab_size", None)
        if config_size:
            return int(config_size)
        return len(self._tokenizer)

    @property
    def model_info(self) -> dict[str, Any]:
        """Return model metadata."""
        return {
            "model_path": self._model_path,
            "model_family": "transformers",
            "device": self._device,
            "dtype": str(self._dtype),
            "context_capacity": self._context_capacity,
            "thread_count": self._thread_count,
            "loaded": self._model is not None,
        }

    # -------------------------------------------------------------------------
    # Loading / Unloading
    # -------------------------------------------------------------------------

    def load(self, model_path: str, **kwargs) -> None:
        """Load a causal LM and its tokenizer.

        Args:
            model_path: Path to the model (local or HF hub).
            context_capacity: Max tokens held by the inference context (default: 2048).
            thread_count: CPU threads for torch (default: leave unchanged).
            device: "cpu", "cuda", "mps" or "auto" (default: "cpu").
            dtype: Torch dtype or name (default: float32).
            trust_remote_code: Passed to from_pretrained (default: False).
            **kwargs: Additional kwargs passed to AutoModelForCausalLM.from_pretrained().

        Raises:
            LoadError: If the weights or tokenizer cannot be loaded.
        """
        from transformers import AutoModelForCausalLM, AutoTokenizer

        from ...runtime import configure_threads, dtype_from_string, resolve_device

        context_capacity = int(kwargs.pop("context_capacity", 2048))
        thread_count = kwargs.pop("thread_count", None)
        device = resolve_device(kwargs.pop("device", "cpu"))
        dtype = dtype_from_string(kwargs.pop("dtype", "float32"))
        trust_remote_code = kwargs.pop("trust_remote_code", False)

        self._thread_count = configure_threads(thread_count)

        logger.info("Loading model from %s (device=%s, dtype=%s)", model_path, device, dtype)
        try:
            tokenizer = AutoTokenizer.from_pretrained(
                model_path,
                trust_remote_code=trust_remote_code,
            )
            model = AutoModelForCausalLM.from_pretrained(
                model_path,
                torch_dtype=dtype,
                trust_remote_code=trust_remote_code,
                **kwargs,
            )
        except (OSError, ValueError) as exc:
            raise LoadError(model_path, str(exc)) from exc

        model.to(device)
        model.eval()

        self._model_path = model_path
        self._dtype = dtype
        self.bind(model, tokenizer, context_capacity=context_capacity, device=device)
        logger.info("Model loaded (context_capacity=%d, threads=%s)", context_capacity, self._thread_count)

    def bind(self, model: Any, tokenizer: Any, *, context_capacity: int, device: str = "cpu") -> None:
        """Attach an already-constructed model and tokenizer."""
        if context_capacity <= 1:
            raise ValueError(f"context_capacity must be > 1, got {context_capacity}")
        self._model = model
        self._tokenizer = tokenizer
        self._device = device
        self._context_capacity = int(context_capacity)
        if self._dtype is None:
            self._dtype = getattr(model, "dtype", None)

        try:
            params = inspect.signature(model.forward).parameters
        except (TypeError, ValueError):
            params = {}
        self._forward_params = frozenset(
            name for name, p in params.items() if p.kind is not inspect.Parameter.VAR_KEYWORD
        )

    def unload(self) -> None:
        """Unload the model and free memory."""
        import gc
        import torch

        del self._model
        del self._tokenizer
        self._model = None
        self._tokenizer = None
        self._forward_params = frozenset()

        gc.collect()
        if torch.cuda.is_available():
            torch.cuda.empty_cache()

    # -------------------------------------------------------------------------
    # Tokenization
    # -------------------------------------------------------------------------

    def tokenize(self, text: str) -> list[int]:
        self._ensure_loaded()
        try:
            encoded = self._tokenizer(
                text,
                add_special_tokens=True,
                split_special_tokens=True,
            )
        except Exception as exc:
            raise TokenizeError(f"Tokenization failed: {exc}") from exc

        ids = encoded["input_ids"]
        if ids and isinstance(ids[0], list):
            ids = ids[0]
        token_ids = [int(t) for t in ids]
        if not token_ids:
            raise TokenizeError("Tokenizer produced no tokens.")
        return token_ids

    def detokenize(self, token_ids: Sequence[int]) -> str:
        self._ensure_loaded()
        if not token_ids:
            return ""
        return self._tokenizer.decode(
            list(token_ids),
            skip_special_tokens=True,
            clean_up_tokenization_spaces=False,
        )

    # -------------------------------------------------------------------------
    # Context / Forward
    # -------------------------------------------------------------------------

    def new_context(self) -> InferenceContext:
        return InferenceContext(capacity=self._context_capacity)

    def prefill(self, context: InferenceContext, token_ids: Sequence[int]) -> None:
        import torch

        self._ensure_loaded()
        n = len(token_ids)
        if n == 0:
            raise DecodeError("Cannot prefill an empty token sequence.")
        if context.position != 0:
            raise DecodeError(f"Prefill requires a cleared context (position={context.position}).")
        if n >= context.capacity:
            raise DecodeError(f"Prompt of {n} tokens does not fit context capacity {context.capacity}.")

        input_ids = torch.tensor([list(token_ids)], dtype=torch.long, device=self._model_device())
        self._forward(context, input_ids, start_pos=0)

    def decode(self, context: InferenceContext, token_id: int) -> None:
        import torch

        self._ensure_loaded()
        if context.position >= context.capacity:
            raise DecodeError(f"Context full at position {context.position} (capacity={context.capacity}).")
        input_ids = torch.tensor([[int(token_id)]], dtype=torch.long, device=self._model_device())
        self._forward(context, input_ids, start_pos=context.position)

    def _forward(self, context: InferenceContext, input_ids: torch.Tensor, *, start_pos: int) -> None:
        """One forward pass writing positions start_pos..start_pos+len-1 into the context cache."""
        import torch

        seq_len = input_ids.shape[1]
        positions = torch.arange(start_pos, start_pos + seq_len, device=input_ids.device)

        kwargs: dict[str, Any] = {
            "past_key_values": context.past_key_values,
            "use_cache": True,
        }
        if "cache_position" in self._forward_params:
            kwargs["cache_position"] = positions
        if "position_ids" in self._forward_params:
            kwargs["position_ids"] = positions.unsqueeze(0)
        # Only the final position needs logits.
        if "logits_to_keep" in self._forward_params:
            kwargs["logits_to_keep"] = 1
        elif "num_logits_to_keep" in self._forward_params:
            kwargs["num_logits_to_keep"] = 1

        try:
            with torch.no_grad():
                outputs = self._model(input_ids, **kwargs)
        except Exception as exc:
            raise DecodeError(f"Forward pass failed at position {start_pos}: {exc}") from exc

        context.past_key_values = outputs.past_key_values
        context.logits = outputs.logits[0, -1, :].detach()
        context.position = start_pos + seq_len

    # -------------------------------------------------------------------------
    # Internal: Validation
    # -------------------------------------------------------------------------

    def _ensure_loaded(self) -> None:
        """Raise if model/tokenizer not loaded."""
        if self._model is None or self._tokenizer is None:
            raise RuntimeError("Model not loaded. Call load() first.")

    def _model_device(self):
        device = getattr(self._model, "device", None)
        if device is not None:
            return device
        return self._device
