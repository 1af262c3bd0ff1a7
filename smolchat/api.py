"""Public entry points: load a model, generate text, extract structured results."""

from __future__ import annotations

import logging
from typing import Any

from .engine.config import EngineConfig, SamplerConfig
from .engine.errors import LoadError, SmolchatError
from .engine.handle import ModelHandle
from .engine.registry import get_adapter
from .engine.types import GenerationResult
from .extract.persona import extract_persona
from .extract.structured import extract_structured

logger = logging.getLogger(__name__)

__all__ = ["load_model", "generate", "extract_persona", "extract_structured"]


def load_model(
    path: str,
    context_capacity: int | None = None,
    thread_count: int | None = None,
    *,
    family: str = "hf",
    config: EngineConfig | dict[str, Any] | None = None,
    sampler: SamplerConfig | dict[str, Any] | None = None,
    **kwargs: Any,
) -> ModelHandle:
    """Load a model and return a started handle.

    Args:
        path: Local checkpoint directory or HF Hub id.
        context_capacity: Max tokens in the inference context (default 2048).
        thread_count: CPU threads for inference (default 4).
        family: Adapter family registered in the engine registry.
        config: EngineConfig or override dict applied on top of the defaults.
        sampler: Sampler override applied on top of `config.sampler`.
        **kwargs: Passed through to the adapter's `load()`.

    Raises:
        LoadError: If the model cannot be loaded.
        ValueError: If the configuration is invalid.
    """
    base = EngineConfig()
    cfg = base.merged(config) if config is not None else base
    override: dict[str, Any] = {}
    if context_capacity is not None:
        override["context_capacity"] = context_capacity
    if thread_count is not None:
        override["thread_count"] = thread_count
    if sampler is not None:
        override["sampler"] = sampler
    cfg = cfg.merged(override) if override else cfg
    cfg.validate()

    adapter = get_adapter(family)
    kwargs.setdefault("device", cfg.device)
    kwargs.setdefault("dtype", cfg.dtype)
    try:
        adapter.load(
            path,
            context_capacity=cfg.context_capacity,
            thread_count=cfg.thread_count,
            **kwargs,
        )
    except LoadError:
        raise
    except SmolchatError as exc:
        raise LoadError(path, exc.message) from exc
    except (OSError, RuntimeError, ValueError) as exc:
        raise LoadError(path, str(exc)) from exc

    logger.info("Model ready: %s (family=%s)", path, family)
    return ModelHandle(adapter, config=cfg)


def generate(handle: ModelHandle, prompt: str, max_tokens: int = 512) -> GenerationResult:
    """Run one generation on `handle`, waiting for any in-flight request first.

    Raises:
        TokenizeError, ContextOverflowError, DecodeError: Before any token is
            generated. Failures after that are reported via `stop_reason`.
    """
    return handle.generate(prompt, max_tokens)
