"""Runtime environment checks and torch settings for smolchat."""

from __future__ import annotations

import functools
import logging
from typing import Any

import torch

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=1)
def is_cuda_available() -> bool:
    """Check if CUDA is available."""
    return torch.cuda.is_available()


@functools.lru_cache(maxsize=1)
def is_mps_available() -> bool:
    """Check if the Apple Metal backend is available."""
    backend = getattr(torch.backends, "mps", None)
    return bool(backend is not None and backend.is_available())


def resolve_device(device: str | None) -> str:
    """Map a requested device to one that exists on this machine.

    "auto" picks cuda, then mps, then cpu. An unavailable cuda/mps request
    falls back to cpu with a warning.
    """
    requested = (device or "cpu").strip().lower()
    if requested == "auto":
        if is_cuda_available():
            return "cuda"
        if is_mps_available():
            return "mps"
        return "cpu"
    if requested.startswith("cuda") and not is_cuda_available():
        logger.warning("CUDA requested but not available; using cpu.")
        return "cpu"
    if requested == "mps" and not is_mps_available():
        logger.warning("MPS requested but not available; using cpu.")
        return "cpu"
    return requested


def dtype_from_string(dtype: Any) -> Any:
    """Parse a dtype name (fp16/bf16/fp32); torch dtypes pass through."""
    if isinstance(dtype, torch.dtype):
        return dtype
    dt = str(dtype).strip().lower()
    if dt in {"fp16", "float16", "half"}:
        return torch.float16
    if dt in {"bf16", "bfloat16"}:
        return torch.bfloat16
    if dt in {"fp32", "float32", "float"}:
        return torch.float32
    raise ValueError(f"Unknown dtype: {dtype!r}")


def configure_threads(thread_count: int | None) -> int:
    """Set the intra-op CPU thread count used by torch; returns the effective value."""
    if thread_count is None:
        return torch.get_num_threads()
    thread_count = int(thread_count)
    if thread_count <= 0:
        raise ValueError(f"thread_count must be > 0, got {thread_count}")
    if torch.get_num_threads() != thread_count:
        torch.set_num_threads(thread_count)
    return torch.get_num_threads()
