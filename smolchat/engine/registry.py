"""Adapter lookup by model family.

Family names are case-insensitive; "hf" and "transformers" both select the
Hugging Face adapter.
"""

from __future__ import annotations

from .adapters.base import BaseAdapter
from .adapters.hf import TransformersAdapter

_ADAPTER_REGISTRY: dict[str, type[BaseAdapter]] = {
    "hf": TransformersAdapter,
    "transformers": TransformersAdapter,
}


def _family_key(model_family: str) -> str:
    if not isinstance(model_family, str) or not model_family.strip():
        raise ValueError(f"Model family must be a non-empty string, got {model_family!r}.")
    return model_family.strip().lower()


def get_adapter_class(model_family: str) -> type[BaseAdapter]:
    """Return the adapter class registered for `model_family`.

    Raises:
        ValueError: If the family is unknown.
    """
    key = _family_key(model_family)
    try:
        return _ADAPTER_REGISTRY[key]
    except KeyError:
        available = ", ".join(sorted(_ADAPTER_REGISTRY))
        raise ValueError(f"Unknown model family: {model_family!r}. Available: {available}") from None


def get_adapter(model_family: str) -> BaseAdapter:
    """Instantiate an unloaded adapter for `model_family`."""
    return get_adapter_class(model_family)()


def register_adapter(model_family: str, adapter_cls: type[BaseAdapter]) -> None:
    """Register (or replace) the adapter used for `model_family`."""
    if not (isinstance(adapter_cls, type) and issubclass(adapter_cls, BaseAdapter)):
        raise TypeError(f"Adapter for {model_family!r} must subclass BaseAdapter.")
    _ADAPTER_REGISTRY[_family_key(model_family)] = adapter_cls


def list_model_families() -> list[str]:
    return sorted(_ADAPTER_REGISTRY)
