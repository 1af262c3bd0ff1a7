"""Engine and sampler configuration.

Defaults reproduce the fixed sampling policy used for every task:
top-k 40, top-p 0.9, temperature 0.7, no repetition penalty.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class SamplerConfig:
    """Configuration for the sampler chain.

    Notes:
    - `seed=None` draws a fresh seed on every reset, so runs are not reproducible.
      Pass an explicit seed when reproducibility matters.
    - `repetition_penalty=1.0` leaves the filter out of the chain entirely.
    """

    top_k: int = 40
    top_p: float = 0.9
    min_keep: int = 1
    temperature: float = 0.7
    repetition_penalty: float = 1.0
    repetition_window: int = 64
    seed: int | None = None

    def validate(self) -> None:
        if self.top_k < 0:
            raise ValueError("'sampler.top_k' must be >= 0.")
        if not 0.0 < self.top_p <= 1.0:
            raise ValueError("'sampler.top_p' must be in (0, 1].")
        if self.min_keep < 1:
            raise ValueError("'sampler.min_keep' must be >= 1.")
        if self.temperature < 0:
            raise ValueError("'sampler.temperature' must be >= 0.")
        if self.repetition_penalty <= 0:
            raise ValueError("'sampler.repetition_penalty' must be > 0.")
        if self.repetition_window <= 0:
            raise ValueError("'sampler.repetition_window' must be > 0.")
        if self.seed is not None and self.seed < 0:
            raise ValueError("'sampler.seed' must be >= 0.")

    def merged(self, override: Any | None) -> "SamplerConfig":
        """Merge a per-call override (a dict or another SamplerConfig)."""
        if override is None:
            return self
        if isinstance(override, SamplerConfig):
            override.validate()
            return override
        if not isinstance(override, Mapping):
            raise ValueError("'sampler' must be an object.")

        unknown = set(override) - set(self.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown sampler option(s): {', '.join(sorted(unknown))}.")

        merged = SamplerConfig(
            top_k=_coerce_int(override.get("top_k", self.top_k), "sampler.top_k", min_value=0),
            top_p=_coerce_float(override.get("top_p", self.top_p), "sampler.top_p"),
            min_keep=_coerce_int(override.get("min_keep", self.min_keep), "sampler.min_keep"),
            temperature=_coerce_float(override.get("temperature", self.temperature), "sampler.temperature"),
            repetition_penalty=_coerce_float(
                override.get("repetition_penalty", self.repetition_penalty), "sampler.repetition_penalty"
            ),
            repetition_window=_coerce_int(
                override.get("repetition_window", self.repetition_window), "sampler.repetition_window"
            ),
            seed=(
                None
                if override.get("seed", self.seed) is None
                else _coerce_int(override.get("seed", self.seed), "sampler.seed", min_value=0)
            ),
        )
        merged.validate()
        return merged


@dataclass(frozen=True)
class EngineConfig:
    """Engine-wide defaults and limits."""

    context_capacity: int = 2048
    thread_count: int = 4
    default_max_tokens: int = 512
    device: str = "cpu"
    dtype: str = "float32"
    sampler: SamplerConfig = field(default_factory=SamplerConfig)

    def validate(self) -> None:
        if self.context_capacity <= 1:
            raise ValueError("'context_capacity' must be > 1.")
        if self.thread_count <= 0:
            raise ValueError("'thread_count' must be > 0.")
        if self.default_max_tokens <= 0:
            raise ValueError("'default_max_tokens' must be > 0.")
        if not self.device:
            raise ValueError("'device' must be a non-empty string.")
        self.sampler.validate()

    def merged(self, override: Any | None) -> "EngineConfig":
        if override is None:
            return self
        if isinstance(override, EngineConfig):
            override.validate()
            return override
        if not isinstance(override, Mapping):
            raise ValueError("Engine config override must be an object.")

        merged = EngineConfig(
            context_capacity=_coerce_int(
                override.get("context_capacity", self.context_capacity), "context_capacity", min_value=2
            ),
            thread_count=_coerce_int(override.get("thread_count", self.thread_count), "thread_count"),
            default_max_tokens=_coerce_int(
                override.get("default_max_tokens", self.default_max_tokens), "default_max_tokens"
            ),
            device=str(override.get("device", self.device)),
            dtype=str(override.get("dtype", self.dtype)),
            sampler=self.sampler.merged(override.get("sampler")),
        )
        merged.validate()
        return merged

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineConfig":
        """Build a config from `SMOLCHAT_*` environment variables.

        Recognized: SMOLCHAT_CONTEXT_CAPACITY, SMOLCHAT_THREAD_COUNT,
        SMOLCHAT_MAX_TOKENS, SMOLCHAT_DEVICE, SMOLCHAT_DTYPE, SMOLCHAT_SEED.
        """
        env = os.environ if environ is None else environ
        override: dict[str, Any] = {}
        if env.get("SMOLCHAT_CONTEXT_CAPACITY"):
            override["context_capacity"] = env["SMOLCHAT_CONTEXT_CAPACITY"]
        if env.get("SMOLCHAT_THREAD_COUNT"):
            override["thread_count"] = env["SMOLCHAT_THREAD_COUNT"]
        if env.get("SMOLCHAT_MAX_TOKENS"):
            override["default_max_tokens"] = env["SMOLCHAT_MAX_TOKENS"]
        if env.get("SMOLCHAT_DEVICE"):
            override["device"] = env["SMOLCHAT_DEVICE"]
        if env.get("SMOLCHAT_DTYPE"):
            override["dtype"] = env["SMOLCHAT_DTYPE"]
        if env.get("SMOLCHAT_SEED"):
            override["sampler"] = {"seed": env["SMOLCHAT_SEED"]}
        return cls().merged(override)


def _coerce_int(value: Any, name: str, *, min_value: int = 1) -> int:
    if isinstance(value, bool):
        raise ValueError(f"'{name}' must be an integer.")
    try:
        out = int(value)
    except Exception as exc:
        raise ValueError(f"'{name}' must be an integer.") from exc
    if out < min_value:
        raise ValueError(f"'{name}' must be >= {min_value}.")
    return out


def _coerce_float(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"'{name}' must be a number.")
    try:
        return float(value)
    except Exception as exc:
        raise ValueError(f"'{name}' must be a number.") from exc
