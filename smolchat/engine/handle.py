"""Model runtime handle: loaded adapter + its single session and worker."""

from __future__ import annotations

import logging
from typing import Any

from .adapters.base import BaseAdapter
from .config import EngineConfig
from .sampling import SamplerChain
from .session import GenerationSession
from .types import GenerationRequest, GenerationResult, ModelInfo
from .worker import GenerationWorker

logger = logging.getLogger(__name__)


class ModelHandle:
    """Process-lifetime owner of a loaded model.

    Holds exactly one inference context (inside the session) and serializes all
    generations through one worker thread. Use `close()` (or a `with` block) at
    shutdown.
    """

    def __init__(self, adapter: BaseAdapter, *, config: EngineConfig | None = None) -> None:
        self._config = config or EngineConfig()
        self._adapter = adapter
        self._session = GenerationSession(adapter, SamplerChain.from_config(self._config.sampler))
        self._worker = GenerationWorker(self._session)
        self._worker.start()
        self._closed = False

    @property
    def adapter(self) -> BaseAdapter:
        return self._adapter

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def worker(self) -> GenerationWorker:
        return self._worker

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def info(self) -> ModelInfo:
        raw: dict[str, Any] = dict(getattr(self._adapter, "model_info", {}) or {})
        return ModelInfo(
            model_path=str(raw.pop("model_path", "") or ""),
            model_family=str(raw.pop("model_family", "") or ""),
            dtype=str(raw.pop("dtype", "")),
            device=str(raw.pop("device", "")),
            context_capacity=int(raw.pop("context_capacity", self._session.context.capacity)),
            thread_count=raw.pop("thread_count", None),
            extra=raw,
        )

    def generate(self, prompt: str, max_tokens: int | None = None) -> GenerationResult:
        if self._closed:
            raise RuntimeError("Model handle is closed.")
        if max_tokens is None:
            max_tokens = self._config.default_max_tokens
        return self._worker.submit(GenerationRequest(prompt=prompt, max_tokens=max_tokens)).result()

    async def agenerate(self, prompt: str, max_tokens: int | None = None) -> GenerationResult:
        if self._closed:
            raise RuntimeError("Model handle is closed.")
        if max_tokens is None:
            max_tokens = self._config.default_max_tokens
        return await self._worker.agenerate(prompt, max_tokens)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._worker.stop()
        self._adapter.unload()
        logger.info("Model handle closed")

    def __enter__(self) -> "ModelHandle":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
