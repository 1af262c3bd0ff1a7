# Local LLM generation engine
#
# Drives one generation at a time against a single loaded model:
# tokenize -> prefill -> sampled decode loop.
#
# Key components:
#   - adapters/     Model-family specific adapters (transformers)
#   - registry.py   Maps model family names to adapters
#   - sampling.py   Sampler chain (top-k -> top-p -> temperature -> draw)
#   - session.py    Generation state machine
#   - worker.py     Single-threaded request queue owning the session
#   - handle.py     Loaded model + session + worker
#   - types.py      Engine request/response types

from .config import EngineConfig, SamplerConfig
from .errors import (
    ContextOverflowError,
    DecodeError,
    GenerationError,
    LoadError,
    SmolchatError,
    TokenizeError,
)
from .handle import ModelHandle
from .registry import get_adapter, get_adapter_class, list_model_families, register_adapter
from .sampling import SamplerChain
from .session import GenerationSession, SessionState
from .types import GenerationRequest, GenerationResult, ModelInfo, StopReason, Timing
from .worker import GenerationWorker
