"""
smolchat - Local LLM generation with robust structured-output extraction.

Runs a causal language model in-process (Hugging Face transformers on torch),
one generation at a time, and turns its free-form output into structured
records that are always well-formed.

Quick Start:
    from smolchat import load_model, generate, extract_structured

    with load_model("Qwen/Qwen2.5-0.5B-Instruct", context_capacity=2048, thread_count=4) as handle:
        result = generate(handle, prompt, max_tokens=256)
        record = extract_structured(result.text, "classification")
        print(record.category, record.confidence)

Submodules:
    - smolchat.engine: Adapters, sampler chain, generation session and worker
    - smolchat.extract: Persona line selection and delimited-JSON extraction
    - smolchat.runtime: Device / dtype / thread helpers

Environment Variables:
    SMOLCHAT_CONTEXT_CAPACITY, SMOLCHAT_THREAD_COUNT, SMOLCHAT_MAX_TOKENS,
    SMOLCHAT_DEVICE, SMOLCHAT_DTYPE, SMOLCHAT_SEED: read by
    `EngineConfig.from_env()`.
"""

from smolchat._version import __version__

# Entry points
from smolchat.api import extract_persona, extract_structured, generate, load_model

# Engine
from smolchat.engine import (
    ContextOverflowError,
    DecodeError,
    EngineConfig,
    GenerationError,
    GenerationRequest,
    GenerationResult,
    LoadError,
    ModelHandle,
    SamplerConfig,
    SmolchatError,
    StopReason,
    TokenizeError,
)

# Extraction
from smolchat.extract import (
    CATEGORIES,
    Classification,
    CvMetadata,
    DraftReply,
    PersonaFields,
    Shape,
)

__all__ = [
    # Version
    "__version__",
    # Entry points
    "load_model",
    "generate",
    "extract_persona",
    "extract_structured",
    # Engine
    "EngineConfig",
    "SamplerConfig",
    "ModelHandle",
    "GenerationRequest",
    "GenerationResult",
    "StopReason",
    # Errors
    "SmolchatError",
    "LoadError",
    "GenerationError",
    "TokenizeError",
    "ContextOverflowError",
    "DecodeError",
    # Extraction
    "CATEGORIES",
    "Classification",
    "CvMetadata",
    "DraftReply",
    "PersonaFields",
    "Shape",
]
