# Model-family adapters
#
# Each adapter implements a common interface for:
#   - Loading model + tokenizer
#   - Tokenization and incremental detokenization
#   - Prefill and single-token decode against an InferenceContext
#
# The generation session uses adapters to stay model-agnostic.

from .base import BaseAdapter, InferenceContext

__all__ = ["BaseAdapter", "InferenceContext"]
