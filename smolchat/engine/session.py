"""Generation session: tokenize -> prefill -> decode loop for one request.

State machine:

    IDLE -> TOKENIZING -> PREFILLING -> DECODING -> COMPLETED
                 |             |            |
          TOKENIZE_FAILED  CONTEXT_OVERFLOW / DECODE_FAILED

Anything that goes wrong before the first generated token is raised. Once
decoding has started, failures end the loop and the text produced so far is
returned with the matching `StopReason`.

This module contains no locking; `worker.py` guarantees that only one session
runs against an adapter at a time.
"""

from __future__ import annotations

import logging
import time
from enum import Enum

from .adapters.base import BaseAdapter, InferenceContext
from .detokenize import IncrementalDetokenizer
from .errors import ContextOverflowError, DecodeError, TokenizeError
from .sampling import SamplerChain
from .types import GenerationRequest, GenerationResult, StopReason, Timing

logger = logging.getLogger(__name__)

# Per-token debug tracing: the first few tokens, then every Nth.
_TRACE_FIRST = 5
_TRACE_EVERY = 10


class SessionState(str, Enum):
    IDLE = "idle"
    TOKENIZING = "tokenizing"
    PREFILLING = "prefilling"
    DECODING = "decoding"
    COMPLETED = "completed"
    TOKENIZE_FAILED = "tokenize_failed"
    CONTEXT_OVERFLOW = "context_overflow"
    DECODE_FAILED = "decode_failed"


class GenerationSession:
    """Owns the inference context and sampler chain for one adapter.

    Not thread-safe. Reuse across requests is expected: every `run()` clears
    the context and resets the sampler first.
    """

    def __init__(self, adapter: BaseAdapter, sampler: SamplerChain) -> None:
        self._adapter = adapter
        self._sampler = sampler
        self._context: InferenceContext = adapter.new_context()
        self._detokenizer = IncrementalDetokenizer(adapter.detokenize)
        self.state = SessionState.IDLE

    @property
    def adapter(self) -> BaseAdapter:
        return self._adapter

    @property
    def sampler(self) -> SamplerChain:
        return self._sampler

    @property
    def context(self) -> InferenceContext:
        return self._context

    def run(self, request: GenerationRequest) -> GenerationResult:
        """Generate a completion for `request`.

        Raises:
            ValueError: If the request is malformed.
            TokenizeError: If the prompt cannot be tokenized.
            ContextOverflowError: If the prompt does not fit the context.
            DecodeError: If the prompt prefill fails.
        """
        request.validate()
        started = time.monotonic()
        logger.info("Generation start: max_tokens=%d", request.max_tokens)

        # Never carry cache or sampler state across requests.
        self._context.clear()
        self._sampler.reset()
        self._detokenizer.reset()

        self.state = SessionState.TOKENIZING
        try:
            tokens = self._adapter.tokenize(request.prompt)
        except TokenizeError:
            self.state = SessionState.TOKENIZE_FAILED
            raise
        logger.debug("Tokenized prompt: %d chars -> %d tokens", len(request.prompt), len(tokens))

        if len(tokens) >= self._context.capacity:
            self.state = SessionState.CONTEXT_OVERFLOW
            logger.warning(
                "Prompt too long: %d tokens exceeds context capacity %d",
                len(tokens),
                self._context.capacity,
            )
            raise ContextOverflowError(len(tokens), self._context.capacity)

        self.state = SessionState.PREFILLING
        try:
            self._adapter.prefill(self._context, tokens)
        except DecodeError:
            self.state = SessionState.DECODE_FAILED
            logger.error("Prompt prefill failed (%d tokens)", len(tokens))
            raise
        self._sampler.prime(tokens)
        prefilled = time.monotonic()

        self.state = SessionState.DECODING
        text, emitted, stop_reason = self._decode_loop(request.max_tokens)
        self.state = SessionState.COMPLETED
        ended = time.monotonic()

        decode_s = max(ended - prefilled, 0.0)
        timing = Timing(
            prefill_s=max(prefilled - started, 0.0),
            decode_s=decode_s,
            total_s=max(ended - started, 0.0),
            tok_per_s=(emitted / decode_s) if decode_s > 0 and emitted > 0 else None,
        )
        logger.info(
            "Generation complete: %d tokens, %d chars, stop=%s",
            emitted,
            len(text),
            stop_reason.value,
        )
        return GenerationResult(
            text=text,
            tokens_emitted=emitted,
            stop_reason=stop_reason,
            prompt_tokens=len(tokens),
            timing=timing,
        )

    def _decode_loop(self, max_tokens: int) -> tuple[str, int, StopReason]:
        eos_token_id = self._adapter.eos_token_id
        vocab_size = self._adapter.vocab_size
        pieces: list[str] = []
        emitted = 0
        stop_reason = StopReason.MAX_TOKENS

        while emitted < max_tokens:
            logits = self._context.logits
            if logits is None:
                logger.error("No logits available at position %d", self._context.position)
                stop_reason = StopReason.DECODE_FAILURE
                break

            token = self._sampler.sample(logits)
            if emitted < _TRACE_FIRST or emitted % _TRACE_EVERY == 0:
                logger.debug("Token %d: %d", emitted, token)

            if eos_token_id is not None and token == eos_token_id:
                logger.debug("EOS token encountered at position %d", emitted)
                stop_reason = StopReason.END_OF_SEQUENCE
                break

            if token < 0 or token >= vocab_size:
                logger.error("Invalid token sampled: %d", token)
                stop_reason = StopReason.INVALID_TOKEN
                break

            piece = self._detokenizer.push(token)
            if piece:
                pieces.append(piece)
            else:
                logger.debug("Token %d has an empty text piece", token)

            self._sampler.accept(token)
            emitted += 1

            try:
                self._adapter.decode(self._context, token)
            except DecodeError as exc:
                logger.error("Decode failed at token %d: %s", emitted, exc)
                stop_reason = StopReason.DECODE_FAILURE
                break

        tail = self._detokenizer.flush()
        if tail:
            pieces.append(tail)
        return "".join(pieces), emitted, stop_reason
