import os
import sys

import pytest


# Ensure the repository root is on sys.path so tests can import the local
# package without requiring an editable install.
_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)


@pytest.fixture
def scripted_adapter_cls():
    """Adapter whose every forward pass puts all mass on the next scripted token.

    Char-level vocabulary: id = ord(ch) + 10; ids 0..9 are special
    (1 = BOS, 2 = EOS, 3 = a special token with empty text).
    """
    torch = pytest.importorskip("torch", reason="torch not installed")

    from smolchat.engine.adapters.base import BaseAdapter, InferenceContext
    from smolchat.engine.errors import DecodeError, TokenizeError

    class ScriptedAdapter(BaseAdapter):
        BOS = 1
        EOS = 2
        SILENT = 3
        OFFSET = 10

        def __init__(
            self,
            script=(),
            *,
            capacity: int = 64,
            vocab_size: int = 266,
            logits_size: int | None = None,
            fail_decode_at: int | None = None,
            fail_prefill: bool = False,
            fail_tokenize: bool = False,
        ) -> None:
            self.script = list(script)
            self.capacity = capacity
            self._vocab_size = vocab_size
            self._logits_size = logits_size or vocab_size
            self.fail_decode_at = fail_decode_at
            self.fail_prefill = fail_prefill
            self.fail_tokenize = fail_tokenize
            self.prefill_calls = 0
            self.decode_calls = 0
            self.decoded_tokens: list[int] = []
            self.unloaded = False
            self._step = 0

        @classmethod
        def encode_text(cls, text: str) -> list[int]:
            return [ord(ch) + cls.OFFSET for ch in text]

        def load(self, model_path: str, **kwargs) -> None:
            pass

        def new_context(self) -> InferenceContext:
            return InferenceContext(capacity=self.capacity)

        def tokenize(self, text: str) -> list[int]:
            if self.fail_tokenize:
                raise TokenizeError("tokenizer exploded")
            return [self.BOS] + self.encode_text(text)

        def _emit_logits(self, context: InferenceContext) -> None:
            token = self.script[self._step] if self._step < len(self.script) else self.EOS
            logits = torch.full((self._logits_size,), float("-inf"))
            logits[token] = 0.0
            context.logits = logits
            self._step += 1

        def prefill(self, context, token_ids) -> None:
            self.prefill_calls += 1
            if self.fail_prefill:
                raise DecodeError("prefill failed")
            self._step = 0
            context.position = len(token_ids)
            self._emit_logits(context)

        def decode(self, context, token_id) -> None:
            self.decode_calls += 1
            self.decoded_tokens.append(int(token_id))
            if self.fail_decode_at is not None and self.decode_calls == self.fail_decode_at:
                raise DecodeError("decode failed")
            if context.position >= context.capacity:
                raise DecodeError("context full")
            context.position += 1
            self._emit_logits(context)

        def detokenize(self, token_ids) -> str:
            return "".join(chr(t - self.OFFSET) for t in token_ids if t >= self.OFFSET)

        @property
        def eos_token_id(self):
            return self.EOS

        @property
        def vocab_size(self) -> int:
            return self._vocab_size

        @property
        def model_info(self):
            return {
                "model_path": "scripted",
                "model_family": "scripted",
                "dtype": "float32",
                "device": "cpu",
                "context_capacity": self.capacity,
            }

        def unload(self) -> None:
            self.unloaded = True

    return ScriptedAdapter
