"""Sampler chain: an ordered pipeline of logit filters plus a final categorical draw.

The default chain is top-k(40) -> top-p(0.9) -> temperature(0.7) -> draw.
Filters see the logits for the last decoded position as a 1-D tensor and return
a tensor of the same shape, with rejected candidates set to -inf.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Iterable, Sequence

from .config import SamplerConfig

if TYPE_CHECKING:
    import torch

logger = logging.getLogger(__name__)


class SamplerFilter:
    """Base class for chain filters. Stateless filters only override `apply`."""

    name = "filter"

    def apply(self, logits: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError

    def accept(self, token: int) -> None:
        pass

    def reset(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class TopK(SamplerFilter):
    name = "top_k"

    def __init__(self, k: int) -> None:
        self.k = int(k)

    def apply(self, logits: torch.Tensor) -> torch.Tensor:
        import torch

        if self.k <= 0 or self.k >= logits.shape[-1]:
            return logits
        values, indices = torch.topk(logits, self.k, dim=-1)
        out = torch.full_like(logits, float("-inf"))
        out.scatter_(-1, indices, values)
        return out

    def __repr__(self) -> str:
        return f"TopK(k={self.k})"


class TopP(SamplerFilter):
    """Keep the smallest high-probability set whose cumulative mass reaches `p`."""

    name = "top_p"

    def __init__(self, p: float, min_keep: int = 1) -> None:
        self.p = float(p)
        self.min_keep = max(int(min_keep), 1)

    def apply(self, logits: torch.Tensor) -> torch.Tensor:
        import torch

        if self.p >= 1.0:
            return logits
        sorted_logits, sorted_idx = torch.sort(logits, descending=True, dim=-1)
        probs = torch.softmax(sorted_logits.float(), dim=-1)
        cumulative = torch.cumsum(probs, dim=-1)

        # A candidate survives if the mass strictly before it is still below p.
        remove = (cumulative - probs) >= self.p
        remove[..., : self.min_keep] = False

        mask = torch.zeros_like(remove)
        mask.scatter_(-1, sorted_idx, remove)
        return logits.masked_fill(mask, float("-inf"))

    def __repr__(self) -> str:
        return f"TopP(p={self.p}, min_keep={self.min_keep})"


class Temperature(SamplerFilter):
    name = "temperature"

    def __init__(self, temperature: float) -> None:
        self.temperature = float(temperature)

    def apply(self, logits: torch.Tensor) -> torch.Tensor:
        import torch

        if self.temperature <= 0:
            # Degenerates to greedy: keep only the best candidate.
            keep = torch.argmax(logits, dim=-1, keepdim=True)
            out = torch.full_like(logits, float("-inf"))
            out.scatter_(-1, keep, logits.gather(-1, keep))
            return out
        return logits.float() / self.temperature

    def __repr__(self) -> str:
        return f"Temperature({self.temperature})"


class RepetitionPenalty(SamplerFilter):
    """Penalize tokens seen in the recent history window.

    Not part of the default chain; exists for callers that configure
    `repetition_penalty != 1.0`.
    """

    name = "repetition_penalty"

    def __init__(self, penalty: float, window: int = 64) -> None:
        self.penalty = float(penalty)
        self._history: deque[int] = deque(maxlen=int(window))

    def apply(self, logits: torch.Tensor) -> torch.Tensor:
        import torch

        if self.penalty == 1.0 or not self._history:
            return logits
        ids = torch.tensor(sorted(set(self._history)), dtype=torch.long, device=logits.device)
        ids = ids[ids < logits.shape[-1]]
        out = logits.clone()
        picked = out.index_select(-1, ids)
        picked = torch.where(picked > 0, picked / self.penalty, picked * self.penalty)
        out.index_copy_(-1, ids, picked)
        return out

    def accept(self, token: int) -> None:
        self._history.append(int(token))

    def reset(self) -> None:
        self._history.clear()

    def __repr__(self) -> str:
        return f"RepetitionPenalty({self.penalty}, window={self._history.maxlen})"


class SamplerChain:
    """Ordered filters followed by a categorical draw from a seeded generator.

    Not thread-safe; owned by a single GenerationSession.
    """

    def __init__(self, filters: Sequence[SamplerFilter], *, seed: int | None = None) -> None:
        import torch

        self._filters = list(filters)
        self._seed = seed
        self._generator = torch.Generator(device="cpu")
        self.n_accepted = 0
        self.reset()

    @classmethod
    def from_config(cls, config: SamplerConfig | None = None) -> "SamplerChain":
        config = config or SamplerConfig()
        config.validate()
        filters: list[SamplerFilter] = []
        if config.repetition_penalty != 1.0:
            filters.append(RepetitionPenalty(config.repetition_penalty, config.repetition_window))
        filters.append(TopK(config.top_k))
        filters.append(TopP(config.top_p, config.min_keep))
        filters.append(Temperature(config.temperature))
        return cls(filters, seed=config.seed)

    @property
    def filters(self) -> list[SamplerFilter]:
        return list(self._filters)

    @property
    def seed(self) -> int | None:
        return self._seed

    def reset(self) -> None:
        """Clear per-request state. Must run before the first token of a request."""
        for f in self._filters:
            f.reset()
        self.n_accepted = 0
        if self._seed is None:
            self._generator.seed()
        else:
            self._generator.manual_seed(self._seed)

    def prime(self, tokens: Iterable[int]) -> None:
        """Feed prompt tokens to history-tracking filters without counting them as accepted."""
        for token in tokens:
            for f in self._filters:
                f.accept(int(token))

    def accept(self, token: int) -> None:
        """Register a committed generated token."""
        for f in self._filters:
            f.accept(int(token))
        self.n_accepted += 1

    def sample(self, logits: torch.Tensor) -> int:
        """Run the filters on `logits` (shape (vocab,) or (1, vocab)) and draw one token id."""
        import torch

        if logits.dim() == 2:
            if logits.shape[0] != 1:
                raise ValueError(f"Batch size must be 1, got {logits.shape[0]}")
            logits = logits[0]
        if logits.dim() != 1:
            raise ValueError(f"Expected 1-D logits, got shape {tuple(logits.shape)}")

        raw = logits.detach().float().cpu()
        filtered = raw
        for f in self._filters:
            filtered = f.apply(filtered)

        # Softmax in fp32; sanitize in case every candidate was masked or logits held NaNs.
        probs = torch.softmax(filtered.float(), dim=-1)
        if torch.isnan(probs).any() or torch.isinf(probs).any() or (probs < 0).any():
            probs = torch.nan_to_num(probs, nan=0.0, posinf=0.0, neginf=0.0)
            probs = torch.clamp(probs, min=0.0)
            total = probs.sum()
            if total <= 0:
                logger.warning("Degenerate sampling distribution; falling back to argmax.")
                return int(torch.argmax(torch.nan_to_num(raw, nan=float("-inf"))).item())
            probs = probs / total

        return int(torch.multinomial(probs, 1, generator=self._generator).item())

    def __repr__(self) -> str:
        chain = " -> ".join(repr(f) for f in self._filters)
        return f"SamplerChain({chain} -> Dist(seed={self._seed}))"
