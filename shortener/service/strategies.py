"""
Short id generation strategies.

Provided strategies:
- RandomStrategy: random lowercase ASCII letters of length L (default 6)

Uniqueness is not the strategy's job: the storage backend rejects a taken
short id with ShortIDTakenError and the service retries with a fresh id.

Configuration (via shortener.config.settings):
- SHORT_ID_LENGTH: default length (6; clamped 4..32)
"""

import random
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from shortener.config import settings

_ALPHABET = string.ascii_lowercase


def _safe_len(length: Optional[int]) -> int:
    """Resolve desired id length from arg or config, clamped to [4, 32]."""
    L = int(length) if length is not None else int(settings.SHORT_ID_LENGTH)
    return max(4, min(32, L))


class BaseStrategy(ABC):
    """Abstract base for short id generation strategies."""

    @abstractmethod
    def generate(self, *, length: Optional[int] = None) -> str:  # pragma: no cover
        raise NotImplementedError


@dataclass
class RandomStrategy(BaseStrategy):
    """Random lowercase letters; rely on storage-level uniqueness + retry."""

    length: Optional[int] = None
    _rng: random.SystemRandom = field(default_factory=random.SystemRandom, repr=False)

    def generate(self, *, length: Optional[int] = None) -> str:
        L = _safe_len(length if length is not None else self.length)
        return "".join(self._rng.choice(_ALPHABET) for _ in range(L))
