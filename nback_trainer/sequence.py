from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from .config import ConfigError

logger = logging.getLogger(__name__)


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._seed = int(seed)
        self._rng = random.Random(self._seed)

    @property
    def seed(self) -> int:
        return self._seed

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def random(self) -> float:
        return self._rng.random()


def new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def validate_sequence_params(*, round_size: int, combinations: int, percent_match: int, n_back: int) -> None:
    if n_back < 1:
        raise ConfigError("n_back must be >= 1")
    if round_size <= n_back:
        raise ConfigError("round_size must be > n_back")
    if combinations < 2:
        raise ConfigError("combinations must be >= 2")
    if not (0 <= percent_match <= 100):
        raise ConfigError("percent_match must be in [0, 100]")


class SequenceGenerator:
    """Builds n-back stimulus sequences with a controlled match density.

    Positions before ``n_back`` are drawn uniformly. From there on, each
    position copies the value ``n_back`` steps earlier with probability
    ``percent_match / 100``; otherwise it is drawn from the remaining
    ``combinations - 1`` values so that no accidental match inflates the rate.
    """

    def __init__(self, *, seed: int) -> None:
        self._rng = SeededRng(seed)

    @property
    def seed(self) -> int:
        return self._rng.seed

    def generate(
        self,
        round_size: int,
        combinations: int,
        percent_match: int,
        n_back: int,
    ) -> tuple[int, ...]:
        validate_sequence_params(
            round_size=round_size,
            combinations=combinations,
            percent_match=percent_match,
            n_back=n_back,
        )

        p_match = percent_match / 100.0
        seq: list[int] = []
        for i in range(round_size):
            if i < n_back:
                seq.append(self._rng.randint(1, combinations))
                continue

            lagged = seq[i - n_back]
            if self._rng.random() < p_match:
                seq.append(lagged)
                continue

            # Uniform over [1, combinations] without the lagged value.
            pick = self._rng.randint(1, combinations - 1)
            seq.append(pick + 1 if pick >= lagged else pick)

        logger.debug("Generated %d-back sequence (seed=%d): %s", n_back, self.seed, seq)
        return tuple(seq)


def count_matches(sequence: Sequence[int], n_back: int) -> int:
    """Number of positions whose value equals the one ``n_back`` steps earlier."""

    if n_back < 1:
        raise ValueError("n_back must be >= 1")
    return sum(1 for i in range(n_back, len(sequence)) if sequence[i] == sequence[i - n_back])
