from __future__ import annotations

import pytest

from nback_trainer.config import ConfigError
from nback_trainer.sequence import SequenceGenerator, count_matches


@pytest.mark.parametrize(
    ("round_size", "combinations", "percent_match", "n_back"),
    [
        (10, 9, 30, 1),
        (50, 2, 0, 2),
        (25, 5, 100, 3),
        (4, 26, 50, 3),
    ],
)
def test_sequence_has_exact_length_and_values_in_range(
    round_size: int, combinations: int, percent_match: int, n_back: int
) -> None:
    gen = SequenceGenerator(seed=11)
    for _ in range(50):
        seq = gen.generate(round_size, combinations, percent_match, n_back)
        assert len(seq) == round_size
        assert all(1 <= v <= combinations for v in seq)


def test_generator_is_deterministic_for_same_seed() -> None:
    g1 = SequenceGenerator(seed=2024)
    g2 = SequenceGenerator(seed=2024)

    seqs_1 = [g1.generate(20, 9, 30, 2) for _ in range(5)]
    seqs_2 = [g2.generate(20, 9, 30, 2) for _ in range(5)]

    assert seqs_1 == seqs_2
    assert g1.seed == 2024


def test_realized_match_rate_converges_to_configured_rate() -> None:
    gen = SequenceGenerator(seed=1234)
    round_size, n_back = 50, 2

    matches = 0
    positions = 0
    for _ in range(1000):
        seq = gen.generate(round_size, 9, 30, n_back)
        matches += count_matches(seq, n_back)
        positions += round_size - n_back

    rate = matches / positions
    assert 0.25 <= rate <= 0.35


def test_zero_percent_never_matches_and_hundred_percent_always_matches() -> None:
    gen = SequenceGenerator(seed=5)
    for _ in range(100):
        # Non-matches exclude the lagged value, so even two values never collide.
        assert count_matches(gen.generate(30, 2, 0, 1), 1) == 0
        assert count_matches(gen.generate(30, 4, 100, 2), 2) == 28


@pytest.mark.parametrize(
    ("round_size", "combinations", "percent_match", "n_back"),
    [
        (2, 9, 30, 2),
        (1, 9, 30, 1),
        (10, 1, 30, 1),
        (10, 9, -1, 1),
        (10, 9, 101, 1),
        (10, 9, 30, 0),
    ],
)
def test_invalid_parameters_raise_config_error(
    round_size: int, combinations: int, percent_match: int, n_back: int
) -> None:
    gen = SequenceGenerator(seed=1)
    with pytest.raises(ConfigError):
        gen.generate(round_size, combinations, percent_match, n_back)


def test_count_matches() -> None:
    assert count_matches((3, 3, 5, 5, 5), 1) == 3
    assert count_matches((1, 2, 1, 2, 3), 2) == 2
    assert count_matches((1,), 1) == 0
