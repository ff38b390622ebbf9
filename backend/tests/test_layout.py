import random
from collections import Counter

import pytest

from mines import layout
from mines.exceptions import InvalidParameter


def test_layout_is_distinct_sorted_and_on_board():
    for _ in range(200):
        positions = layout.generate(3)
        assert len(positions) == 3
        assert len(set(positions)) == 3
        assert positions == sorted(positions)
        assert all(0 <= p < 25 for p in positions)


def test_layout_sizes():
    assert len(layout.generate(1)) == 1
    assert len(layout.generate(24)) == 24
    assert len(layout.generate(2, board_size=3)) == 2


@pytest.mark.parametrize("mines", [0, -1, 25, 30])
def test_layout_rejects_impossible_counts(mines):
    with pytest.raises(InvalidParameter):
        layout.generate(mines)


def test_seeded_rng_is_reproducible():
    assert layout.generate(5, rng=random.Random(1)) == layout.generate(5, rng=random.Random(1))


def test_default_rng_varies():
    seen = {tuple(layout.generate(3)) for _ in range(50)}
    assert len(seen) > 1


def test_positions_are_uniform():
    rng = random.Random(2024)
    draws = 10_000
    counts = Counter()
    for _ in range(draws):
        counts.update(layout.generate(3, rng=rng))

    assert set(counts) == set(range(25))
    for cell in range(25):
        frequency = counts[cell] / draws
        assert abs(frequency - 0.12) < 0.02, (cell, frequency)
