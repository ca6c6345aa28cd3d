import matplotlib

matplotlib.use("Agg")

import pytest


def _lcg(seed):
    state = [seed]

    def rng():
        state[0] = (state[0] * 1103515245 + 12345) & 0x7FFFFFFF
        return state[0] / 0x7FFFFFFF

    return rng


@pytest.fixture
def seeded_rng():
    """Factory for deterministic zero-argument RNGs: seeded_rng(42)() -> float in [0, 1]."""
    return _lcg
