import numpy as np
import pytest

from duck_race.engine import DiscreteDistribution, weighted_index

BURST_PROBABILITIES = [0.4, 0.3, 0.2, 0.08, 0.02]


class FixedRng:
    """Returns a scripted sequence of uniform draws."""

    def __init__(self, *values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


@pytest.mark.parametrize(
    "draw, expected",
    [(0.0, 0), (0.4, 0), (0.41, 1), (0.65, 1), (0.85, 2), (0.95, 3), (0.999, 4)],
)
def test_weighted_index_scans_cumulative_probabilities(draw, expected):
    assert weighted_index(BURST_PROBABILITIES, FixedRng(draw)) == expected


def test_leftover_mass_falls_back_to_last_index():
    assert weighted_index([0.2, 0.2], FixedRng(0.9)) == 1


def test_empty_distribution_is_rejected():
    with pytest.raises(ValueError):
        weighted_index([], FixedRng(0.5))


def test_distribution_validates_shape():
    with pytest.raises(ValueError):
        DiscreteDistribution((1.2, 1.5), (1.0,))
    with pytest.raises(ValueError):
        DiscreteDistribution((1.2,), (-0.1,))
    with pytest.raises(ValueError):
        DiscreteDistribution((), ())


def test_sampling_frequencies_follow_weights():
    rng = np.random.default_rng(1234)
    dist = DiscreteDistribution((1.2, 1.5, 1.8, 2.2, 2.8), tuple(BURST_PROBABILITIES))
    draws = [dist.sample(rng) for _ in range(20000)]
    share_small = draws.count(1.2) / len(draws)
    share_huge = draws.count(2.8) / len(draws)
    assert share_small == pytest.approx(0.4, abs=0.02)
    assert share_huge == pytest.approx(0.02, abs=0.01)
