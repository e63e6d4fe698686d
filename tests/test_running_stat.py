# tests/test_running_stat.py
import random

import pytest

from lambdas.slowlog_check.models import RunningStat, minute_precision
from tests.conftest import FROZEN_TIME, utc


def test_minute_precision():
    assert minute_precision(FROZEN_TIME) == utc(2020, 4, 20, 4, 20, 0)


def test_95percentile_of_1_to_100():
    assert RunningStat.from_samples(range(1, 101)).p95 == 95


def test_add_sample_to_a_single_value_bucket():
    stat = RunningStat.first(10).add_sample(20)
    assert stat.as_dict() == {
        "values": [10, 20],
        "avg": 15,
        "count": 2,
        "median": 10,
        "_95percentile": 10,
        "min": 10,
        "max": 20,
        "sum": 30,
    }


def test_first_matches_adding_to_empty():
    assert RunningStat.first(42) == RunningStat.empty().add_sample(42)


def test_median_uses_the_lower_neighbour():
    # index = count // 2 - 1, not the textbook middle
    assert RunningStat.from_samples([1, 2, 3]).median == 1
    assert RunningStat.from_samples([1, 2, 3, 4]).median == 2
    assert RunningStat.from_samples([7]).median == 7


def test_empty_record_is_all_zero():
    assert RunningStat.empty().as_dict() == {
        "values": [], "avg": 0, "count": 0, "median": 0,
        "_95percentile": 0, "min": 0, "max": 0, "sum": 0,
    }


@pytest.mark.parametrize("seed", range(20))
def test_incremental_and_from_scratch_agree(seed):
    rng = random.Random(seed)
    samples = [rng.randint(0, 1_000_000) for _ in range(rng.randint(1, 300))]

    incremental = RunningStat.first(samples[0])
    for value in samples[1:]:
        incremental.add_sample(value)
    scratch = RunningStat.from_samples(samples)

    assert incremental.min == scratch.min == min(samples)
    assert incremental.max == scratch.max == max(samples)
    assert incremental.sum == scratch.sum == sum(samples)
    assert incremental.median == scratch.median
    assert incremental.p95 == scratch.p95
    assert incremental.count == len(samples)
    assert incremental.avg == pytest.approx(sum(samples) / len(samples))
    assert incremental.min <= incremental.median <= incremental.max
