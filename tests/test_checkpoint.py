# tests/test_checkpoint.py
from unittest.mock import MagicMock

import pytest

from lambdas.slowlog_check.checkpoint import CheckpointResolver
from lambdas.slowlog_check.errors import BackendQueryError
from lambdas.slowlog_check.slowlog_check import ShipContext
from tests.conftest import FROZEN_TIME, utc

METRICNAME = "ci.redis.slowlog.micros"
FOUR_MINUTES_AGO = utc(2020, 4, 20, 4, 16, 12).timestamp() * 1000.0


def query_response(pointlist):
    return [
        "200",
        {
            "status": "ok",
            "res_type": "time_series",
            "series": [
                {
                    "metric": f"{METRICNAME}.95percentile",
                    "scope": "replication_group:replicationgroup",
                    "pointlist": pointlist,
                }
            ],
            "query": f"{METRICNAME}.95percentile{{replication_group:replicationgroup}}",
        },
    ]


@pytest.fixture
def ddog():
    ddog = MagicMock()
    ddog.get_points.return_value = query_response(
        [[FOUR_MINUTES_AGO, 99_994.0], [FOUR_MINUTES_AGO - 5000, 99_378.0]]
    )
    return ddog


@pytest.fixture
def resolver(ddog, clock):
    return CheckpointResolver(ddog, METRICNAME, "replicationgroup", clock)


def test_queries_own_95percentile_series_over_two_hours(resolver, ddog):
    resolver.last_datadog_metric()
    ddog.get_points.assert_called_once_with(
        "ci.redis.slowlog.micros.95percentile{replication_group:replicationgroup}",
        int(FROZEN_TIME.timestamp()) - 7200,
        int(FROZEN_TIME.timestamp()),
    )


def test_nth_time_uses_the_newest_point(resolver):
    assert resolver.last_datadog_metric() == utc(2020, 4, 20, 4, 16)


def test_first_time_returns_an_hour_ago(resolver, ddog):
    ddog.get_points.return_value = ["200", {"status": "ok", "series": []}]
    assert resolver.last_datadog_metric() == utc(2020, 4, 20, 3, 20)


def test_series_without_points_is_a_first_run(resolver, ddog):
    ddog.get_points.return_value = query_response([])
    assert resolver.last_datadog_metric() == utc(2020, 4, 20, 3, 20)


def test_query_failure_raises(resolver, ddog):
    ddog.get_points.return_value = ["403", {"errors": ["Forbidden"]}]
    with pytest.raises(BackendQueryError) as excinfo:
        resolver.last_datadog_metric()
    assert excinfo.value.response == ["403", {"errors": ["Forbidden"]}]


def test_watermark_is_memoized_on_the_run(resolver, ddog):
    ctx = ShipContext(now=FROZEN_TIME)
    assert resolver.last_time_submitted(ctx) == utc(2020, 4, 20, 4, 16)
    assert resolver.last_time_submitted(ctx) == utc(2020, 4, 20, 4, 16)
    ddog.get_points.assert_called_once()

    ctx.watermark = utc(2020, 4, 20, 4, 18)
    assert resolver.last_time_submitted(ctx) == utc(2020, 4, 20, 4, 18)
