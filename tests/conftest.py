# tests/conftest.py
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from lambdas.slowlog_check.endpoint import RedisEndpoint

FROZEN_TIME = datetime(2020, 4, 20, 4, 20, 45, tzinfo=timezone.utc)
REDIS_HOST = "master.replicationgroup.xxxxxx.regionAndAz.cache.amazonaws.com"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def redis_slowlog(index: int, time: datetime, microseconds: int, command: str = "eval") -> list:
    """One raw SLOWLOG GET entry: [id, unix_ts, micros, argv, client_addr, client_name]."""
    return [
        index,
        int(time.timestamp()),
        microseconds,
        [command, "", "0"],
        "192.0.2.40:55700",
        "",
    ]


class RecordingDatadog:
    """
    In-memory stand-in for the Datadog API. Submitted points are stored so a
    later get_points call sees them, like the real backend would.
    """

    def __init__(self):
        self.points = []  # (metric, ts, value, options)
        self.metadata = {}
        self.fail_on = None

    def emit_points(self, metric, points, options):
        if self.fail_on and self.fail_on(metric, points):
            return "500", {"errors": ["Internal Server Error"]}
        for ts, value in points:
            self.points.append((metric, ts, value, options))
        return "202", {"status": "ok"}

    def get_points(self, query, from_time, to_time):
        metric, scope = query.rstrip("}").split("{")
        group = scope.split(":", 1)[1]
        pointlist = [
            [ts * 1000.0, value]
            for name, ts, value, options in self.points
            if name == metric
            and options["tags"]["replication_group"] == group
            and from_time <= ts <= to_time
        ]
        series = [{"metric": metric, "pointlist": pointlist}] if pointlist else []
        return "200", {"status": "ok", "series": series}

    def get_metadata(self, metric):
        if metric not in self.metadata:
            return "404", {"errors": ["Metric not found"]}
        return "200", dict(self.metadata[metric])

    def update_metadata(self, metric, metadata):
        self.metadata[metric] = dict(metadata)
        return "200", dict(metadata)


@pytest.fixture(autouse=True)
def clean_redis_env(monkeypatch):
    for name in ("REDIS_PORT", "REDIS_SSL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock():
    return lambda: FROZEN_TIME


@pytest.fixture
def endpoint() -> RedisEndpoint:
    return RedisEndpoint.resolve(REDIS_HOST)


@pytest.fixture
def four_entries() -> list:
    return [
        redis_slowlog(3, utc(2020, 4, 20, 4, 19, 45), 400_000),
        redis_slowlog(2, utc(2020, 4, 20, 4, 19, 15), 100_000),
        redis_slowlog(1, utc(2020, 4, 20, 4, 18, 45), 100_000),
        redis_slowlog(0, utc(2020, 4, 20, 4, 18, 15), 200_000),
    ]


@pytest.fixture
def redis_client(four_entries) -> MagicMock:
    client = MagicMock()
    client.slowlog_get.return_value = four_entries
    return client
