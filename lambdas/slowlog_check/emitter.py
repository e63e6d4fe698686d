# lambdas/slowlog_check/emitter.py
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .datadog_client import status_or_error
from .errors import BackendSubmitError
from .models import Report

# (metric suffix, statistic key, submission type)
# A metric name can't start with a digit, hence the alias for the percentile key.
EMITTED_METRICS = [
    ("avg", "avg", "gauge"),
    ("count", "count", "rate"),
    ("median", "median", "gauge"),
    ("min", "min", "gauge"),
    ("max", "max", "gauge"),
    ("95percentile", "_95percentile", "gauge"),
]


def _unix(timestamp) -> int:
    if isinstance(timestamp, datetime):
        return int(timestamp.timestamp())
    return int(timestamp)


class MetricEmitter:
    """Turns minute buckets into Datadog points, one submission per statistic."""

    def __init__(self, datadog, metricname: str, replication_group: str, namespace: str, env: str):
        self.datadog = datadog
        self.metricname = metricname
        self.replication_group = replication_group
        self.namespace = namespace
        self.env = env

    def default_tags(self) -> Dict[str, str]:
        return {
            "replication_group": self.replication_group,
            "service": self.replication_group,
            "namespace": self.namespace,
            "aws": "true",
            "env": self.env,
        }

    def emit_point(self, ctx, metric: str, points: List[List[Any]], type: str = "gauge",
                   interval: int = 60, host: Optional[str] = None,
                   tags: Optional[Dict[str, str]] = None):
        """
        Submits one point and moves the run's watermark to its timestamp.

        Raises:
            BackendSubmitError: If Datadog does not answer "ok". The watermark is left alone.
        """
        name = f"{self.metricname}.{metric}"
        host = host or self.replication_group
        tags = tags or self.default_tags()
        timestamp, value = points[0]

        print(f"Sending slowlog entry: {name}: {value}µs executing {tags.get('command')} at {timestamp}.")
        resp = self.datadog.emit_points(
            name,
            [[_unix(ts), v] for ts, v in points],
            {
                "type": type,
                "interval": interval,
                "host": host,
                "tags": tags,
            },
        )
        if status_or_error(resp) != "ok":
            print(f"❌ Error submitting {name} for {self.replication_group}: {status_or_error(resp)}")
            raise BackendSubmitError(
                f"Error submitting metric {name} for {self.replication_group}", response=resp
            )

        if isinstance(timestamp, datetime):
            ctx.watermark = timestamp
        else:
            ctx.watermark = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
        print(f"{name} set {status_or_error(resp)} at {ctx.watermark.isoformat()}")
        return resp

    def ship(self, ctx, report: Report) -> int:
        """Emits every bucket in ascending time order. The first failure aborts the rest."""
        emitted = 0
        for timestamp in sorted(report):
            timebucket = report[timestamp]
            if not timebucket:
                continue

            for command, stat in timebucket.items():
                all_metrics = stat.as_dict()
                tags = {**self.default_tags(), "command": command}
                for metric, key, metric_type in EMITTED_METRICS:
                    self.emit_point(
                        ctx,
                        metric=metric,
                        type=metric_type,
                        points=[[timestamp, all_metrics[key]]],
                        tags=tags,
                    )
                    emitted += 1
        return emitted
