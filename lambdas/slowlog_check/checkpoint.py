# lambdas/slowlog_check/checkpoint.py
from datetime import datetime, timedelta, timezone
from typing import Callable

from .datadog_client import status_or_error
from .errors import BackendQueryError
from .models import minute_precision, utc_now

LOOKBACK = timedelta(hours=2)
FIRST_RUN_LOOKBACK = timedelta(hours=1)


class CheckpointResolver:
    """
    Works out where the previous run stopped by asking Datadog for the newest
    95percentile point this job submitted for the replication group.
    Nothing is stored locally; Datadog is the checkpoint.
    """

    def __init__(self, datadog, metricname: str, replication_group: str,
                 clock: Callable[[], datetime] = utc_now):
        self.datadog = datadog
        self.metricname = metricname
        self.replication_group = replication_group
        self.clock = clock

    @property
    def query(self) -> str:
        return f"{self.metricname}.95percentile{{replication_group:{self.replication_group}}}"

    def last_datadog_metrics_submitted_by_me_in_the_last_2_hours(self):
        now = self.clock()
        resp = self.datadog.get_points(
            self.query,
            int((now - LOOKBACK).timestamp()),
            int(now.timestamp()),
        )
        if status_or_error(resp) != "ok":
            print(f"❌ Error getting last datadog metric submitted by me ({self.query}): {status_or_error(resp)}")
            raise BackendQueryError(
                f"Error getting last datadog metric submitted by me for {self.replication_group}",
                response=resp,
            )
        return resp

    def last_datadog_metric(self) -> datetime:
        series = self.last_datadog_metrics_submitted_by_me_in_the_last_2_hours()[1].get("series") or []
        timestamps = [
            point[0]
            for serie in series
            for point in (serie.get("pointlist") or [])
            if point and point[0] is not None
        ]
        if not timestamps:  # First invocation
            return minute_precision(self.clock() - FIRST_RUN_LOOKBACK)

        # Datadog point timestamps are in milliseconds
        newest = datetime.fromtimestamp(int(max(timestamps)) // 1000, tz=timezone.utc)
        return minute_precision(newest)

    def last_time_submitted(self, ctx) -> datetime:
        """Memoized on the run context; the emitter moves it forward after each confirmed point."""
        if ctx.watermark is None:
            ctx.watermark = self.last_datadog_metric()
            print(f"Last time submitted for {self.replication_group}: {ctx.watermark.isoformat()}")
        return ctx.watermark
