# lambdas/slowlog_check/slowlog_check.py
"""
Ships ElastiCache slowlog statistics to Datadog, one point per minute,
command and statistic, resuming from whatever Datadog already has.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional

from .aggregator import pad_results_with_zero, slowlogs_by_flush_interval
from .checkpoint import CheckpointResolver
from .emitter import MetricEmitter
from .errors import SlowlogCheckError
from .endpoint import RedisEndpoint
from .metadata import MetadataSynchronizer
from .models import Report, utc_now
from .slowlog_reader import SlowlogReader


@dataclass
class ShipContext:
    """State of a single ship_slowlogs run."""
    now: datetime
    watermark: Optional[datetime] = None
    seen_by_minute: Dict[datetime, Dict[str, datetime]] = field(default_factory=dict)


class SlowlogCheck:
    """
    Wires the pipeline together for one Redis endpoint.

    An instance lives as long as the Lambda container. Only the commands seen
    so far and the metadata sync flag are carried between runs; the watermark
    is looked up again every run.
    """

    def __init__(self, datadog, redis: RedisEndpoint, metricname: str, namespace: str, env: str,
                 redis_client=None, clock: Callable[[], datetime] = utc_now,
                 socket_timeout: float = 5.0, socket_connect_timeout: float = 5.0):
        self.datadog = datadog
        self.redis = redis
        self.metricname = metricname
        self.namespace = namespace
        self.env = env
        self.clock = clock
        self._redis_client = redis_client
        self._timeouts = (socket_timeout, socket_connect_timeout)

        self.seen_commands: Dict[str, datetime] = {}
        self.metadata_synced = False

        self.checkpoint = CheckpointResolver(datadog, metricname, self.replication_group, clock)
        self.emitter = MetricEmitter(datadog, metricname, self.replication_group, namespace, env)
        self.metadata = MetadataSynchronizer(datadog, metricname)

    @property
    def replication_group(self) -> str:
        return self.redis.replication_group

    @property
    def redis_client(self):
        if self._redis_client is None:
            socket_timeout, socket_connect_timeout = self._timeouts
            self._redis_client = self.redis.connect(socket_timeout, socket_connect_timeout)
        return self._redis_client

    def update_metadatas(self):
        if self.metadata_synced:
            return []
        updated = self.metadata.update_metadatas()
        self.metadata_synced = True
        return updated

    def slowlogs_by_flush_interval(self, ctx: ShipContext) -> Report:
        last_time_submitted = self.checkpoint.last_time_submitted(ctx)
        slowlogs = SlowlogReader(self.redis_client).read()
        report = slowlogs_by_flush_interval(slowlogs, last_time_submitted, ctx.now)
        # padded against a copy, committed once the minutes are confirmed shipped
        return pad_results_with_zero(report, dict(self.seen_commands), ctx.seen_by_minute)

    def commit_seen_commands(self, ctx: ShipContext, through: Optional[datetime] = None):
        """Keeps the seen commands as of the last minute shipped, or of the whole run."""
        minutes = [ts for ts in ctx.seen_by_minute if through is None or ts <= through]
        if minutes:
            self.seen_commands = ctx.seen_by_minute[max(minutes)]

    def ship_slowlogs(self) -> int:
        """
        Runs one pass. Returns the number of points submitted.

        Raises:
            ConnectivityError, BackendQueryError, BackendSubmitError: The run stops;
                the next one resumes from the last point Datadog confirmed.
        """
        ctx = ShipContext(now=self.clock())
        report = self.slowlogs_by_flush_interval(ctx)
        print(f"Shipping {len(report)} minute bucket(s) for {self.replication_group} after {ctx.watermark.isoformat()}.")
        try:
            emitted = self.emitter.ship(ctx, report)
        except SlowlogCheckError:
            self.commit_seen_commands(ctx, through=ctx.watermark)
            raise
        self.commit_seen_commands(ctx)
        print(f"✅ Submitted {emitted} point(s) for {self.replication_group}. Watermark now {ctx.watermark.isoformat()}.")
        return emitted
