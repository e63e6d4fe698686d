# lambdas/slowlog_check/models.py
"""
Settings and plain-dataclass models for the slowlog check.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class AppSettings(BaseSettings):
    """
    Manages env vars using Pydantic BaseSettings.
    A .env file is read automatically for local runs.
    """
    model_config = SettingsConfigDict(
        env_file='.env', env_file_encoding='utf-8', extra='ignore', populate_by_name=True
    )

    redis_host: str = Field(..., alias='REDIS_HOST')
    redis_port: Optional[int] = Field(None, alias='REDIS_PORT')
    redis_ssl: Optional[bool] = Field(None, alias='REDIS_SSL')
    redis_cluster: Optional[bool] = Field(None, alias='REDIS_CLUSTER')
    redis_socket_timeout: float = Field(5.0, alias='REDIS_SOCKET_TIMEOUT')
    redis_connect_timeout: float = Field(5.0, alias='REDIS_CONNECT_TIMEOUT')

    datadog_api_key: str = Field(..., alias='DATADOG_API_KEY')
    datadog_app_key: str = Field(..., alias='DATADOG_APP_KEY')
    datadog_api_url: str = Field("https://api.datadoghq.com", alias='DATADOG_API_URL')
    datadog_timeout: float = Field(10.0, alias='DATADOG_TIMEOUT')

    namespace: str = Field(..., alias='NAMESPACE')
    env: str = Field(..., alias='ENV')
    metricname: str = Field("elasticache.slowlog", alias='METRICNAME')
    ssm_path: Optional[str] = Field(None, alias='SSM_PATH')


def get_settings() -> AppSettings:
    """Builds settings from the current environment. Not cached, SSM hydration may change os.environ first."""
    try:
        return AppSettings()
    except ValidationError as e:
        missing = [".".join(str(loc) for loc in err["loc"]) for err in e.errors()]
        raise ConfigurationError(f"Invalid or missing settings: {', '.join(missing)}") from e


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def minute_precision(time: datetime) -> datetime:
    return time.replace(second=0, microsecond=0)


# Data models
@dataclass(frozen=True)
class SlowlogEntry:
    """One raw SLOWLOG GET entry."""
    sequence_id: int
    occurred_at: datetime
    duration_micros: int
    command: str
    client_address: str = ""
    client_name: str = ""


def _median_index(count: int) -> int:
    # One below the lower middle, not the textbook median. Existing dashboards rely on it.
    return (count // 2) - 1


def _95percentile_index(count: int) -> int:
    # trunc(count * 0.95 - 1) in exact integer arithmetic
    return (count * 95) // 100 - 1


@dataclass
class RunningStat:
    """
    Running statistics for one command inside one minute bucket.
    Samples are retained so median and p95 can be recomputed on every add.
    """
    values: List[int] = field(default_factory=list)
    avg: float = 0
    count: int = 0
    median: int = 0
    p95: int = 0
    min: int = 0
    max: int = 0
    sum: int = 0

    @classmethod
    def first(cls, value: int) -> "RunningStat":
        return cls(values=[value], avg=value, count=1, median=value,
                   p95=value, min=value, max=value, sum=value)

    @classmethod
    def empty(cls) -> "RunningStat":
        """The explicit zero record used to close out a command that went quiet."""
        return cls()

    @classmethod
    def from_samples(cls, samples: Iterable[int]) -> "RunningStat":
        values = list(samples)
        if not values:
            return cls.empty()
        stat = cls(values=values, count=len(values))
        stat.avg = stat._refresh_order_stats() / stat.count
        return stat

    def add_sample(self, value: int) -> "RunningStat":
        self.values.append(value)
        new_count = len(self.values)
        self.avg = ((self.avg * self.count) + value) / new_count
        self.count = new_count
        self._refresh_order_stats()
        return self

    def _refresh_order_stats(self) -> int:
        sorted_values = sorted(self.values)
        self.median = sorted_values[_median_index(len(sorted_values))]
        self.p95 = sorted_values[_95percentile_index(len(sorted_values))]
        self.min = sorted_values[0]
        self.max = sorted_values[-1]
        self.sum = sum(sorted_values)
        return self.sum

    def as_dict(self) -> Dict[str, object]:
        return {
            "values": list(self.values),
            "avg": self.avg,
            "count": self.count,
            "median": self.median,
            "_95percentile": self.p95,
            "min": self.min,
            "max": self.max,
            "sum": self.sum,
        }


# minute -> command -> stats
TimeBucket = Dict[str, RunningStat]
Report = Dict[datetime, TimeBucket]
