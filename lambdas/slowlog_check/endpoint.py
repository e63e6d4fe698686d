# lambdas/slowlog_check/endpoint.py
"""
Parses an ElastiCache endpoint into connection parameters.

Handles the four host permutations AWS documents:
  replication-group-123_abc.xxxxxx.nodeId.us-example-3x.cache.amazonaws.com   (cluster mode disabled, no TLS)
  master.replication-group-123_abc.xxxxxx.us-example-3x.cache.amazonaws.com   (cluster mode disabled, TLS)
  replication-group-123_abc.xxxxxx.us-example-3x.cache.amazonaws.com          (cluster mode enabled, no TLS)
  clustercfg.replication-group-123_abc.xxxxxx.us-example-3x.cache.amazonaws.com (cluster mode enabled, TLS)
each optionally written as redis://host:port or rediss://host:port.
"""
import os
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, Optional

import redis
from redis.cluster import RedisCluster

from .errors import ConfigurationError, ConnectivityError

DEFAULT_PORT = 6379
REPLICATION_GROUP_PREFIX = "replication-group-"
ELASTICACHE_SUFFIX = ".cache.amazonaws.com"
TLS_ENDPOINT_LABELS = ("master", "clustercfg")


def _env_flag(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() == "true"


def _split_host(raw_host: str) -> tuple[str, Optional[str], Optional[int]]:
    """Returns (host, scheme, port) for either a bare host or a redis[s]:// URI."""
    if "://" not in raw_host:
        return raw_host, None, None
    parsed = urllib.parse.urlparse(raw_host)
    try:
        port = parsed.port
    except ValueError:
        raise ConfigurationError(f"Unable to parse port in REDIS_HOST '{raw_host}'.")
    # netloc keeps the configured case, .hostname would lowercase it
    netloc = parsed.netloc.rpartition("@")[2]
    if netloc.startswith("["):
        host = netloc[1:netloc.find("]")]
    else:
        host = netloc.partition(":")[0]
    return host, parsed.scheme.lower(), port


def replication_group_from_host(host: str) -> Optional[str]:
    """Derives the replication group name from an ElastiCache-style hostname."""
    labels = [label for label in (host or "").split(".") if label]
    if not labels:
        return None

    first = labels[0]
    if first in TLS_ENDPOINT_LABELS:
        return labels[1] if len(labels) > 1 else None
    if first.startswith(REPLICATION_GROUP_PREFIX):
        return first

    for label in labels:
        if label.startswith(REPLICATION_GROUP_PREFIX):
            return label

    # Any other group naming still works as long as it is a real ElastiCache endpoint
    if host.endswith(ELASTICACHE_SUFFIX) and len(labels) > 3:
        return first
    return None


def _is_cluster_host(host: str) -> bool:
    labels = host.split(".")
    first = labels[0]
    if first == "clustercfg":
        return True
    if first == "master" or not first.startswith(REPLICATION_GROUP_PREFIX):
        return False
    # group.xxxxxx.region.cache... is the configuration endpoint,
    # group.xxxxxx.nodeId.region.cache... is a single node.
    return "cache" in labels and labels.index("cache") == 3


@dataclass(frozen=True)
class RedisEndpoint:
    host: str
    port: int
    tls: bool
    cluster: bool
    replication_group: str

    @classmethod
    def resolve(cls, raw_host: str, port: Optional[int] = None, tls: Optional[bool] = None,
                cluster: Optional[bool] = None, env_port: Optional[int] = None,
                env_tls: Optional[bool] = None) -> "RedisEndpoint":
        """
        Resolves host, port, TLS and cluster mode.

        Precedence for each setting is explicit argument, then what the URI says,
        then env_port / env_tls (read from REDIS_PORT / REDIS_SSL when not
        given), then what the hostname implies.

        Raises:
            ConfigurationError: If the host is empty or no replication group can be derived.
        """
        raw_host = (raw_host or "").strip()
        if not raw_host:
            raise ConfigurationError("REDIS_HOST is not set.")

        host, scheme, uri_port = _split_host(raw_host)
        if not host:
            raise ConfigurationError(f"Unable to parse REDIS_HOST '{raw_host}'.")

        if port is None:
            port = uri_port
        if port is None:
            port = env_port
        if port is None:
            port = int(os.environ.get("REDIS_PORT") or DEFAULT_PORT)

        if tls is None and scheme in ("redis", "rediss"):
            tls = scheme == "rediss"
        if tls is None:
            tls = env_tls
        if tls is None:
            tls = _env_flag("REDIS_SSL")
        if tls is None:
            tls = host.split(".")[0] in TLS_ENDPOINT_LABELS

        if cluster is None:
            cluster = _is_cluster_host(host)

        replication_group = replication_group_from_host(host)
        if not replication_group:
            raise ConfigurationError(
                f"Unable to parse REDIS_HOST. Is {host} a valid elasticache endpoint?"
            )

        return cls(host=host, port=int(port), tls=bool(tls), cluster=bool(cluster),
                   replication_group=replication_group)

    def url(self) -> str:
        scheme = "rediss" if self.tls else "redis"
        return f"{scheme}://{self.host}:{self.port}"

    def params(self) -> Dict[str, Any]:
        if self.cluster:
            return {"cluster": [self.url()], "port": self.port, "ssl": self.tls}
        return {"host": self.host, "port": self.port, "ssl": self.tls}

    def connect(self, socket_timeout: float = 5.0, socket_connect_timeout: float = 5.0):
        """
        Builds the redis-py client.

        A standalone client dials on first command. A cluster client discovers
        its slots right away, so that failure is reported here.

        Raises:
            ConnectivityError: If cluster discovery cannot reach the endpoint.
        """
        if self.cluster:
            try:
                return RedisCluster.from_url(
                    self.url(),
                    socket_timeout=socket_timeout,
                    socket_connect_timeout=socket_connect_timeout,
                )
            except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError,
                    redis.exceptions.RedisClusterException) as e:
                raise ConnectivityError(f"Could not reach Redis cluster at {self}: {e}") from e
        return redis.Redis(
            host=self.host,
            port=self.port,
            ssl=self.tls,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
        )

    def __str__(self) -> str:
        mode = "cluster" if self.cluster else "standalone"
        return f"{self.url()} ({mode}, replication_group={self.replication_group})"
