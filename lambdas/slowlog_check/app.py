# lambdas/slowlog_check/app.py
import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .datadog_client import DatadogClient
from .endpoint import RedisEndpoint
from .errors import SlowlogCheckError
from .models import AppSettings, get_settings
from .slowlog_check import SlowlogCheck
from .ssm import hydrate_environment

# Kept across warm invocations: metadata is synced once and seen commands are remembered.
SLOWLOG_CHECK: Optional[SlowlogCheck] = None


def event_time(event: Dict[str, Any]) -> datetime:
    """The CloudWatch scheduled event time (RFC 3339), or now."""
    raw = (event or {}).get("time")
    if not raw:
        return datetime.now(timezone.utc)
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        print(f"⚠️ Could not parse event time '{raw}'. Using now.")
        return datetime.now(timezone.utc)


def log_context(event: Dict[str, Any]):
    print(f"Received event: {json.dumps(event, default=str)}")
    print(f"Event time: {event_time(event).isoformat()}.")


def build_slowlog_check(settings: AppSettings) -> SlowlogCheck:
    endpoint = RedisEndpoint.resolve(
        settings.redis_host,
        cluster=settings.redis_cluster,
        env_port=settings.redis_port,
        env_tls=settings.redis_ssl,
    )
    print(f"Resolved Redis endpoint: {endpoint}")

    datadog = DatadogClient(
        settings.datadog_api_key,
        settings.datadog_app_key,
        api_url=settings.datadog_api_url,
        timeout=settings.datadog_timeout,
    )
    return SlowlogCheck(
        datadog=datadog,
        redis=endpoint,
        metricname=settings.metricname,
        namespace=settings.namespace,
        env=settings.env,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_connect_timeout,
    )


def handler(event, context):
    """
    Scheduled (once a minute) Lambda handler. Ships every closed minute of
    slowlog statistics that Datadog does not have yet.
    """
    global SLOWLOG_CHECK
    event = event or {}
    log_context(event)

    ssm_path = os.environ.get("SSM_PATH")
    if ssm_path:
        hydrate_environment(ssm_path)

    try:
        if SLOWLOG_CHECK is None:
            SLOWLOG_CHECK = build_slowlog_check(get_settings())
            SLOWLOG_CHECK.update_metadatas()

        emitted = SLOWLOG_CHECK.ship_slowlogs()
    except SlowlogCheckError as e:
        replication_group = SLOWLOG_CHECK.replication_group if SLOWLOG_CHECK else "unknown"
        print(f"❌ CRITICAL: Slowlog check failed for replication group '{replication_group}' "
              f"({type(e).__name__}): {e}")
        # Re-raise so the invocation is marked failed; the next run resumes from Datadog.
        raise

    return {
        "statusCode": 200,
        "body": json.dumps({
            "replication_group": SLOWLOG_CHECK.replication_group,
            "points_submitted": emitted,
        }),
    }
