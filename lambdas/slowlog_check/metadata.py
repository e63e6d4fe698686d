# lambdas/slowlog_check/metadata.py
from typing import Any, Dict, List

from .datadog_client import status_or_error

DURATION_METRICS = ["avg", "median", "min", "max", "95percentile"]
ALL_METRICS = DURATION_METRICS + ["count"]


class MetadataSynchronizer:
    """
    Keeps the Datadog metric metadata (description, unit, type, interval) in
    line with what this job emits. Only records that differ are pushed, so
    running it again is harmless.
    """

    def __init__(self, datadog, metricname: str):
        self.datadog = datadog
        self.metricname = metricname

    def metric_metadatas(self) -> List[Dict[str, Any]]:
        metadatas = [
            {
                "name": f"{self.metricname}.{metric}",
                "description": f"slowlog duration {metric} (µs)",
                "short_name": f"{metric} (µs)",
                "integration": None,
                "statsd_interval": 60,
                "per_unit": None,
                "type": "gauge",
                "unit": "microsecond",
            }
            for metric in DURATION_METRICS
        ]
        metadatas.append({
            "name": f"{self.metricname}.count",
            "type": "rate",
            "description": "slowlog entries per minute",
            "short_name": "per minute",
            "per_unit": "minute",
            "integration": None,
            "unit": "entry",
            "statsd_interval": 60,
        })
        return metadatas

    def get_metadatas(self) -> List[Dict[str, Any]]:
        registered = []
        for metric in ALL_METRICS:
            name = f"{self.metricname}.{metric}"
            body = self.datadog.get_metadata(name)[1] or {}
            registered.append({**body, "name": name})
        return registered

    def diff_metadatas(self) -> List[Dict[str, Any]]:
        registered = self.get_metadatas()
        return [metadata for metadata in self.metric_metadatas() if metadata not in registered]

    def update_metadatas(self) -> List[str]:
        """Pushes the differing records. Returns the metric names that were updated."""
        updated = []
        for metadata in self.diff_metadatas():
            payload = dict(metadata)
            name = payload.pop("name")
            resp = self.datadog.update_metadata(name, payload)
            status = status_or_error(resp)
            if isinstance(status, list):
                print(f"⚠️ Could not update metadata for {name}: {status}")
                continue
            print(f"Updating metadata for {name} {status}")
            updated.append(name)
        return updated
