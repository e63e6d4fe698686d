# lambdas/slowlog_check/datadog_client.py
"""
Minimal Datadog v1 HTTP API client.

Every call returns a (status_code, body) tuple. Network failures are folded
into that shape as (None, {"errors": [...]}), so callers have a single place to
decide what counts as success (see status_or_error).
"""
from typing import Any, Dict, List, Optional, Tuple

import requests

Response = Tuple[Optional[str], Dict[str, Any]]


def status_or_error(resp: Response):
    """Returns body["status"], else body["errors"], else the whole response."""
    body = resp[1] if len(resp) > 1 and isinstance(resp[1], dict) else {}
    if "status" in body:
        return body["status"]
    if "errors" in body:
        return body["errors"]
    return resp


def format_tags(tags: Dict[str, Any]) -> List[str]:
    return [f"{key}:{value}" for key, value in tags.items()]


class DatadogClient:
    def __init__(self, api_key: str, app_key: str, api_url: str = "https://api.datadoghq.com",
                 timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "DD-API-KEY": api_key,
            "DD-APPLICATION-KEY": app_key,
            "Content-Type": "application/json",
        })

    def _request(self, method: str, path: str, **kwargs) -> Response:
        url = f"{self.api_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            print(f"❌ Datadog {method} {path} failed due to a network error: {e}")
            return None, {"errors": [str(e)]}

        try:
            body = response.json()
        except ValueError:
            body = {"errors": [response.text or response.reason or "empty response"]}
        if not isinstance(body, dict):
            body = {"errors": [f"unexpected response body: {body!r}"]}
        return str(response.status_code), body

    def get_points(self, query: str, from_time: int, to_time: int) -> Response:
        """Time series query. from_time/to_time are unix seconds."""
        return self._request(
            "GET", "/api/v1/query",
            params={"query": query, "from": int(from_time), "to": int(to_time)},
        )

    def emit_points(self, metric: str, points: List[List[Any]], options: Dict[str, Any]) -> Response:
        """
        Submits points for one metric.

        Args:
            metric: Full metric name.
            points: [[unix_seconds, value], ...]
            options: type, interval, host and tags (a dict, sent as key:value strings).
        """
        series = {
            "metric": metric,
            "points": [[int(ts), value] for ts, value in points],
            "type": options.get("type", "gauge"),
            "interval": options.get("interval"),
            "host": options.get("host"),
            "tags": format_tags(options.get("tags", {})),
        }
        return self._request("POST", "/api/v1/series", json={"series": [series]})

    def get_metadata(self, metric: str) -> Response:
        return self._request("GET", f"/api/v1/metrics/{metric}")

    def update_metadata(self, metric: str, metadata: Dict[str, Any]) -> Response:
        return self._request("PUT", f"/api/v1/metrics/{metric}", json=metadata)
