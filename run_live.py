# slowlog-check/run_live.py
import json
from datetime import datetime, timezone

from dotenv import load_dotenv

# Load REDIS_HOST, DATADOG_API_KEY, ... from .env before the settings are built
load_dotenv()

from lambdas.slowlog_check.app import handler  # noqa: E402


if __name__ == "__main__":
    print("--- Running slowlog check once against the live endpoint ---")
    fake_event = {
        "source": "aws.events",
        "detail-type": "Scheduled Event",
        "time": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }
    result = handler(fake_event, None)
    print(json.dumps(result, indent=2))
