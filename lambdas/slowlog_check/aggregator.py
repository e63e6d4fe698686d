# lambdas/slowlog_check/aggregator.py
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from .models import Report, RunningStat, SlowlogEntry, TimeBucket, minute_precision

MINUTE = timedelta(seconds=60)


def reporting_interval(last_time_submitted: datetime, now: datetime) -> Report:
    """
    Every whole minute after the watermark up to the last closed minute, each
    seeded with an empty bucket so quiet minutes still take part in zero padding.
    """
    start = minute_precision(last_time_submitted) + MINUTE
    end = minute_precision(now - MINUTE)
    result: Report = {}
    current = start
    while current <= end:
        result[current] = {}
        current += MINUTE
    return result


def slowlogs_by_flush_interval(slowlogs: Iterable[SlowlogEntry], last_time_submitted: datetime,
                               now: datetime) -> Report:
    """
    Buckets slowlog entries (newest first) by minute and command.

    Entries from the still-open minute are left for the next run. Scanning stops
    at the first entry at or before the watermark, the log is time ordered.
    """
    result = reporting_interval(last_time_submitted, now)
    watermark = minute_precision(last_time_submitted)
    last_closed_minute = minute_precision(now - MINUTE)

    for slowlog in slowlogs:
        bucket = minute_precision(slowlog.occurred_at)
        if bucket > last_closed_minute:
            continue
        if bucket <= watermark:
            break

        commands = result.setdefault(bucket, {})
        stat = commands.get(slowlog.command)
        if stat is None:
            commands[slowlog.command] = RunningStat.first(slowlog.duration_micros)
        else:
            stat.add_sample(slowlog.duration_micros)

    return result


def new_commands(timestamp: datetime, bucket: TimeBucket) -> Dict[str, datetime]:
    return {command: timestamp for command in bucket}


def pad_results_with_zero(report: Report, seen_commands: Dict[str, datetime],
                          seen_by_minute: Optional[Dict[datetime, Dict[str, datetime]]] = None) -> Report:
    """
    Closes out commands that went quiet with one explicit zero record.

    A command active in one minute and missing from the next gets a zero
    record in that next minute and is forgotten, so it is zeroed only once.
    seen_commands is updated in place and may outlive this report. When
    seen_by_minute is given it receives a copy of seen_commands after each minute.
    """
    for timestamp in sorted(report):
        bucket = report[timestamp]
        current = new_commands(timestamp, bucket)

        for command in list(seen_commands):
            if command not in current:
                bucket[command] = RunningStat.empty()
                del seen_commands[command]

        seen_commands.update(current)
        if seen_by_minute is not None:
            seen_by_minute[timestamp] = dict(seen_commands)
    return report
