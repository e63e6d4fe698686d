# lambdas/slowlog_check/slowlog_reader.py
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, List, Optional

import redis
from redis.cluster import RedisCluster

from .errors import ConnectivityError
from .models import SlowlogEntry

DEFAULT_PAGE_SIZE = 128
MAX_LENGTH = 1_048_576  # generous bound on the page-doubling, not a protocol limit


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return "" if value is None else str(value)


def _first_token(command: Any) -> str:
    """redis-py joins the argv into one string, raw replies keep it as a list."""
    if isinstance(command, (list, tuple)):
        return _text(command[0]) if command else ""
    tokens = _text(command).split(maxsplit=1)
    return tokens[0] if tokens else ""


def parse_entry(raw: Any) -> Optional[SlowlogEntry]:
    """
    Converts one slowlog entry into a SlowlogEntry.

    Accepts the raw reply shape [id, unix_ts, micros, [cmd, args...], addr, name]
    as well as the dict redis-py produces. Returns None when it can't be interpreted.
    """
    try:
        if isinstance(raw, Mapping):
            sequence_id = raw["id"]
            timestamp = raw["start_time"]
            duration = raw["duration"]
            command = raw.get("command")
            client_address = raw.get("client_address")
            client_name = raw.get("client_name")
        else:
            sequence_id, timestamp, duration, command = raw[0], raw[1], raw[2], raw[3]
            client_address = raw[4] if len(raw) > 4 else ""
            client_name = raw[5] if len(raw) > 5 else ""

        command_name = _first_token(command)
        if not command_name:
            return None
        return SlowlogEntry(
            sequence_id=int(sequence_id),
            occurred_at=datetime.fromtimestamp(int(timestamp), tz=timezone.utc),
            duration_micros=max(int(duration), 0),
            command=command_name,
            client_address=_text(client_address),
            client_name=_text(client_name),
        )
    except (KeyError, IndexError, TypeError, ValueError, OverflowError, OSError):
        return None


def _raw_id(raw: Any) -> Optional[int]:
    try:
        return int(raw["id"] if isinstance(raw, Mapping) else raw[0])
    except (KeyError, IndexError, TypeError, ValueError):
        return None


def did_i_get_it_all(raw_entries: list, requested: int) -> bool:
    """A short page, or the id 0 entry at the tail, means nothing older is left."""
    if len(raw_entries) < requested:
        return True
    return _raw_id(raw_entries[-1]) == 0


class SlowlogReader:
    """
    Reads the whole SLOWLOG even though SLOWLOG GET only returns the newest N.

    The page size doubles until a read comes back complete or the ceiling is
    reached. Each read supersedes the last one since the server always answers
    with the newest entries first.
    """

    def __init__(self, client, page_size: int = DEFAULT_PAGE_SIZE, max_length: int = MAX_LENGTH):
        self.client = client
        self.page_size = page_size
        self.max_length = max_length

    def _fetch(self, length: int) -> tuple[List[SlowlogEntry], bool]:
        """One SLOWLOG GET. Returns (entries newest first, complete?)."""
        if isinstance(self.client, RedisCluster):
            # SLOWLOG is per node; asking every node answers {node: entries}
            response = self.client.slowlog_get(length, target_nodes=RedisCluster.ALL_NODES)
        else:
            response = self.client.slowlog_get(length)

        if isinstance(response, Mapping):
            pages = [page for page in response.values() if isinstance(page, list)]
        elif isinstance(response, list):
            pages = [response]
        else:
            print(f"⚠️ Unexpected SLOWLOG GET reply of type {type(response).__name__}. Treating it as empty.")
            pages = []

        complete = all(did_i_get_it_all(page, length) for page in pages)
        entries = [entry for page in pages for entry in map(parse_entry, page) if entry]
        if len(pages) > 1:
            entries.sort(key=lambda e: e.occurred_at, reverse=True)
        return entries, complete

    def read(self) -> List[SlowlogEntry]:
        """
        Returns the slowlog newest first.

        Raises:
            ConnectivityError: Only if the very first read can't reach Redis. Later
                failures keep the page already read.
        """
        length = self.page_size
        entries: List[SlowlogEntry] = []
        first_read = True

        while True:
            try:
                entries, complete = self._fetch(length)
            except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError,
                    redis.exceptions.RedisClusterException) as e:
                if first_read:
                    raise ConnectivityError(f"Could not read SLOWLOG: {e}") from e
                print(f"⚠️ SLOWLOG GET {length} failed ({e}). Keeping the {len(entries)} entries already read.")
                return entries
            except redis.exceptions.RedisError as e:
                print(f"⚠️ SLOWLOG GET {length} was rejected ({e}). Keeping the {len(entries)} entries already read.")
                return entries
            first_read = False

            if complete or length >= self.max_length:
                print(f"Read {len(entries)} slowlog entries (SLOWLOG GET {length}).")
                return entries
            length = min(length * 2, self.max_length)
