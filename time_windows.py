#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Time-Window Aggregation
=======================

Groups query records into fixed-duration windows and simple keyed buckets.

Window keys are the window start (timestamp floored to the window duration)
formatted as RFC3339 with a Z suffix. A record belongs to exactly one window,
and the partition depends only on timestamps, never on input order.

Usage:
    from datetime import timedelta
    from time_windows import group_by_time_windows

    windows = group_by_time_windows(records, timedelta(minutes=5))
    for key, window_records in windows.items():
        print(key, len(window_records))
"""

import logging
import re
from collections import defaultdict
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

import pandas as pd

from dns_records import QueryRecord

logger = logging.getLogger(__name__)

MIN_TIME_SPAN = timedelta(hours=1)      # used for empty or sub-minute batches
RECORD_COLUMNS = ['ID', 'TS', 'DOMAIN', 'CLIENT', 'QTYPE', 'STATUS', 'REPLY_MS', 'RECORD']

_DURATION_RE = re.compile(r"^(?:(\d+(?:\.\d+)?)h)?(?:(\d+(?:\.\d+)?)m)?(?:(\d+(?:\.\d+)?)s)?$")


def parse_duration(text: Optional[str], default: timedelta) -> timedelta:
    """
    Parse "2h", "30m", "1h30m", "45s" style durations.

    Anything unparseable (or zero) falls back to `default`.
    """
    if not text:
        return default
    match = _DURATION_RE.match(str(text).strip().lower())
    if not match or not any(match.groups()):
        logger.warning("Invalid duration %r, using %s", text, default)
        return default
    hours, minutes, seconds = (float(g) if g else 0.0 for g in match.groups())
    duration = timedelta(hours=hours, minutes=minutes, seconds=seconds)
    if duration <= timedelta(0):
        logger.warning("Non-positive duration %r, using %s", text, default)
        return default
    return duration


def records_to_frame(records: Sequence[QueryRecord]) -> pd.DataFrame:
    """DataFrame view of the records; RECORD holds the original object."""
    if not records:
        frame = pd.DataFrame(columns=RECORD_COLUMNS)
        frame['TS'] = pd.to_datetime(frame['TS'], utc=True)
        return frame
    rows = [{
        'ID': r.id,
        'TS': r.timestamp,
        'DOMAIN': r.domain,
        'CLIENT': r.client_ip,
        'QTYPE': r.query_type,
        'STATUS': r.status_code,
        'REPLY_MS': r.reply_time_ms,
        'RECORD': r,
    } for r in records]
    frame = pd.DataFrame(rows, columns=RECORD_COLUMNS)
    frame['TS'] = pd.to_datetime(frame['TS'], utc=True)
    return frame


def _window_freq(window: timedelta) -> str:
    # pandas rejects a zero frequency; windows are at least one second
    return f"{max(1, int(window.total_seconds()))}s"


def group_by_time_windows(records: Sequence[QueryRecord], window: timedelta) -> Dict[str, List[QueryRecord]]:
    """Partition records into windows keyed by RFC3339 window start, keys sorted."""
    if not records:
        return {}
    frame = records_to_frame(records)
    frame['WINDOW'] = frame['TS'].dt.floor(_window_freq(window))

    windows: Dict[str, List[QueryRecord]] = {}
    for start, group in frame.groupby('WINDOW', sort=True):
        key = start.strftime("%Y-%m-%dT%H:%M:%SZ")
        windows[key] = list(group['RECORD'])
    return windows


def group_by_client(records: Sequence[QueryRecord]) -> Dict[str, List[QueryRecord]]:
    groups: Dict[str, List[QueryRecord]] = defaultdict(list)
    for record in records:
        groups[record.client_ip].append(record)
    return dict(groups)


def group_by_domain(records: Sequence[QueryRecord]) -> Dict[str, List[QueryRecord]]:
    groups: Dict[str, List[QueryRecord]] = defaultdict(list)
    for record in records:
        groups[record.domain].append(record)
    return dict(groups)


def count_by(records: Sequence[QueryRecord], attr: str) -> Dict[str, int]:
    """Occurrence count of one QueryRecord attribute (e.g. "domain", "client_ip")."""
    counts: Dict[str, int] = defaultdict(int)
    for record in records:
        counts[getattr(record, attr)] += 1
    return dict(counts)


def calculate_time_span(records: Sequence[QueryRecord]) -> timedelta:
    """Latest minus earliest timestamp; 1 hour when empty or under a minute."""
    if not records:
        return MIN_TIME_SPAN
    earliest = min(r.timestamp for r in records)
    latest = max(r.timestamp for r in records)
    span = latest - earliest
    if span < timedelta(minutes=1):
        return MIN_TIME_SPAN
    return span


def latest_timestamp(records: Sequence[QueryRecord]):
    return max(r.timestamp for r in records) if records else None


def format_duration(duration: timedelta) -> str:
    """Render a duration as "2h0m0s"."""
    total = int(duration.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}h{minutes}m{seconds}s"
