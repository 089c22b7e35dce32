#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Traffic Baseline
================

Batch-wide reference statistics that rate-based detectors compare against.
Always built from the full, unsampled record set.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Sequence

from dns_records import QueryRecord
from time_windows import calculate_time_span, records_to_frame

COMMON_DOMAIN_FRACTION = 10     # top 1/N of unique domains count as "common"


@dataclass(frozen=True)
class Baseline:
    avg_queries_per_minute: float = 0.0
    common_domains: FrozenSet[str] = frozenset()
    typical_client_volume: Dict[str, int] = field(default_factory=dict, hash=False)
    time_span_minutes: float = 60.0


def create_baseline(records: Sequence[QueryRecord]) -> Baseline:
    """
    Build the Baseline for a batch.

    avg_queries_per_minute is count / span (span floored to 1 hour for
    empty or sub-minute batches). common_domains holds the ceil(unique/10)
    most queried domains, ties broken alphabetically.
    """
    span_minutes = calculate_time_span(records).total_seconds() / 60.0
    if not records:
        return Baseline(time_span_minutes=span_minutes)

    frame = records_to_frame(records)
    avg_per_minute = len(frame) / max(span_minutes, 1.0)

    domain_counts = frame.groupby('DOMAIN').size().reset_index(name='COUNT')
    domain_counts = domain_counts.sort_values(['COUNT', 'DOMAIN'], ascending=[False, True])
    top_n = math.ceil(len(domain_counts) / COMMON_DOMAIN_FRACTION)
    common = frozenset(domain_counts['DOMAIN'].head(top_n))

    client_counts = frame.groupby('CLIENT').size()
    typical = {str(ip): int(count) for ip, count in client_counts.items()}

    return Baseline(
        avg_queries_per_minute=avg_per_minute,
        common_domains=common,
        typical_client_volume=typical,
        time_span_minutes=span_minutes,
    )
