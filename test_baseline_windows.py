#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test script for time-window aggregation and baseline modeling
"""

import sys
import os
import random
from datetime import datetime, timedelta, timezone

# Add the current directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dns_records import QueryRecord
from time_windows import (
    calculate_time_span,
    count_by,
    format_duration,
    group_by_client,
    group_by_time_windows,
    parse_duration,
)
from traffic_baseline import create_baseline

T0 = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def make_records(offsets, domain="example.com", client="192.168.1.10"):
    return [
        QueryRecord(id=i + 1, timestamp=T0 + timedelta(seconds=s), domain=domain, client_ip=client)
        for i, s in enumerate(offsets)
    ]


def random_batch(seed, size):
    rng = random.Random(seed)
    domains = [f"site{i}.com" for i in range(25)]
    clients = [f"10.0.0.{i}" for i in range(1, 6)]
    return [
        QueryRecord(id=i, timestamp=T0 + timedelta(seconds=rng.randint(0, 7200)),
                    domain=rng.choice(domains), client_ip=rng.choice(clients))
        for i in range(size)
    ]


def test_window_partition():
    """Each record lands in exactly one window, keyed by window start"""
    print("Testing 5-minute window partition...")
    records = make_records([0, 59, 299, 300, 301, 900])
    windows = group_by_time_windows(records, timedelta(minutes=5))

    assert list(windows) == ["2024-01-01T10:00:00Z", "2024-01-01T10:05:00Z", "2024-01-01T10:15:00Z"]
    assert [len(v) for v in windows.values()] == [3, 2, 1]
    assert sum(len(v) for v in windows.values()) == len(records)
    print(f"✓ {len(records)} records -> {len(windows)} windows")


def test_window_partition_ignores_order():
    records = random_batch(3, 200)
    shuffled = list(records)
    random.Random(11).shuffle(shuffled)

    a = group_by_time_windows(records, timedelta(minutes=5))
    b = group_by_time_windows(shuffled, timedelta(minutes=5))
    assert list(a) == list(b)
    for key in a:
        assert sorted(r.id for r in a[key]) == sorted(r.id for r in b[key])
    print("✓ Partition depends only on timestamps")


def test_empty_windows():
    assert group_by_time_windows([], timedelta(minutes=5)) == {}
    print("✓ Empty batch has no windows")


def test_time_span_floor():
    print("Testing time span...")
    assert calculate_time_span([]) == timedelta(hours=1)
    assert calculate_time_span(make_records([0, 30])) == timedelta(hours=1)
    assert calculate_time_span(make_records([0, 600])) == timedelta(minutes=10)
    print("✓ Span floored to one hour for empty and sub-minute batches")


def test_grouping_helpers():
    records = make_records([0, 1], client="10.0.0.1") + make_records([2], domain="other.com", client="10.0.0.2")
    assert {k: len(v) for k, v in group_by_client(records).items()} == {"10.0.0.1": 2, "10.0.0.2": 1}
    assert count_by(records, "domain") == {"example.com": 2, "other.com": 1}
    print("✓ Client and attribute grouping")


def test_parse_duration():
    default = timedelta(hours=1)
    assert parse_duration("2h", default) == timedelta(hours=2)
    assert parse_duration("30m", default) == timedelta(minutes=30)
    assert parse_duration("1h30m", default) == timedelta(minutes=90)
    assert parse_duration("45s", default) == timedelta(seconds=45)
    assert parse_duration("soon", default) == default
    assert parse_duration("", default) == default
    assert parse_duration("0h", default) == default
    assert format_duration(timedelta(hours=2)) == "2h0m0s"
    assert format_duration(timedelta(minutes=90, seconds=5)) == "1h30m5s"
    print("✓ Duration strings parsed and formatted")


def test_baseline_invariant():
    """avg_queries_per_minute x span == count, common domains are present domains"""
    print("Testing baseline invariant...")
    batches = [random_batch(seed, size) for seed, size in [(1, 1), (2, 10), (3, 250), (4, 1000)]]
    batches.append(make_records([0, 5, 10]))
    for batch in batches:
        baseline = create_baseline(batch)
        assert abs(baseline.avg_queries_per_minute * baseline.time_span_minutes - len(batch)) < 1e-6
        present = {r.domain for r in batch}
        assert baseline.common_domains <= present
        assert sum(baseline.typical_client_volume.values()) == len(batch)
    print(f"✓ Invariant holds over {len(batches)} batches")


def test_baseline_common_domains():
    records = []
    counts = {"a.com": 5, "b.com": 5, "c.com": 1}
    counts.update({f"rare{i}.com": 1 for i in range(8)})
    rid = 0
    for domain, n in counts.items():
        for _ in range(n):
            rid += 1
            records.append(QueryRecord(id=rid, timestamp=T0 + timedelta(seconds=rid * 10),
                                       domain=domain, client_ip="10.0.0.1"))
    baseline = create_baseline(records)
    # 11 unique domains -> top 2, tie between a.com and b.com broken by name
    assert baseline.common_domains == frozenset({"a.com", "b.com"})
    print("✓ Top tenth of domains are common")


def test_empty_baseline():
    baseline = create_baseline([])
    assert baseline.avg_queries_per_minute == 0.0
    assert baseline.common_domains == frozenset()
    assert baseline.typical_client_volume == {}
    assert baseline.time_span_minutes == 60.0
    print("✓ Empty batch gives an empty baseline")


def main():
    """Run all tests"""
    print("=" * 60)
    print("Time Window & Baseline Test Suite")
    print("=" * 60)

    try:
        test_window_partition()
        test_window_partition_ignores_order()
        test_empty_windows()
        test_time_span_floor()
        test_grouping_helpers()
        test_parse_duration()
        test_baseline_invariant()
        test_baseline_common_domains()
        test_empty_baseline()

        print("\n" + "=" * 60)
        print("✓ All tests passed!")
        print("=" * 60)
        return 0

    except AssertionError as e:
        print(f"\n✗ Test failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
