#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test script for traffic pattern analysis
"""

import sys
import os
from datetime import datetime, timedelta, timezone

# Add the current directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from analysis_config import TrafficPatternsConfig
from analysis_models import Severity
from dns_records import ClientStats, QueryRecord
from traffic_patterns import TrafficPatternAnalyzer, regularity

T0 = datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc)


def make_record(rid, seconds, domain="example.com", client="192.168.1.10"):
    return QueryRecord(id=rid, timestamp=T0 + timedelta(seconds=seconds), domain=domain, client_ip=client)


def three_hours():
    """10 queries at 09:xx, 10 at 10:xx and 40 at 11:xx"""
    records = [make_record(i, i * 300, domain=f"site{i % 5}.com") for i in range(10)]
    records += [make_record(100 + i, 3600 + i * 300, domain=f"site{i % 5}.com") for i in range(10)]
    records += [make_record(200 + i, 7200 + i * 60, domain=f"site{i % 5}.com", client="192.168.1.11")
                for i in range(40)]
    return records


def test_temporal_patterns():
    print("Testing temporal patterns...")
    patterns = TrafficPatternAnalyzer().analyze_temporal_patterns(three_hours())
    assert [p.pattern for p in patterns] == ["hourly", "daily", "weekly"]

    hourly = patterns[0]
    assert hourly.peak_buckets == [11]
    assert hourly.low_buckets == []
    assert 0.0 < hourly.regularity < 0.7
    assert hourly.seasonality is False

    daily = patterns[1]
    assert daily.peak_buckets == [] and daily.regularity == 0.0
    print(f"✓ Peak hour {hourly.peak_buckets}, regularity {hourly.regularity:.3f}")


def test_regularity():
    assert regularity({}) == 0.0
    assert regularity({1: 5}) == 0.0
    assert regularity({1: 5, 2: 5, 3: 5}) == 1.0
    assert regularity({1: 0, 2: 100}) == 0.0
    print("✓ Regularity is 1 - CV, floored at 0")


def test_bandwidth_patterns():
    analyzer = TrafficPatternAnalyzer()
    patterns = analyzer.analyze_bandwidth_patterns(three_hours(), timedelta(hours=1))
    assert [p.time_slot for p in patterns] == ["2024-01-01T09:00:00Z", "2024-01-01T10:00:00Z",
                                               "2024-01-01T11:00:00Z"]
    assert [p.trend for p in patterns] == ["decreasing", "decreasing", "increasing"]
    assert abs(sum(p.usage_percentage for p in patterns) - 100.0) < 1e-9
    assert all(p.peak_bandwidth_mbps >= 0 and p.avg_bandwidth_mbps > 0 for p in patterns)
    print("✓ Bandwidth slots with usage share and trend")


def test_client_classification():
    print("Testing client classification...")
    analyzer = TrafficPatternAnalyzer()
    focused = [make_record(i, i, domain=f"d{i % 2}.com") for i in range(50)]
    light = [make_record(i, i) for i in range(5)]
    browser = [make_record(i, i, domain=f"page{i}.com") for i in range(150)]
    assert analyzer.classify_behavior_type(focused) == "focused"
    assert analyzer.classify_behavior_type(light) == "light_user"
    assert analyzer.classify_behavior_type(browser) == "browser"
    assert analyzer.classify_behavior_type([]) == "inactive"

    assert analyzer.classify_activity_level(20, 100) == "high"
    assert analyzer.classify_activity_level(5, 100) == "normal"
    assert analyzer.classify_activity_level(1, 100) == "low"
    assert analyzer.classify_activity_level(0, 0) == "low"
    print("✓ Behavior type and activity level")


def test_client_anomalies():
    records = [make_record(i, i * 600) for i in range(3)]
    records += [make_record(10 + i, 3600 + i) for i in range(20)]
    records.append(make_record(99, 5000, domain="x" * 60 + ".example.com"))
    anomalies = TrafficPatternAnalyzer().detect_client_anomalies(records)

    kinds = [a.type for a in anomalies]
    assert kinds.count("burst_activity") == 1
    assert kinds.count("unusual_domain") == 1
    burst = [a for a in anomalies if a.type == "burst_activity"][0]
    assert burst.timestamp == "2024-01-01T10:00:00Z"
    assert burst.severity == Severity.MEDIUM
    print("✓ Burst and long-domain behavior anomalies")


def test_client_behavior_profile():
    records = three_hours()
    stats = {"192.168.1.10": ClientStats(ip="192.168.1.10", hostname="laptop", query_count=20)}
    behavior = TrafficPatternAnalyzer().analyze_client_behavior(stats, records)

    assert list(behavior) == ["192.168.1.10", "192.168.1.11"]
    laptop = behavior["192.168.1.10"]
    assert laptop.hostname == "laptop"
    assert laptop.activity_level == "high"
    assert len(laptop.typical_usage) == 24
    assert laptop.typical_usage[9].avg_queries == 10
    assert laptop.typical_usage[0].avg_queries == 0
    assert 0.0 <= laptop.risk_score <= 1.0
    assert behavior["192.168.1.11"].hostname == ""
    print("✓ Per-client behavior profiles")


def test_analyze_patterns():
    print("Testing full pattern analysis...")
    records = three_hours()
    analyzer = TrafficPatternAnalyzer()
    result = analyzer.analyze_patterns(records, {}, TrafficPatternsConfig())

    latest = max(r.timestamp for r in records)
    assert result.pattern_id == f"pattern_{int(latest.timestamp())}"
    assert len(result.bandwidth_patterns) == 2        # 2h window: 08-10 and 10-12
    assert len(result.temporal_patterns) == 3
    assert set(result.client_behavior) == {"192.168.1.10", "192.168.1.11"}
    assert result.detected_patterns == [] and result.anomalies == []

    trends = {t.metric: t for t in result.predicted_trends}
    assert set(trends) == {"query_volume", "bandwidth", "client_count", "domain_diversity"}
    assert trends["query_volume"].current_value == 60
    assert abs(trends["query_volume"].predicted_value - 66.0) < 1e-9
    assert trends["client_count"].current_value == 2
    assert trends["domain_diversity"].trend == "increasing"
    assert trends["bandwidth"].time_horizon == "2h0m0s"

    again = analyzer.analyze_patterns(records, {}, TrafficPatternsConfig())
    assert again.to_dict() == result.to_dict()
    print("✓ Pattern analysis is complete and repeatable")


def test_pattern_type_selection():
    config = TrafficPatternsConfig(pattern_types=["temporal"], anomaly_detection=False)
    result = TrafficPatternAnalyzer().analyze_patterns(three_hours(), {}, config)
    assert result.bandwidth_patterns == []
    assert result.client_behavior == {}
    assert len(result.temporal_patterns) == 3
    print("✓ Only the configured pattern types run")


def test_short_analysis_window():
    config = TrafficPatternsConfig(analysis_window="0.5s")
    result = TrafficPatternAnalyzer().analyze_patterns(three_hours(), {}, config)
    assert result.anomalies == []
    # floored to one-second slots, one record per slot
    assert len(result.bandwidth_patterns) == 60
    print("✓ Sub-second analysis window handled")


def main():
    """Run all tests"""
    print("=" * 60)
    print("Traffic Pattern Test Suite")
    print("=" * 60)

    try:
        test_temporal_patterns()
        test_regularity()
        test_bandwidth_patterns()
        test_client_classification()
        test_client_anomalies()
        test_client_behavior_profile()
        test_analyze_patterns()
        test_pattern_type_selection()
        test_short_analysis_window()

        print("\n" + "=" * 60)
        print("✓ All tests passed!")
        print("=" * 60)
        return 0

    except AssertionError as e:
        print(f"\n✗ Test failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
