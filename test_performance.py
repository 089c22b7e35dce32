#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test script for performance metrics and quality grading
"""

import sys
import os
import random
from datetime import datetime, timedelta, timezone

# Add the current directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from analysis_config import PerformanceConfig, QualityThresholds
from analysis_models import BandwidthMetrics, JitterMetrics, LatencyMetrics, PacketLossMetrics, PerformanceResult, Severity
from dns_records import QueryRecord
from performance_analyzer import (
    PerformanceAnalyzer,
    bytes_to_mbps,
    calculate_percentile,
    grade_to_score,
    overall_score,
    score_to_grade,
)

T0 = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def make_record(rid, seconds, reply_time_ms=0.0, client="192.168.1.10", status=2, domain="example.com"):
    return QueryRecord(id=rid, timestamp=T0 + timedelta(seconds=seconds), domain=domain, client_ip=client,
                       status_code=status, reply_time_ms=reply_time_ms)


def test_percentile():
    print("Testing percentiles...")
    assert calculate_percentile([5, 1, 3], 50) == 3
    assert calculate_percentile([], 95) == 0.0
    assert calculate_percentile([1, 2, 3, 4], 50) == 2.5

    rng = random.Random(9)
    for trial in range(100):
        values = [rng.uniform(0, 500) for _ in range(rng.randint(1, 50))]
        p50 = calculate_percentile(values, 50)
        p95 = calculate_percentile(values, 95)
        p99 = calculate_percentile(values, 99)
        assert p50 <= p95 <= p99
    print("✓ Linear interpolation and p50 <= p95 <= p99")


def test_grades():
    assert score_to_grade(90) == "A"
    assert score_to_grade(89.9) == "B"
    assert score_to_grade(70) == "C"
    assert score_to_grade(60) == "D"
    assert score_to_grade(59.9) == "F"
    assert grade_to_score("A") == 95.0
    assert grade_to_score("F") == 50.0
    assert grade_to_score("?") == 75.0
    print("✓ Score/grade mapping")


def test_latency_metrics():
    print("Testing latency metrics...")
    replies = [5, 20, 75, 150, 300, 600]
    records = [make_record(i, i, reply_time_ms=r) for i, r in enumerate(replies)]
    latency = PerformanceAnalyzer().analyze_latency(records)

    assert latency.min_latency_ms == 5 and latency.max_latency_ms == 600
    assert abs(latency.avg_latency_ms - sum(replies) / len(replies)) < 1e-9
    assert latency.p50_latency_ms <= latency.p95_latency_ms <= latency.p99_latency_ms
    assert [b.count for b in latency.distribution] == [1, 1, 1, 1, 1, 1]
    assert abs(sum(b.percentage for b in latency.distribution) - 100.0) < 1e-9
    assert list(latency.per_client) == ["192.168.1.10"]
    print(f"✓ avg={latency.avg_latency_ms:.1f}ms p95={latency.p95_latency_ms:.1f}ms")


def test_bandwidth_and_throughput():
    records = [make_record(i, i * 60) for i in range(60)]
    analyzer = PerformanceAnalyzer()

    bandwidth = analyzer.analyze_bandwidth(records)
    assert bandwidth.total_bandwidth_mbps > 0
    assert len(bandwidth.time_distribution) == 12
    assert bandwidth.peak_bandwidth_mbps == max(s.bandwidth_mbps for s in bandwidth.time_distribution)
    assert list(bandwidth.per_client) == ["192.168.1.10"]
    assert bytes_to_mbps(1024 * 1024 / 8, timedelta(seconds=1)) == 1.0

    throughput = analyzer.analyze_throughput(records)
    assert abs(throughput.queries_per_second - 60 / 3540) < 1e-9
    assert abs(throughput.peak_qps - 1 / 60) < 1e-9
    assert throughput.response_rate_percentage == 100.0
    assert throughput.avg_processing_time_ms > 0
    print("✓ Bandwidth slots and throughput")


def test_packet_loss():
    print("Testing packet loss...")
    records = [make_record(i, i * 60, status=2) for i in range(9)]
    records.append(make_record(9, 600, status=3, client="192.168.1.20"))
    loss = PerformanceAnalyzer().detect_packet_loss(records)

    assert loss.total_sent == 10 and loss.total_lost == 1
    assert loss.loss_percentage == 10.0
    assert loss.per_client == {"192.168.1.10": 0.0, "192.168.1.20": 100.0}
    assert len(loss.burst_loss) == 1
    assert loss.burst_loss[0].start_time == "2024-01-01T10:00:00Z"
    assert loss.burst_loss[0].duration == "0h10m0s"

    clean = PerformanceAnalyzer().detect_packet_loss(records[:9])
    assert clean.loss_percentage == 0.0 and clean.burst_loss == []
    print("✓ Status 3/4 counted as lost, burst above 5%")


def test_jitter():
    records = [make_record(i, i, reply_time_ms=r) for i, r in enumerate([10, 20, 15])]
    records.append(make_record(10, 10, reply_time_ms=50, client="192.168.1.30"))
    jitter = PerformanceAnalyzer().analyze_jitter(records)
    assert jitter.avg_jitter_ms == 7.5
    assert jitter.max_jitter_ms == 10.0
    assert jitter.per_client == {"192.168.1.10": 7.5}
    print("✓ Jitter from consecutive latency deltas")


def test_quality_assessment():
    print("Testing quality assessment...")
    result = PerformanceResult(
        latency=LatencyMetrics(avg_latency_ms=165.0),
        bandwidth=BandwidthMetrics(avg_bandwidth_mbps=4.5),
        packet_loss=PacketLossMetrics(loss_percentage=3.0),
        jitter=JitterMetrics(avg_jitter_ms=150.0),
    )
    config = PerformanceConfig(quality_thresholds=QualityThresholds())
    quality = PerformanceAnalyzer().assess_network_quality(result, config)

    assert quality.latency_grade == "A"            # 100 - 15/150*100 = 90
    assert quality.bandwidth_grade == "A"          # 4.5/5 = 90%
    assert quality.reliability_grade == "F"        # 100 - 1/2*100 = 50
    assert quality.overall_grade == "C"
    assert [i.type for i in quality.issues] == ["latency", "bandwidth", "packet_loss", "jitter"]
    assert quality.issues[2].severity == Severity.HIGH
    assert overall_score(quality) == (95 + 95 + 50) / 3
    print(f"✓ Grades {quality.latency_grade}/{quality.bandwidth_grade}/{quality.reliability_grade}, "
          f"overall {quality.overall_grade}")


def test_quality_within_thresholds():
    result = PerformanceResult(bandwidth=BandwidthMetrics(avg_bandwidth_mbps=10.0))
    quality = PerformanceAnalyzer().assess_network_quality(result, PerformanceConfig())
    assert quality.issues == []
    assert quality.overall_grade == "A"
    assert quality.recommendations == ["Network performance is within acceptable parameters"]
    assert overall_score(quality) == 95.0
    print("✓ Healthy metrics grade A")


def test_disabled_dimensions_not_graded():
    config = PerformanceConfig(latency_analysis=False, bandwidth_analysis=False, throughput_analysis=False,
                               packet_loss_analysis=False, jitter_analysis=False)
    records = [make_record(i, i, reply_time_ms=900) for i in range(10)]
    result = PerformanceAnalyzer().analyze_performance(records, {}, config)
    assert result.quality.latency_grade == ""
    assert result.quality.overall_grade == ""
    assert result.overall_score == 100.0
    assert result.latency.avg_latency_ms == 0.0
    print("✓ Disabled analyses are neither run nor graded")


def test_analyze_performance_batch():
    rng = random.Random(4)
    records = [make_record(i, rng.randint(0, 3600), reply_time_ms=rng.uniform(5, 80),
                           client=f"10.0.0.{rng.randint(1, 5)}", status=rng.choice([2, 2, 2, 2, 3]))
               for i in range(300)]
    result = PerformanceAnalyzer().analyze_performance(records, {}, PerformanceConfig())
    assert 50.0 <= result.overall_score <= 95.0
    assert result.quality.overall_grade in ("A", "B", "C", "D", "F")
    assert result.packet_loss.total_sent == 300
    print(f"✓ Batch scored {result.overall_score:.1f}")


def main():
    """Run all tests"""
    print("=" * 60)
    print("Performance Analysis Test Suite")
    print("=" * 60)

    try:
        test_percentile()
        test_grades()
        test_latency_metrics()
        test_bandwidth_and_throughput()
        test_packet_loss()
        test_jitter()
        test_quality_assessment()
        test_quality_within_thresholds()
        test_disabled_dimensions_not_graded()
        test_analyze_performance_batch()

        print("\n" + "=" * 60)
        print("✓ All tests passed!")
        print("=" * 60)
        return 0

    except AssertionError as e:
        print(f"\n✗ Test failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
