#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DNS Performance & Quality Analysis
==================================

Latency, bandwidth, throughput, loss and jitter metrics derived from DNS
query records, graded against configurable quality thresholds.

Features:
- Latency mean / min / max / p50 / p95 / p99 and a bucketed distribution
- Estimated bandwidth per 5-minute slot and per client
- Queries per second, peak-minute QPS, processing time estimate
- Failure-based loss (status 3 or 4) with a burst event above 5%
- Jitter from consecutive per-client latencies
- Letter grades (A-F) and an overall 0-100 score

Latency falls back to an estimate when records carry no reply time, and
bandwidth is always estimated from record contents.

Usage:
    from performance_analyzer import PerformanceAnalyzer
    from analysis_config import PerformanceConfig

    result = PerformanceAnalyzer().analyze_performance(records, {}, PerformanceConfig())
    print(result.overall_score, result.quality.overall_grade)
"""

import logging
import time
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np

from analysis_config import PerformanceConfig, QualityThresholds
from analysis_models import (BandwidthMetrics, BandwidthTimeSlot, JitterMetrics, LatencyBucket,
                             LatencyMetrics, LossBurst, PacketLossMetrics, PerformanceResult,
                             QualityAssessment, QualityIssue, ThroughputMetrics)
from detection_scoring import score_severity
from dns_records import (ClientStats, QueryRecord, estimate_latency, estimate_packet_size,
                         estimate_processing_time, format_timestamp)
from time_windows import calculate_time_span, format_duration, group_by_client, group_by_time_windows


BANDWIDTH_SLOT = timedelta(minutes=5)
QPS_SLOT = timedelta(minutes=1)
MBIT = 1024 * 1024

LOST_STATUS_CODES = {3, 4}
BURST_LOSS_PERCENT = 5.0
RESPONSE_RATE = 100.0                 # DNS logs only hold answered queries

LATENCY_BUCKETS = [(0.0, 10.0), (10.0, 50.0), (50.0, 100.0), (100.0, 200.0), (200.0, 500.0), (500.0, float("inf"))]

GRADE_CUTOFFS = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]
GRADE_SCORES = {"A": 95.0, "B": 85.0, "C": 75.0, "D": 65.0, "F": 50.0}
UNKNOWN_GRADE_SCORE = 75.0


# -----------------------
# Statistics helpers
# -----------------------

def calculate_percentile(values: Sequence[float], percentile: float) -> float:
    """Linear-interpolated percentile; 0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=float), percentile))


def bytes_to_mbps(byte_count: float, duration: timedelta) -> float:
    seconds = duration.total_seconds()
    if seconds <= 0:
        return 0.0
    return byte_count / seconds * 8 / MBIT


def score_to_grade(score: float) -> str:
    for cutoff, grade in GRADE_CUTOFFS:
        if score >= cutoff:
            return grade
    return "F"


def grade_to_score(grade: str) -> float:
    return GRADE_SCORES.get(grade, UNKNOWN_GRADE_SCORE)


def overall_score(assessment: QualityAssessment) -> float:
    """Mean grade score of the graded dimensions; 100 when nothing was graded."""
    grades = [g for g in (assessment.latency_grade, assessment.bandwidth_grade,
                          assessment.reliability_grade) if g]
    if not grades:
        return 100.0
    return sum(grade_to_score(g) for g in grades) / len(grades)


def _over_limit_score(value: float, limit: float) -> float:
    return max(0.0, 100 - (value - limit) / limit * 100)


class PerformanceAnalyzer:
    """Performance family; stateless apart from its logger."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def analyze_performance(
        self,
        records: Sequence[QueryRecord],
        client_stats: Dict[str, ClientStats],
        config: PerformanceConfig,
    ) -> PerformanceResult:
        self.logger.info("Starting performance analysis: %d records, %d clients",
                         len(records), len(client_stats))
        started = time.monotonic()

        result = PerformanceResult()
        if config.latency_analysis:
            result.latency = self.analyze_latency(records)
        if config.bandwidth_analysis:
            result.bandwidth = self.analyze_bandwidth(records)
        if config.throughput_analysis:
            result.throughput = self.analyze_throughput(records)
        if config.packet_loss_analysis:
            result.packet_loss = self.detect_packet_loss(records)
        if config.jitter_analysis:
            result.jitter = self.analyze_jitter(records)

        result.quality = self.assess_network_quality(result, config)
        result.overall_score = overall_score(result.quality)

        self.logger.info("Performance analysis completed in %.3fs: score=%.1f grade=%s",
                         time.monotonic() - started, result.overall_score,
                         result.quality.overall_grade)
        return result

    # -----------------------
    # Metrics
    # -----------------------

    def analyze_latency(self, records: Sequence[QueryRecord]) -> LatencyMetrics:
        per_client: Dict[str, List[float]] = {}
        latencies: List[float] = []
        for record in records:
            latency = estimate_latency(record)
            if latency > 0:
                latencies.append(latency)
                per_client.setdefault(record.client_ip, []).append(latency)

        if not latencies:
            return LatencyMetrics()

        values = np.asarray(latencies, dtype=float)
        return LatencyMetrics(
            avg_latency_ms=float(values.mean()),
            min_latency_ms=float(values.min()),
            max_latency_ms=float(values.max()),
            p50_latency_ms=calculate_percentile(latencies, 50),
            p95_latency_ms=calculate_percentile(latencies, 95),
            p99_latency_ms=calculate_percentile(latencies, 99),
            per_client={c: float(np.mean(v)) for c, v in sorted(per_client.items())},
            distribution=self._latency_distribution(latencies),
        )

    @staticmethod
    def _latency_distribution(latencies: Sequence[float]) -> List[LatencyBucket]:
        buckets = [LatencyBucket(range_start_ms=lo, range_end_ms=hi) for lo, hi in LATENCY_BUCKETS]
        for latency in latencies:
            for bucket in buckets:
                if bucket.range_start_ms <= latency < bucket.range_end_ms:
                    bucket.count += 1
                    break
        total = len(latencies)
        for bucket in buckets:
            bucket.percentage = bucket.count / total * 100 if total else 0.0
        return buckets

    def analyze_bandwidth(self, records: Sequence[QueryRecord]) -> BandwidthMetrics:
        if not records:
            return BandwidthMetrics()

        span = calculate_time_span(records)
        total_bytes = sum(estimate_packet_size(r) for r in records)
        total_mbps = bytes_to_mbps(total_bytes, span)

        distribution = []
        for slot, slot_records in group_by_time_windows(records, BANDWIDTH_SLOT).items():
            slot_bytes = sum(estimate_packet_size(r) for r in slot_records)
            distribution.append(BandwidthTimeSlot(time_slot=slot,
                                                  bandwidth_mbps=bytes_to_mbps(slot_bytes, BANDWIDTH_SLOT)))

        per_client = {
            client: bytes_to_mbps(sum(estimate_packet_size(r) for r in client_records), span)
            for client, client_records in sorted(group_by_client(records).items())
        }

        return BandwidthMetrics(
            total_bandwidth_mbps=total_mbps,
            avg_bandwidth_mbps=total_mbps,
            peak_bandwidth_mbps=max((s.bandwidth_mbps for s in distribution), default=0.0),
            per_client=per_client,
            time_distribution=distribution,
        )

    def analyze_throughput(self, records: Sequence[QueryRecord]) -> ThroughputMetrics:
        if not records:
            return ThroughputMetrics()

        qps = len(records) / calculate_time_span(records).total_seconds()
        minutes = group_by_time_windows(records, QPS_SLOT)
        peak_qps = max(len(r) for r in minutes.values()) / 60.0

        processing = [t for t in (estimate_processing_time(r) for r in records) if t > 0]
        return ThroughputMetrics(
            queries_per_second=qps,
            peak_qps=peak_qps,
            avg_qps=qps,
            response_rate_percentage=RESPONSE_RATE,
            avg_processing_time_ms=float(np.mean(processing)) if processing else 0.0,
        )

    def detect_packet_loss(self, records: Sequence[QueryRecord]) -> PacketLossMetrics:
        """Queries with status 3 or 4 count as lost; >5% overall adds a burst event."""
        total = len(records)
        lost = sum(1 for r in records if r.status_code in LOST_STATUS_CODES)
        loss_pct = lost / total * 100 if total else 0.0

        per_client = {}
        for client, client_records in sorted(group_by_client(records).items()):
            client_lost = sum(1 for r in client_records if r.status_code in LOST_STATUS_CODES)
            per_client[client] = client_lost / len(client_records) * 100

        bursts = []
        if loss_pct > BURST_LOSS_PERCENT:
            bursts.append(LossBurst(
                start_time=format_timestamp(min(r.timestamp for r in records)),
                duration=format_duration(calculate_time_span(records)),
                lost_packets=lost,
                loss_rate=loss_pct,
            ))

        return PacketLossMetrics(
            loss_percentage=loss_pct,
            total_lost=lost,
            total_sent=total,
            per_client=per_client,
            burst_loss=bursts,
        )

    def analyze_jitter(self, records: Sequence[QueryRecord]) -> JitterMetrics:
        """Mean absolute difference between consecutive latencies of each client."""
        per_client: Dict[str, float] = {}
        all_jitter: List[float] = []
        for client, client_records in sorted(group_by_client(records).items()):
            latencies = [lat for lat in (estimate_latency(r) for r in client_records) if lat > 0]
            if len(latencies) < 2:
                continue
            deltas = np.abs(np.diff(np.asarray(latencies, dtype=float)))
            per_client[client] = float(deltas.mean())
            all_jitter.extend(deltas.tolist())

        if not all_jitter:
            return JitterMetrics()

        values = np.asarray(all_jitter, dtype=float)
        return JitterMetrics(
            avg_jitter_ms=float(values.mean()),
            max_jitter_ms=float(values.max()),
            jitter_std_dev=float(values.std(ddof=1)) if len(values) > 1 else 0.0,
            per_client=per_client,
        )

    # -----------------------
    # Quality
    # -----------------------

    def assess_network_quality(self, result: PerformanceResult, config: PerformanceConfig) -> QualityAssessment:
        """
        Grade each analyzed dimension against its threshold.

        A dimension scores 100 unless it breaches the threshold, in which case
        the score drops with the relative overshoot (floored at 0). Dimensions
        whose analysis was disabled are left ungraded.
        """
        thresholds: QualityThresholds = config.quality_thresholds
        assessment = QualityAssessment()
        scores: List[float] = []

        if config.latency_analysis:
            avg = result.latency.avg_latency_ms
            score = 100.0
            if avg > thresholds.max_latency_ms:
                score = _over_limit_score(avg, thresholds.max_latency_ms)
                assessment.issues.append(QualityIssue(
                    type="latency",
                    severity=score_severity(score),
                    description=f"Average latency ({avg:.2f}ms) exceeds threshold ({thresholds.max_latency_ms:.2f}ms)",
                    impact="Network responsiveness may be degraded",
                    resolution="Check network infrastructure and reduce network congestion",
                ))
                assessment.recommendations.append("Investigate high latency sources")
            assessment.latency_grade = score_to_grade(score)
            scores.append(score)

        if config.bandwidth_analysis:
            avg = result.bandwidth.avg_bandwidth_mbps
            score = 100.0
            if avg < thresholds.min_bandwidth_mbps:
                score = max(0.0, avg / thresholds.min_bandwidth_mbps * 100)
                assessment.issues.append(QualityIssue(
                    type="bandwidth",
                    severity=score_severity(score),
                    description=(f"Average bandwidth ({avg:.2f} Mbps) below minimum threshold "
                                 f"({thresholds.min_bandwidth_mbps:.2f} Mbps)"),
                    impact="Network capacity may be insufficient",
                    resolution="Consider upgrading network bandwidth or optimizing traffic",
                ))
                assessment.recommendations.append("Monitor bandwidth utilization patterns")
            assessment.bandwidth_grade = score_to_grade(score)
            scores.append(score)

        if config.packet_loss_analysis:
            loss = result.packet_loss.loss_percentage
            score = 100.0
            if loss > thresholds.max_packet_loss_pct:
                score = _over_limit_score(loss, thresholds.max_packet_loss_pct)
                assessment.issues.append(QualityIssue(
                    type="packet_loss",
                    severity=score_severity(score),
                    description=f"Packet loss ({loss:.2f}%) exceeds threshold ({thresholds.max_packet_loss_pct:.2f}%)",
                    impact="Connection reliability may be compromised",
                    resolution="Check network equipment and connections for errors",
                ))
                assessment.recommendations.append("Investigate packet loss causes")
            assessment.reliability_grade = score_to_grade(score)
            scores.append(score)

        if config.jitter_analysis:
            jitter = result.jitter.avg_jitter_ms
            if jitter > thresholds.max_jitter_ms:
                assessment.issues.append(QualityIssue(
                    type="jitter",
                    severity=score_severity(_over_limit_score(jitter, thresholds.max_jitter_ms)),
                    description=f"Average jitter ({jitter:.2f}ms) exceeds threshold ({thresholds.max_jitter_ms:.2f}ms)",
                    impact="Response times are inconsistent",
                    resolution="Check upstream resolver load and network path stability",
                ))
                assessment.recommendations.append("Investigate response time variability")

        if scores:
            assessment.overall_grade = score_to_grade(sum(scores) / len(scores))

        if assessment.issues:
            assessment.recommendations.append("Regular monitoring recommended to track performance trends")
        else:
            assessment.recommendations.append("Network performance is within acceptable parameters")
        return assessment
