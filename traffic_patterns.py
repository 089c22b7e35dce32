#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Traffic Pattern Analysis
========================

Bandwidth, temporal and per-client behavior patterns over a batch of DNS
query records, plus naive trend projections.

Features:
- Bandwidth per analysis-window slot (average and 1-minute peak Mbps, share
  of total traffic, trend against the other slots)
- Hourly / day-of-week / ISO-week distributions with peak and low buckets,
  regularity (1 - coefficient of variation) and a seasonality flag
- Client behavior type, activity level, 24-hour typical usage, burst and
  long-domain behavior anomalies, risk score
- Predicted volume, bandwidth, client count and domain diversity

Bandwidth here is estimated from record counts and domain lengths; there is
no byte accounting in DNS logs.

Usage:
    from traffic_patterns import TrafficPatternAnalyzer
    from analysis_config import TrafficPatternsConfig

    result = TrafficPatternAnalyzer().analyze_patterns(records, {}, TrafficPatternsConfig())
    for pattern in result.temporal_patterns:
        print(pattern.pattern, pattern.peak_buckets, pattern.regularity)
"""

import logging
import time
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np

from analysis_config import TrafficPatternsConfig
from analysis_models import (BehaviorAnomaly, BandwidthPattern, ClientBehavior, HourlyUsage, Severity,
                             TemporalPattern, TrafficAnomaly, TrafficPattern, TrafficPatternsResult,
                             TrafficTrend)
from detection_scoring import client_risk_score
from dns_records import ClientStats, QueryRecord, format_timestamp
from time_windows import format_duration, group_by_client, group_by_time_windows, parse_duration


DEFAULT_ANALYSIS_WINDOW = timedelta(hours=1)
PEAK_SUBSLOT = timedelta(minutes=1)
BURST_SLOT = timedelta(minutes=5)

RECORD_OVERHEAD_BYTES = 50            # per-record size estimate: len(domain) + overhead
BYTES_PER_QUERY = 100.0               # used for hourly usage bandwidth
MBIT = 1024 * 1024

TREND_UP = 1.2
TREND_DOWN = 0.8
HOURLY_PEAK, HOURLY_LOW = 1.5, 0.5
DAILY_PEAK, DAILY_LOW = 1.2, 0.8
SEASONALITY_REGULARITY = 0.7

BURST_RATIO = 3.0
LONG_DOMAIN_LENGTH = 50

# (metric growth factor, confidence, trend label)
TREND_PROJECTIONS = {
    "query_volume": (1.1, 0.7, "stable"),
    "bandwidth": (1.05, 0.6, "stable"),
    "client_count": (1.02, 0.8, "stable"),
    "domain_diversity": (1.08, 0.65, "increasing"),
}


# -----------------------
# Estimation helpers
# -----------------------

def estimate_record_size(record: QueryRecord) -> int:
    return len(record.domain) + RECORD_OVERHEAD_BYTES


def average_bandwidth_mbps(records: Sequence[QueryRecord]) -> float:
    """Mbps assuming the records span one minute."""
    if not records:
        return 0.0
    total_bytes = sum(estimate_record_size(r) for r in records)
    return (total_bytes / 60.0) * 8 / MBIT


def peak_bandwidth_mbps(records: Sequence[QueryRecord]) -> float:
    subslots = group_by_time_windows(records, PEAK_SUBSLOT)
    return max((average_bandwidth_mbps(r) for r in subslots.values()), default=0.0)


def bandwidth_from_queries(query_count: int) -> float:
    """Mbps for query_count queries of ~100 bytes spread over an hour."""
    return (query_count * BYTES_PER_QUERY / 3600.0) * 8 / MBIT


def regularity(counts: Dict[int, int]) -> float:
    """max(0, 1 - CV) of the bucket counts, sample std; 0 for under 2 buckets."""
    if len(counts) < 2:
        return 0.0
    values = np.array(list(counts.values()), dtype=float)
    mean = values.mean()
    if mean == 0:
        return 0.0
    cv = values.std(ddof=1) / mean
    return float(max(0.0, 1.0 - cv))


def _temporal_pattern(name: str, counts: Dict[int, int], peak_factor: float, low_factor: float) -> TemporalPattern:
    peaks: List[int] = []
    lows: List[int] = []
    if counts:
        avg = sum(counts.values()) / len(counts)
        for bucket in sorted(counts):
            if counts[bucket] > avg * peak_factor:
                peaks.append(bucket)
            elif counts[bucket] < avg * low_factor:
                lows.append(bucket)
    score = regularity(counts)
    return TemporalPattern(
        pattern=name,
        peak_buckets=peaks,
        low_buckets=lows,
        regularity=score,
        seasonality=score > SEASONALITY_REGULARITY,
    )


class TrafficPatternAnalyzer:
    """Traffic pattern family; one instance can serve many batches."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def analyze_patterns(
        self,
        records: Sequence[QueryRecord],
        client_stats: Dict[str, ClientStats],
        config: TrafficPatternsConfig,
    ) -> TrafficPatternsResult:
        self.logger.info("Starting traffic pattern analysis: %d records, %d clients, window=%s",
                         len(records), len(client_stats), config.analysis_window)
        started = time.monotonic()

        window = parse_duration(config.analysis_window, DEFAULT_ANALYSIS_WINDOW)
        latest = max((r.timestamp for r in records), default=None)
        result = TrafficPatternsResult(
            pattern_id=f"pattern_{int(latest.timestamp()) if latest else 0}",
        )

        if "bandwidth" in config.pattern_types:
            result.bandwidth_patterns = self.analyze_bandwidth_patterns(records, window)
        if "temporal" in config.pattern_types:
            result.temporal_patterns = self.analyze_temporal_patterns(records)
        if "client" in config.pattern_types:
            result.client_behavior = self.analyze_client_behavior(client_stats, records)

        result.detected_patterns = self.detect_general_patterns(records, config)
        if config.anomaly_detection:
            result.anomalies = self.detect_traffic_anomalies(records, config)
        result.predicted_trends = self.predict_traffic_trends(records, window)

        self.logger.info("Traffic pattern analysis completed in %.3fs: %d bandwidth slots, %d clients",
                         time.monotonic() - started, len(result.bandwidth_patterns),
                         len(result.client_behavior))
        return result

    # -----------------------
    # Bandwidth
    # -----------------------

    def analyze_bandwidth_patterns(self, records: Sequence[QueryRecord], window: timedelta) -> List[BandwidthPattern]:
        slots = group_by_time_windows(records, window)
        total = len(records)
        patterns = []
        for slot, slot_records in slots.items():
            patterns.append(BandwidthPattern(
                time_slot=slot,
                avg_bandwidth_mbps=average_bandwidth_mbps(slot_records),
                peak_bandwidth_mbps=peak_bandwidth_mbps(slot_records),
                usage_percentage=len(slot_records) / total * 100 if total else 0.0,
                trend=self._slot_trend(slot, slots),
            ))
        return patterns

    @staticmethod
    def _slot_trend(slot: str, slots: Dict[str, List[QueryRecord]]) -> str:
        others = [len(r) for key, r in slots.items() if key != slot]
        if not others:
            return "stable"
        avg_others = sum(others) / len(others)
        size = len(slots[slot])
        if size > avg_others * TREND_UP:
            return "increasing"
        if size < avg_others * TREND_DOWN:
            return "decreasing"
        return "stable"

    # -----------------------
    # Temporal
    # -----------------------

    def analyze_temporal_patterns(self, records: Sequence[QueryRecord]) -> List[TemporalPattern]:
        hours: Dict[int, int] = {}
        days: Dict[int, int] = {}
        weeks: Dict[int, int] = {}
        for record in records:
            ts = record.timestamp
            hours[ts.hour] = hours.get(ts.hour, 0) + 1
            weekday = ts.isoweekday() % 7          # Sunday = 0
            days[weekday] = days.get(weekday, 0) + 1
            week = ts.isocalendar()[1]
            weeks[week] = weeks.get(week, 0) + 1

        return [
            _temporal_pattern("hourly", hours, HOURLY_PEAK, HOURLY_LOW),
            _temporal_pattern("daily", days, DAILY_PEAK, DAILY_LOW),
            _temporal_pattern("weekly", weeks, DAILY_PEAK, DAILY_LOW),
        ]

    # -----------------------
    # Client behavior
    # -----------------------

    def analyze_client_behavior(self, client_stats: Dict[str, ClientStats],
                                records: Sequence[QueryRecord]) -> Dict[str, ClientBehavior]:
        behavior: Dict[str, ClientBehavior] = {}
        by_client = group_by_client(records)
        total = len(records)
        for client in sorted(by_client):
            client_records = by_client[client]
            stats = client_stats.get(client)
            anomalies = self.detect_client_anomalies(client_records)
            unique_domains = len({r.domain for r in client_records})
            behavior[client] = ClientBehavior(
                ip=client,
                hostname=stats.hostname if stats else "",
                behavior_type=self.classify_behavior_type(client_records),
                activity_level=self.classify_activity_level(len(client_records), total),
                typical_usage=self.analyze_typical_usage(client_records),
                anomalies=anomalies,
                risk_score=client_risk_score([a.severity for a in anomalies],
                                             len(client_records), unique_domains),
            )
        return behavior

    @staticmethod
    def classify_behavior_type(records: Sequence[QueryRecord]) -> str:
        if not records:
            return "inactive"
        unique = len({r.domain for r in records})
        total = len(records)
        per_domain = total / unique
        if unique > 100 and per_domain < 2:
            return "browser"
        if unique < 10 and per_domain > 10:
            return "focused"
        if total > 1000:
            return "heavy_user"
        if total < 10:
            return "light_user"
        return "normal"

    @staticmethod
    def classify_activity_level(client_queries: int, total_queries: int) -> str:
        share = client_queries / total_queries * 100 if total_queries else 0.0
        if share > 10:
            return "high"
        if share > 2:
            return "normal"
        return "low"

    @staticmethod
    def analyze_typical_usage(records: Sequence[QueryRecord]) -> List[HourlyUsage]:
        """Average queries per hour-of-day across the dates present."""
        per_day_hour: Dict[tuple, int] = {}
        for record in records:
            key = (record.timestamp.date(), record.timestamp.hour)
            per_day_hour[key] = per_day_hour.get(key, 0) + 1

        by_hour: Dict[int, List[int]] = {}
        for (_, hour), count in per_day_hour.items():
            by_hour.setdefault(hour, []).append(count)

        usage = []
        for hour in range(24):
            counts = by_hour.get(hour, [])
            if counts:
                avg_queries = sum(counts) / len(counts)
                avg_bandwidth = sum(bandwidth_from_queries(c) for c in counts) / len(counts)
            else:
                avg_queries = avg_bandwidth = 0.0
            usage.append(HourlyUsage(hour=hour, avg_queries=avg_queries, avg_bandwidth_mbps=avg_bandwidth))
        return usage

    @staticmethod
    def detect_client_anomalies(records: Sequence[QueryRecord]) -> List[BehaviorAnomaly]:
        anomalies: List[BehaviorAnomaly] = []
        if not records:
            return anomalies

        slots = group_by_time_windows(records, BURST_SLOT)
        avg_slot = len(records) / len(slots)
        for slot, slot_records in slots.items():
            if len(slot_records) > avg_slot * BURST_RATIO:
                anomalies.append(BehaviorAnomaly(
                    type="burst_activity",
                    description=f"Burst of {len(slot_records)} queries in 5-minute window",
                    timestamp=slot,
                    severity=Severity.MEDIUM,
                    confidence=0.8,
                ))

        by_domain: Dict[str, List[QueryRecord]] = {}
        for record in records:
            by_domain.setdefault(record.domain, []).append(record)
        for domain in sorted(by_domain):
            hits = by_domain[domain]
            if len(hits) == 1 and len(domain) > LONG_DOMAIN_LENGTH:
                anomalies.append(BehaviorAnomaly(
                    type="unusual_domain",
                    description=f"Query to unusual domain: {domain}",
                    timestamp=format_timestamp(hits[0].timestamp),
                    severity=Severity.LOW,
                    confidence=0.6,
                ))
        return anomalies

    # -----------------------
    # Patterns, anomalies, trends
    # -----------------------

    def detect_general_patterns(self, records: Sequence[QueryRecord],
                                config: TrafficPatternsConfig) -> List[TrafficPattern]:
        # Periodic, burst and seasonal pattern detection report nothing yet
        return []

    def detect_traffic_anomalies(self, records: Sequence[QueryRecord],
                                 config: TrafficPatternsConfig) -> List[TrafficAnomaly]:
        # Volume, frequency and deviation tests report nothing yet
        return []

    def predict_traffic_trends(self, records: Sequence[QueryRecord], horizon: timedelta) -> List[TrafficTrend]:
        current = {
            "query_volume": float(len(records)),
            "bandwidth": average_bandwidth_mbps(records),
            "client_count": float(len({r.client_ip for r in records})),
            "domain_diversity": float(len({r.domain for r in records})),
        }
        trends = []
        for metric, (growth, confidence, label) in TREND_PROJECTIONS.items():
            trends.append(TrafficTrend(
                metric=metric,
                current_value=current[metric],
                predicted_value=current[metric] * growth,
                confidence=confidence,
                time_horizon=format_duration(horizon),
                trend=label,
            ))
        return trends
