#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DNS Beaconing Detection Module
==============================

Statistical analysis of per-client DNS query timing to find the regular
"check-in" rhythm of C2 implants.

A client is beaconing when it has at least 10 queries (so at least 9
intervals, of which 5 are required), the coefficient of variation of its
inter-query intervals is below 0.3, and the mean interval lies strictly
between one minute and one hour. The standard deviation is the population
one.

Features:
- Inter-query interval statistics per client
- Jitter classification
- Known C2 framework interval matching (reported as evidence)

Usage:
    from beaconing_detector import BeaconingDetector

    detector = BeaconingDetector()
    for record in records:
        detector.add_query(record.client_ip, record.timestamp)

    for result in detector.analyze_beaconing():
        if result["is_beaconing"]:
            print(result["client_ip"], result["mean_interval"])
"""

import math
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional


MIN_QUERIES = 10
MIN_INTERVALS = 5
MAX_CV = 0.3
MIN_MEAN_INTERVAL = 60.0         # seconds, inclusive
MAX_MEAN_INTERVAL = 3600.0       # seconds, inclusive


# -----------------------
# Known Beacon Intervals
# -----------------------
# Common beacon intervals (in seconds) used by various C2 frameworks

KNOWN_BEACON_INTERVALS: Dict[int, List[str]] = {
    60: ["Cobalt Strike default", "Generic malware"],
    300: ["Cobalt Strike 5-min", "Empire default"],
    600: ["Sliver default", "Low-and-slow C2"],
    900: ["Mythic default"],
    1800: ["Stealth C2"],
    3600: ["Very slow beacon"],
}


# -----------------------
# Jitter Thresholds
# -----------------------
# Upper CV bound for each class, checked in order

JITTER_THRESHOLDS = [
    ("perfect", 0.02),
    ("low", 0.10),
    ("medium", 0.25),
    ("high", 0.50),
]


class BeaconingDetector:
    """
    Collects query timestamps per client and tests them for regular timing.

    Instances are cheap; create one per analysis batch.
    """

    def __init__(self):
        self.queries: Dict[str, List[datetime]] = defaultdict(list)

    def add_query(self, client_ip: str, timestamp: datetime) -> None:
        self.queries[client_ip].append(timestamp)

    def analyze_beaconing(self, min_queries: int = MIN_QUERIES) -> List[Dict[str, Any]]:
        """
        Analyze every client with enough queries.

        Args:
            min_queries: Minimum number of queries required for analysis

        Returns:
            list: One result dict per analyzed client, sorted by client IP
        """
        results = []
        for client_ip in sorted(self.queries):
            timestamps = sorted(self.queries[client_ip])
            if len(timestamps) < min_queries:
                continue

            analysis = self._analyze_intervals(timestamps)
            if analysis is None:
                continue

            results.append({
                "client_ip": client_ip,
                "query_count": len(timestamps),
                "first_seen": timestamps[0],
                "last_seen": timestamps[-1],
                **analysis,
            })
        return results

    def beaconing_clients(self) -> List[Dict[str, Any]]:
        return [r for r in self.analyze_beaconing() if r["is_beaconing"]]

    def _analyze_intervals(self, timestamps: List[datetime]) -> Optional[Dict[str, Any]]:
        """
        Perform statistical analysis on inter-query intervals.

        Args:
            timestamps: Sorted list of query timestamps

        Returns:
            dict: mean, std deviation, CV, jitter class and verdict
        """
        intervals = [
            (timestamps[i] - timestamps[i - 1]).total_seconds()
            for i in range(1, len(timestamps))
        ]
        if len(intervals) < MIN_INTERVALS:
            return None

        n = len(intervals)
        mean_interval = sum(intervals) / n
        if mean_interval <= 0:
            return None

        variance = sum((x - mean_interval) ** 2 for x in intervals) / n
        std_dev = math.sqrt(variance)
        cv = std_dev / mean_interval

        is_beaconing = cv < MAX_CV and MIN_MEAN_INTERVAL <= mean_interval <= MAX_MEAN_INTERVAL

        return {
            "mean_interval": round(mean_interval, 2),
            "std_deviation": round(std_dev, 2),
            "jitter_coefficient": round(cv, 4),
            "jitter_classification": self._classify_jitter(cv),
            "regularity_score": round(self._calculate_regularity_score(cv), 2),
            "matched_frameworks": self._match_known_interval(mean_interval),
            "interval_count": n,
            "is_beaconing": is_beaconing,
        }

    @staticmethod
    def _classify_jitter(cv: float) -> str:
        for level, max_jitter in JITTER_THRESHOLDS:
            if cv <= max_jitter:
                return level
        return "random"

    @staticmethod
    def _calculate_regularity_score(cv: float) -> float:
        # cv=0 -> 100, cv>=1 -> 0
        if cv >= 1:
            return 0.0
        return max(0.0, min(100.0, (1 - cv) * 100))

    @staticmethod
    def _match_known_interval(mean_interval: float) -> List[str]:
        for known_interval, frameworks in KNOWN_BEACON_INTERVALS.items():
            # 10% tolerance
            if abs(mean_interval - known_interval) <= known_interval * 0.1:
                return list(frameworks)
        return []


if __name__ == "__main__":
    from datetime import timedelta, timezone

    print("=== DNS Beaconing Detection ===\n")
    detector = BeaconingDetector()
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i in range(30):
        detector.add_query("192.168.1.100", start + timedelta(seconds=i * 61))
    for offset in [5, 900, 940, 3000, 3010, 6000, 6100, 9000, 9001, 12000, 15000]:
        detector.add_query("192.168.1.20", start + timedelta(seconds=offset))

    for result in detector.analyze_beaconing():
        print(f"  {result['client_ip']}: mean={result['mean_interval']}s "
              f"cv={result['jitter_coefficient']} ({result['jitter_classification']}) "
              f"beaconing={result['is_beaconing']}")
        if result["matched_frameworks"]:
            print(f"    Matched known interval: {', '.join(result['matched_frameworks'])}")
