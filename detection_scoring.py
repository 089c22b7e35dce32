#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Detection Scoring Module
========================

Stateless scoring helpers shared by the detectors:
- Threat level from a list of threats and suspicious activities
- Severity and confidence of a rate spike from its ratio to the baseline
- Client risk score from behavior anomalies

Every function here is pure; a threat level can always be re-derived from
the findings it was computed from.
"""

from typing import Iterable, Optional, Sequence

from analysis_models import Anomaly, Severity, SuspiciousActivity


# Points each threat contributes to the threat score
SEVERITY_POINTS = {
    Severity.CRITICAL: 4.0,
    Severity.HIGH: 3.0,
    Severity.MEDIUM: 2.0,
    Severity.LOW: 1.0,
}

# Minimum score for each threat level, checked top-down
THREAT_LEVEL_THRESHOLDS = [
    (10.0, Severity.CRITICAL),
    (6.0, Severity.HIGH),
    (3.0, Severity.MEDIUM),
]

# Ratio-to-baseline cutoffs for spike severity
SPIKE_SEVERITY_THRESHOLDS = [
    (10.0, Severity.CRITICAL),
    (5.0, Severity.HIGH),
    (3.0, Severity.MEDIUM),
]

SPIKE_CONFIDENCE_BASE = 0.5
SPIKE_CONFIDENCE_STEP = 0.1       # per unit of ratio above 3
SPIKE_CONFIDENCE_CAP = 0.95

# Client risk contributions for behavior anomalies
BEHAVIOR_RISK_WEIGHTS = {
    Severity.CRITICAL: 0.3,
    Severity.HIGH: 0.2,
    Severity.MEDIUM: 0.1,
    Severity.LOW: 0.05,
}
HIGH_VOLUME_QUERIES = 10000
HIGH_VOLUME_RISK = 0.1
HIGH_DIVERSITY_DOMAINS = 1000
HIGH_DIVERSITY_RISK = 0.15


def threat_score(threats: Iterable[Anomaly], suspicious: Iterable[SuspiciousActivity] = ()) -> float:
    score = sum(SEVERITY_POINTS.get(t.severity, 0.0) for t in threats)
    score += sum(a.risk_score for a in suspicious)
    return score


def assess_threat_level(
    threats: Sequence[Anomaly],
    suspicious: Sequence[SuspiciousActivity] = (),
    min_severity: Optional[Severity] = None,
) -> Severity:
    """
    Overall threat level: CRITICAL at 10 points, HIGH at 6, MEDIUM at 3,
    otherwise LOW.

    Args:
        threats: Security threats (CRITICAL=4, HIGH=3, MEDIUM=2, LOW=1 points)
        suspicious: Suspicious activities (each adds its risk_score)
        min_severity: If given, threats below this severity are ignored

    Returns:
        Severity: the derived threat level
    """
    if min_severity is not None:
        threats = [t for t in threats if t.severity.rank >= min_severity.rank]

    score = threat_score(threats, suspicious)
    for minimum, level in THREAT_LEVEL_THRESHOLDS:
        if score >= minimum:
            return level
    return Severity.LOW


def spike_severity(ratio: float) -> Severity:
    for minimum, level in SPIKE_SEVERITY_THRESHOLDS:
        if ratio >= minimum:
            return level
    return Severity.LOW


def spike_confidence(ratio: float, threshold: float = 3.0) -> float:
    if ratio < threshold:
        return 0.0
    confidence = SPIKE_CONFIDENCE_BASE + (ratio - threshold) * SPIKE_CONFIDENCE_STEP
    return max(0.0, min(SPIKE_CONFIDENCE_CAP, confidence))


def client_risk_score(severities: Iterable[Severity], query_count: int, unique_domains: int) -> float:
    """Risk in [0, 1] from behavior anomalies plus volume and diversity bumps."""
    risk = sum(BEHAVIOR_RISK_WEIGHTS.get(s, 0.0) for s in severities)
    if query_count > HIGH_VOLUME_QUERIES:
        risk += HIGH_VOLUME_RISK
    if unique_domains > HIGH_DIVERSITY_DOMAINS:
        risk += HIGH_DIVERSITY_RISK
    return min(1.0, risk)


def score_severity(score: float) -> Severity:
    """Severity of a 0-100 quality score (lower is worse)."""
    if score < 50:
        return Severity.CRITICAL
    if score < 70:
        return Severity.HIGH
    if score < 85:
        return Severity.MEDIUM
    return Severity.LOW
