#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Analysis Data Model
===================

Typed results produced by the analysis engine. Every object here is created
fresh for one analysis call; nothing is cached between calls.

The threat level of a SecurityAnalysisResult is derived from its threats on
every access, so a consumer can recompute it for any filtered subset with
detection_scoring.assess_threat_level().
"""

import math
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class AnomalyType(str, Enum):
    VOLUME_SPIKE = "volume_spike"
    UNUSUAL_DOMAIN = "unusual_domain"
    CLIENT_BEHAVIOR = "client_behavior"
    DNS_TUNNELING = "dns_tunneling"
    RECONNAISSANCE = "reconnaissance"
    DGA_MALWARE = "dga_malware"
    C2_COMMUNICATION = "c2_communication"
    DATA_EXFILTRATION = "data_exfiltration"
    BOTNET_ACTIVITY = "botnet_activity"
    DNS_ANOMALY = "dns_anomaly"
    BLACKLISTED_DOMAIN = "blacklisted_domain"
    SUSPICIOUS_DOMAIN = "suspicious_domain"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, np.ndarray):
        return [_jsonable(v) for v in value.tolist()]
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isinf(value):
        return None
    return value


class Serializable:
    """Adds to_dict() to result dataclasses for the JSON writer."""

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(self)


# -----------------------
# Findings
# -----------------------

@dataclass(frozen=True)
class Anomaly(Serializable):
    id: str
    type: AnomalyType
    description: str
    severity: Severity
    confidence: float
    timestamp: str
    source_ip: str = ""
    target: str = ""
    evidence: Dict[str, str] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class SuspiciousActivity(Serializable):
    id: str
    type: str
    description: str
    source_ip: str
    timestamp: str
    indicators: List[str] = field(default_factory=list, hash=False)
    risk_score: float = 0.0


# -----------------------
# Packet inspection
# -----------------------

@dataclass
class IPTrafficStat(Serializable):
    ip: str
    hostname: str = ""
    packet_count: int = 0
    byte_count: int = 0
    percentage: float = 0.0


@dataclass
class PacketAnalysisResult(Serializable):
    total_packets: int = 0
    analyzed_packets: int = 0
    protocol_distribution: Dict[str, int] = field(default_factory=dict)
    packet_size_distribution: Dict[str, int] = field(default_factory=dict)
    oversized_packets: int = 0
    top_source_ips: List[IPTrafficStat] = field(default_factory=list)
    top_destination_ips: List[IPTrafficStat] = field(default_factory=list)
    port_usage: Dict[str, int] = field(default_factory=dict)
    anomalies: List[Anomaly] = field(default_factory=list)


# -----------------------
# Traffic patterns
# -----------------------

@dataclass
class TrafficPattern(Serializable):
    id: str
    type: str
    description: str
    confidence: float = 0.0
    start_time: str = ""
    end_time: str = ""
    frequency: float = 0.0


@dataclass
class BandwidthPattern(Serializable):
    time_slot: str
    avg_bandwidth_mbps: float
    peak_bandwidth_mbps: float
    usage_percentage: float
    trend: str


@dataclass
class TemporalPattern(Serializable):
    pattern: str
    peak_buckets: List[int]
    low_buckets: List[int]
    regularity: float
    seasonality: bool


@dataclass
class HourlyUsage(Serializable):
    hour: int
    avg_queries: float
    avg_bandwidth_mbps: float


@dataclass
class BehaviorAnomaly(Serializable):
    type: str
    description: str
    timestamp: str
    severity: Severity
    confidence: float


@dataclass
class ClientBehavior(Serializable):
    ip: str
    hostname: str
    behavior_type: str
    activity_level: str
    typical_usage: List[HourlyUsage]
    anomalies: List[BehaviorAnomaly]
    risk_score: float


@dataclass
class TrafficAnomaly(Serializable):
    id: str
    type: str
    description: str
    timestamp: str
    duration: str
    affected_clients: List[str]
    severity: Severity
    confidence: float


@dataclass
class TrafficTrend(Serializable):
    metric: str
    current_value: float
    predicted_value: float
    confidence: float
    time_horizon: str
    trend: str


@dataclass
class TrafficPatternsResult(Serializable):
    pattern_id: str
    detected_patterns: List[TrafficPattern] = field(default_factory=list)
    bandwidth_patterns: List[BandwidthPattern] = field(default_factory=list)
    temporal_patterns: List[TemporalPattern] = field(default_factory=list)
    client_behavior: Dict[str, ClientBehavior] = field(default_factory=dict)
    anomalies: List[TrafficAnomaly] = field(default_factory=list)
    predicted_trends: List[TrafficTrend] = field(default_factory=list)


# -----------------------
# Security
# -----------------------

@dataclass
class SecurityAnalysisResult(Serializable):
    threats: List[Anomaly] = field(default_factory=list)
    suspicious_activity: List[SuspiciousActivity] = field(default_factory=list)
    dns_anomalies: List[Anomaly] = field(default_factory=list)
    port_scans: List[Anomaly] = field(default_factory=list)
    tunneling_attempts: List[Anomaly] = field(default_factory=list)
    blocked_connections: List[Anomaly] = field(default_factory=list)

    @property
    def threat_level(self) -> Severity:
        from detection_scoring import assess_threat_level
        return assess_threat_level(self.threats, self.suspicious_activity)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["threat_level"] = self.threat_level.value
        return data


# -----------------------
# Performance
# -----------------------

@dataclass
class LatencyBucket(Serializable):
    range_start_ms: float
    range_end_ms: float
    count: int = 0
    percentage: float = 0.0


@dataclass
class LatencyMetrics(Serializable):
    avg_latency_ms: float = 0.0
    min_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    p50_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    p99_latency_ms: float = 0.0
    per_client: Dict[str, float] = field(default_factory=dict)
    distribution: List[LatencyBucket] = field(default_factory=list)


@dataclass
class BandwidthTimeSlot(Serializable):
    time_slot: str
    bandwidth_mbps: float


@dataclass
class BandwidthMetrics(Serializable):
    total_bandwidth_mbps: float = 0.0
    avg_bandwidth_mbps: float = 0.0
    peak_bandwidth_mbps: float = 0.0
    per_client: Dict[str, float] = field(default_factory=dict)
    time_distribution: List[BandwidthTimeSlot] = field(default_factory=list)


@dataclass
class ThroughputMetrics(Serializable):
    queries_per_second: float = 0.0
    peak_qps: float = 0.0
    avg_qps: float = 0.0
    response_rate_percentage: float = 0.0
    avg_processing_time_ms: float = 0.0


@dataclass
class LossBurst(Serializable):
    start_time: str
    duration: str
    lost_packets: int
    loss_rate: float


@dataclass
class PacketLossMetrics(Serializable):
    loss_percentage: float = 0.0
    total_lost: int = 0
    total_sent: int = 0
    per_client: Dict[str, float] = field(default_factory=dict)
    burst_loss: List[LossBurst] = field(default_factory=list)


@dataclass
class JitterMetrics(Serializable):
    avg_jitter_ms: float = 0.0
    max_jitter_ms: float = 0.0
    jitter_std_dev: float = 0.0
    per_client: Dict[str, float] = field(default_factory=dict)


@dataclass
class QualityIssue(Serializable):
    type: str
    severity: Severity
    description: str
    impact: str
    resolution: str


@dataclass
class QualityAssessment(Serializable):
    latency_grade: str = ""
    bandwidth_grade: str = ""
    reliability_grade: str = ""
    overall_grade: str = ""
    issues: List[QualityIssue] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class PerformanceResult(Serializable):
    overall_score: float = 100.0
    latency: LatencyMetrics = field(default_factory=LatencyMetrics)
    bandwidth: BandwidthMetrics = field(default_factory=BandwidthMetrics)
    throughput: ThroughputMetrics = field(default_factory=ThroughputMetrics)
    packet_loss: PacketLossMetrics = field(default_factory=PacketLossMetrics)
    jitter: JitterMetrics = field(default_factory=JitterMetrics)
    quality: QualityAssessment = field(default_factory=QualityAssessment)


# -----------------------
# Top level
# -----------------------

@dataclass
class AnalysisSummary(Serializable):
    total_clients: int = 0
    total_queries: int = 0
    active_clients: int = 0
    anomalies_detected: int = 0
    threat_level: Severity = Severity.LOW
    health_score: float = 100.0
    overall_health: str = "GOOD"
    key_insights: List[str] = field(default_factory=list)


@dataclass
class AnalysisResult(Serializable):
    analysis_id: str
    timestamp: str
    duration_seconds: float = 0.0
    packet_analysis: Optional[PacketAnalysisResult] = None
    traffic_patterns: Optional[TrafficPatternsResult] = None
    security_analysis: Optional[SecurityAnalysisResult] = None
    performance: Optional[PerformanceResult] = None
    summary: AnalysisSummary = field(default_factory=AnalysisSummary)
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.security_analysis is not None:
            data["security_analysis"] = self.security_analysis.to_dict()
        return data
