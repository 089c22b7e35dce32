#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Network Behavior Analyzer
=========================

Orchestrates one analysis run over a batch of DNS query records:

    records -> baseline -> {packet, traffic, security, performance} -> summary

The four detector groups are a fixed set. Each enabled group runs on a
thread pool against the same immutable records and baseline; the summary
is built only after every group has finished. A group that raises is logged,
its section is left as None and its message is recorded in result.errors;
the other groups are unaffected.

Usage:
    from network_analyzer import NetworkAnalyzer
    from analysis_config import AnalysisConfig

    analyzer = NetworkAnalyzer()
    analyzer.initialize(AnalysisConfig())
    result = analyzer.analyze_traffic(records, client_stats)
    print(result.summary.threat_level, result.summary.overall_health)
"""

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from analysis_config import AnalysisConfig, validate_config
from analysis_errors import DetectorError, NotInitializedError
from analysis_models import AnalysisResult, AnalysisSummary, Severity
from dns_records import ClientStats, QueryRecord, build_client_stats, format_timestamp, normalize_record
from packet_inspector import PacketInspector
from performance_analyzer import PerformanceAnalyzer
from security_analyzer import SecurityAnalyzer
from traffic_baseline import Baseline, create_baseline
from traffic_patterns import TrafficPatternAnalyzer


class AnalysisGroup(str, Enum):
    PACKET = "packet"
    TRAFFIC = "traffic"
    SECURITY = "security"
    PERFORMANCE = "performance"


# group -> (config attribute, result attribute)
GROUP_SECTIONS = {
    AnalysisGroup.PACKET: ("deep_packet_inspection", "packet_analysis"),
    AnalysisGroup.TRAFFIC: ("traffic_patterns", "traffic_patterns"),
    AnalysisGroup.SECURITY: ("security_analysis", "security_analysis"),
    AnalysisGroup.PERFORMANCE: ("performance", "performance"),
}

# group -> runner(analyzer, records, client_stats, baseline, group_config)
GROUP_RUNNERS = {
    AnalysisGroup.PACKET: lambda a, records, stats, baseline, cfg: a.inspect_packets(records, cfg, baseline),
    AnalysisGroup.TRAFFIC: lambda a, records, stats, baseline, cfg: a.analyze_patterns(records, stats, cfg),
    AnalysisGroup.SECURITY: lambda a, records, stats, baseline, cfg: a.analyze_security(records, stats, cfg),
    AnalysisGroup.PERFORMANCE: lambda a, records, stats, baseline, cfg: a.analyze_performance(records, stats, cfg),
}

CAPABILITIES = {
    AnalysisGroup.PACKET: ["deep_packet_inspection", "protocol_analysis", "packet_anomaly_detection"],
    AnalysisGroup.TRAFFIC: ["traffic_patterns", "bandwidth_analysis", "temporal_patterns", "client_behavior"],
    AnalysisGroup.SECURITY: ["security_analysis", "threat_detection", "dns_anomalies", "port_scan_detection"],
    AnalysisGroup.PERFORMANCE: ["performance_analysis", "latency_analysis", "throughput_analysis",
                                "quality_assessment"],
}

HEALTH_LEVELS = [(90, "EXCELLENT"), (80, "GOOD"), (70, "FAIR"), (60, "POOR")]

HEAVY_LOAD_PACKETS = 1000000
COMPLEX_PATTERN_COUNT = 5
POOR_PERFORMANCE_SCORE = 70
HIGH_LATENCY_MS = 100


def health_label(score: float) -> str:
    for cutoff, label in HEALTH_LEVELS:
        if score >= cutoff:
            return label
    return "CRITICAL"


class NetworkAnalyzer:
    """
    Entry point of the analysis engine.

    Construct once, call initialize() with a configuration, then call
    analyze_traffic() for each batch. Nothing is kept between batches.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, max_workers: int = 4):
        self.logger = logger or logging.getLogger(__name__)
        self.max_workers = max_workers
        self.config: Optional[AnalysisConfig] = None
        self.initialized = False
        self._analyzers: Dict[AnalysisGroup, Any] = {}

    def initialize(self, config: Union[AnalysisConfig, Dict[str, Any], None] = None) -> None:
        if config is None:
            config = AnalysisConfig()
        elif isinstance(config, dict):
            config = AnalysisConfig.from_dict(config)
        validate_config(config)

        self.config = config
        self._analyzers = {
            AnalysisGroup.PACKET: PacketInspector(self.logger.getChild("packet")),
            AnalysisGroup.TRAFFIC: TrafficPatternAnalyzer(self.logger.getChild("traffic")),
            AnalysisGroup.SECURITY: SecurityAnalyzer(self.logger.getChild("security")),
            AnalysisGroup.PERFORMANCE: PerformanceAnalyzer(self.logger.getChild("performance")),
        }
        self.initialized = True
        self.logger.info("Network analyzer initialized: enabled groups %s",
                         [g.value for g in self.enabled_groups()] or "none")

    def enabled_groups(self) -> List[AnalysisGroup]:
        if self.config is None or not self.config.enabled:
            return []
        return [g for g, (attr, _) in GROUP_SECTIONS.items() if getattr(self.config, attr).enabled]

    def get_capabilities(self) -> List[str]:
        capabilities = ["basic_analysis"]
        for group in self.enabled_groups():
            capabilities.extend(CAPABILITIES[group])
        return capabilities

    def is_healthy(self) -> bool:
        return self.initialized

    # -----------------------
    # Analysis
    # -----------------------

    def analyze_traffic(
        self,
        records: Sequence[Union[QueryRecord, Dict[str, Any]]],
        client_stats: Optional[Dict[str, ClientStats]] = None,
    ) -> AnalysisResult:
        """
        Analyze one batch of records.

        Args:
            records: QueryRecords (raw dict rows are normalized first)
            client_stats: Per-client statistics from the data source; derived
                from the records when omitted

        Returns:
            AnalysisResult: sections for every group that ran

        Raises:
            NotInitializedError: initialize() was never called
        """
        if not self.initialized:
            raise NotInitializedError()

        batch = [r if isinstance(r, QueryRecord) else normalize_record(r, i) for i, r in enumerate(records)]
        if client_stats is None:
            client_stats = build_client_stats(batch)

        started = time.monotonic()
        now = datetime.now(timezone.utc)
        result = AnalysisResult(
            analysis_id=f"analysis_{int(now.timestamp())}_{uuid.uuid4().hex[:8]}",
            timestamp=format_timestamp(now),
            summary=AnalysisSummary(total_clients=len(client_stats), total_queries=len(batch)),
        )
        self.logger.info("Starting network traffic analysis %s: %d records, %d clients",
                         result.analysis_id, len(batch), len(client_stats))

        baseline = create_baseline(batch)
        groups = self.enabled_groups()
        if groups:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(groups))) as executor:
                futures = {g: executor.submit(self._run_group, g, batch, client_stats, baseline) for g in groups}
                for group, future in futures.items():
                    try:
                        section = future.result()
                    except DetectorError as e:
                        self.logger.error("%s", e)
                        result.errors[group.value] = str(e)
                        continue
                    setattr(result, GROUP_SECTIONS[group][1], section)

        result.duration_seconds = time.monotonic() - started
        self._build_summary(result)

        self.logger.info("Network traffic analysis %s completed in %.3fs: health=%s (%.1f), threat=%s",
                         result.analysis_id, result.duration_seconds, result.summary.overall_health,
                         result.summary.health_score, result.summary.threat_level.value)
        return result

    def _run_group(self, group: AnalysisGroup, records: List[QueryRecord],
                   client_stats: Dict[str, ClientStats], baseline: Baseline):
        analyzer = self._analyzers[group]
        group_config = getattr(self.config, GROUP_SECTIONS[group][0])
        try:
            return GROUP_RUNNERS[group](analyzer, records, client_stats, baseline, group_config)
        except Exception as e:
            self.logger.exception("Detector group %s raised", group.value)
            raise DetectorError(group.value, e) from e

    # -----------------------
    # Summary
    # -----------------------

    def _build_summary(self, result: AnalysisResult) -> None:
        summary = result.summary
        insights: List[str] = []

        packet = result.packet_analysis
        if packet is not None:
            if packet.anomalies:
                insights.append(f"Detected {len(packet.anomalies)} packet anomalies requiring attention")
            if packet.analyzed_packets > HEAVY_LOAD_PACKETS:
                insights.append("High traffic volume detected - network experiencing heavy load")

        traffic = result.traffic_patterns
        if traffic is not None:
            if traffic.anomalies:
                insights.append(f"Found {len(traffic.anomalies)} traffic pattern anomalies")
            if len(traffic.detected_patterns) > COMPLEX_PATTERN_COUNT:
                insights.append("Multiple traffic patterns detected - network shows complex usage patterns")
            summary.active_clients = sum(len(a.affected_clients) for a in traffic.anomalies)

        security = result.security_analysis
        if security is not None:
            level = security.threat_level
            summary.threat_level = level
            if security.threats:
                insights.append(f"Security analysis found {len(security.threats)} potential threats")
            if level in (Severity.HIGH, Severity.CRITICAL):
                insights.append("Elevated threat level detected - immediate attention recommended")

        performance = result.performance
        if performance is not None:
            summary.health_score = performance.overall_score
            if performance.overall_score < POOR_PERFORMANCE_SCORE:
                insights.append("Network performance below optimal - consider investigation")
            if performance.latency.avg_latency_ms > HIGH_LATENCY_MS:
                insights.append("High latency detected - network responsiveness may be impacted")

        for group in result.errors:
            insights.append(f"{group} analysis failed - results for this group are unavailable")

        summary.overall_health = health_label(summary.health_score)
        summary.anomalies_detected = (
            (len(packet.anomalies) if packet is not None else 0)
            + (len(traffic.anomalies) if traffic is not None else 0)
            + (len(security.threats) if security is not None else 0)
        )

        if not insights:
            insights.append("Network analysis completed successfully - no significant issues detected")
        summary.key_insights = insights
