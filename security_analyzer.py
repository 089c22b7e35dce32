#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DNS Security Analysis Module
============================

Heuristic threat classification over a batch of DNS query records.

Features:
- Blacklisted domain access (one finding per matching query)
- Repeated use of suspicious services (temporary mail, URL shorteners,
  Tor gateways, dynamic DNS, configured patterns)
- DGA malware: a client whose queries are mostly DGA-like names
- C2 beaconing: regular per-client query intervals
- Data exfiltration: large total query-name volume from one client
- Botnet activity: several clients resolving the same suspicious domain

Finding timestamps come from the records that triggered them, so the same
batch always yields the same findings.

Usage:
    from security_analyzer import SecurityAnalyzer
    from analysis_config import SecurityConfig

    config = SecurityConfig(blacklist_domains=["malicious.com"])
    result = SecurityAnalyzer().analyze_security(records, {}, config)
    print(result.threat_level, len(result.threats))
"""

import logging
import time
from typing import Dict, List, Optional, Sequence, Set

from analysis_config import SecurityConfig
from analysis_models import Anomaly, AnomalyType, SecurityAnalysisResult, Severity, SuspiciousActivity
from beaconing_detector import BeaconingDetector
from dns_records import ClientStats, QueryRecord, format_timestamp, id_fragment
from domain_heuristics import check_dga, has_uncommon_tld, is_dga_like, matching_pattern
from time_windows import group_by_client


# -----------------------
# Detection thresholds
# -----------------------

SUSPICIOUS_PATTERN_MIN_QUERIES = 5     # per (client, domain), exclusive
DGA_MIN_DOMAINS = 10                   # queries needed before judging a client
DGA_SUSPICIOUS_RATIO = 0.5             # exclusive
EXFILTRATION_BYTES = 50000             # sum of query name lengths, exclusive
BOTNET_MIN_CLIENTS = 3


def _latest(records: Sequence[QueryRecord]) -> str:
    return format_timestamp(max(r.timestamp for r in records))


class SecurityAnalyzer:
    """Security threat detection over one batch of records."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def analyze_security(
        self,
        records: Sequence[QueryRecord],
        client_stats: Dict[str, ClientStats],
        config: SecurityConfig,
    ) -> SecurityAnalysisResult:
        self.logger.info("Starting security analysis: %d records, %d clients, threat_detection=%s",
                         len(records), len(client_stats), config.threat_detection)
        started = time.monotonic()

        result = SecurityAnalysisResult()
        if config.threat_detection:
            result.threats = self.detect_threats(records, config)
        result.suspicious_activity = self.analyze_suspicious_activity(records, client_stats)
        result.dns_anomalies = self.detect_dns_anomalies(records)
        if config.port_scan_detection:
            result.port_scans = self.detect_port_scans(records)
        if config.dns_tunneling_detection:
            result.tunneling_attempts = self.detect_tunneling_attempts(records)
        result.blocked_connections = self.analyze_blocked_connections(records)

        self.logger.info("Security analysis completed in %.3fs: threat_level=%s, %d threats",
                         time.monotonic() - started, result.threat_level.value, len(result.threats))
        return result

    def detect_threats(self, records: Sequence[QueryRecord], config: SecurityConfig) -> List[Anomaly]:
        threats: List[Anomaly] = []
        threats.extend(self.detect_malicious_domains(records, config))
        threats.extend(self.detect_dga_patterns(records))
        threats.extend(self.detect_c2_communications(records))
        threats.extend(self.detect_data_exfiltration(records))
        threats.extend(self.detect_botnet_activity(records))
        self.logger.debug("Threat detection found %d threats", len(threats))
        return threats

    # -----------------------
    # Threat detectors
    # -----------------------

    def detect_malicious_domains(self, records: Sequence[QueryRecord], config: SecurityConfig) -> List[Anomaly]:
        """Blacklist matches (HIGH) and repeated suspicious-service lookups (MEDIUM)."""
        blacklist = {d.strip().lower().rstrip(".") for d in config.blacklist_domains if d}
        threats: List[Anomaly] = []
        pattern_hits: Dict[tuple, List[QueryRecord]] = {}

        for record in records:
            domain = record.domain.lower()
            client = record.client_ip
            if domain in blacklist:
                threats.append(Anomaly(
                    id=f"blacklist_{id_fragment(client)}_{id_fragment(domain)}_{record.id}",
                    type=AnomalyType.BLACKLISTED_DOMAIN,
                    description=f"Access to blacklisted domain: {domain}",
                    severity=Severity.HIGH,
                    confidence=0.95,
                    timestamp=format_timestamp(record.timestamp),
                    source_ip=client,
                    target=domain,
                    evidence={"domain": domain, "client": client},
                ))

            pattern = matching_pattern(domain, config.suspicious_patterns)
            if pattern is not None:
                pattern_hits.setdefault((domain, client), []).append(record)

        for (domain, client) in sorted(pattern_hits):
            hits = pattern_hits[(domain, client)]
            if len(hits) <= SUSPICIOUS_PATTERN_MIN_QUERIES:
                continue
            threats.append(Anomaly(
                id=f"suspicious_domain_{id_fragment(client)}_{id_fragment(domain)}",
                type=AnomalyType.SUSPICIOUS_DOMAIN,
                description=f"Multiple queries ({len(hits)}) to suspicious domain: {domain}",
                severity=Severity.MEDIUM,
                confidence=0.7,
                timestamp=_latest(hits),
                source_ip=client,
                target=domain,
                evidence={"domain": domain, "query_count": str(len(hits)),
                          "pattern": matching_pattern(domain, config.suspicious_patterns)},
            ))
        return threats

    def detect_dga_patterns(self, records: Sequence[QueryRecord]) -> List[Anomaly]:
        """Clients with at least 10 queries where more than half look DGA-generated."""
        threats = []
        by_client = group_by_client(records)
        for client in sorted(by_client):
            client_records = by_client[client]
            if len(client_records) < DGA_MIN_DOMAINS:
                continue
            flagged = [r for r in client_records if is_dga_like(r.domain)]
            if len(flagged) / len(client_records) <= DGA_SUSPICIOUS_RATIO:
                continue
            sample = check_dga(flagged[0].domain)
            threats.append(Anomaly(
                id=f"dga_pattern_{id_fragment(client)}",
                type=AnomalyType.DGA_MALWARE,
                description=(f"Potential DGA malware detected for client {client} "
                             f"({len(flagged)} of {len(client_records)} domains suspicious)"),
                severity=Severity.HIGH,
                confidence=0.8,
                timestamp=_latest(client_records),
                source_ip=client,
                evidence={"client": client, "domain_count": str(len(client_records)),
                          "dga_count": str(len(flagged)), "example": flagged[0].domain,
                          "reason": sample["reason"] or ""},
            ))
        return threats

    def detect_c2_communications(self, records: Sequence[QueryRecord]) -> List[Anomaly]:
        detector = BeaconingDetector()
        for record in records:
            detector.add_query(record.client_ip, record.timestamp)

        threats = []
        for beacon in detector.beaconing_clients():
            client = beacon["client_ip"]
            evidence = {
                "client": client,
                "pattern": "regular_intervals",
                "mean_interval_seconds": str(beacon["mean_interval"]),
                "jitter_coefficient": str(beacon["jitter_coefficient"]),
                "jitter_classification": beacon["jitter_classification"],
            }
            if beacon["matched_frameworks"]:
                evidence["matched_frameworks"] = ", ".join(beacon["matched_frameworks"])
            threats.append(Anomaly(
                id=f"c2_beacon_{id_fragment(client)}",
                type=AnomalyType.C2_COMMUNICATION,
                description=f"Potential C2 beaconing detected from client {client}",
                severity=Severity.HIGH,
                confidence=0.75,
                timestamp=format_timestamp(beacon["last_seen"]),
                source_ip=client,
                evidence=evidence,
            ))
        return threats

    def detect_data_exfiltration(self, records: Sequence[QueryRecord]) -> List[Anomaly]:
        threats = []
        by_client = group_by_client(records)
        for client in sorted(by_client):
            client_records = by_client[client]
            volume = sum(len(r.domain) for r in client_records)
            if volume <= EXFILTRATION_BYTES:
                continue
            threats.append(Anomaly(
                id=f"data_exfiltration_{id_fragment(client)}",
                type=AnomalyType.DATA_EXFILTRATION,
                description=f"Potential data exfiltration via DNS from client {client} ({volume} bytes)",
                severity=Severity.MEDIUM,
                confidence=0.6,
                timestamp=_latest(client_records),
                source_ip=client,
                evidence={"client": client, "data_volume": str(volume)},
            ))
        return threats

    def detect_botnet_activity(self, records: Sequence[QueryRecord]) -> List[Anomaly]:
        """Suspicious (DGA-like or uncommon TLD) domains resolved by 3+ clients."""
        domain_clients: Dict[str, Set[str]] = {}
        domain_records: Dict[str, List[QueryRecord]] = {}
        for record in records:
            domain = record.domain.lower()
            if not (is_dga_like(domain) or has_uncommon_tld(domain)):
                continue
            domain_clients.setdefault(domain, set()).add(record.client_ip)
            domain_records.setdefault(domain, []).append(record)

        threats = []
        for domain in sorted(domain_clients):
            clients = domain_clients[domain]
            if len(clients) < BOTNET_MIN_CLIENTS:
                continue
            threats.append(Anomaly(
                id=f"botnet_activity_{id_fragment(domain)}",
                type=AnomalyType.BOTNET_ACTIVITY,
                description=f"Potential botnet activity: {len(clients)} clients querying suspicious domain {domain}",
                severity=Severity.HIGH,
                confidence=0.8,
                timestamp=_latest(domain_records[domain]),
                target=domain,
                evidence={"domain": domain, "client_count": str(len(clients)),
                          "clients": ", ".join(sorted(clients))},
            ))
        return threats

    # -----------------------
    # Detectors that currently report nothing
    # -----------------------

    def analyze_suspicious_activity(self, records: Sequence[QueryRecord],
                                    client_stats: Dict[str, ClientStats]) -> List[SuspiciousActivity]:
        # Unusual volume, timing, domain-pattern and behavior heuristics are
        # not defined yet; no suspicious activity is reported.
        return []

    def detect_dns_anomalies(self, records: Sequence[QueryRecord]) -> List[Anomaly]:
        # Unusual query types, cache poisoning, amplification and subdomain
        # enumeration are not defined yet.
        return []

    def detect_port_scans(self, records: Sequence[QueryRecord]) -> List[Anomaly]:
        return []

    def detect_tunneling_attempts(self, records: Sequence[QueryRecord]) -> List[Anomaly]:
        # Rate-based tunneling is reported by the packet inspector
        return []

    def analyze_blocked_connections(self, records: Sequence[QueryRecord]) -> List[Anomaly]:
        return []
