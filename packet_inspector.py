#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Packet Inspection Module
========================

"Deep packet inspection" over DNS log records. There is no packet capture:
protocols, sizes and ports are inferred from each record (see dns_records),
so every number here is an estimate.

Features:
- Protocol, packet-size and port usage distributions
- Top source / destination traffic topology
- Rate anomalies per 5-minute window against the batch baseline
  (volume spikes, unusual domains, client spikes)
- DNS tunneling (long names queried repeatedly) and reconnaissance
  (clients touching many distinct domains)

Sampling only thins the records that get inspected; the baseline is always
built from the full batch.

Usage:
    from packet_inspector import PacketInspector
    from analysis_config import PacketInspectionConfig

    result = PacketInspector().inspect_packets(records, PacketInspectionConfig())
    print(result.protocol_distribution)
"""

import ipaddress
import logging
import time
from datetime import timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from analysis_config import PacketInspectionConfig
from analysis_models import Anomaly, AnomalyType, IPTrafficStat, PacketAnalysisResult, Severity
from detection_scoring import spike_confidence, spike_severity
from dns_records import (QueryRecord, categorize_packet_size, estimate_packet_size,
                         format_timestamp, id_fragment, infer_protocol)
from time_windows import group_by_client, group_by_time_windows, records_to_frame
from traffic_baseline import Baseline, create_baseline


# -----------------------
# Detection thresholds
# -----------------------

ANOMALY_WINDOW = timedelta(minutes=5)
VOLUME_SPIKE_RATIO = 3.0             # window count vs. baseline queries/minute
UNUSUAL_DOMAIN_MIN_QUERIES = 10      # per window, non-common domains only
CLIENT_SPIKE_RATIO = 5               # window count vs. typical client volume
TUNNELING_DOMAIN_LENGTH = 100
TUNNELING_MIN_QUERIES = 50           # per (client, domain)
RECON_MIN_DOMAINS = 100              # distinct domains per client

TOP_TALKERS = 20
DNS_PORT = "53"


def apply_sampling(records: Sequence[QueryRecord], rate: float) -> List[QueryRecord]:
    """Keep every int(1/rate)-th record; rate >= 1 keeps all, rate <= 0 none."""
    if rate >= 1.0:
        return list(records)
    if rate <= 0.0:
        return []
    step = int(1.0 / rate)
    return list(records[::step])


def is_ipv4(text: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(text), ipaddress.IPv4Address)
    except ValueError:
        return False


class PacketInspector:
    """Runs the packet-family analyses over one batch of records."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def inspect_packets(
        self,
        records: Sequence[QueryRecord],
        config: PacketInspectionConfig,
        baseline: Optional[Baseline] = None,
    ) -> PacketAnalysisResult:
        self.logger.info("Starting packet inspection: %d records, sampling=%.2f, max_packet_size=%d",
                         len(records), config.packet_sampling, config.max_packet_size)
        started = time.monotonic()

        if baseline is None:
            baseline = create_baseline(records)
        sampled = apply_sampling(records, config.packet_sampling)

        protocols = self.analyze_protocols(sampled)
        if config.analyze_protocols:
            wanted = {p.upper() for p in config.analyze_protocols}
            protocols = {k: v for k, v in protocols.items() if k in wanted}

        sources, destinations = self.get_traffic_topology(sampled)

        result = PacketAnalysisResult(
            total_packets=len(records),
            analyzed_packets=len(sampled),
            protocol_distribution=protocols,
            packet_size_distribution=self.analyze_packet_sizes(sampled),
            oversized_packets=sum(1 for r in sampled if estimate_packet_size(r) > config.max_packet_size),
            top_source_ips=sources,
            top_destination_ips=destinations,
            port_usage=self.analyze_port_usage(sampled),
            anomalies=self.detect_packet_anomalies(sampled, baseline),
        )

        self.logger.info("Packet inspection completed in %.3fs: %d protocols, %d anomalies",
                         time.monotonic() - started, len(result.protocol_distribution),
                         len(result.anomalies))
        return result

    # -----------------------
    # Distributions
    # -----------------------

    def analyze_protocols(self, records: Sequence[QueryRecord]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for record in records:
            protocol = infer_protocol(record)
            counts[protocol] = counts.get(protocol, 0) + 1
        self.logger.debug("Protocol analysis: %d protocol types over %d records", len(counts), len(records))
        return counts

    def analyze_packet_sizes(self, records: Sequence[QueryRecord]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for record in records:
            bucket = categorize_packet_size(estimate_packet_size(record))
            counts[bucket] = counts.get(bucket, 0) + 1
        return counts

    def analyze_port_usage(self, records: Sequence[QueryRecord]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for record in records:
            key = f"{DNS_PORT}/{infer_protocol(record)}"
            counts[key] = counts.get(key, 0) + 1
        return counts

    def get_traffic_topology(self, records: Sequence[QueryRecord]) -> Tuple[List[IPTrafficStat], List[IPTrafficStat]]:
        """
        Top talkers by packet count.

        Sources are the querying clients. Destinations are only known when the
        queried "domain" is itself an IPv4 literal (reverse lookups, direct
        queries); other records have no destination.
        """
        if not records:
            return [], []

        frame = records_to_frame(records)
        frame['SIZE'] = [estimate_packet_size(r) for r in frame['RECORD']]

        sources = self._top_talkers(frame, 'CLIENT')
        dest_frame = frame[frame['DOMAIN'].map(is_ipv4)]
        destinations = self._top_talkers(dest_frame, 'DOMAIN')
        return sources, destinations

    @staticmethod
    def _top_talkers(frame, key: str) -> List[IPTrafficStat]:
        if frame.empty:
            return []
        grouped = frame.groupby(key).agg(COUNT=('SIZE', 'size'), BYTES=('SIZE', 'sum')).reset_index()
        total = grouped['COUNT'].sum()
        grouped['PERCENT'] = grouped['COUNT'] / total * 100 if total > 0 else 0.0
        grouped = grouped.sort_values(['COUNT', key], ascending=[False, True]).head(TOP_TALKERS)
        return [
            IPTrafficStat(
                ip=str(row[key]),
                packet_count=int(row['COUNT']),
                byte_count=int(row['BYTES']),
                percentage=float(row['PERCENT']),
            )
            for _, row in grouped.iterrows()
        ]

    # -----------------------
    # Anomalies
    # -----------------------

    def detect_packet_anomalies(self, records: Sequence[QueryRecord], baseline: Baseline) -> List[Anomaly]:
        anomalies: List[Anomaly] = []
        windows = group_by_time_windows(records, ANOMALY_WINDOW)

        for slot, window_records in windows.items():
            anomalies.extend(self._volume_spike(slot, window_records, baseline))
            anomalies.extend(self._unusual_domains(slot, window_records, baseline))
            anomalies.extend(self._client_spikes(slot, window_records, baseline))

        anomalies.extend(self.detect_dns_tunneling(records))
        anomalies.extend(self.detect_reconnaissance(records))

        self.logger.info("Packet anomaly detection completed: %d anomalies", len(anomalies))
        return anomalies

    def _volume_spike(self, slot: str, window_records: List[QueryRecord], baseline: Baseline) -> List[Anomaly]:
        avg = baseline.avg_queries_per_minute
        count = len(window_records)
        if avg <= 0 or count <= avg * VOLUME_SPIKE_RATIO:
            return []
        ratio = count / avg
        return [Anomaly(
            id=f"volume_spike_{slot}",
            type=AnomalyType.VOLUME_SPIKE,
            description=f"Query volume spike detected: {count} queries (baseline: {avg:.0f})",
            severity=spike_severity(ratio),
            confidence=spike_confidence(ratio, VOLUME_SPIKE_RATIO),
            timestamp=slot,
            evidence={"query_count": str(count), "baseline_per_minute": f"{avg:.2f}", "ratio": f"{ratio:.2f}"},
        )]

    def _unusual_domains(self, slot: str, window_records: List[QueryRecord], baseline: Baseline) -> List[Anomaly]:
        counts: Dict[str, int] = {}
        for record in window_records:
            counts[record.domain] = counts.get(record.domain, 0) + 1

        anomalies = []
        for domain in sorted(counts):
            count = counts[domain]
            if domain in baseline.common_domains or count <= UNUSUAL_DOMAIN_MIN_QUERIES:
                continue
            anomalies.append(Anomaly(
                id=f"unusual_domain_{id_fragment(domain)}_{slot}",
                type=AnomalyType.UNUSUAL_DOMAIN,
                description=f"Unusual domain activity: {domain} ({count} queries)",
                severity=Severity.MEDIUM,
                confidence=0.75,
                timestamp=slot,
                target=domain,
                evidence={"domain": domain, "query_count": str(count)},
            ))
        return anomalies

    def _client_spikes(self, slot: str, window_records: List[QueryRecord], baseline: Baseline) -> List[Anomaly]:
        counts: Dict[str, int] = {}
        for record in window_records:
            counts[record.client_ip] = counts.get(record.client_ip, 0) + 1

        anomalies = []
        for client in sorted(counts):
            count = counts[client]
            typical = baseline.typical_client_volume.get(client)
            if typical is None or count <= typical * CLIENT_SPIKE_RATIO:
                continue
            anomalies.append(Anomaly(
                id=f"client_spike_{id_fragment(client)}_{slot}",
                type=AnomalyType.CLIENT_BEHAVIOR,
                description=f"Unusual client activity: {client} ({count} queries, typical: {typical})",
                severity=Severity.MEDIUM,
                confidence=0.8,
                timestamp=slot,
                source_ip=client,
                evidence={"query_count": str(count), "typical_count": str(typical)},
            ))
        return anomalies

    def detect_dns_tunneling(self, records: Sequence[QueryRecord]) -> List[Anomaly]:
        """Long domain names (>100 chars) queried more than 50 times by one client."""
        pairs: Dict[Tuple[str, str], List[QueryRecord]] = {}
        for record in records:
            if len(record.domain) > TUNNELING_DOMAIN_LENGTH:
                pairs.setdefault((record.client_ip, record.domain), []).append(record)

        anomalies = []
        for (client, domain) in sorted(pairs):
            queries = pairs[(client, domain)]
            if len(queries) <= TUNNELING_MIN_QUERIES:
                continue
            anomalies.append(Anomaly(
                id=f"dns_tunneling_{id_fragment(client)}_{id_fragment(domain)}",
                type=AnomalyType.DNS_TUNNELING,
                description=f"Potential DNS tunneling: client {client}, domain {domain} ({len(queries)} queries)",
                severity=Severity.HIGH,
                confidence=0.8,
                timestamp=format_timestamp(max(r.timestamp for r in queries)),
                source_ip=client,
                target=domain,
                evidence={"domain_length": str(len(domain)), "query_count": str(len(queries))},
            ))
        return anomalies

    def detect_reconnaissance(self, records: Sequence[QueryRecord]) -> List[Anomaly]:
        """Clients querying more than 100 distinct domains."""
        anomalies = []
        by_client = group_by_client(records)
        for client in sorted(by_client):
            client_records = by_client[client]
            unique = {r.domain for r in client_records}
            if len(unique) <= RECON_MIN_DOMAINS:
                continue
            anomalies.append(Anomaly(
                id=f"recon_activity_{id_fragment(client)}",
                type=AnomalyType.RECONNAISSANCE,
                description=f"Potential reconnaissance activity: client {client} queried {len(unique)} unique domains",
                severity=Severity.MEDIUM,
                confidence=0.7,
                timestamp=format_timestamp(max(r.timestamp for r in client_records)),
                source_ip=client,
                evidence={"unique_domains": str(len(unique))},
            ))
        return anomalies
