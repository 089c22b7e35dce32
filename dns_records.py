#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DNS Query Record Normalization
==============================

Turns raw DNS log rows into immutable QueryRecord objects with a canonical
UTC timestamp, and provides the per-record estimates used downstream.

Packet sizes and latencies produced here are APPROXIMATIONS derived from the
log row (domain length, query type), not measurements of wire traffic.

Usage:
    from dns_records import normalize_records, estimate_packet_size

    records = normalize_records([
        {"timestamp": "2024-01-01T10:00:00Z", "domain": "example.com",
         "client": "192.168.1.10", "query_type": "A", "status": 2},
    ])
    print(estimate_packet_size(records[0]))
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from analysis_errors import ParseError

logger = logging.getLogger(__name__)


# -----------------------
# Protocol / size tables
# -----------------------

UDP_QUERY_TYPES = {"A", "AAAA", "PTR", "CNAME", "MX", "TXT", "NS", "SOA"}
TCP_QUERY_TYPES = {"AXFR", "IXFR"}
LONG_DOMAIN_LENGTH = 100                # longer queries are assumed to fall back to TCP

DNS_HEADER_SIZE = 12                    # bytes
QUESTION_TRAILER_SIZE = 4               # QTYPE + QCLASS

ANSWER_SIZES = {"A": 16, "AAAA": 28}
# Answers that repeat the name: encoded name + fixed overhead
VARIABLE_ANSWER_OVERHEAD = {"CNAME": 10, "PTR": 10, "MX": 14, "TXT": 20}
DEFAULT_ANSWER_SIZE = 20

PACKET_SIZE_BUCKETS = [
    (64, "small (≤64 bytes)"),
    (256, "medium (65-256 bytes)"),
    (512, "large (257-512 bytes)"),
    (1024, "jumbo (513-1024 bytes)"),
]
OVERSIZED_BUCKET = "oversized (>1024 bytes)"

BASE_LATENCY_MS = 10.0
LATENCY_PER_CHAR_MS = 0.1
QUERY_TYPE_LATENCY_MS = {"A": 0.0, "AAAA": 1.0, "MX": 2.0, "TXT": 3.0}

# Accepted aliases for raw row keys (Pi-hole API, FTL database, CSV exports)
FIELD_ALIASES = {
    "id": ("id", "ID"),
    "timestamp": ("timestamp", "Timestamp", "datetime", "DateTime", "time"),
    "domain": ("domain", "Domain"),
    "client_ip": ("client_ip", "client", "Client"),
    "query_type": ("query_type", "type", "QueryType"),
    "status_code": ("status_code", "status", "Status"),
    "reply_time_ms": ("reply_time_ms", "reply_time", "ReplyTime"),
}

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


@dataclass(frozen=True)
class QueryRecord:
    """One normalized DNS query. Never mutated after normalization."""
    id: int
    timestamp: datetime
    domain: str
    client_ip: str
    query_type: str = "A"
    status_code: int = 0
    reply_time_ms: float = 0.0


@dataclass
class ClientStats:
    """Pre-aggregated per-client statistics supplied by the data source."""
    ip: str
    hostname: str = ""
    query_count: int = 0
    domains: Dict[str, int] = field(default_factory=dict)
    is_online: bool = False


# -----------------------
# Timestamp parsing
# -----------------------

def _from_epoch(seconds: Any, original: Any) -> datetime:
    # out-of-range, NaN or infinite epochs (e.g. milliseconds) are malformed
    try:
        if isinstance(seconds, str):
            seconds = int(seconds)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        raise ParseError(original)


def _parse_strict(value: str) -> datetime:
    text = value.strip()
    if not text:
        raise ParseError(value)

    # Bare Unix epoch seconds
    if text.isdigit():
        return _from_epoch(text, value)

    # RFC3339 / RFC3339Nano / space separated; fromisoformat wants at most
    # microseconds and no trailing Z on older interpreters
    candidate = _FRACTION_RE.sub(r"\1", text)
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        pass
    else:
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    raise ParseError(value)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a timestamp into a timezone-aware UTC datetime.

    Accepts RFC3339 (optionally with nanoseconds), "YYYY-MM-DD HH:MM:SS",
    "YYYY-MM-DDTHH:MM:SS", bare epoch seconds, datetimes and numbers.
    Anything unparseable becomes the current time; a malformed timestamp
    never aborts a batch.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return _from_epoch(value, value)
        return _parse_strict(str(value) if value is not None else "")
    except ParseError as e:
        logger.debug("%s - substituting current time", e)
        return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """RFC3339 with a Z suffix, second precision."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# -----------------------
# Per-record estimates
# -----------------------

def infer_protocol(record: QueryRecord) -> str:
    query_type = record.query_type.upper()
    if query_type in UDP_QUERY_TYPES:
        return "DNS_UDP"
    if query_type in TCP_QUERY_TYPES:
        return "DNS_TCP"
    if len(record.domain) > LONG_DOMAIN_LENGTH:
        return "DNS_TCP"
    return "DNS_UDP"


def estimate_packet_size(record: QueryRecord) -> int:
    """
    Estimate the bytes of one query/response exchange.

    header (12) + encoded name (len + 1) + type/class (4) + answer section,
    where the answer size comes from a per-type table. This is an estimate
    from log data only.
    """
    domain_size = len(record.domain) + 1
    question_size = domain_size + QUESTION_TRAILER_SIZE

    query_type = record.query_type.upper()
    if query_type in VARIABLE_ANSWER_OVERHEAD:
        answer_size = domain_size + VARIABLE_ANSWER_OVERHEAD[query_type]
    else:
        answer_size = ANSWER_SIZES.get(query_type, DEFAULT_ANSWER_SIZE)

    return DNS_HEADER_SIZE + question_size + answer_size


def categorize_packet_size(size: int) -> str:
    for limit, label in PACKET_SIZE_BUCKETS:
        if size <= limit:
            return label
    return OVERSIZED_BUCKET


def estimate_latency(record: QueryRecord) -> float:
    """Reply time when the log has one, otherwise a rough estimate in ms."""
    if record.reply_time_ms > 0:
        return record.reply_time_ms
    type_latency = QUERY_TYPE_LATENCY_MS.get(record.query_type.upper(), 1.0)
    return BASE_LATENCY_MS + len(record.domain) * LATENCY_PER_CHAR_MS + type_latency


def estimate_processing_time(record: QueryRecord) -> float:
    processing_time = 0.5 + len(record.domain) * 0.01
    processing_time += {"A": 0.1, "AAAA": 0.2, "MX": 0.3, "TXT": 0.5}.get(
        record.query_type.upper(), 0.2)
    return processing_time


# -----------------------
# Row normalization
# -----------------------

def _lookup(row: Dict[str, Any], name: str, default: Any = None) -> Any:
    for key in FIELD_ALIASES[name]:
        if key in row and row[key] not in (None, ""):
            return row[key]
    return default


def normalize_record(row: Dict[str, Any], index: int = 0) -> QueryRecord:
    """Build a QueryRecord from a loosely-typed dict row."""
    try:
        status = int(_lookup(row, "status_code", 0))
    except (TypeError, ValueError):
        status = 0
    try:
        reply_time = float(_lookup(row, "reply_time_ms", 0.0))
    except (TypeError, ValueError):
        reply_time = 0.0
    try:
        record_id = int(_lookup(row, "id", index))
    except (TypeError, ValueError):
        record_id = index

    return QueryRecord(
        id=record_id,
        timestamp=parse_timestamp(_lookup(row, "timestamp")),
        domain=str(_lookup(row, "domain", "")).strip().rstrip("."),
        client_ip=str(_lookup(row, "client_ip", "")).strip(),
        query_type=str(_lookup(row, "query_type", "A")).strip().upper(),
        status_code=status,
        reply_time_ms=reply_time,
    )


def normalize_records(rows: Iterable[Dict[str, Any]]) -> List[QueryRecord]:
    return [normalize_record(row, i) for i, row in enumerate(rows)]


def build_client_stats(records: Iterable[QueryRecord]) -> Dict[str, ClientStats]:
    """Derive ClientStats from records when the data source supplies none."""
    stats: Dict[str, ClientStats] = {}
    for record in records:
        entry = stats.setdefault(record.client_ip, ClientStats(ip=record.client_ip, is_online=True))
        entry.query_count += 1
        entry.domains[record.domain] = entry.domains.get(record.domain, 0) + 1
    return stats


def id_fragment(text: str) -> str:
    """Make a value safe for use inside a finding id ("10.0.0.1" -> "10_0_0_1")."""
    return text.replace(".", "_").replace(":", "_")
