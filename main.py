#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# DNS Network Behavior Analysis: command line front end
# Usage: python3 main.py QUERIES.{csv,json} [--config CONFIG.json] [--output REPORT.json]
#        python3 main.py --demo

import os
import sys
import json
import random
import logging
import argparse
from datetime import datetime, timedelta, timezone

import pandas as pd
from tqdm import tqdm

from analysis_config import load_config
from analysis_errors import AnalysisError
from dns_records import normalize_record
from network_analyzer import NetworkAnalyzer

logger = logging.getLogger("dns_behavior")

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

# -----------------------
# Demo data
# -----------------------
DEMO_START = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
DEMO_CLIENTS = ["192.168.1.10", "192.168.1.11", "192.168.1.12", "192.168.1.13"]
DEMO_DOMAINS = ["google.com", "github.com", "python.org", "mozilla.org", "example.com",
                "ubuntu.com", "cloudflare.com", "pypi.org"]
DEMO_BEACON_CLIENT = "192.168.1.66"
DEMO_BEACON_DOMAIN = "update-check.example.net"
DEMO_BEACON_INTERVAL = 61               # seconds
DEMO_BLACKLISTED = "malicious.com"


# -----------------------
# Input loading
# -----------------------
def load_rows(path):
    """Raw query rows from a CSV export or a JSON list (optionally under "queries")."""
    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        frame = pd.read_csv(path, dtype=str, keep_default_na=False)
        return frame.to_dict("records")
    with open(path, "r") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("queries") or data.get("data") or []
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of query rows")
    return data


def normalize_rows(rows):
    records = []
    skipped = 0
    for i, row in enumerate(tqdm(rows, desc="Normalizing queries", unit="q")):
        if not isinstance(row, dict):
            skipped += 1
            continue
        records.append(normalize_record(row, i))
    if skipped:
        logger.warning("Skipped %d malformed rows", skipped)
    return records


def demo_rows(seed=7):
    """Synthetic batch: normal browsing, one beaconing client and a blacklisted lookup."""
    rng = random.Random(seed)
    rows = []
    for i in range(400):
        rows.append({
            "timestamp": (DEMO_START + timedelta(seconds=rng.randint(0, 3600))).isoformat(),
            "domain": rng.choice(DEMO_DOMAINS),
            "client": rng.choice(DEMO_CLIENTS),
            "type": rng.choice(["A", "A", "A", "AAAA", "MX", "TXT"]),
            "status": rng.choice([2, 2, 2, 3]),
            "reply_time": round(rng.uniform(5, 60), 1),
        })
    for i in range(60):
        rows.append({
            "timestamp": (DEMO_START + timedelta(seconds=i * DEMO_BEACON_INTERVAL)).isoformat(),
            "domain": DEMO_BEACON_DOMAIN,
            "client": DEMO_BEACON_CLIENT,
            "type": "TXT",
            "status": 2,
        })
    rows.append({
        "timestamp": (DEMO_START + timedelta(minutes=30)).isoformat(),
        "domain": DEMO_BLACKLISTED,
        "client": DEMO_CLIENTS[0],
        "type": "A",
        "status": 1,
    })
    for i, row in enumerate(rows):
        row["id"] = i + 1
    return rows


# -----------------------
# Console report
# -----------------------
def print_summary(result):
    summary = result.summary
    print("\n" + "=" * 60)
    print(f"Analysis {result.analysis_id} ({result.duration_seconds:.3f}s)")
    print("=" * 60)
    print(f"Clients:        {summary.total_clients}")
    print(f"Queries:        {summary.total_queries}")
    print(f"Anomalies:      {summary.anomalies_detected}")
    print(f"Threat level:   {summary.threat_level.value}")
    print(f"Health:         {summary.overall_health} ({summary.health_score:.1f})")

    security = result.security_analysis
    if security is not None and security.threats:
        print("\nThreats:")
        for threat in security.threats:
            print(f"  [{threat.severity.value:<8}] {threat.type.value:<20} {threat.description}")

    packet = result.packet_analysis
    if packet is not None and packet.anomalies:
        print("\nPacket anomalies:")
        for anomaly in packet.anomalies:
            print(f"  [{anomaly.severity.value:<8}] {anomaly.type.value:<20} {anomaly.description}")

    for group, message in result.errors.items():
        print(f"[WARNING] {group}: {message}")

    print("\nKey insights:")
    for insight in summary.key_insights:
        print(f"  - {insight}")


# -----------------------
# Entry point
# -----------------------
def build_parser():
    parser = argparse.ArgumentParser(
        description="DNS network behavior analysis over DNS query logs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  # Analyze a CSV export of DNS queries
  python main.py queries.csv

  # Custom configuration and a JSON report
  python main.py queries.json --config analysis.json --output report.json

  # Run against synthetic data
  python main.py --demo
        '''
    )
    parser.add_argument(
        "input",
        nargs="?",
        metavar="QUERIES",
        help="CSV or JSON file of DNS query rows"
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="JSON analysis configuration (defaults are used when omitted)"
    )
    parser.add_argument(
        "--output",
        metavar="PATH",
        help="Write the full analysis result as JSON"
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Analyze a synthetic batch instead of an input file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging"
    )
    return parser


def cli(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    if not args.input and not args.demo:
        print("[WARNING] No input file given (use --demo for synthetic data)")
        return 2

    try:
        config = load_config(args.config)
        rows = demo_rows() if args.demo else load_rows(args.input)
    except (AnalysisError, OSError, ValueError) as e:
        logger.error("%s", e)
        return 1
    if args.demo and DEMO_BLACKLISTED not in config.security_analysis.blacklist_domains:
        config.security_analysis.blacklist_domains.append(DEMO_BLACKLISTED)

    records = normalize_rows(rows)
    print(f"[INFO] Loaded {len(records)} queries")

    analyzer = NetworkAnalyzer(logger=logger.getChild("engine"))
    analyzer.initialize(config)
    result = analyzer.analyze_traffic(records)

    print_summary(result)

    if args.output:
        with open(args.output, "w") as f:
            json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)
        print(f"\n[INFO] Report written to {args.output}")

    return 0


if __name__ == '__main__':
    sys.exit(cli())
