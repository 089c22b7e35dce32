#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test script for the command line front end
"""

import sys
import os
import json
import tempfile

# Add the current directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from main import cli, demo_rows, load_rows, normalize_rows

CSV_ROWS = """id,timestamp,domain,client,type,status,reply_time
1,2024-01-01 10:00:00,google.com,192.168.1.10,A,2,12.5
2,2024-01-01 10:00:05,malicious.com,192.168.1.11,A,2,
3,2024-01-01 10:00:09,github.com,192.168.1.10,AAAA,3,40
"""


def test_demo_rows():
    print("Testing demo data...")
    rows = demo_rows()
    assert len(rows) == 461
    assert [r["id"] for r in rows] == list(range(1, 462))
    assert demo_rows() == rows
    records = normalize_rows(rows)
    assert len(records) == len(rows)
    print(f"✓ {len(rows)} deterministic demo rows")


def test_load_rows():
    with tempfile.TemporaryDirectory() as tmp:
        csv_path = os.path.join(tmp, "queries.csv")
        with open(csv_path, "w") as f:
            f.write(CSV_ROWS)
        rows = load_rows(csv_path)
        assert len(rows) == 3
        assert rows[1]["domain"] == "malicious.com"
        records = normalize_rows(rows)
        assert records[2].status_code == 3
        assert records[0].reply_time_ms == 12.5
        assert records[1].reply_time_ms == 0.0

        json_path = os.path.join(tmp, "queries.json")
        with open(json_path, "w") as f:
            json.dump({"queries": rows}, f)
        assert load_rows(json_path) == rows
    print("✓ CSV and JSON inputs loaded")


def test_skips_malformed_rows():
    records = normalize_rows([{"timestamp": "2024-01-01T10:00:00Z", "domain": "a.com"}, "garbage", 7])
    assert len(records) == 1
    print("✓ Non-mapping rows skipped")


def test_cli_demo_with_report():
    print("Testing CLI demo run...")
    with tempfile.TemporaryDirectory() as tmp:
        report = os.path.join(tmp, "report.json")
        assert cli(["--demo", "--output", report]) == 0
        with open(report) as f:
            data = json.load(f)
    assert data["summary"]["total_queries"] == 461
    assert data["summary"]["threat_level"] == "HIGH"
    assert data["security_analysis"]["threat_level"] == "HIGH"
    assert {t["type"] for t in data["security_analysis"]["threats"]} == {"blacklisted_domain", "c2_communication"}
    assert data["errors"] == {}
    print("✓ Demo report written")


def test_cli_input_file_and_config():
    with tempfile.TemporaryDirectory() as tmp:
        csv_path = os.path.join(tmp, "queries.csv")
        with open(csv_path, "w") as f:
            f.write(CSV_ROWS)
        config_path = os.path.join(tmp, "config.json")
        with open(config_path, "w") as f:
            json.dump({"network_analysis": {"security_analysis": {"blacklist_domains": ["malicious.com"]}}}, f)
        report = os.path.join(tmp, "report.json")

        assert cli([csv_path, "--config", config_path, "--output", report]) == 0
        with open(report) as f:
            data = json.load(f)
    assert data["summary"]["total_queries"] == 3
    assert [t["type"] for t in data["security_analysis"]["threats"]] == ["blacklisted_domain"]
    print("✓ Input file analyzed with custom config")


def test_cli_errors():
    assert cli([]) == 2
    with tempfile.TemporaryDirectory() as tmp:
        assert cli([os.path.join(tmp, "missing.csv")]) == 1
        bad_config = os.path.join(tmp, "bad.json")
        with open(bad_config, "w") as f:
            f.write("{")
        assert cli(["--demo", "--config", bad_config]) == 1
    print("✓ Missing input and bad config reported")


def main():
    """Run all tests"""
    print("=" * 60)
    print("CLI Test Suite")
    print("=" * 60)

    try:
        test_demo_rows()
        test_load_rows()
        test_skips_malformed_rows()
        test_cli_demo_with_report()
        test_cli_input_file_and_config()
        test_cli_errors()

        print("\n" + "=" * 60)
        print("✓ All tests passed!")
        print("=" * 60)
        return 0

    except AssertionError as e:
        print(f"\n✗ Test failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
