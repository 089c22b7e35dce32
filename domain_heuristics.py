#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Domain Name Heuristics
======================

Lexical checks on DNS domain names used by the security detectors.

Features:
- DGA-likeness from label length, vowel ratio and consonant runs
- Uncommon TLD detection against a fixed list of mainstream TLDs
- Suspicious service patterns (temporary mail, URL shorteners, Tor
  gateways, dynamic DNS)
- Shannon entropy of a label, reported as evidence

Usage:
    from domain_heuristics import check_dga, has_uncommon_tld

    result = check_dga("xkqzvbnmwp.example.com")
    print(result["is_dga"], result["reason"])
    print(has_uncommon_tld("payload.tk"))
"""

import math
from collections import defaultdict
from typing import Any, Dict, Iterable, Optional, Set


VOWELS = "aeiou"

# -----------------------
# DGA thresholds
# -----------------------

DGA_MIN_LABEL_LENGTH = 8
DGA_MAX_LABEL_LENGTH = 20
DGA_LOW_VOWEL_RATIO = 0.15
DGA_HIGH_VOWEL_RATIO = 0.5
DGA_MAX_CONSONANT_RUN = 4         # longer runs are flagged

# -----------------------
# TLDs
# -----------------------
# Anything outside this set counts as uncommon for botnet correlation

COMMON_TLDS: Set[str] = {
    "com", "org", "net", "edu", "gov",
    "mil", "int", "co", "io", "me",
    "us", "uk", "ca", "au", "de",
    "fr", "it", "es", "nl", "jp",
}

# -----------------------
# Suspicious services
# -----------------------

SUSPICIOUS_DOMAIN_PATTERNS = [
    "temp-mail", "10minutemail", "guerrillamail",   # temporary email
    "bit.ly", "tinyurl", "t.co",                    # URL shorteners
    "tor2web", "onion.to",                          # Tor gateways
    "duckdns", "no-ip",                             # dynamic DNS
]


def first_label(domain: str) -> Optional[str]:
    """Leftmost label of a domain with at least two labels, else None."""
    parts = domain.lower().split(".")
    if len(parts) < 2:
        return None
    return parts[0]


def vowel_ratio(label: str) -> float:
    if not label:
        return 0.0
    return sum(1 for c in label if c in VOWELS) / len(label)


def max_consonant_run(label: str) -> int:
    """Longest run of non-vowel characters (digits and hyphens included)."""
    longest = run = 0
    for c in label:
        if c in VOWELS:
            run = 0
        else:
            run += 1
            longest = max(longest, run)
    return longest


def calculate_entropy(text: str) -> float:
    """
    Calculate Shannon entropy of a string.

    Args:
        text: Input string

    Returns:
        float: Shannon entropy value
    """
    if not text:
        return 0.0

    freq = defaultdict(int)
    for char in text.lower():
        freq[char] += 1

    length = len(text)
    entropy = 0.0
    for count in freq.values():
        prob = count / length
        entropy -= prob * math.log2(prob)
    return entropy


def check_dga(domain: str) -> Dict[str, Any]:
    """
    Check if a domain looks generated by a DGA.

    Only the first label is examined, and only when it is 8-20 characters
    long. It is DGA-like when its vowel ratio is below 15% or above 50%, or
    when it contains a run of more than 4 consonants.

    Args:
        domain: Domain name to analyze

    Returns:
        dict: is_dga, reason, vowel_ratio, consonant_run and entropy
    """
    result = {
        "is_dga": False,
        "reason": None,
        "vowel_ratio": 0.0,
        "consonant_run": 0,
        "entropy": 0.0,
    }

    label = first_label(domain)
    if label is None:
        return result
    if not DGA_MIN_LABEL_LENGTH <= len(label) <= DGA_MAX_LABEL_LENGTH:
        return result

    ratio = vowel_ratio(label)
    run = max_consonant_run(label)
    result["vowel_ratio"] = round(ratio, 3)
    result["consonant_run"] = run
    result["entropy"] = round(calculate_entropy(label), 2)

    if ratio < DGA_LOW_VOWEL_RATIO:
        result["is_dga"] = True
        result["reason"] = f"Low vowel ratio ({ratio:.1%} < 15%)"
    elif ratio > DGA_HIGH_VOWEL_RATIO:
        result["is_dga"] = True
        result["reason"] = f"High vowel ratio ({ratio:.1%} > 50%)"
    elif run > DGA_MAX_CONSONANT_RUN:
        result["is_dga"] = True
        result["reason"] = f"Consonant run of {run} characters"

    return result


def is_dga_like(domain: str) -> bool:
    return check_dga(domain)["is_dga"]


def has_uncommon_tld(domain: str) -> bool:
    parts = domain.lower().split(".")
    if len(parts) < 2:
        return False
    return parts[-1] not in COMMON_TLDS


def matching_pattern(domain: str, extra_patterns: Iterable[str] = ()) -> Optional[str]:
    """First suspicious pattern contained in the domain, or None."""
    lowered = domain.lower()
    for pattern in SUSPICIOUS_DOMAIN_PATTERNS:
        if pattern in lowered:
            return pattern
    for pattern in extra_patterns:
        if pattern and pattern.lower() in lowered:
            return pattern.lower()
    return None


if __name__ == "__main__":
    for name in ["xkqzvbnmwp.example.com", "mail.google.com", "aeiouaeiou.net", "payload.tk"]:
        dga = check_dga(name)
        print(f"{name:28} dga={dga['is_dga']!s:5} uncommon_tld={has_uncommon_tld(name)!s:5} {dga['reason'] or ''}")
