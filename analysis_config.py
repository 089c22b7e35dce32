#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Analysis Configuration
======================

Typed configuration for the analysis engine. Each detector group is a
pydantic model; string values from a config file are coerced to the field
type, ranges are enforced by Field constraints, and unknown keys are
ignored with a warning.

Usage:
    from analysis_config import load_config

    config = load_config("analysis.json")
    config.performance.enabled = False
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from analysis_errors import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_PATTERN_TYPES = ["bandwidth", "temporal", "client"]
DEFAULT_THREAT_PATTERNS = ["malware", "phishing", "botnet"]


class ConfigSection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def warn_unknown_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for key in sorted(set(data) - set(cls.model_fields)):
                logger.warning("Ignoring unknown %s key %s", cls.__name__, key)
        return data


class PacketInspectionConfig(ConfigSection):
    enabled: bool = True
    analyze_protocols: List[str] = Field(default_factory=list)   # empty = all
    packet_sampling: float = Field(default=1.0, ge=0.0, le=1.0)
    max_packet_size: int = Field(default=1500, gt=0)
    buffer_size: int = 10000        # accepted, not used
    time_window: str = "1h"         # accepted, not used


class TrafficPatternsConfig(ConfigSection):
    enabled: bool = True
    pattern_types: List[str] = Field(default_factory=lambda: list(DEFAULT_PATTERN_TYPES))
    analysis_window: str = "2h"
    min_data_points: int = 10       # accepted, not used
    pattern_threshold: float = Field(default=0.6, ge=0.0, le=1.0)    # range-checked only
    anomaly_detection: bool = True


class SecurityConfig(ConfigSection):
    enabled: bool = True
    threat_detection: bool = True
    suspicious_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_THREAT_PATTERNS))
    blacklist_domains: List[str] = Field(default_factory=list)
    unusual_traffic_threshold: float = 0.75     # accepted, not used
    port_scan_detection: bool = True
    dns_tunneling_detection: bool = True


class QualityThresholds(ConfigSection):
    max_latency_ms: float = Field(default=150.0, gt=0)
    min_bandwidth_mbps: float = Field(default=5.0, gt=0)
    max_packet_loss_pct: float = Field(default=2.0, gt=0)
    max_jitter_ms: float = Field(default=100.0, gt=0)


class PerformanceConfig(ConfigSection):
    enabled: bool = True
    latency_analysis: bool = True
    bandwidth_analysis: bool = True
    throughput_analysis: bool = True
    packet_loss_analysis: bool = True
    jitter_analysis: bool = True
    quality_thresholds: QualityThresholds = Field(default_factory=QualityThresholds)


class AnalysisConfig(ConfigSection):
    enabled: bool = True
    deep_packet_inspection: PacketInspectionConfig = Field(default_factory=PacketInspectionConfig)
    traffic_patterns: TrafficPatternsConfig = Field(default_factory=TrafficPatternsConfig)
    security_analysis: SecurityConfig = Field(default_factory=SecurityConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AnalysisConfig":
        """Build a config from a nested dict, keeping defaults for missing keys."""
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"configuration must be a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(_describe(e)) from e


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    path = ".".join(str(part) for part in first["loc"])
    return f"invalid value for {path}: {first['msg']}"


def validate_config(config: AnalysisConfig) -> AnalysisConfig:
    """
    Re-check a config that may have been changed after construction.

    Attribute assignment is not validated, so the ranges are enforced again
    here. Returns the same config object; raises ConfigError.
    """
    try:
        type(config).model_validate(config.model_dump())
    except ValidationError as e:
        raise ConfigError(_describe(e)) from e
    return config


def load_config(path: Optional[str] = None) -> AnalysisConfig:
    """
    Load and validate configuration from a JSON file.

    No path returns the defaults. Raises ConfigError if the file cannot be
    read, is not valid JSON, or holds out-of-range values.
    """
    if not path:
        return AnalysisConfig()
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON in config file {path}: {e}") from e

    # Accept either the bare config or one wrapped in a "network_analysis" key
    if isinstance(data, dict) and "network_analysis" in data:
        data = data["network_analysis"]

    config = AnalysisConfig.from_dict(data)
    logger.info("Loaded analysis configuration from %s", path)
    return config
