#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Analysis Error Types
====================

Exception hierarchy for the DNS behavior analysis engine.

- ParseError: malformed timestamp, always recovered where it is raised
- DetectorError: one detector group failed, the rest of the run continues
- NotInitializedError: engine used before initialize(), fatal to the call
- ConfigError: configuration could not be loaded or is out of range
"""


class AnalysisError(Exception):
    """Base class for all analysis engine errors."""


class ParseError(AnalysisError):
    """Raised when a timestamp string matches none of the known formats."""

    def __init__(self, value):
        super().__init__(f"Unrecognized timestamp format: {value!r}")
        self.value = value


class DetectorError(AnalysisError):
    """Raised (and logged) when a detector group fails."""

    def __init__(self, group, cause):
        super().__init__(f"{group} analysis failed: {cause}")
        self.group = group
        self.cause = cause


class NotInitializedError(AnalysisError):
    """Raised when analysis is requested before the analyzer is configured."""

    def __init__(self):
        super().__init__("analyzer not initialized")


class ConfigError(AnalysisError):
    """Raised when configuration cannot be read or fails validation."""
