"""Telemetry Observer: likely block authors from a live node telemetry feed."""

__version__ = "0.1.0"
