"""Build-time capability probing for optional features."""

from feature_probe.errors import (
    ConfigError,
    FeatureProbeError,
    ManifestError,
    OutputError,
    ProbeSourceError,
    ToolchainInfrastructureError,
)
from feature_probe.runner import FeatureProbeRunner
from feature_probe.types import Decision, DecisionReason, ProbeOutcome, RunReport

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "Decision",
    "DecisionReason",
    "FeatureProbeError",
    "FeatureProbeRunner",
    "ManifestError",
    "OutputError",
    "ProbeOutcome",
    "ProbeSourceError",
    "RunReport",
    "ToolchainInfrastructureError",
]
