"""
Error taxonomy for feature probing.

Every class here is fatal for a run: the orchestrator aborts and nothing is
emitted. An unsupported capability is not an error at all; it comes back as
ProbeOutcome.FAILED and ends up in the summary.
"""

from __future__ import annotations

from typing import Any


class FeatureProbeError(Exception):
    """Base exception for fatal feature-probe errors."""

    stage = "run"

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class ManifestError(FeatureProbeError):
    """Manifest is missing, unreadable or malformed."""

    stage = "manifest"


class ProbeSourceError(FeatureProbeError):
    """A probe source exists but cannot be read."""

    stage = "probe-source"


class ToolchainInfrastructureError(FeatureProbeError):
    """The toolchain cannot be invoked at all."""

    stage = "toolchain"


class ConfigError(FeatureProbeError):
    """Invalid configuration value."""

    stage = "config"


class OutputError(FeatureProbeError):
    """Directives or the report file cannot be written."""

    stage = "output"
