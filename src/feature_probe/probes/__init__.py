"""Probe discovery and toolchain probing."""

from feature_probe.probes.locator import (
    FilesystemProbeLocator,
    InMemoryProbeLocator,
    ProbeLocator,
)
from feature_probe.probes.prober import ToolchainProber

__all__ = [
    "FilesystemProbeLocator",
    "InMemoryProbeLocator",
    "ProbeLocator",
    "ToolchainProber",
]
