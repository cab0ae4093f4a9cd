"""Configuration loading."""

from feature_probe.config.loader import (
    InhibitMode,
    ProbeSettings,
    load_settings,
    load_toolchain,
)

__all__ = ["InhibitMode", "ProbeSettings", "load_settings", "load_toolchain"]
