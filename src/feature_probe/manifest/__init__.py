"""Manifest module: declared features and explicit selection."""

from feature_probe.manifest.loader import load_declared_features
from feature_probe.manifest.selection import (
    explicit_selection_from_env,
    feature_env_name,
    merge_selection,
    resolve_undetermined,
)

__all__ = [
    "load_declared_features",
    "explicit_selection_from_env",
    "feature_env_name",
    "merge_selection",
    "resolve_undetermined",
]
