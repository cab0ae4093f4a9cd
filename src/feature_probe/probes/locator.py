"""Probe source discovery.

A feature's probe lives at ``<probe_dir>/<feature><suffix>``. A missing file
is not an error: the feature is simply never auto-enabled.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from feature_probe.errors import ProbeSourceError
from feature_probe.types import ProbeSource

logger = logging.getLogger(__name__)

DEFAULT_PROBE_DIR = Path("conf_tests")


class ProbeLocator(Protocol):
    """Maps a feature name to its probe source, if any."""

    def locate(self, feature: str) -> ProbeSource | None: ...


def _is_plain_file_name(name: str) -> bool:
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name


class FilesystemProbeLocator:
    """Looks up probe sources in a directory by feature name."""

    def __init__(self, probe_dir: Path = DEFAULT_PROBE_DIR, suffix: str = ".c") -> None:
        self._probe_dir = probe_dir
        self._suffix = suffix

    @property
    def probe_dir(self) -> Path:
        return self._probe_dir

    def path_for(self, feature: str) -> Path | None:
        """Conventional probe path for a feature, or None if it has none."""
        if not _is_plain_file_name(feature):
            return None
        return self._probe_dir / f"{feature}{self._suffix}"

    def locate(self, feature: str) -> ProbeSource | None:
        path = self.path_for(feature)
        if path is None:
            logger.debug(f"Feature {feature!r} cannot map to a probe file")
            return None

        try:
            if not path.exists():
                logger.debug(f"No probe for {feature} at {path}")
                return None
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ProbeSourceError(
                f"Cannot read probe source for feature {feature!r} at {path}",
                context={"feature": feature, "path": str(path)},
                original_error=e,
            ) from e

        return ProbeSource(feature=feature, text=text, path=path)


class InMemoryProbeLocator:
    """Probe sources held in a dict, for tests and embedding."""

    def __init__(self, sources: dict[str, str] | None = None) -> None:
        self._sources = dict(sources or {})

    def locate(self, feature: str) -> ProbeSource | None:
        text = self._sources.get(feature)
        if text is None:
            return None
        return ProbeSource(feature=feature, text=text)
