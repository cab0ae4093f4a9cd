"""Read declared feature names from a TOML build manifest."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from feature_probe.errors import ManifestError

logger = logging.getLogger(__name__)

DEFAULT_SECTION = "features"


def _lookup_section(data: dict[str, Any], section: str, path: Path) -> Any:
    """Walk a dotted key path such as ``tool.feature-probe.features``."""
    node: Any = data
    for key in section.split("."):
        if not isinstance(node, dict):
            raise ManifestError(
                f"Manifest {path}: '{section}' is not a table",
                context={"path": str(path), "section": section},
            )
        if key not in node:
            return None
        node = node[key]
    return node


def load_declared_features(
    path: Path, section: str = DEFAULT_SECTION
) -> frozenset[str]:
    """Load the set of features declared in a manifest.

    Args:
        path: Manifest file (TOML)
        section: Dotted path of the features table

    Returns:
        Declared feature names. A manifest without the section declares none.

    Raises:
        ManifestError: If the manifest is absent, unreadable or malformed
    """
    if not path.is_file():
        raise ManifestError(
            f"Manifest not found: {path}", context={"path": str(path)}
        )

    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ManifestError(
            f"Manifest {path} is not valid TOML",
            context={"path": str(path)},
            original_error=e,
        ) from e
    except OSError as e:
        raise ManifestError(
            f"Cannot read manifest {path}",
            context={"path": str(path)},
            original_error=e,
        ) from e

    table = _lookup_section(data, section, path)
    if table is None:
        logger.info(f"Manifest {path} has no [{section}] section")
        return frozenset()

    if not isinstance(table, dict):
        raise ManifestError(
            f"Manifest {path}: [{section}] must be a table",
            context={"path": str(path), "section": section},
        )

    for name in table:
        if not name.strip():
            raise ManifestError(
                f"Manifest {path}: empty feature name in [{section}]",
                context={"path": str(path), "section": section},
            )

    features = frozenset(table)
    logger.debug(f"Manifest {path} declares {len(features)} features")
    return features
