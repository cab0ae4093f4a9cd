"""Explicit feature selection and the set of features left to probe."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "BUILD"

_FALSE_VALUES = {"0", "false", "no", "off"}


def feature_env_name(feature: str, prefix: str = DEFAULT_ENV_PREFIX) -> str:
    """Environment variable that carries a feature's explicit state."""
    return f"{prefix}_FEATURE_{feature.upper().replace('-', '_')}"


def parse_flag(value: str) -> bool:
    """Interpret an explicit-selection value ("1", "true", "off", ...)."""
    return value.strip().lower() not in _FALSE_VALUES


def explicit_selection_from_env(
    declared: Iterable[str],
    environ: Mapping[str, str],
    prefix: str = DEFAULT_ENV_PREFIX,
) -> dict[str, bool]:
    """Collect features the calling build process already fixed.

    A declared feature counts as explicit when ``<PREFIX>_FEATURE_<NAME>``
    is present in ``environ``, whatever its value.
    """
    selection: dict[str, bool] = {}
    for feature in sorted(declared):
        value = environ.get(feature_env_name(feature, prefix))
        if value is not None:
            selection[feature] = parse_flag(value)
    return selection


def merge_selection(*selections: Mapping[str, bool]) -> dict[str, bool]:
    """Merge selections; later ones win."""
    merged: dict[str, bool] = {}
    for selection in selections:
        merged.update(selection)
    return merged


def resolve_undetermined(
    declared: frozenset[str], explicit: Mapping[str, bool]
) -> tuple[str, ...]:
    """Declared features whose state the caller did not fix, sorted."""
    unknown = set(explicit) - declared
    for name in sorted(unknown):
        logger.warning(f"Ignoring explicit selection of undeclared feature: {name}")

    return tuple(sorted(declared - set(explicit)))
