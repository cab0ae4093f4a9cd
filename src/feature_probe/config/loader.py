"""Settings and toolchain configuration read from the environment."""

from __future__ import annotations

import logging
import os
import shlex
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from feature_probe.errors import ConfigError
from feature_probe.manifest.selection import DEFAULT_ENV_PREFIX
from feature_probe.types import DirectiveFormat, ToolchainConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "FEATURE_PROBE_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class InhibitMode(str, Enum):
    """Ways to switch probing off from the environment."""

    SKIP = "skip"  # Warn, probe nothing, succeed
    STOP = "stop"  # Succeed silently
    FAIL = "fail"  # Fail the run


def default_jobs() -> int:
    return os.cpu_count() or 1


class ProbeSettings(BaseModel):
    """Run settings."""

    manifest: Path = Path("features.toml")
    section: str = "features"
    probe_dir: Path = Path("conf_tests")
    suffix: str | None = None  # Defaults to the toolchain's source suffix
    directive_format: DirectiveFormat = DirectiveFormat.ENV
    env_prefix: str = Field(default=DEFAULT_ENV_PREFIX, min_length=1)
    timeout: float = Field(default=60.0, gt=0)
    jobs: int = Field(default_factory=default_jobs, ge=1)
    chain: bool = False
    inhibit: InhibitMode | None = None
    docs_build: bool = False
    docs_feature: str = "docs_rs"
    work_dir: Path | None = None
    output: Path | None = None
    report_file: Path | None = None
    log_level: str = "info"


def _flag(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def load_settings(
    environ: Mapping[str, str] | None = None, **overrides: object
) -> ProbeSettings:
    """Build settings from ``FEATURE_PROBE_*`` variables.

    Keyword overrides (typically from the command line) win over the
    environment; None overrides are ignored.

    Raises:
        ConfigError: If a value is invalid
    """
    env = os.environ if environ is None else environ
    values: dict[str, object] = {}

    simple = {
        "MANIFEST": "manifest",
        "SECTION": "section",
        "DIR": "probe_dir",
        "SUFFIX": "suffix",
        "FORMAT": "directive_format",
        "ENV_PREFIX": "env_prefix",
        "TIMEOUT": "timeout",
        "REPORT": "report_file",
        "OUTPUT": "output",
        "LOG_LEVEL": "log_level",
        "DOCS_FEATURE": "docs_feature",
    }
    for suffix, field_name in simple.items():
        value = env.get(ENV_PREFIX + suffix)
        if value:
            values[field_name] = value

    jobs = env.get(ENV_PREFIX + "JOBS") or env.get("NUM_JOBS")
    if jobs:
        values["jobs"] = jobs

    if ENV_PREFIX + "CHAIN" in env:
        values["chain"] = _flag(env[ENV_PREFIX + "CHAIN"])

    inhibit = env.get(ENV_PREFIX + "INHIBIT")
    if inhibit is not None:
        try:
            values["inhibit"] = InhibitMode(inhibit)
        except ValueError as e:
            raise ConfigError(
                f"Unknown {ENV_PREFIX}INHIBIT value: {inhibit!r}",
                context={"value": inhibit},
            ) from e

    if env.get("DOCS_RS") is not None:
        values["docs_build"] = True

    out_dir = env.get("OUT_DIR")
    if out_dir:
        values["work_dir"] = Path(out_dir) / "feature_probe"

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return ProbeSettings(**values)
    except ValidationError as e:
        raise ConfigError("Invalid settings", original_error=e) from e


def load_toolchain(
    environ: Mapping[str, str] | None = None, compile_only: bool | None = None
) -> ToolchainConfig:
    """Capture the toolchain configuration from ``CC``, ``CFLAGS`` and ``LDFLAGS``.

    Args:
        environ: Environment to read (default: os.environ)
        compile_only: Override ``FEATURE_PROBE_COMPILE_ONLY``

    Raises:
        ConfigError: If a value cannot be parsed
    """
    env = os.environ if environ is None else environ

    try:
        compiler = shlex.split(env.get("CC") or "cc")
        flags = shlex.split(env.get("CFLAGS", ""))
        link_flags = shlex.split(env.get("LDFLAGS", ""))
    except ValueError as e:
        raise ConfigError("Cannot parse toolchain settings", original_error=e) from e

    if not compiler:
        raise ConfigError("CC is set but empty")

    if compile_only is None:
        compile_only = _flag(env.get(ENV_PREFIX + "COMPILE_ONLY", ""))

    config = ToolchainConfig(
        compiler=compiler,
        flags=flags,
        link_flags=link_flags,
        execute=not compile_only,
    )

    suffix = env.get(ENV_PREFIX + "SUFFIX")
    if suffix:
        config.source_suffix = suffix
    define_format = env.get(ENV_PREFIX + "DEFINE_FORMAT")
    if define_format:
        config.define_format = define_format

    logger.debug(f"Toolchain: {shlex.join(config.compiler)} (execute={config.execute})")
    return config
