"""Type definitions for feature-probe using Pydantic."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

FeatureName = str


# === Probe Types ===


class ProbeOutcome(str, Enum):
    """Result of probing a single feature."""

    COMPILED = "compiled"
    FAILED = "failed"
    SKIPPED = "skipped"  # No probe source


class ProbeSource(BaseModel):
    """Source text of a probe program for one feature."""

    feature: FeatureName
    text: str
    path: Path | None = None  # None for in-memory sources


class ProbeResult(BaseModel):
    """Outcome of one probe, with the captured toolchain output."""

    feature: FeatureName
    outcome: ProbeOutcome
    diagnostics: str = ""
    timed_out: bool = False
    duration_ms: float = 0.0
    source_path: Path | None = None
    # Lines printed by a probe program that ran successfully
    emitted: list[str] = Field(default_factory=list)


# === Toolchain Types ===


class ToolchainConfig(BaseModel):
    """Toolchain settings handed to the prober.

    Everything the prober needs from the environment is captured here so a
    probe never reads process-wide state on its own.
    """

    compiler: list[str] = Field(default_factory=lambda: ["cc"])
    flags: list[str] = Field(default_factory=list)
    link_flags: list[str] = Field(default_factory=list)
    source_suffix: str = ".c"
    compile_only_args: list[str] = Field(default_factory=lambda: ["-c"])
    output_flag: str = "-o"
    # Formatted with {name} and {NAME}, then shell-split
    define_format: str = "-DFEATURE_{NAME}"
    execute: bool = True
    env: dict[str, str] | None = None


# === Decision Types ===


class DecisionReason(str, Enum):
    """Why a feature ended up enabled or disabled."""

    EXPLICIT = "explicit"
    PROBED_SUCCESS = "probed-success"
    PROBED_FAILURE = "probed-failure"
    NO_PROBE_SOURCE = "no-probe-source"
    DOCS_BUILD = "docs-build"


class Decision(BaseModel):
    """Final enable/disable verdict for one declared feature."""

    feature: FeatureName
    enabled: bool
    reason: DecisionReason


class DirectiveFormat(str, Enum):
    """Output formats understood by build orchestrators."""

    ENV = "env"
    CARGO = "cargo"
    JSON = "json"


class RunStatus(str, Enum):
    """How a run finished."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    STOPPED = "stopped"
    DOCS = "docs"


class RunReport(BaseModel):
    """Everything a run produced, ready for emission."""

    status: RunStatus = RunStatus.COMPLETED
    decisions: list[Decision] = Field(default_factory=list)
    results: list[ProbeResult] = Field(default_factory=list)
    directives: list[str] = Field(default_factory=list)
    summary: str = ""

    def enabled_features(self) -> list[FeatureName]:
        """Names of all enabled features, sorted."""
        return [d.feature for d in self.decisions if d.enabled]

    def decision_map(self) -> dict[FeatureName, bool]:
        """Feature name -> enabled."""
        return {d.feature: d.enabled for d in self.decisions}
