"""Decision building, summaries and orchestrator directives."""

from feature_probe.summary.directives import emit_directives, render_directives
from feature_probe.summary.generator import (
    build_decisions,
    describe_decision,
    render_summary,
)

__all__ = [
    "build_decisions",
    "describe_decision",
    "emit_directives",
    "render_directives",
    "render_summary",
]
