"""Directive rendering for the host build orchestrator."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import TextIO

from feature_probe.manifest.selection import DEFAULT_ENV_PREFIX, feature_env_name
from feature_probe.types import Decision, DirectiveFormat, ProbeResult


def _cargo_directives(
    decisions: list[Decision], results: Iterable[ProbeResult]
) -> list[str]:
    lines: list[str] = []
    results = sorted(results, key=lambda r: r.feature)

    for result in results:
        if result.source_path is not None:
            lines.append(f"cargo:rerun-if-changed={result.source_path}")

    enabled = {d.feature for d in decisions if d.enabled}
    for decision in decisions:
        if decision.enabled:
            lines.append(f'cargo:rustc-cfg=feature="{decision.feature}"')

    # Instructions printed by probes count only when their feature got enabled
    for result in results:
        if result.feature in enabled:
            lines.extend(result.emitted)

    return lines


def render_directives(
    decisions: list[Decision],
    results: Iterable[ProbeResult] = (),
    fmt: DirectiveFormat = DirectiveFormat.ENV,
    env_prefix: str = DEFAULT_ENV_PREFIX,
) -> list[str]:
    """Render decisions in the format the orchestrator reads.

    Only enabled features produce a directive in the line formats; absence
    means disabled. The JSON format carries every decision.
    """
    if fmt == DirectiveFormat.CARGO:
        return _cargo_directives(decisions, results)

    if fmt == DirectiveFormat.JSON:
        document = {
            "features": {
                d.feature: {"enabled": d.enabled, "reason": d.reason.value}
                for d in decisions
            }
        }
        return [json.dumps(document, indent=2, sort_keys=True)]

    return [
        f"{feature_env_name(d.feature, env_prefix)}=1" for d in decisions if d.enabled
    ]


def emit_directives(lines: list[str], stream: TextIO) -> None:
    """Write directive lines to the orchestrator's channel."""
    for line in lines:
        stream.write(f"{line}\n")
    stream.flush()
