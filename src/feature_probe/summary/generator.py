"""Turns probe outcomes into per-feature decisions and a readable summary."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from feature_probe.types import Decision, DecisionReason, ProbeOutcome, ProbeResult

_REASON_LABELS = {
    DecisionReason.EXPLICIT: "explicit",
    DecisionReason.PROBED_SUCCESS: "probed",
    DecisionReason.PROBED_FAILURE: "unsupported",
    DecisionReason.NO_PROBE_SOURCE: "no probe source",
    DecisionReason.DOCS_BUILD: "docs build",
}

_OUTCOME_REASONS = {
    ProbeOutcome.COMPILED: DecisionReason.PROBED_SUCCESS,
    ProbeOutcome.FAILED: DecisionReason.PROBED_FAILURE,
    ProbeOutcome.SKIPPED: DecisionReason.NO_PROBE_SOURCE,
}


def build_decisions(
    declared: Iterable[str],
    explicit: Mapping[str, bool],
    results: Iterable[ProbeResult],
) -> list[Decision]:
    """Combine explicit selection and probe results into decisions.

    Explicit state always wins. Otherwise a feature is enabled only when its
    probe compiled. Features that are neither explicit nor probed are
    disabled as having no probe source.

    Args:
        declared: Declared feature names
        explicit: Caller-fixed state per feature
        results: Probe results for undetermined features

    Returns:
        One decision per declared feature, sorted by name
    """
    by_feature = {r.feature: r for r in results}
    decisions: list[Decision] = []

    for feature in sorted(declared):
        if feature in explicit:
            decisions.append(
                Decision(
                    feature=feature,
                    enabled=explicit[feature],
                    reason=DecisionReason.EXPLICIT,
                )
            )
            continue

        result = by_feature.get(feature)
        outcome = result.outcome if result else ProbeOutcome.SKIPPED
        decisions.append(
            Decision(
                feature=feature,
                enabled=outcome == ProbeOutcome.COMPILED,
                reason=_OUTCOME_REASONS[outcome],
            )
        )

    return decisions


def describe_decision(decision: Decision) -> str:
    """One summary line, e.g. ``gpu: disabled (unsupported)``."""
    state = "enabled" if decision.enabled else "disabled"
    return f"{decision.feature}: {state} ({_REASON_LABELS[decision.reason]})"


def render_summary(decisions: list[Decision]) -> str:
    """Human-readable report of every decision."""
    if not decisions:
        return "No features declared."

    enabled = sum(1 for d in decisions if d.enabled)
    lines = [f"Feature probe: {enabled}/{len(decisions)} features enabled"]
    lines.extend(f"  {describe_decision(d)}" for d in decisions)
    return "\n".join(lines)
