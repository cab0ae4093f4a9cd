"""Feature probe orchestrator."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import TextIO

from feature_probe.config.loader import ENV_PREFIX, InhibitMode, ProbeSettings
from feature_probe.errors import ConfigError, OutputError
from feature_probe.manifest.loader import load_declared_features
from feature_probe.manifest.selection import (
    explicit_selection_from_env,
    merge_selection,
    resolve_undetermined,
)
from feature_probe.probes.locator import FilesystemProbeLocator, ProbeLocator
from feature_probe.probes.prober import ToolchainProber
from feature_probe.summary.directives import emit_directives, render_directives
from feature_probe.summary.generator import build_decisions, render_summary
from feature_probe.types import (
    Decision,
    DecisionReason,
    DirectiveFormat,
    ProbeOutcome,
    ProbeResult,
    ProbeSource,
    RunReport,
    RunStatus,
    ToolchainConfig,
)

logger = logging.getLogger(__name__)


class FeatureProbeRunner:
    """Decides which declared features to enable for the current build."""

    def __init__(
        self,
        settings: ProbeSettings,
        toolchain: ToolchainConfig,
        environ: Mapping[str, str] | None = None,
        explicit: Mapping[str, bool] | None = None,
        locator: ProbeLocator | None = None,
        prober: ToolchainProber | None = None,
    ) -> None:
        self._settings = settings
        self._environ = os.environ if environ is None else environ
        self._explicit_overrides = dict(explicit or {})

        self._locator = locator or FilesystemProbeLocator(
            settings.probe_dir, settings.suffix or toolchain.source_suffix
        )
        self._prober = prober or ToolchainProber(
            toolchain,
            timeout=settings.timeout,
            work_dir=settings.work_dir,
        )

    async def run(self) -> RunReport:
        """Run the full probe sequence.

        Nothing is emitted here; a fatal error leaves no partial decisions.

        Raises:
            FeatureProbeError: On manifest, probe source, toolchain or
                configuration failures
        """
        settings = self._settings

        if settings.inhibit == InhibitMode.STOP:
            logger.info(f"Probing stopped via {ENV_PREFIX}INHIBIT")
            return RunReport(status=RunStatus.STOPPED)
        if settings.inhibit == InhibitMode.FAIL:
            raise ConfigError(f"Failure requested via {ENV_PREFIX}INHIBIT")
        if settings.inhibit == InhibitMode.SKIP:
            return self._skipped_report()

        declared = load_declared_features(settings.manifest, settings.section)
        logger.info(f"Manifest {settings.manifest}: {len(declared)} features declared")

        explicit = merge_selection(
            explicit_selection_from_env(declared, self._environ, settings.env_prefix),
            self._explicit_overrides,
        )

        if settings.docs_build:
            return self._docs_report(declared, explicit)

        undetermined = resolve_undetermined(declared, explicit)
        for feature in sorted(set(explicit) & declared):
            logger.info(f"{feature}: manually overridden")

        results: list[ProbeResult] = []
        if undetermined:
            results = await self._probe_features(undetermined, explicit)
        else:
            logger.info("No undetermined features, nothing to probe")

        decisions = build_decisions(declared, explicit, results)
        return self._report(RunStatus.COMPLETED, decisions, results)

    async def _probe_features(
        self, undetermined: tuple[str, ...], explicit: Mapping[str, bool]
    ) -> list[ProbeResult]:
        """Locate and probe every undetermined feature."""
        sources: list[ProbeSource] = []
        missing: list[ProbeResult] = []

        for feature in undetermined:
            source = self._locator.locate(feature)
            if source is None:
                logger.info(f"{feature}: no probe source")
                missing.append(
                    ProbeResult(feature=feature, outcome=ProbeOutcome.SKIPPED)
                )
            else:
                sources.append(source)

        if not sources:
            return missing

        self._prober.check_available()
        defines = sorted(f for f, on in explicit.items() if on)

        if self._settings.chain:
            probed = await self._probe_chained(sources, defines)
        else:
            probed = await self._probe_concurrently(sources, defines)

        for result in probed:
            logger.info(f"{result.feature}: probe {result.outcome.value}")

        return sorted(missing + probed, key=lambda r: r.feature)

    async def _probe_concurrently(
        self, sources: list[ProbeSource], defines: list[str]
    ) -> list[ProbeResult]:
        """Probe in a bounded pool; a fatal error cancels the rest."""
        semaphore = asyncio.Semaphore(self._settings.jobs)

        async def probe_one(source: ProbeSource) -> ProbeResult:
            async with semaphore:
                return await self._prober.probe(source, defines)

        tasks = [
            asyncio.create_task(probe_one(source), name=f"probe-{source.feature}")
            for source in sources
        ]

        try:
            done, pending = await asyncio.wait(
                tasks, return_when=asyncio.FIRST_EXCEPTION
            )
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        if pending:
            for task in pending:
                task.cancel()
            await asyncio.wait(pending)

        for task in tasks:
            if task in done and task.exception() is not None:
                raise task.exception()

        return [task.result() for task in tasks]

    async def _probe_chained(
        self, sources: list[ProbeSource], defines: list[str]
    ) -> list[ProbeResult]:
        """Probe in name order, announcing features discovered so far."""
        enabled = list(defines)
        results: list[ProbeResult] = []

        for source in sorted(sources, key=lambda s: s.feature):
            result = await self._prober.probe(source, enabled)
            if result.outcome == ProbeOutcome.COMPILED:
                enabled.append(source.feature)
            results.append(result)

        return results

    def _skipped_report(self) -> RunReport:
        message = f"Skipping feature probing via {ENV_PREFIX}INHIBIT"
        logger.warning(message)
        directives = []
        if self._settings.directive_format == DirectiveFormat.CARGO:
            directives.append(f"cargo:warning={message}")
        return RunReport(status=RunStatus.SKIPPED, directives=directives)

    def _docs_report(
        self, declared: frozenset[str], explicit: Mapping[str, bool]
    ) -> RunReport:
        """Documentation builds probe nothing and only add the docs feature."""
        docs_feature = self._settings.docs_feature
        logger.info("Documentation build, probing disabled")

        decisions = build_decisions(declared, explicit, [])
        if docs_feature in declared and docs_feature not in explicit:
            decisions = [
                Decision(
                    feature=docs_feature,
                    enabled=True,
                    reason=DecisionReason.DOCS_BUILD,
                )
                if d.feature == docs_feature
                else d
                for d in decisions
            ]
        return self._report(RunStatus.DOCS, decisions, [])

    def _report(
        self,
        status: RunStatus,
        decisions: list[Decision],
        results: list[ProbeResult],
    ) -> RunReport:
        directives = render_directives(
            decisions,
            results,
            self._settings.directive_format,
            self._settings.env_prefix,
        )
        return RunReport(
            status=status,
            decisions=decisions,
            results=results,
            directives=directives,
            summary=render_summary(decisions),
        )

    def _report_text(self, report: RunReport) -> str:
        lines = [f"# status: {report.status.value}"]
        lines.extend(f"# {line}" for line in report.summary.splitlines())
        for result in report.results:
            if result.outcome == ProbeOutcome.FAILED and result.diagnostics:
                lines.append(f"# --- {result.feature} diagnostics ---")
                lines.extend(f"# {line}" for line in result.diagnostics.splitlines())
        lines.extend(report.directives)
        return "\n".join(lines) + "\n"

    def emit(self, report: RunReport, stream: TextIO | None = None) -> None:
        """Write the report file, if configured, and then the directives.

        Files are written before anything reaches the stream, so a failed
        write leaves the stream untouched.

        Raises:
            OutputError: If the report or output file cannot be written
        """
        settings = self._settings

        if settings.report_file is not None:
            _write_file(settings.report_file, self._report_text(report), "report file")

        if settings.output is not None:
            text = "".join(f"{line}\n" for line in report.directives)
            _write_file(settings.output, text, "directive output")
        else:
            emit_directives(report.directives, stream or sys.stdout)


def _write_file(path: Path, text: str, what: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise OutputError(
            f"Cannot write {what} {path}",
            context={"path": str(path)},
            original_error=e,
        ) from e
