"""Toolchain Prober - compiles (and optionally runs) probe programs in isolation."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shlex
import shutil
import signal
import tempfile
import time
from collections.abc import Iterable
from pathlib import Path

from feature_probe.errors import ToolchainInfrastructureError
from feature_probe.types import ProbeOutcome, ProbeResult, ProbeSource, ToolchainConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0  # Seconds per toolchain invocation

# Captured toolchain output kept per probe
MAX_DIAGNOSTIC_CHARS = 8000

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _truncate(text: str, max_length: int = MAX_DIAGNOSTIC_CHARS) -> str:
    """Keep the tail of long toolchain output, where errors usually are."""
    if len(text) <= max_length:
        return text
    return "..." + text[-(max_length - 3):]


def _kill(process: asyncio.subprocess.Process) -> None:
    """Forcibly terminate a spawned process and its children."""
    if process.returncode is not None:
        return
    try:
        if os.name == "posix":
            # Spawned with start_new_session, so pid is the group id
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        logger.debug(f"Process {process.pid} already exited")


class ToolchainProber:
    """Runs a probe program through the toolchain and reports the outcome."""

    def __init__(
        self,
        toolchain: ToolchainConfig,
        timeout: float = DEFAULT_TIMEOUT,
        work_dir: Path | None = None,
    ) -> None:
        self._toolchain = toolchain
        self._timeout = timeout
        self._work_dir = work_dir

        # Build environment
        self._env: dict[str, str] | None = None
        if toolchain.env is not None:
            self._env = os.environ.copy()
            self._env.update(toolchain.env)

    @property
    def toolchain(self) -> ToolchainConfig:
        return self._toolchain

    def check_available(self) -> None:
        """Fail fast when the compiler cannot be found.

        Raises:
            ToolchainInfrastructureError: If the compiler is not on PATH
        """
        if not self._toolchain.compiler:
            raise ToolchainInfrastructureError("No compiler configured")

        compiler = self._toolchain.compiler[0]
        search_path = self._env.get("PATH") if self._env is not None else None
        if shutil.which(compiler, path=search_path) is None:
            raise ToolchainInfrastructureError(
                f"Compiler not found: {compiler}",
                context={"compiler": compiler},
            )

    def define_args(self, features: Iterable[str]) -> list[str]:
        """Command line arguments announcing already-enabled features."""
        args: list[str] = []
        for feature in features:
            define = self._toolchain.define_format.format(
                name=feature,
                NAME=feature.upper().replace("-", "_"),
            )
            args.extend(shlex.split(define))
        return args

    def build_command(
        self, source_file: Path, output: Path, defines: Iterable[str] = ()
    ) -> list[str]:
        """Toolchain command line for one probe."""
        tc = self._toolchain
        cmd = [*tc.compiler, *tc.flags]
        if not tc.execute:
            cmd.extend(tc.compile_only_args)
        cmd.extend(self.define_args(defines))
        cmd.extend([tc.output_flag, str(output), str(source_file)])
        if tc.execute:
            cmd.extend(tc.link_flags)
        return cmd

    async def probe(
        self, source: ProbeSource, defines: Iterable[str] = ()
    ) -> ProbeResult:
        """Compile (and, in execute mode, run) one probe program.

        The probe gets its own temporary directory which is removed once the
        outcome is known, whatever it is.

        Args:
            source: Probe program
            defines: Features to announce to the probe via the define format

        Returns:
            ProbeResult with outcome COMPILED or FAILED

        Raises:
            ToolchainInfrastructureError: If the temp area cannot be created
                or the compiler cannot be spawned at all
        """
        started = time.monotonic()
        prefix = f"probe-{_UNSAFE_CHARS.sub('_', source.feature)}-"

        try:
            if self._work_dir is not None:
                self._work_dir.mkdir(parents=True, exist_ok=True)
            scratch = tempfile.TemporaryDirectory(
                prefix=prefix, dir=self._work_dir, ignore_cleanup_errors=True
            )
        except OSError as e:
            raise ToolchainInfrastructureError(
                f"Cannot create temporary build area for {source.feature}",
                context={"feature": source.feature, "work_dir": str(self._work_dir)},
                original_error=e,
            ) from e

        with scratch as tmp:
            result = await self._probe_in(Path(tmp), source, list(defines))

        result.duration_ms = (time.monotonic() - started) * 1000
        result.source_path = source.path
        logger.debug(
            f"Probe {source.feature}: {result.outcome.value} "
            f"in {result.duration_ms:.0f}ms"
        )
        return result

    async def _probe_in(
        self, tmp: Path, source: ProbeSource, defines: list[str]
    ) -> ProbeResult:
        feature = source.feature
        source_file = tmp / f"probe{self._toolchain.source_suffix}"
        if self._toolchain.execute:
            output = tmp / ("probe.exe" if os.name == "nt" else "probe")
        else:
            output = tmp / "probe.o"

        try:
            source_file.write_text(source.text, encoding="utf-8")
        except OSError as e:
            raise ToolchainInfrastructureError(
                f"Cannot write probe source for {feature}",
                context={"feature": feature, "path": str(source_file)},
                original_error=e,
            ) from e

        cmd = self.build_command(source_file, output, defines)
        logger.debug(f"[{feature}] compiling: {shlex.join(cmd)}")

        try:
            returncode, stdout, stderr = await self._run(cmd, tmp)
        except OSError as e:
            raise ToolchainInfrastructureError(
                f"Cannot invoke compiler {cmd[0]}",
                context={"feature": feature, "command": cmd},
                original_error=e,
            ) from e

        if returncode is None:
            logger.info(f"[{feature}] compile timed out after {self._timeout}s")
            return ProbeResult(
                feature=feature,
                outcome=ProbeOutcome.FAILED,
                diagnostics=f"compile timed out after {self._timeout}s",
                timed_out=True,
            )

        if returncode != 0:
            logger.debug(f"[{feature}] compile failed ({returncode}): {stderr.strip()}")
            return ProbeResult(
                feature=feature,
                outcome=ProbeOutcome.FAILED,
                diagnostics=_truncate(stderr + stdout),
            )

        if not self._toolchain.execute:
            return ProbeResult(
                feature=feature,
                outcome=ProbeOutcome.COMPILED,
                diagnostics=_truncate(stderr),
            )

        return await self._execute(feature, output, tmp)

    async def _execute(self, feature: str, binary: Path, tmp: Path) -> ProbeResult:
        """Run a compiled probe; its exit status is the signal."""
        logger.debug(f"[{feature}] executing: {binary}")

        try:
            returncode, stdout, stderr = await self._run([str(binary)], tmp)
        except OSError as e:
            # Built but not runnable here (e.g. cross-compiling)
            return ProbeResult(
                feature=feature,
                outcome=ProbeOutcome.FAILED,
                diagnostics=f"cannot execute probe: {e}",
            )

        if returncode is None:
            logger.info(f"[{feature}] probe run timed out after {self._timeout}s")
            return ProbeResult(
                feature=feature,
                outcome=ProbeOutcome.FAILED,
                diagnostics=f"probe run timed out after {self._timeout}s",
                timed_out=True,
            )

        if returncode != 0:
            return ProbeResult(
                feature=feature,
                outcome=ProbeOutcome.FAILED,
                diagnostics=_truncate(f"probe exited with {returncode}\n{stderr}"),
            )

        return ProbeResult(
            feature=feature,
            outcome=ProbeOutcome.COMPILED,
            diagnostics=_truncate(stderr),
            emitted=[line for line in stdout.splitlines() if line.strip()],
        )

    async def _run(self, cmd: list[str], cwd: Path) -> tuple[int | None, str, str]:
        """Run a command with the probe timeout.

        Returns:
            (returncode, stdout, stderr); returncode is None on timeout
        """
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=self._env,
            start_new_session=os.name == "posix",
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            _kill(process)
            await process.wait()
            return None, "", ""
        except asyncio.CancelledError:
            _kill(process)
            await process.wait()
            raise

        return (
            process.returncode,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )
