"""Tests for CLI module."""

from __future__ import annotations

import logging
import os
import shlex
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import SUPPORTED, UNSUPPORTED
from feature_probe.cli import main, parse_args, setup_logging


class TestParseArgs:
    """Tests for argument parsing."""

    def test_default_args(self) -> None:
        """Test default argument values."""
        args = parse_args([])

        assert args.manifest is None
        assert args.probe_dir is None
        assert args.directive_format is None
        assert args.enable == []
        assert args.disable == []
        assert args.compile_only is None
        assert args.chain is None
        assert args.log_level is None
        assert args.debug is False
        assert args.quiet is False

    def test_manifest_and_probe_dir(self, tmp_path: Path) -> None:
        """Test path arguments."""
        args = parse_args(["-m", str(tmp_path / "Cargo.toml"), "-d", str(tmp_path)])
        assert args.manifest == tmp_path / "Cargo.toml"
        assert args.probe_dir == tmp_path

    def test_enable_disable_repeatable(self) -> None:
        """Test explicit selection flags."""
        args = parse_args(["-e", "simd", "--enable", "gpu", "-x", "legacy"])
        assert args.enable == ["simd", "gpu"]
        assert args.disable == ["legacy"]

    def test_format_choices(self) -> None:
        """Test directive format argument."""
        assert parse_args(["-f", "cargo"]).directive_format == "cargo"
        with pytest.raises(SystemExit):
            parse_args(["-f", "xml"])

    def test_flags(self) -> None:
        """Test boolean flags."""
        args = parse_args(["--compile-only", "--chain", "--debug", "-j", "3", "-t", "2.5"])
        assert args.compile_only is True
        assert args.chain is True
        assert args.debug is True
        assert args.jobs == 3
        assert args.timeout == 2.5

    def test_reads_sys_argv(self) -> None:
        """Test that sys.argv is used by default."""
        with patch("sys.argv", ["feature-probe", "-q"]):
            args = parse_args()
        assert args.quiet is True


class TestSetupLogging:
    """Tests for logging setup."""

    @pytest.fixture(autouse=True)
    def reset_root(self):
        root = logging.getLogger()
        saved_handlers = root.handlers[:]
        saved_level = root.level
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        root.setLevel(logging.NOTSET)
        yield root
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)

    def test_info_logging_level(self, reset_root: logging.Logger) -> None:
        """Test info logging level maps correctly."""
        setup_logging("info")
        assert reset_root.level == logging.INFO

    def test_warn_logging_level(self, reset_root: logging.Logger) -> None:
        """Test warn logging level maps correctly."""
        setup_logging("warn")
        assert reset_root.level == logging.WARNING

    def test_debug_logging_level(self, reset_root: logging.Logger) -> None:
        """Test debug logging level maps correctly."""
        setup_logging("debug")
        assert reset_root.level == logging.DEBUG


class TestMain:
    """Tests for main entry point."""

    @pytest.fixture
    def project(self, tmp_path: Path, fake_cc: Path, write_manifest, write_probe, monkeypatch):
        """A project with simd (supported), gpu (unsupported) and legacy (no probe)."""
        write_manifest("simd", "gpu", "legacy")
        write_probe("simd", SUPPORTED)
        write_probe("gpu", UNSUPPORTED)

        for name in ("BUILD_FEATURE_SIMD", "BUILD_FEATURE_GPU", "OUT_DIR", "DOCS_RS"):
            monkeypatch.delenv(name, raising=False)
        for name in list(os.environ):
            if name.startswith("FEATURE_PROBE_"):
                monkeypatch.delenv(name)
        monkeypatch.setenv("CC", shlex.join([sys.executable, str(fake_cc)]))
        monkeypatch.setenv("FEATURE_PROBE_COMPILE_ONLY", "1")
        monkeypatch.setenv("BUILD_FEATURE_LEGACY", "0")
        monkeypatch.chdir(tmp_path)
        return tmp_path

    def run_main(self, argv: list[str]) -> int:
        with patch("feature_probe.cli.load_dotenv") as mock_dotenv:
            with patch("sys.argv", ["feature-probe", *argv]):
                with pytest.raises(SystemExit) as exc_info:
                    main()
        mock_dotenv.assert_called_once()
        return exc_info.value.code

    def test_scenario_exits_zero(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test the full run emits only the supported feature."""
        assert self.run_main(["-q"]) == 0

        captured = capsys.readouterr()
        assert captured.out == "BUILD_FEATURE_SIMD=1\n"

    def test_cargo_format(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test cargo directives on stdout."""
        assert self.run_main(["-q", "-f", "cargo"]) == 0

        out = capsys.readouterr().out
        assert 'cargo:rustc-cfg=feature="simd"' in out
        assert 'feature="gpu"' not in out
        assert "cargo:rerun-if-changed=" in out

    def test_unreadable_manifest_exits_nonzero(
        self, project: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that a manifest error aborts without directives."""
        (project / "features.toml").write_text("[features\n")

        assert self.run_main(["-q"]) == 1

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "error[manifest]" in captured.err

    def test_missing_compiler_exits_nonzero(
        self, project: Path, monkeypatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that a missing toolchain aborts the run."""
        monkeypatch.setenv("CC", "definitely-not-a-compiler-xyz")

        assert self.run_main(["-q"]) == 1

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "error[toolchain]" in captured.err

    def test_unwritable_report_exits_without_directives(
        self, project: Path, monkeypatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that a failed report write leaves stdout empty."""
        (project / "blocker").write_text("not a directory")
        monkeypatch.setenv("BUILD_FEATURE_SIMD", "1")

        assert self.run_main(["-q", "--report", str(project / "blocker" / "log")]) == 1

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "error[output]" in captured.err

    def test_inhibit_fail(self, project: Path, monkeypatch, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that FEATURE_PROBE_INHIBIT=fail exits non-zero."""
        monkeypatch.setenv("FEATURE_PROBE_INHIBIT", "fail")
        assert self.run_main(["-q"]) == 1
        assert "error[config]" in capsys.readouterr().err

    def test_handles_keyboard_interrupt(self) -> None:
        """Test that main exits on KeyboardInterrupt."""
        with patch("feature_probe.cli.load_dotenv"):
            with patch("sys.argv", ["feature-probe"]):
                with patch("asyncio.run") as mock_run:
                    mock_run.side_effect = KeyboardInterrupt()

                    with pytest.raises(SystemExit) as exc_info:
                        main()

        assert exc_info.value.code == 130

    def test_exits_on_unexpected_error(self) -> None:
        """Test that main exits with code 1 on error."""
        with patch("feature_probe.cli.load_dotenv"):
            with patch("sys.argv", ["feature-probe"]):
                with patch("asyncio.run") as mock_run:
                    mock_run.side_effect = RuntimeError("Fatal error")

                    with pytest.raises(SystemExit) as exc_info:
                        main()

        assert exc_info.value.code == 1
