#!/usr/bin/env python3
"""feature-probe CLI."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from feature_probe.errors import FeatureProbeError
from feature_probe.types import DirectiveFormat


def setup_logging(level: str) -> None:
    """Configure logging."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Log to stderr, stdout carries the build directives
    logging.basicConfig(
        level=log_level,
        format="[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="feature-probe - enable optional features whose probe programs build",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Environment variables FEATURE_PROBE_* supply defaults for most options.",
    )

    parser.add_argument(
        "-m",
        "--manifest",
        type=Path,
        help="Manifest declaring the features (default: features.toml)",
    )
    parser.add_argument(
        "--section",
        type=str,
        help="Dotted path of the features table (default: features)",
    )
    parser.add_argument(
        "-d",
        "--probe-dir",
        type=Path,
        help="Directory holding one probe program per feature (default: conf_tests)",
    )
    parser.add_argument(
        "--suffix",
        type=str,
        help="Probe source file suffix (default: toolchain's, .c)",
    )
    parser.add_argument(
        "-f",
        "--format",
        dest="directive_format",
        choices=[f.value for f in DirectiveFormat],
        help="Directive format for the build orchestrator (default: env)",
    )
    parser.add_argument(
        "--env-prefix",
        type=str,
        help="Prefix of <PREFIX>_FEATURE_<NAME> selection variables (default: BUILD)",
    )
    parser.add_argument(
        "-e",
        "--enable",
        action="append",
        default=[],
        metavar="FEATURE",
        help="Force a feature on (repeatable)",
    )
    parser.add_argument(
        "-x",
        "--disable",
        action="append",
        default=[],
        metavar="FEATURE",
        help="Force a feature off (repeatable)",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        help="Probes to run in parallel (default: NUM_JOBS or CPU count)",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        help="Seconds allowed per toolchain invocation (default: 60)",
    )
    parser.add_argument(
        "--compile-only",
        action="store_true",
        default=None,
        help="Only compile probes, do not link and run them",
    )
    parser.add_argument(
        "--chain",
        action="store_true",
        default=None,
        help="Probe sequentially in name order, passing discovered features on",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write directives to this file instead of stdout",
    )
    parser.add_argument(
        "--report",
        dest="report_file",
        type=Path,
        help="Also write the summary and directives to this log file",
    )
    parser.add_argument(
        "-l",
        "--log-level",
        choices=["debug", "info", "warn", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only show errors",
    )

    return parser.parse_args(argv)


async def run_probe(args: argparse.Namespace) -> int:
    """Run feature probing and emit the directives."""
    from feature_probe.config.loader import load_settings, load_toolchain
    from feature_probe.runner import FeatureProbeRunner

    settings = load_settings(
        os.environ,
        manifest=args.manifest,
        section=args.section,
        probe_dir=args.probe_dir,
        suffix=args.suffix,
        directive_format=args.directive_format,
        env_prefix=args.env_prefix,
        jobs=args.jobs,
        timeout=args.timeout,
        chain=args.chain,
        output=args.output,
        report_file=args.report_file,
        log_level=args.log_level,
    )

    # Determine log level
    if args.debug:
        log_level = "debug"
    elif args.quiet:
        log_level = "error"
    else:
        log_level = settings.log_level

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    toolchain = load_toolchain(os.environ, compile_only=args.compile_only)

    explicit = {name: True for name in args.enable}
    explicit.update({name: False for name in args.disable})

    runner = FeatureProbeRunner(
        settings,
        toolchain,
        environ=os.environ,
        explicit=explicit,
    )

    report = await runner.run()
    if report.summary:
        for line in report.summary.splitlines():
            logger.info(line)

    runner.emit(report)
    return 0


def main() -> None:
    """Main entry point."""
    # Load .env file from current directory
    load_dotenv()

    args = parse_args()

    try:
        sys.exit(asyncio.run(run_probe(args)))
    except KeyboardInterrupt:
        sys.exit(130)
    except FeatureProbeError as e:
        print(f"error[{e.stage}]: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
