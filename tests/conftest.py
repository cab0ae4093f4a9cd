"""Shared fixtures: a fake compiler and manifest helpers."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from feature_probe.config.loader import ProbeSettings
from feature_probe.types import ToolchainConfig

# Stands in for a C compiler. Probe sources steer it with comments:
#   #error            -> compilation fails
#   // sleep: N       -> compiler takes N seconds
#   // requires: DEF  -> fails unless -DDEF was passed
#   // exit: N        -> linked program exits with N
#   // print: TEXT    -> linked program prints TEXT
#   // run-sleep: N   -> linked program takes N seconds
FAKE_CC = r'''
import os
import re
import sys
import time

args = sys.argv[1:]
out_index = args.index("-o")
output = args[out_index + 1]
source = args[out_index + 2]

with open(source, encoding="utf-8") as f:
    text = f.read()

for m in re.finditer(r"//\s*sleep:\s*([0-9.]+)", text):
    time.sleep(float(m.group(1)))

if "#error" in text:
    sys.stderr.write(source + ":1: error: capability unsupported\n")
    sys.exit(1)

for m in re.finditer(r"//\s*requires:\s*(\S+)", text):
    if "-D" + m.group(1) not in args:
        sys.stderr.write("error: " + m.group(1) + " undeclared\n")
        sys.exit(1)

if "-c" in args:
    with open(output, "w") as f:
        f.write("object")
    sys.exit(0)

exit_code = 0
m = re.search(r"//\s*exit:\s*(\d+)", text)
if m:
    exit_code = int(m.group(1))

with open(output, "w") as f:
    f.write("#!" + sys.executable + "\n")
    f.write("import sys\nimport time\n")
    for m in re.finditer(r"//\s*run-sleep:\s*([0-9.]+)", text):
        f.write("time.sleep(" + m.group(1) + ")\n")
    for line in re.findall(r"//\s*print:\s*(.*)", text):
        f.write("print(" + repr(line.strip()) + ")\n")
    f.write("sys.exit(" + str(exit_code) + ")\n")
os.chmod(output, 0o755)
'''

SUPPORTED = "int main(void) { return 0; }\n"
UNSUPPORTED = "#error capability missing\nint main(void) { return 0; }\n"


@pytest.fixture
def fake_cc(tmp_path: Path) -> Path:
    """Path of the fake compiler script."""
    script = tmp_path / "fake_cc.py"
    script.write_text(FAKE_CC)
    return script


@pytest.fixture
def toolchain(fake_cc: Path) -> ToolchainConfig:
    """Compile-only toolchain backed by the fake compiler."""
    return ToolchainConfig(compiler=[sys.executable, str(fake_cc)], execute=False)


@pytest.fixture
def exec_toolchain(fake_cc: Path) -> ToolchainConfig:
    """Toolchain that links and runs probes."""
    return ToolchainConfig(compiler=[sys.executable, str(fake_cc)], execute=True)


@pytest.fixture
def write_manifest(tmp_path: Path) -> Callable[..., Path]:
    """Write a TOML manifest declaring the given features."""

    def _write(*features: str, name: str = "features.toml") -> Path:
        lines = ["[package]", 'name = "demo"', "", "[features]"]
        lines.extend(f'"{feature}" = []' for feature in features)
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n")
        return path

    return _write


@pytest.fixture
def write_probe(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a probe source under tmp_path/conf_tests."""

    def _write(feature: str, text: str) -> Path:
        probe_dir = tmp_path / "conf_tests"
        probe_dir.mkdir(exist_ok=True)
        path = probe_dir / f"{feature}.c"
        path.write_text(text)
        return path

    return _write


@pytest.fixture
def settings(tmp_path: Path) -> ProbeSettings:
    """Settings pointing at tmp_path."""
    return ProbeSettings(
        manifest=tmp_path / "features.toml",
        probe_dir=tmp_path / "conf_tests",
        work_dir=tmp_path / "work",
        timeout=20.0,
        jobs=4,
    )
