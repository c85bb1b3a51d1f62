from __future__ import annotations

import subprocess
import sys
from pathlib import Path


def test_module_invocation_without_command_is_usage_error() -> None:
    proc = subprocess.run(
        [sys.executable, "-m", "ffwx"],
        check=False,
        text=True,
        capture_output=True,
    )
    assert proc.returncode == 2
    assert "usage: ffwx" in proc.stderr


def test_cli_version_flag() -> None:
    proc = subprocess.run(
        [sys.executable, "-m", "ffwx", "--version"],
        check=False,
        text=True,
        capture_output=True,
    )
    assert proc.returncode == 0
    assert proc.stdout.startswith("ffwx ")


def test_module_invocation_diff_and_apply(tmp_path: Path) -> None:
    src = tmp_path / "a.txt"
    mod = tmp_path / "b.txt"
    out = tmp_path / "out.txt"
    src.write_text("one\ntwo\nthree\n", encoding="utf-8")
    mod.write_text("one\n2\nthree\nfour\n", encoding="utf-8")

    script = tmp_path / "d.ffwx"
    proc = subprocess.run(
        [sys.executable, "-m", "ffwx", "diff", "-s", str(src), "-m", str(mod), "-o", str(script)],
        check=False,
        text=True,
        capture_output=True,
    )
    assert proc.returncode == 0, proc.stderr

    proc = subprocess.run(
        [sys.executable, "-m", "ffwx", "ap", "-f", str(script), "-s", str(src), "-o", str(out)],
        check=False,
        text=True,
        capture_output=True,
    )
    assert proc.returncode == 0, proc.stderr
    assert out.read_text(encoding="utf-8") == "one\n2\nthree\nfour\n"
