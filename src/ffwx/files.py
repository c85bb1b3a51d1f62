"""Reading inputs and writing outputs.

Line splitting follows the usual "lines of a text file" rules: split on "\\n",
ignore a single trailing newline, and drop one trailing "\\r" per line so
CRLF files diff cleanly against LF files.
"""

from __future__ import annotations

import os
import sys
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from ffwx.errors import FfwxIOError

STDOUT = "-"


def split_lines(text: str) -> list[str]:
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def join_lines(lines: Sequence[str]) -> str:
    """Join reconstructed lines, newline-terminated (empty for no lines)."""

    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def read_text(path: Path | str, *, role: str) -> str:
    p = Path(path)
    try:
        raw = p.read_bytes()
    except FileNotFoundError as e:
        raise FfwxIOError(f"{role} file not found: {p}", path=p, role=role) from e
    except OSError as e:
        raise FfwxIOError(f"Failed reading {role} file {p}: {e}", path=p, role=role) from e

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FfwxIOError(f"{role} file is not valid UTF-8: {p}", path=p, role=role) from e


def read_lines(path: Path | str, *, role: str) -> list[str]:
    return split_lines(read_text(path, role=role))


def _write_failed(path: Path, role: str, exc: OSError) -> FfwxIOError:
    return FfwxIOError(f"Failed writing {role} file {path}: {exc}", path=path, role=role)


def write_output(
    path: Path | str,
    text: str,
    *,
    role: str = "output",
    stdout: TextIO | None = None,
) -> Path | None:
    """Write `text` to `path`, or to standard output when `path` is "-".

    File writes are atomic: a temp file in the same directory is filled,
    fsync'd and moved over the destination, so a failure never leaves a
    partial artifact behind. Returns the resolved path, or None for stdout.
    """

    if str(path) == STDOUT:
        stream = stdout if stdout is not None else sys.stdout
        stream.write(text)
        stream.flush()
        return None

    out_path = Path(path).resolve()
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            dir=str(out_path.parent),
            prefix=".ffwx-tmp-",
            suffix=out_path.suffix,
            text=True,
        )
    except OSError as e:
        raise _write_failed(out_path, role, e) from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, out_path)
    except OSError as e:
        raise _write_failed(out_path, role, e) from e
    finally:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
    return out_path
