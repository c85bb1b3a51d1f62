from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from ffwx.codec import COMPACT, HUMAN_READABLE, DelimiterProfile, decode, encode
from ffwx.context import ContextWindow, extract, windows_equal
from ffwx.engine import DiffEntry, EditKind, Script, ScriptStats, diff, script_stats
from ffwx.errors import (
    ContextMismatchError,
    DecodeError,
    EncodeError,
    FfwxConfigError,
    FfwxError,
    FfwxIOError,
)
from ffwx.reconstruct import apply


def _package_version() -> str:
    try:
        return version("ffwx")
    except PackageNotFoundError:
        # Running from a source checkout, or otherwise not installed.
        return "0.0.0"


__version__ = _package_version()

__all__ = [
    "COMPACT",
    "HUMAN_READABLE",
    "ContextMismatchError",
    "ContextWindow",
    "DecodeError",
    "DelimiterProfile",
    "DiffEntry",
    "EditKind",
    "EncodeError",
    "FfwxConfigError",
    "FfwxError",
    "FfwxIOError",
    "Script",
    "ScriptStats",
    "__version__",
    "apply",
    "decode",
    "diff",
    "encode",
    "extract",
    "script_stats",
    "windows_equal",
]
