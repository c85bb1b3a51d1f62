"""Error formatting and actionable hints for ffwx CLI output.

Keep this module small and dependency-light: it is imported by the CLI layer
and only depends on the error hierarchy and the context window type.
"""

from __future__ import annotations

from ffwx.context import ContextWindow
from ffwx.errors import (
    ContextMismatchError,
    DecodeError,
    EncodeError,
    FfwxConfigError,
    FfwxIOError,
)


def format_window(window: ContextWindow | None) -> str:
    """Render a context window on one line, e.g. ``['a'] | ['c']``."""
    if window is None:
        return "(unavailable)"
    before = list(reversed(window.before))
    return f"{before!r} | {list(window.after)!r}"


def format_mismatch(exc: ContextMismatchError) -> str:
    lines = [str(exc)]
    lines.append(f"  expected context: {format_window(exc.expected)}")
    lines.append(f"  actual context:   {format_window(exc.actual)}")
    return "\n".join(lines)


def format_hint(exc: BaseException) -> str | None:
    """Return an actionable hint for a known error, or None."""
    msg = str(exc)

    if isinstance(exc, FfwxConfigError):
        if "ffwx.toml" in msg or "config" in msg.lower():
            return "check ffwx.toml or pass --config with a valid file"
        return None

    if isinstance(exc, FfwxIOError):
        if exc.role == "output":
            return "check that the output directory is writable"
        return f"check the path given for the {exc.role} file"

    if isinstance(exc, DecodeError):
        if exc.record_number is None or "line terminator" in msg:
            return "only compact scripts can be applied; re-run `ffwx diff` without -H"
        return "the script file is corrupt or was edited by hand"

    if isinstance(exc, EncodeError):
        if "needs an anchor" in msg:
            return "drop --no-anchors or pass --merge adjacent"
        return "the input contains reserved private-use characters U+E000..U+E002"

    if isinstance(exc, ContextMismatchError):
        if "ambiguous" in msg:
            return "the script has no anchors; re-run `ffwx diff` without --no-anchors"
        return "the source file changed since the diff was taken; diff it again"

    return None


def format_error_with_hint(exc: BaseException) -> str:
    """Format error message + optional hint for stderr output."""
    if isinstance(exc, ContextMismatchError):
        msg = format_mismatch(exc)
    else:
        msg = (str(exc) or repr(exc)).strip()

    result = f"error: {msg}"
    hint = format_hint(exc)
    if hint:
        result += f"\nhint: {hint}"
    return result
