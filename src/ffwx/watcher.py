"""Watch mode: re-diff when the source or modified file changes.

Every cycle, the first one included, computes the script and writes it to the
configured output. Each cycle is reported once, with the script stats and any
error, so `--json` output is one `watch` object per cycle.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ffwx.diagnostics import format_hint

if TYPE_CHECKING:  # pragma: no cover
    from ffwx.engine import ScriptStats
    from ffwx.errors import FfwxError


@dataclass(frozen=True, slots=True)
class WatchEvent:
    """A batch of changes to the watched files."""

    changed_paths: frozenset[Path]
    timestamp: float


@dataclass(frozen=True, slots=True)
class WatchCycleResult:
    """Result of a single watch diff cycle.

    `script` holds the encoded script only when it was not written anywhere
    (stdout output in JSON mode).
    """

    exit_code: int
    duration_s: float
    changed_paths: frozenset[Path]
    stats: ScriptStats | None = None
    output: str | None = None
    script: str | None = None
    error: FfwxError | None = None


def check_watchfiles_available() -> None:
    """Raise ImportError with a helpful message if watchfiles is not installed."""
    import importlib

    try:
        importlib.import_module("watchfiles")
    except ImportError:
        raise ImportError(
            "watchfiles is required for watch mode. Install it with: pip install ffwx[watch]"
        ) from None


def filter_watched_files(
    changed_paths: frozenset[Path],
    *,
    watched: list[Path],
) -> frozenset[Path]:
    """Keep only the changes that touch the source or the modified file."""
    targets = set(watched)
    return frozenset(p for p in changed_paths if p in targets)


def watch_dirs(watched: list[Path]) -> list[Path]:
    """Directories to hand to the file watcher (one per distinct parent)."""
    out: list[Path] = []
    for p in watched:
        if p.parent not in out:
            out.append(p.parent)
    return out


def initial_event(watched: list[Path]) -> WatchEvent:
    """The event for the cycle that runs when watching starts."""
    return WatchEvent(changed_paths=frozenset(watched), timestamp=time.monotonic())


def format_stats(stats: ScriptStats) -> str:
    return f"+{stats.added} -{stats.removed} ~{stats.modified}"


async def run_watch_loop(
    *,
    changes_iter: AsyncIterator[set[tuple[Any, str]]],
    run_cycle: Callable[[WatchEvent], WatchCycleResult],
    on_event: Callable[[str], None],
    on_cycle_result: Callable[[WatchCycleResult], None],
    on_error: Callable[[BaseException], None],
    watched: list[Path],
) -> None:
    """Consume changes_iter and re-diff whenever a watched file changes."""
    async for raw_changes in changes_iter:
        paths = frozenset(Path(p) for _, p in raw_changes)
        relevant = filter_watched_files(paths, watched=watched)
        if not relevant:
            continue

        event = WatchEvent(changed_paths=relevant, timestamp=time.monotonic())

        names = ", ".join(str(p) for p in sorted(relevant))
        on_event(f"[watch] change detected: {names}")
        on_event("[watch] diffing...")

        try:
            result = run_cycle(event)
        except Exception as exc:
            on_error(exc)
            continue

        if result.exit_code == 0:
            summary = f": {format_stats(result.stats)}" if result.stats is not None else ""
            on_event(f"[watch] done ({result.duration_s:.1f}s){summary}")
        else:
            on_event(f"[watch] failed ({result.duration_s:.1f}s), exit code {result.exit_code}")
        on_cycle_result(result)


def format_watch_cycle_json(result: WatchCycleResult) -> dict[str, object]:
    """Format a cycle result as a JSON-serializable dict."""
    data: dict[str, object] = {
        "command": "watch",
        "ok": result.exit_code == 0,
        "exit_code": result.exit_code,
        "duration_s": round(result.duration_s, 2),
        "changed_paths": sorted(str(p) for p in result.changed_paths),
    }
    if result.stats is not None:
        data["stats"] = result.stats.as_dict()
    if result.output is not None:
        data["output"] = result.output
    if result.script is not None:
        data["script"] = result.script
    if result.error is not None:
        data["error"] = str(result.error)
        hint = format_hint(result.error)
        if hint:
            data["hint"] = hint
    return data


def build_cycle_runner(args: Any) -> Callable[[WatchEvent], WatchCycleResult]:
    """Create a cycle runner that computes the script and writes it out."""
    from ffwx.cli import compute_diff, exit_code_for
    from ffwx.errors import FfwxError
    from ffwx.files import STDOUT, write_output

    json_mode = bool(getattr(args, "json_output", False))

    def runner(event: WatchEvent) -> WatchCycleResult:
        t0 = time.monotonic()
        script: str | None = None
        output: str | None = None
        try:
            result = compute_diff(args)
            if json_mode and result.output == STDOUT:
                # Raw script text would break the JSON stream.
                script = result.text
            else:
                written = write_output(result.output, result.text)
                output = str(written) if written is not None else None
        except FfwxError as exc:
            return WatchCycleResult(
                exit_code=exit_code_for(exc),
                duration_s=time.monotonic() - t0,
                changed_paths=event.changed_paths,
                error=exc,
            )
        return WatchCycleResult(
            exit_code=0,
            duration_s=time.monotonic() - t0,
            changed_paths=event.changed_paths,
            stats=result.stats,
            output=output,
            script=script,
        )

    return runner


def make_watchfiles_iter(
    watch_paths: list[Path],
    *,
    debounce_ms: int = 200,
) -> AsyncIterator[set[tuple[Any, str]]]:
    """Create an async iterator using watchfiles.awatch()."""
    import watchfiles  # type: ignore[import-untyped]

    return watchfiles.awatch(*watch_paths, debounce=debounce_ms)
