from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from ffwx import __version__
from ffwx.config import FfwxConfig, load_config, validate_merge, validate_radius
from ffwx.diagnostics import format_error_with_hint, format_hint
from ffwx.engine import MERGE_POLICIES, ScriptStats
from ffwx.errors import (
    ContextMismatchError,
    DecodeError,
    EncodeError,
    FfwxConfigError,
    FfwxError,
    FfwxIOError,
)

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_IO = 3
EXIT_FORMAT = 4
EXIT_CONTEXT_MISMATCH = 5

_ALIASES = {"df": "diff", "ap": "apply"}


def _add_common_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to ffwx.toml (defaults to searching upward from cwd).",
    )
    p.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print a JSON summary on stdout.",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")


def _add_diff_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("-s", dest="source_file", required=True, help="Path to the source file.")
    p.add_argument("-m", dest="modified_file", required=True, help="Path to the modified file.")
    p.add_argument(
        "-o",
        dest="output",
        default=None,
        help='Where to write the script ("-" for stdout; default from ffwx.toml).',
    )
    p.add_argument(
        "-R",
        dest="revert",
        action="store_true",
        default=None,
        help="Revert the diff list before writing it (start of file first).",
    )
    p.add_argument(
        "-H",
        dest="human_readable",
        action="store_true",
        default=None,
        help="Write context lines on their own lines (display only, cannot be applied).",
    )
    p.add_argument("--radius", type=int, default=None, help="Context lines on each side.")
    p.add_argument(
        "--merge",
        choices=MERGE_POLICIES,
        default=None,
        help="How removed/added pairs are merged into modifications.",
    )
    p.add_argument(
        "--no-anchors",
        action="store_true",
        help=(
            "Omit source positions from compact records "
            "(implies --merge adjacent unless another policy is given)."
        ),
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ffwx",
        description=(
            "Computes ffwx between two files or rebuilds the modified file from ffwx and "
            "the source file; ffwx (diFF With conteXt) is a simplified diff format."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    diff_p = subparsers.add_parser(
        "diff", aliases=["df"], help="Compute the ffwx between a source and a modified file."
    )
    _add_common_flags(diff_p)
    _add_diff_flags(diff_p)

    apply_p = subparsers.add_parser(
        "apply",
        aliases=["ap"],
        help="Apply an ffwx file to a source file (the ffwx must not be human readable).",
    )
    _add_common_flags(apply_p)
    apply_p.add_argument("-f", dest="ffwx_file", required=True, help="Path to the ffwx file.")
    apply_p.add_argument("-s", dest="source_file", required=True, help="Path to the source file.")
    apply_p.add_argument(
        "-o",
        dest="output",
        default=None,
        help='Where to write the rebuilt file ("-" for stdout; default from ffwx.toml).',
    )
    apply_p.add_argument(
        "-R",
        dest="reverted",
        action="store_true",
        help="The ffwx file was written with `diff -R`.",
    )

    watch_p = subparsers.add_parser("watch", help="Re-run diff whenever either file changes.")
    _add_common_flags(watch_p)
    _add_diff_flags(watch_p)

    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def _is_json_mode(args: argparse.Namespace) -> bool:
    return bool(getattr(args, "json_output", False))


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


def _print_json(payload: dict[str, object]) -> None:
    print(json.dumps(payload, sort_keys=True))


def _fail(args: argparse.Namespace, command: str, e: BaseException, code: int) -> int:
    if _is_json_mode(args):
        payload: dict[str, object] = {
            "command": command,
            "ok": False,
            "error": (str(e) or repr(e)).strip(),
        }
        hint = format_hint(e)
        if hint:
            payload["hint"] = hint
        _print_json(payload)
    else:
        _eprint(format_error_with_hint(e))
    return code


def _load_config(args: argparse.Namespace) -> FfwxConfig:
    config_path = Path(args.config).resolve() if args.config else None
    return load_config(config_path=config_path)


def _output_path(args: argparse.Namespace, cfg: FfwxConfig) -> str:
    return args.output if args.output is not None else cfg.output.path


@dataclass(frozen=True, slots=True)
class DiffResult:
    """An encoded script and where it should be written."""

    text: str
    stats: ScriptStats
    human_readable: bool
    output: str


def exit_code_for(exc: FfwxError) -> int:
    if isinstance(exc, FfwxIOError):
        return EXIT_IO
    if isinstance(exc, (EncodeError, DecodeError)):
        return EXIT_FORMAT
    if isinstance(exc, ContextMismatchError):
        return EXIT_CONTEXT_MISMATCH
    return EXIT_CONFIG


def compute_diff(args: argparse.Namespace) -> DiffResult:
    """Read both inputs and encode their script; nothing is written."""

    from ffwx import codec, engine
    from ffwx.files import read_lines

    cfg = _load_config(args)
    radius = validate_radius(args.radius if args.radius is not None else cfg.diff.radius)
    merge = validate_merge(args.merge if args.merge is not None else cfg.diff.merge)
    revert = cfg.diff.revert if args.revert is None else bool(args.revert)
    human_readable = (
        cfg.diff.human_readable if args.human_readable is None else bool(args.human_readable)
    )
    anchors = cfg.diff.anchors and not bool(args.no_anchors)
    if not anchors and args.merge is None and merge == "context":
        # Without anchors only in-place modifications can be placed again.
        merge = "adjacent"

    # Read both inputs before producing anything.
    source = read_lines(args.source_file, role="source")
    modified = read_lines(args.modified_file, role="modified")

    script = engine.diff(source, modified, revert=revert, radius=radius, merge=merge)
    text = codec.encode(script, codec.profile_for(human_readable=human_readable), anchors=anchors)
    return DiffResult(
        text=text,
        stats=engine.script_stats(script),
        human_readable=human_readable,
        output=_output_path(args, cfg),
    )


def cmd_diff(args: argparse.Namespace) -> int:
    from ffwx.files import STDOUT, write_output

    try:
        result = compute_diff(args)

        if not _is_json_mode(args):
            write_output(result.output, result.text)
            return EXIT_OK

        payload: dict[str, object] = {
            "command": "diff",
            "ok": True,
            "stats": result.stats.as_dict(),
            "human_readable": result.human_readable,
        }
        if result.output == STDOUT:
            payload["output"] = None
            payload["script"] = result.text
        else:
            payload["output"] = str(write_output(result.output, result.text))
        _print_json(payload)
        return EXIT_OK
    except FfwxConfigError as e:
        return _fail(args, "diff", e, EXIT_CONFIG)
    except FfwxIOError as e:
        return _fail(args, "diff", e, EXIT_IO)
    except EncodeError as e:
        return _fail(args, "diff", e, EXIT_FORMAT)


def cmd_apply(args: argparse.Namespace) -> int:
    from ffwx import codec, reconstruct
    from ffwx.files import STDOUT, join_lines, read_lines, read_text, write_output

    try:
        cfg = _load_config(args)

        script_text = read_text(args.ffwx_file, role="script")
        source = read_lines(args.source_file, role="source")

        script = codec.decode(script_text)
        lines = reconstruct.apply(source, script, reverted=bool(args.reverted))
        text = join_lines(lines)

        out = _output_path(args, cfg)
        if not _is_json_mode(args):
            write_output(out, text)
            return EXIT_OK

        payload: dict[str, object] = {
            "command": "apply",
            "ok": True,
            "entries": len(script),
            "lines": len(lines),
        }
        if out == STDOUT:
            payload["output"] = None
            payload["text"] = text
        else:
            payload["output"] = str(write_output(out, text))
        _print_json(payload)
        return EXIT_OK
    except FfwxConfigError as e:
        return _fail(args, "apply", e, EXIT_CONFIG)
    except FfwxIOError as e:
        return _fail(args, "apply", e, EXIT_IO)
    except DecodeError as e:
        return _fail(args, "apply", e, EXIT_FORMAT)
    except ContextMismatchError as e:
        return _fail(args, "apply", e, EXIT_CONTEXT_MISMATCH)


def cmd_watch(args: argparse.Namespace) -> int:
    from ffwx import watcher

    try:
        watcher.check_watchfiles_available()
    except ImportError as e:
        return _fail(args, "watch", e, EXIT_CONFIG)

    try:
        cfg = _load_config(args)
    except FfwxConfigError as e:
        return _fail(args, "watch", e, EXIT_CONFIG)

    watched = [Path(args.source_file).resolve(), Path(args.modified_file).resolve()]
    json_mode = _is_json_mode(args)

    def on_event(msg: str) -> None:
        if not json_mode:
            _eprint(msg)

    def on_cycle_result(result: watcher.WatchCycleResult) -> None:
        if json_mode:
            _print_json(watcher.format_watch_cycle_json(result))
        elif result.error is not None:
            _eprint(format_error_with_hint(result.error))

    def on_error(exc: BaseException) -> None:
        _eprint(f"[watch] error: {type(exc).__name__}: {exc}")

    run_cycle = watcher.build_cycle_runner(args)
    on_event(f"[watch] watching {', '.join(str(p) for p in watched)} (Ctrl-C to stop)")
    # One cycle up front so the output exists before the first change.
    on_cycle_result(run_cycle(watcher.initial_event(watched)))

    try:
        asyncio.run(
            watcher.run_watch_loop(
                changes_iter=watcher.make_watchfiles_iter(
                    watcher.watch_dirs(watched), debounce_ms=cfg.watch.debounce_ms
                ),
                run_cycle=run_cycle,
                on_event=on_event,
                on_cycle_result=on_cycle_result,
                on_error=on_error,
                watched=watched,
            )
        )
    except KeyboardInterrupt:
        on_event("[watch] stopped")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(list(sys.argv[1:] if argv is None else argv))
    except SystemExit as e:
        # argparse uses SystemExit for --help/--version and parse errors.
        code = e.code
        return int(code) if isinstance(code, int) else EXIT_CONFIG

    _configure_logging(args)

    command = _ALIASES.get(args.command, args.command)
    if command == "diff":
        return cmd_diff(args)
    if command == "apply":
        return cmd_apply(args)
    if command == "watch":
        return cmd_watch(args)

    return EXIT_CONFIG


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
