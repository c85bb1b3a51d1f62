"""Project configuration loading for ffwx.

This module is intentionally small and deterministic: it only reads `ffwx.toml`
and performs light validation. The file is optional; without one every value
takes its default.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ffwx.engine import MERGE_POLICIES
from ffwx.errors import FfwxConfigError

CONFIG_NAME = "ffwx.toml"


@dataclass(frozen=True)
class DiffConfig:
    radius: int = 1
    merge: str = "context"
    revert: bool = False
    human_readable: bool = False
    anchors: bool = True


@dataclass(frozen=True)
class OutputConfig:
    path: str = "-"


@dataclass(frozen=True)
class WatchConfig:
    debounce_ms: int = 200


@dataclass(frozen=True)
class FfwxConfig:
    version: int = 1
    diff: DiffConfig = field(default_factory=DiffConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    source: Path | None = None


def find_config(start: Path) -> Path | None:
    """Walk upward from `start` (file or directory) looking for `ffwx.toml`."""

    cur = start
    try:
        if cur.is_file():
            cur = cur.parent
    except OSError:
        # Broken symlinks and the like: still walk from the parent.
        cur = cur.parent

    cur = cur.resolve()
    while True:
        candidate = cur / CONFIG_NAME
        if candidate.is_file():
            return candidate
        if cur.parent == cur:
            return None
        cur = cur.parent


def _as_table(value: Any, *, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise FfwxConfigError(f"Expected [{name}] to be a table.")
    return value


def _as_bool(value: Any, *, name: str) -> bool:
    if not isinstance(value, bool):
        raise FfwxConfigError(f"Expected {name} to be a boolean.")
    return value


def _as_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise FfwxConfigError(f"Expected {name} to be an integer.")
    return value


def _as_str(value: Any, *, name: str) -> str:
    if not isinstance(value, str):
        raise FfwxConfigError(f"Expected {name} to be a string.")
    return value


def validate_radius(radius: int) -> int:
    if radius < 1:
        raise FfwxConfigError(f"Invalid config: diff.radius must be >= 1 (got {radius}).")
    return radius


def validate_merge(merge: str) -> str:
    if merge not in MERGE_POLICIES:
        allowed = ", ".join(MERGE_POLICIES)
        raise FfwxConfigError(
            f"Invalid config: diff.merge must be one of {allowed} (got {merge!r})."
        )
    return merge


def parse_config(data: dict[str, Any], *, source: Path | None = None) -> FfwxConfig:
    version = data.get("version", None)
    if version is None:
        raise FfwxConfigError(f"Missing required `version = 1` in {CONFIG_NAME}.")
    version_i = _as_int(version, name="version")
    if version_i != 1:
        raise FfwxConfigError(f"Unsupported config version: {version_i} (expected 1).")

    diff_tbl = _as_table(data.get("diff"), name="diff")
    output_tbl = _as_table(data.get("output"), name="output")
    watch_tbl = _as_table(data.get("watch"), name="watch")

    defaults = DiffConfig()

    if "radius" in diff_tbl:
        radius = _as_int(diff_tbl["radius"], name="diff.radius")
    else:
        radius = defaults.radius

    if "merge" in diff_tbl:
        merge = _as_str(diff_tbl["merge"], name="diff.merge")
    else:
        merge = defaults.merge

    if "revert" in diff_tbl:
        revert = _as_bool(diff_tbl["revert"], name="diff.revert")
    else:
        revert = defaults.revert

    if "human_readable" in diff_tbl:
        human_readable = _as_bool(diff_tbl["human_readable"], name="diff.human_readable")
    else:
        human_readable = defaults.human_readable

    if "anchors" in diff_tbl:
        anchors = _as_bool(diff_tbl["anchors"], name="diff.anchors")
    else:
        anchors = defaults.anchors

    if "path" in output_tbl:
        out_path = _as_str(output_tbl["path"], name="output.path")
    else:
        out_path = OutputConfig().path

    if "debounce_ms" in watch_tbl:
        debounce_ms = _as_int(watch_tbl["debounce_ms"], name="watch.debounce_ms")
    else:
        debounce_ms = WatchConfig().debounce_ms

    # Validation
    validate_radius(radius)
    validate_merge(merge)
    if not out_path:
        raise FfwxConfigError("Invalid config: output.path must not be empty.")
    if debounce_ms < 0:
        raise FfwxConfigError("Invalid config: watch.debounce_ms must be >= 0.")

    return FfwxConfig(
        version=version_i,
        diff=DiffConfig(
            radius=radius,
            merge=merge,
            revert=revert,
            human_readable=human_readable,
            anchors=anchors,
        ),
        output=OutputConfig(path=out_path),
        watch=WatchConfig(debounce_ms=debounce_ms),
        source=source,
    )


def load_config(*, config_path: Path | None = None, start: Path | None = None) -> FfwxConfig:
    """Load and validate `ffwx.toml`.

    An explicit `config_path` must exist. Otherwise the file is discovered by
    walking upward from `start` (default: the working directory), and defaults
    are returned when none is found.
    """

    if config_path is None:
        config_path = find_config(start if start is not None else Path.cwd())
        if config_path is None:
            return FfwxConfig()

    try:
        raw = config_path.read_bytes()
    except FileNotFoundError as e:
        raise FfwxConfigError(f"Missing {CONFIG_NAME} at: {config_path}") from e
    except OSError as e:
        raise FfwxConfigError(f"Failed reading config file: {config_path}") from e

    try:
        data = tomllib.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise FfwxConfigError(f"Config is not valid UTF-8: {config_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise FfwxConfigError(f"Invalid TOML in {config_path}: {e}") from e

    return parse_config(data, source=config_path)
