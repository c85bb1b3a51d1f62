from __future__ import annotations

import json
from pathlib import Path

import pytest

import ffwx.cli
from ffwx.codec import CTX_EOL, CTX_MID


@pytest.fixture
def files(tmp_path: Path, monkeypatch) -> tuple[Path, Path]:
    monkeypatch.chdir(tmp_path)
    src = tmp_path / "source.txt"
    mod = tmp_path / "modified.txt"
    src.write_text("a\nb\nc\n", encoding="utf-8")
    mod.write_text("a\nx\nc\nd\n", encoding="utf-8")
    return src, mod


def test_parse_diff_defaults() -> None:
    ns = ffwx.cli.parse_args(["diff", "-s", "a", "-m", "b"])
    assert ns.command == "diff"
    assert ns.source_file == "a"
    assert ns.modified_file == "b"
    assert ns.output is None
    assert ns.revert is None
    assert ns.human_readable is None
    assert ns.radius is None
    assert ns.merge is None
    assert ns.no_anchors is False
    assert ns.json_output is False
    assert ns.config is None


def test_parse_aliases() -> None:
    assert ffwx.cli.parse_args(["df", "-s", "a", "-m", "b"]).command == "df"
    ns = ffwx.cli.parse_args(["ap", "-f", "d", "-s", "a", "-R"])
    assert ns.command == "ap"
    assert ns.ffwx_file == "d"
    assert ns.reverted is True


def test_missing_required_flag_is_usage_error(capsys) -> None:
    assert ffwx.cli.main(["diff", "-s", "a"]) == 2
    assert "-m" in capsys.readouterr().err


def test_main_dispatches_aliases(monkeypatch) -> None:
    seen: list[str] = []
    monkeypatch.setattr(ffwx.cli, "cmd_diff", lambda args: seen.append("diff") or 0)
    monkeypatch.setattr(ffwx.cli, "cmd_apply", lambda args: seen.append("apply") or 0)
    assert ffwx.cli.main(["df", "-s", "a", "-m", "b"]) == 0
    assert ffwx.cli.main(["ap", "-f", "d", "-s", "a"]) == 0
    assert seen == ["diff", "apply"]


def test_diff_to_stdout(files, capsys) -> None:
    src, mod = files
    assert ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod)]) == 0
    out = capsys.readouterr().out
    assert out.startswith("+ d" + CTX_EOL)
    assert len(out.splitlines()) == 2


def test_diff_human_readable(files, capsys) -> None:
    src, mod = files
    assert ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod), "-H"]) == 0
    assert capsys.readouterr().out == "c\n+ d\na\n~ x\nc\n"


def test_diff_then_apply_through_files(files, tmp_path: Path) -> None:
    src, mod = files
    script = tmp_path / "out.ffwx"
    rebuilt = tmp_path / "rebuilt.txt"
    assert ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod), "-o", str(script)]) == 0
    assert ffwx.cli.main(["apply", "-f", str(script), "-s", str(src), "-o", str(rebuilt)]) == 0
    assert rebuilt.read_text(encoding="utf-8") == mod.read_text(encoding="utf-8")


def test_reverted_diff_needs_reverted_apply(files, tmp_path: Path) -> None:
    src, mod = files
    script = tmp_path / "out.ffwx"
    rebuilt = tmp_path / "rebuilt.txt"
    assert ffwx.cli.main(["df", "-s", str(src), "-m", str(mod), "-R", "-o", str(script)]) == 0
    rc = ffwx.cli.main(["ap", "-f", str(script), "-s", str(src), "-R", "-o", str(rebuilt)])
    assert rc == 0
    assert rebuilt.read_text(encoding="utf-8") == "a\nx\nc\nd\n"


def test_diff_json_mode(files, capsys) -> None:
    src, mod = files
    assert ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod), "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["command"] == "diff"
    assert data["ok"] is True
    assert data["stats"] == {"added": 1, "removed": 0, "modified": 1, "total": 2}
    assert data["output"] is None
    assert data["script"].startswith("+ d")


def test_apply_json_mode_with_output_file(files, tmp_path: Path, capsys) -> None:
    src, mod = files
    script = tmp_path / "out.ffwx"
    assert ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod), "-o", str(script)]) == 0
    out = tmp_path / "rebuilt.txt"
    rc = ffwx.cli.main(["apply", "-f", str(script), "-s", str(src), "-o", str(out), "--json"])
    assert rc == 0
    data = json.loads(capsys.readouterr().out)
    assert data == {
        "command": "apply",
        "ok": True,
        "entries": 2,
        "lines": 4,
        "output": str(out.resolve()),
    }


def test_missing_input_is_io_error(files, tmp_path: Path, capsys) -> None:
    src, _ = files
    rc = ffwx.cli.main(["diff", "-s", str(src), "-m", str(tmp_path / "missing.txt")])
    assert rc == ffwx.cli.EXIT_IO
    err = capsys.readouterr().err
    assert err.startswith("error: modified file not found")
    assert "hint:" in err


def test_missing_input_produces_no_output(files, tmp_path: Path) -> None:
    src, _ = files
    out = tmp_path / "out.ffwx"
    rc = ffwx.cli.main(["diff", "-s", str(src), "-m", str(tmp_path / "nope"), "-o", str(out)])
    assert rc == ffwx.cli.EXIT_IO
    assert not out.exists()


def test_reserved_marker_in_input_is_format_error(files, capsys) -> None:
    src, mod = files
    mod.write_text(f"a\nbad{CTX_MID}line\n", encoding="utf-8")
    assert ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod)]) == ffwx.cli.EXIT_FORMAT
    assert "U+E000" in capsys.readouterr().err


def test_applying_human_readable_script_is_format_error(files, tmp_path: Path, capsys) -> None:
    src, mod = files
    script = tmp_path / "human.txt"
    assert ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod), "-H", "-o", str(script)]) == 0
    rc = ffwx.cli.main(["apply", "-f", str(script), "-s", str(src), "--json"])
    assert rc == ffwx.cli.EXIT_FORMAT
    data = json.loads(capsys.readouterr().out)
    assert data["ok"] is False
    assert "-H" in data["hint"]


def test_drifted_source_is_context_mismatch(files, tmp_path: Path, capsys) -> None:
    src, mod = files
    script = tmp_path / "out.ffwx"
    assert ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod), "-o", str(script)]) == 0
    src.write_text("a\nb\nC\n", encoding="utf-8")
    rc = ffwx.cli.main(["apply", "-f", str(script), "-s", str(src)])
    assert rc == ffwx.cli.EXIT_CONTEXT_MISMATCH
    err = capsys.readouterr().err
    assert "expected context:" in err
    assert "hint: the source file changed" in err


def test_config_file_supplies_defaults(files, tmp_path: Path, capsys) -> None:
    src, mod = files
    (tmp_path / "ffwx.toml").write_text(
        'version = 1\n[diff]\nhuman_readable = true\n[output]\npath = "cfg.out"\n',
        encoding="utf-8",
    )
    assert ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod)]) == 0
    assert (tmp_path / "cfg.out").read_text(encoding="utf-8") == "c\n+ d\na\n~ x\nc\n"
    assert capsys.readouterr().out == ""


def test_flags_override_config(files, tmp_path: Path, capsys) -> None:
    src, mod = files
    (tmp_path / "ffwx.toml").write_text(
        "version = 1\n[diff]\nhuman_readable = true\n", encoding="utf-8"
    )
    assert ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod), "-o", "-", "--radius", "1"]) == 0
    assert capsys.readouterr().out == "c\n+ d\na\n~ x\nc\n"


def test_invalid_config_is_config_error(files, tmp_path: Path, capsys) -> None:
    src, mod = files
    (tmp_path / "ffwx.toml").write_text("version = 1\n[diff]\nradius = 0\n", encoding="utf-8")
    assert ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod)]) == ffwx.cli.EXIT_CONFIG
    assert "diff.radius" in capsys.readouterr().err


def test_invalid_radius_flag_is_config_error(files, capsys) -> None:
    src, mod = files
    rc = ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod), "--radius", "0"])
    assert rc == ffwx.cli.EXIT_CONFIG


def test_no_anchors_round_trip(files, tmp_path: Path) -> None:
    src, mod = files
    script = tmp_path / "out.ffwx"
    rebuilt = tmp_path / "rebuilt.txt"
    rc = ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod), "--no-anchors", "-o", str(script)])
    assert rc == 0
    assert ffwx.cli.main(["apply", "-f", str(script), "-s", str(src), "-o", str(rebuilt)]) == 0
    assert rebuilt.read_text(encoding="utf-8") == mod.read_text(encoding="utf-8")


def test_no_anchors_on_repetitive_file_fails_instead_of_guessing(
    files, tmp_path: Path, capsys
) -> None:
    src, mod = files
    src.write_text("x\nx\nx\nb\nx\n", encoding="utf-8")
    mod.write_text("x\nc\nx\nx\nx\n", encoding="utf-8")
    script = tmp_path / "out.ffwx"
    rebuilt = tmp_path / "rebuilt.txt"
    rc = ffwx.cli.main(["diff", "-s", str(src), "-m", str(mod), "--no-anchors", "-o", str(script)])
    assert rc == 0

    rc = ffwx.cli.main(["apply", "-f", str(script), "-s", str(src), "-o", str(rebuilt)])
    assert rc == ffwx.cli.EXIT_CONTEXT_MISMATCH
    assert not rebuilt.exists()
    assert "hint: the script has no anchors" in capsys.readouterr().err


def test_explicit_context_merge_without_anchors_is_format_error(files, capsys) -> None:
    src, mod = files
    src.write_text("x\nx\nx\nb\nx\n", encoding="utf-8")
    mod.write_text("x\nc\nx\nx\nx\n", encoding="utf-8")
    argv = ["diff", "-s", str(src), "-m", str(mod), "--no-anchors", "--merge", "context"]
    assert ffwx.cli.main(argv) == ffwx.cli.EXIT_FORMAT
    assert "needs an anchor" in capsys.readouterr().err
