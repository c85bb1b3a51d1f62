from __future__ import annotations

import pytest

from ffwx.context import ContextWindow
from ffwx.engine import DiffEntry, EditKind, diff, lcs_table, script_stats


def _kinds(script: list[DiffEntry]) -> list[EditKind]:
    return [e.kind for e in script]


def test_identical_files_produce_empty_script() -> None:
    lines = ["def f():", "    return 1", "", "print(f())"]
    assert diff(lines, list(lines)) == []
    assert diff([], []) == []


def test_single_line_replacement_becomes_modified() -> None:
    script = diff(["a", "b", "c"], ["a", "x", "c"])
    assert script == [
        DiffEntry(
            kind=EditKind.MODIFIED,
            value="x",
            context=ContextWindow(before=("a",), after=("c",)),
            anchor=1,
        )
    ]


def test_appended_line_is_added_with_one_sided_context() -> None:
    script = diff(["a", "b"], ["a", "b", "c"])
    assert len(script) == 1
    entry = script[0]
    assert entry.kind is EditKind.ADDED
    assert entry.value == "c"
    assert entry.context == ContextWindow(before=("b",), after=())
    assert entry.anchor == 2


def test_insert_into_empty_source_has_no_context() -> None:
    script = diff([], ["a"])
    assert script == [DiffEntry(kind=EditKind.ADDED, value="a", context=ContextWindow(), anchor=0)]


def test_delete_everything_is_emitted_end_first() -> None:
    script = diff(["a", "b", "c"], [])
    assert _kinds(script) == [EditKind.REMOVED] * 3
    assert [e.value for e in script] == ["c", "b", "a"]
    assert [e.anchor for e in script] == [2, 1, 0]
    assert script[1].context == ContextWindow(before=("a",), after=("c",))


def test_insert_everything_is_emitted_end_first() -> None:
    script = diff([], ["a", "b"])
    assert [(e.kind, e.value, e.anchor) for e in script] == [
        (EditKind.ADDED, "b", 0),
        (EditKind.ADDED, "a", 0),
    ]


def test_replacement_in_the_middle_of_a_file() -> None:
    source = ["a", "b", "c", "d", "e"]
    modified = ["a", "b", "z", "d", "e"]
    script = diff(source, modified)
    assert _kinds(script) == [EditKind.MODIFIED]
    assert script[0].value == "z"
    assert script[0].anchor == 2
    assert script[0].insert_at is None


def test_replacement_reached_by_the_drain_is_merged() -> None:
    script = diff(["b", "c"], ["x", "c"])
    assert script == [
        DiffEntry(
            kind=EditKind.MODIFIED,
            value="x",
            context=ContextWindow(before=(), after=("c",)),
            anchor=0,
        )
    ]


def test_removal_wins_ties() -> None:
    script = diff(["a", "b"], ["b", "a"])
    assert [(e.kind, e.value, e.anchor) for e in script] == [
        (EditKind.REMOVED, "b", 1),
        (EditKind.ADDED, "b", 0),
    ]


def test_changed_neighbourhood_is_not_merged() -> None:
    # Two adjacent lines replaced: neither new line sees its old neighbours.
    script = diff(["a", "b", "c", "d"], ["a", "x", "y", "d"])
    assert EditKind.MODIFIED not in _kinds(script)
    assert sorted(e.value for e in script) == ["b", "c", "x", "y"]


def test_context_merge_can_pair_distant_lines() -> None:
    # Identical neighbourhoods make the removal of "b" and the insertion of "c"
    # look like one edit even though they are three lines apart.
    source = ["x", "x", "x", "b", "x"]
    modified = ["x", "c", "x", "x", "x"]

    script = diff(source, modified)
    assert script == [
        DiffEntry(
            kind=EditKind.MODIFIED,
            value="c",
            context=ContextWindow(before=("x",), after=("x",)),
            anchor=3,
            insert_at=1,
        )
    ]
    assert script[0].insertion_point == 1


def test_adjacent_merge_policy_keeps_distant_lines_apart() -> None:
    source = ["x", "x", "x", "b", "x"]
    modified = ["x", "c", "x", "x", "x"]

    script = diff(source, modified, merge="adjacent")
    assert [(e.kind, e.value, e.anchor) for e in script] == [
        (EditKind.REMOVED, "b", 3),
        (EditKind.ADDED, "c", 1),
    ]


def test_adjacent_merge_policy_still_merges_in_place_edits() -> None:
    script = diff(["a", "b", "c"], ["a", "x", "c"], merge="adjacent")
    assert _kinds(script) == [EditKind.MODIFIED]


def test_merge_off_keeps_pairs() -> None:
    script = diff(["a", "b", "c"], ["a", "x", "c"], merge="off")
    assert [(e.kind, e.value) for e in script] == [
        (EditKind.REMOVED, "b"),
        (EditKind.ADDED, "x"),
    ]


def test_revert_reverses_entry_order() -> None:
    source = ["a", "b", "c", "d", "e", "f"]
    modified = ["a", "B", "c", "e", "f", "g"]

    forward = diff(source, modified)
    reverted = diff(source, modified, revert=True)
    assert len(forward) > 1
    assert reverted == list(reversed(forward))


def test_wider_radius_records_more_context() -> None:
    script = diff(["a", "b", "c", "d", "e"], ["a", "b", "x", "d", "e"], radius=2)
    assert script[0].kind is EditKind.MODIFIED
    assert script[0].context == ContextWindow(before=("b", "a"), after=("d", "e"))


def test_invalid_options_raise() -> None:
    with pytest.raises(ValueError):
        diff(["a"], ["b"], radius=0)
    with pytest.raises(ValueError):
        diff(["a"], ["b"], merge="fuzzy")


def test_lcs_table_lengths() -> None:
    table = lcs_table(["a", "b", "c", "d"], ["a", "c", "d", "e"])
    assert len(table) == 5
    assert all(len(row) == 5 for row in table)
    assert table[4][4] == 3
    assert table[0] == [0] * 5
    assert [row[0] for row in table] == [0] * 5


def test_script_stats_counts_kinds() -> None:
    script = diff(["a", "b", "c", "d"], ["a", "x", "c"])
    stats = script_stats(script)
    assert stats.modified == 1
    assert stats.removed == 1
    assert stats.added == 0
    assert stats.total == 2
    assert stats.as_dict() == {"added": 0, "removed": 1, "modified": 1, "total": 2}


def test_edit_kind_headers() -> None:
    assert EditKind.ADDED.header == "+ "
    assert EditKind.REMOVED.header == "- "
    assert EditKind.MODIFIED.header == "~ "
