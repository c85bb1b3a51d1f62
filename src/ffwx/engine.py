"""Line-level diff engine.

The engine aligns two line sequences with the classical dynamic-programming
longest common subsequence (LCS) and backtraces the table from the end of both
files toward the start. Every changed line becomes a `DiffEntry` carrying the
context window it was found in, so the script is emitted in reverse file
order.

A deletion and an insertion whose context windows coincide are recognised as a
single-line edit and merged into one `MODIFIED` entry. Context equality is a
proxy for "same place in the file": two unrelated edits with identical
neighbourhoods are merged too. The `merge` policy controls this:

- ``"context"``: merge on context equality alone.
- ``"adjacent"``: also require the removed line to sit at the insertion point.
- ``"off"``: never merge.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from ffwx.context import DEFAULT_RADIUS, ContextWindow, extract, windows_equal

logger = logging.getLogger("ffwx.engine")

MERGE_POLICIES = ("context", "adjacent", "off")


class EditKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"

    @property
    def header(self) -> str:
        return _HEADERS[self]


_HEADERS: dict[EditKind, str] = {
    EditKind.ADDED: "+ ",
    EditKind.REMOVED: "- ",
    EditKind.MODIFIED: "~ ",
}


@dataclass(frozen=True, slots=True)
class DiffEntry:
    """One changed line.

    Attributes:
        kind:       the edit kind
        value:      the changed line (for MODIFIED, the new text only)
        context:    the window the line was found in
        anchor:     source index removed/replaced, or the insertion point of an
                    ADDED line; None when the script carries no positions
        insert_at:  insertion point of a MODIFIED entry when it differs from
                    `anchor`
    """

    kind: EditKind
    value: str
    context: ContextWindow
    anchor: int | None = None
    insert_at: int | None = None

    @property
    def insertion_point(self) -> int | None:
        if self.kind is EditKind.REMOVED:
            return None
        if self.kind is EditKind.MODIFIED and self.insert_at is not None:
            return self.insert_at
        return self.anchor


Script = list[DiffEntry]


@dataclass(frozen=True, slots=True)
class ScriptStats:
    added: int
    removed: int
    modified: int

    @property
    def total(self) -> int:
        return self.added + self.removed + self.modified

    def as_dict(self) -> dict[str, int]:
        return {
            "added": self.added,
            "removed": self.removed,
            "modified": self.modified,
            "total": self.total,
        }


def lcs_table(source: Sequence[str], modified: Sequence[str]) -> list[list[int]]:
    """Return the (m+1) x (n+1) LCS length table."""

    m, n = len(source), len(modified)
    table = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        row = table[i]
        prev = table[i - 1]
        s = source[i - 1]
        for j in range(1, n + 1):
            if s == modified[j - 1]:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = max(prev[j], row[j - 1])
    return table


class _Backtrace:
    def __init__(
        self,
        source: Sequence[str],
        modified: Sequence[str],
        *,
        radius: int,
        merge: str,
    ) -> None:
        self.source = source
        self.modified = modified
        self.radius = radius
        self.merge = merge
        self.script: Script = []

    def removed(self, i: int) -> None:
        idx = i - 1
        self.script.append(
            DiffEntry(
                kind=EditKind.REMOVED,
                value=self.source[idx],
                context=extract(self.source, idx, self.radius),
                anchor=idx,
            )
        )

    def added(self, i: int, j: int) -> None:
        idx = j - 1
        value = self.modified[idx]
        ctx = extract(self.modified, idx, self.radius)

        match = self._find_removed(ctx, insertion_point=i)
        if match is None:
            self.script.append(DiffEntry(kind=EditKind.ADDED, value=value, context=ctx, anchor=i))
            return

        removed = self.script.pop(match)
        assert removed.anchor is not None
        logger.debug(
            "merged removed line %d with added line %d into a modification",
            removed.anchor,
            idx,
        )
        self.script.append(
            DiffEntry(
                kind=EditKind.MODIFIED,
                value=value,
                context=ctx,
                anchor=removed.anchor,
                insert_at=None if removed.anchor == i else i,
            )
        )

    def _find_removed(self, ctx: ContextWindow, *, insertion_point: int) -> int | None:
        if self.merge == "off":
            return None
        for pos, entry in enumerate(self.script):
            if entry.kind is not EditKind.REMOVED:
                continue
            if self.merge == "adjacent" and entry.anchor != insertion_point:
                continue
            if windows_equal(entry.context, ctx):
                return pos
        return None


def diff(
    source: Sequence[str],
    modified: Sequence[str],
    *,
    revert: bool = False,
    radius: int = DEFAULT_RADIUS,
    merge: str = "context",
) -> Script:
    """Compute the edit script turning `source` into `modified`.

    The script is in reverse file order (end of file first) unless `revert` is
    set. Total over any two finite sequences, empty ones included.
    """

    if radius < 1:
        raise ValueError("context radius must be >= 1")
    if merge not in MERGE_POLICIES:
        raise ValueError(f"unknown merge policy: {merge!r}")

    m, n = len(source), len(modified)
    table = lcs_table(source, modified)
    logger.debug("LCS table %dx%d, common lines: %d", m + 1, n + 1, table[m][n])

    bt = _Backtrace(source, modified, radius=radius, merge=merge)
    i, j = m, n
    while i > 0 and j > 0:
        if source[i - 1] == modified[j - 1]:
            i -= 1
            j -= 1
        elif table[i][j] == table[i - 1][j]:
            # Removal wins ties so the alignment choice is stable.
            bt.removed(i)
            i -= 1
        else:
            bt.added(i, j)
            j -= 1
    del table

    while i > 0:
        bt.removed(i)
        i -= 1
    while j > 0:
        bt.added(0, j)
        j -= 1

    script = bt.script
    if revert:
        script.reverse()
    return script


def script_stats(script: Sequence[DiffEntry]) -> ScriptStats:
    counts = {kind: 0 for kind in EditKind}
    for entry in script:
        counts[entry.kind] += 1
    return ScriptStats(
        added=counts[EditKind.ADDED],
        removed=counts[EditKind.REMOVED],
        modified=counts[EditKind.MODIFIED],
    )
