"""Rebuild the modified file from the source file and an edit script.

Entries are consumed in the order `diff` produced them, end of file first.
Removals and replacements are checked against the source before anything is
written: the recorded value (for removals) and the recorded context window
must still be found at the anchor, otherwise the source has drifted since the
diff was taken. Inserted lines are checked against the rebuilt output, where
their recorded context (taken from the modified file) must reappear.

Entries without an anchor are placed by searching for their context, moving
only toward the start of the file. A placement must match on both sides and be
the only one that does; otherwise the script is rejected as ambiguous. As a
last check the rebuilt file is diffed against the source again and must give
back the same script.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence

from ffwx.context import ContextWindow, extract, windows_equal
from ffwx.engine import MERGE_POLICIES, DiffEntry, EditKind, diff
from ffwx.errors import ContextMismatchError

logger = logging.getLogger("ffwx.reconstruct")


def _radius(entry: DiffEntry) -> int:
    return max(len(entry.context.before), len(entry.context.after), 1)


def _describe(entry: DiffEntry) -> str:
    return f"{entry.kind.value} line {entry.value!r}"


class _Resolver:
    def __init__(self, source: Sequence[str]) -> None:
        self.source = source
        self.n = len(source)
        self.removed: dict[int, DiffEntry] = {}
        self.inserted: defaultdict[int, list[DiffEntry]] = defaultdict(list)
        self.cursor = self.n
        self.searched = False

    # -- checks -----------------------------------------------------------

    def _check_line(self, entry: DiffEntry, p: int) -> None:
        if not 0 <= p < self.n:
            raise ContextMismatchError(
                f"{_describe(entry)}: anchor {p} is outside the source file "
                f"({self.n} lines)",
                entry=entry,
                expected=entry.context,
            )
        if p in self.removed:
            raise ContextMismatchError(
                f"{_describe(entry)}: source line {p + 1} is changed twice",
                entry=entry,
                expected=entry.context,
            )
        if entry.kind is EditKind.REMOVED and self.source[p] != entry.value:
            raise ContextMismatchError(
                f"{_describe(entry)}: source line {p + 1} is {self.source[p]!r}",
                entry=entry,
                expected=entry.context,
                actual=extract(self.source, p, _radius(entry)),
            )
        actual = extract(self.source, p, _radius(entry))
        if not windows_equal(actual, entry.context):
            raise ContextMismatchError(
                f"{_describe(entry)}: context at source line {p + 1} does not match",
                entry=entry,
                expected=entry.context,
                actual=actual,
            )

    def _check_point(self, entry: DiffEntry, k: int) -> None:
        if not 0 <= k <= self.n:
            raise ContextMismatchError(
                f"{_describe(entry)}: insertion point {k} is outside the source file "
                f"({self.n} lines)",
                entry=entry,
                expected=entry.context,
            )

    # -- context search for unanchored entries ----------------------------

    def _line_matches(self, entry: DiffEntry, p: int) -> bool:
        if p in self.removed:
            return False
        if entry.kind is EditKind.REMOVED and self.source[p] != entry.value:
            return False
        return windows_equal(extract(self.source, p, _radius(entry)), entry.context)

    def _unique(self, entry: DiffEntry, candidates: list[int], what: str) -> int:
        if not candidates:
            raise ContextMismatchError(
                f"{_describe(entry)}: no {what} matches its context",
                entry=entry,
                expected=entry.context,
            )
        if len(candidates) > 1:
            found = ", ".join(str(c) for c in candidates)
            raise ContextMismatchError(
                f"{_describe(entry)}: context is ambiguous: {len(candidates)} positions "
                f"match ({what}s {found})",
                entry=entry,
                expected=entry.context,
            )
        return candidates[0]

    def _search_line(self, entry: DiffEntry) -> int:
        # An in-place modification may share its slot with lines already inserted there.
        top = self.cursor if entry.kind is EditKind.MODIFIED else self.cursor - 1
        top = min(top, self.n - 1)
        candidates = [p for p in range(top, -1, -1) if self._line_matches(entry, p)]
        p = self._unique(entry, candidates, "source line")
        logger.debug("placed %s at source line %d by context", _describe(entry), p + 1)
        return p

    def _after_at(self, k: int) -> str | None:
        """The line that currently follows insertion point `k` in the output."""

        while True:
            if self.inserted.get(k):
                return self.inserted[k][-1].value
            if k >= self.n:
                return None
            if k not in self.removed:
                return self.source[k]
            k += 1

    def _before_at(self, k: int) -> str | None:
        """The line that currently precedes insertion point `k` in the output."""

        while k > 0:
            if (k - 1) not in self.removed:
                return self.source[k - 1]
            if self.inserted.get(k - 1):
                return self.inserted[k - 1][0].value
            k -= 1
        return None

    def _point_matches(self, ctx: ContextWindow, k: int, pending: str | None) -> bool:
        if self._after_at(k) != ctx.first_after:
            return False
        # The neighbour before may still be on its way: the next entry lands just left of here.
        before = ctx.first_before
        return self._before_at(k) == before or pending == before

    def _search_point(self, entry: DiffEntry, pending: str | None) -> int:
        candidates = [
            k
            for k in range(self.cursor, -1, -1)
            if self._point_matches(entry.context, k, pending)
        ]
        k = self._unique(entry, candidates, "insertion point")
        logger.debug("placed %s at insertion point %d by context", _describe(entry), k)
        return k

    # -- resolution -------------------------------------------------------

    def _insert(self, entry: DiffEntry, k: int) -> None:
        self._check_point(entry, k)
        self.inserted[k].append(entry)
        self.cursor = min(self.cursor, k)

    def resolve(self, entry: DiffEntry, *, pending: str | None = None) -> None:
        """Place one entry; `pending` is the value of the next entry that inserts a line."""

        if entry.kind is EditKind.ADDED:
            if entry.anchor is not None:
                k = entry.anchor
            else:
                self.searched = True
                k = self._search_point(entry, pending)
            self._insert(entry, k)
            return

        if entry.anchor is not None:
            p = entry.anchor
        else:
            self.searched = True
            p = self._search_line(entry)
        self._check_line(entry, p)
        self.removed[p] = entry
        if entry.kind is EditKind.REMOVED:
            self.cursor = min(self.cursor, p)
            return

        k = entry.insert_at if entry.insert_at is not None else p
        self._insert(entry, k)


def _pending_values(entries: Sequence[DiffEntry]) -> list[str | None]:
    """For each entry, the value of the next entry that inserts a line, if any."""

    out: list[str | None] = [None] * len(entries)
    nxt: str | None = None
    for idx in range(len(entries) - 1, -1, -1):
        out[idx] = nxt
        if entries[idx].kind is not EditKind.REMOVED:
            nxt = entries[idx].value
    return out


def _shape(script: Iterable[DiffEntry]) -> list[tuple[EditKind, str, ContextWindow]]:
    return [(e.kind, e.value, e.context) for e in script]


def _check_unique_reading(
    source: Sequence[str], out: Sequence[str], entries: Sequence[DiffEntry]
) -> None:
    """Fail unless diffing `source` against `out` gives back `entries` (positions aside)."""

    radius = max(_radius(e) for e in entries)
    expected = _shape(entries)
    for policy in MERGE_POLICIES:
        if _shape(diff(source, out, radius=radius, merge=policy)) == expected:
            return

    raise ContextMismatchError(
        f"{_describe(entries[0])}: the script has no anchors and its context does not "
        "determine where its lines go (context is ambiguous)",
        entry=entries[0],
        expected=entries[0].context,
    )


def apply(
    source: Sequence[str],
    script: Iterable[DiffEntry],
    *,
    reverted: bool = False,
) -> list[str]:
    """Reconstruct the modified lines from `source` and `script`.

    `script` must be in the order `diff` emitted it; pass `reverted=True` for
    scripts produced with `revert`. Raises ContextMismatchError when the source
    no longer matches the script, in which case nothing is returned.
    """

    entries = list(script)
    if reverted:
        entries.reverse()

    resolver = _Resolver(source)
    for entry, pending in zip(entries, _pending_values(entries)):
        resolver.resolve(entry, pending=pending)

    # Walk the source from the tail, then undo the walk with one reversal.
    n = len(source)
    out: list[str] = []
    placed: list[tuple[int, DiffEntry]] = []
    for k in range(n, -1, -1):
        for entry in resolver.inserted.get(k, ()):
            placed.append((len(out), entry))
            out.append(entry.value)
        if k > 0 and (k - 1) not in resolver.removed:
            out.append(source[k - 1])
    out.reverse()

    total = len(out)
    for rev_pos, entry in placed:
        pos = total - 1 - rev_pos
        actual = extract(out, pos, _radius(entry))
        if not windows_equal(actual, entry.context):
            raise ContextMismatchError(
                f"{_describe(entry)}: context around output line {pos + 1} does not match",
                entry=entry,
                expected=entry.context,
                actual=actual,
            )

    if resolver.searched:
        _check_unique_reading(source, out, entries)

    logger.debug("applied %d entries: %d source lines -> %d output lines", len(entries), n, total)
    return out
