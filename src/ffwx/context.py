"""Context windows: the lines surrounding a changed line.

A window fingerprints where an edit happened. `before` and `after` hold up to
`radius` lines each, nearest-first, and are empty at the edges of a file.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

DEFAULT_RADIUS = 1


@dataclass(frozen=True, slots=True)
class ContextWindow:
    before: tuple[str, ...] = ()
    after: tuple[str, ...] = ()

    @property
    def first_before(self) -> str | None:
        return self.before[0] if self.before else None

    @property
    def first_after(self) -> str | None:
        return self.after[0] if self.after else None


def extract(sequence: Sequence[str], index: int, radius: int = DEFAULT_RADIUS) -> ContextWindow:
    """Snapshot up to `radius` lines on each side of `sequence[index]`.

    Out-of-range neighbours are simply absent, so the first and last lines of a
    file always get a one-sided window. `index` itself may be out of range (an
    insertion point past the end, for example); only the neighbours are read.
    """

    if radius < 1:
        raise ValueError("context radius must be >= 1")

    n = len(sequence)
    before: list[str] = []
    after: list[str] = []
    for step in range(1, radius + 1):
        b = index - step
        if 0 <= b < n:
            before.append(sequence[b])
        a = index + step
        if 0 <= a < n:
            after.append(sequence[a])
    return ContextWindow(before=tuple(before), after=tuple(after))


def windows_equal(a: ContextWindow, b: ContextWindow) -> bool:
    """Exact, order-sensitive equality on both sides (absent only equals absent)."""

    return a.before == b.before and a.after == b.after
