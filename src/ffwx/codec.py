"""Text serialization of edit scripts.

Two layouts exist. The compact profile writes one record per entry::

    header value LT before MID after [MID anchor]

where LT and MID are private-use sentinels that never occur in ordinary text,
and context lines are joined with a third sentinel. It is the only layout that
can be decoded. The human-readable profile lays the context out on real lines
around the change and is meant for display.

Records are separated by "\\n" in both profiles.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ffwx.context import ContextWindow
from ffwx.engine import DiffEntry, EditKind
from ffwx.errors import DecodeError, EncodeError

RECORD_SEPARATOR = "\n"

CTX_NL = "\ue000"
CTX_EOL = "\ue001"
CTX_MID = "\ue002"

SENTINELS = (CTX_NL, CTX_EOL, CTX_MID)


@dataclass(frozen=True, slots=True)
class DelimiterProfile:
    name: str
    line_separator: str
    line_terminator: str
    halfway_separator: str
    human_readable: bool


COMPACT = DelimiterProfile(
    name="compact",
    line_separator=CTX_NL,
    line_terminator=CTX_EOL,
    halfway_separator=CTX_MID,
    human_readable=False,
)

HUMAN_READABLE = DelimiterProfile(
    name="human-readable",
    line_separator="\n",
    line_terminator="",
    halfway_separator="\n",
    human_readable=True,
)

_KIND_BY_HEADER: dict[str, EditKind] = {kind.header: kind for kind in EditKind}


def profile_for(*, human_readable: bool) -> DelimiterProfile:
    return HUMAN_READABLE if human_readable else COMPACT


def _check_line(line: str, *, what: str) -> None:
    if RECORD_SEPARATOR in line:
        raise EncodeError(f"{what} contains a newline: {line!r}")
    for s in SENTINELS:
        if s in line:
            raise EncodeError(f"{what} contains reserved marker U+{ord(s):04X}: {line!r}")


def check_lines(lines: Iterable[str], *, what: str = "line") -> None:
    """Reject lines that cannot be carried by the ffwx format."""

    for line in lines:
        _check_line(line, what=what)


def _before_str(lines: Sequence[str], sep: str) -> str:
    if not lines:
        return ""
    return sep.join(lines) + sep


def _after_str(lines: Sequence[str], sep: str) -> str:
    if not lines:
        return ""
    return sep + sep.join(lines)


def _anchor_str(entry: DiffEntry) -> str:
    if entry.anchor is None:
        return ""
    if entry.kind is EditKind.MODIFIED and entry.insert_at is not None:
        return f"{entry.anchor},{entry.insert_at}"
    return str(entry.anchor)


def encode_entry(
    entry: DiffEntry, profile: DelimiterProfile = COMPACT, *, anchors: bool = True
) -> str:
    """Encode a single entry as one record (including the record separator)."""

    _check_line(entry.value, what="value")
    check_lines(entry.context.before, what="context line")
    check_lines(entry.context.after, what="context line")

    ctx = entry.context
    header = entry.kind.header
    sep = profile.line_separator

    if profile.human_readable:
        # Before lines are stored nearest-first; show them in file order.
        before = _before_str(tuple(reversed(ctx.before)), sep)
        return before + header + entry.value + _after_str(ctx.after, sep) + RECORD_SEPARATOR

    record = (
        header
        + entry.value
        + profile.line_terminator
        + _before_str(ctx.before, sep)
        + profile.halfway_separator
        + _after_str(ctx.after, sep)
    )
    if not anchors and entry.insert_at is not None:
        raise EncodeError(
            f"modified line {entry.value!r} moves to another position and needs an anchor; "
            "diff with merge policy \"adjacent\" to write scripts without anchors"
        )
    anchor = _anchor_str(entry) if anchors else ""
    if anchor:
        record += profile.halfway_separator + anchor
    return record + RECORD_SEPARATOR


def encode(
    script: Iterable[DiffEntry],
    profile: DelimiterProfile = COMPACT,
    *,
    anchors: bool = True,
) -> str:
    """Encode a script, entries in script order."""

    return "".join(encode_entry(entry, profile, anchors=anchors) for entry in script)


def _parse_before(part: str, sep: str, *, n: int, record: str) -> tuple[str, ...]:
    if not part:
        return ()
    if not part.endswith(sep):
        raise DecodeError("before-context is not terminated", record_number=n, record=record)
    return tuple(part[: -len(sep)].split(sep))


def _parse_after(part: str, sep: str, *, n: int, record: str) -> tuple[str, ...]:
    if not part:
        return ()
    if not part.startswith(sep):
        raise DecodeError("after-context is not introduced", record_number=n, record=record)
    return tuple(part[len(sep) :].split(sep))


def _parse_index(raw: str, *, n: int, record: str) -> int:
    if not raw.isdigit() or not raw.isascii():
        raise DecodeError(f"invalid anchor {raw!r}", record_number=n, record=record)
    return int(raw)


def _parse_anchor(
    raw: str, kind: EditKind, *, n: int, record: str
) -> tuple[int | None, int | None]:
    head, comma, tail = raw.partition(",")
    anchor = _parse_index(head, n=n, record=record)
    if not comma:
        return anchor, None
    if kind is not EditKind.MODIFIED:
        raise DecodeError(
            "only modified records may carry an insertion point",
            record_number=n,
            record=record,
        )
    return anchor, _parse_index(tail, n=n, record=record)


def decode_record(record: str, n: int, profile: DelimiterProfile = COMPACT) -> DiffEntry:
    head, *rest = record.split(profile.line_terminator)
    if not rest:
        raise DecodeError("missing line terminator", record_number=n, record=record)
    if len(rest) > 1:
        raise DecodeError("more than one line terminator", record_number=n, record=record)

    kind = _KIND_BY_HEADER.get(head[:2])
    if kind is None:
        raise DecodeError(f"unknown header {head[:2]!r}", record_number=n, record=record)
    value = head[2:]

    parts = rest[0].split(profile.halfway_separator)
    if len(parts) not in (2, 3):
        raise DecodeError(
            f"expected 1 or 2 halfway separators, found {len(parts) - 1}",
            record_number=n,
            record=record,
        )

    sep = profile.line_separator
    context = ContextWindow(
        before=_parse_before(parts[0], sep, n=n, record=record),
        after=_parse_after(parts[1], sep, n=n, record=record),
    )

    anchor: int | None = None
    insert_at: int | None = None
    if len(parts) == 3:
        anchor, insert_at = _parse_anchor(parts[2], kind, n=n, record=record)

    return DiffEntry(kind=kind, value=value, context=context, anchor=anchor, insert_at=insert_at)


def decode(text: str, profile: DelimiterProfile = COMPACT) -> list[DiffEntry]:
    """Parse a compact stream back into a script, preserving record order."""

    if profile.human_readable:
        raise DecodeError(
            "human-readable scripts cannot be decoded; re-run diff without -H",
            record_number=None,
            record="",
        )
    if not text:
        return []

    records = text.split(RECORD_SEPARATOR)
    if records[-1] == "":
        records.pop()

    return [decode_record(record, n, profile) for n, record in enumerate(records, start=1)]
