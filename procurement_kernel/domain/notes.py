"""
Audit note composition (``procurement_kernel.domain.notes``).

Responsibility
--------------
Builds the human-readable note shared by a PendingRequest and its
LedgerEntry: content lines (item summary, reason, remarks, metadata)
followed by a short action stamp such as::

    [Approved by ctrl@example.com @ 01/02/2024, 03:45:00 PM] Comment: ok

Invariants enforced
-------------------
* Dedup: a candidate line is appended only if its trimmed, case-folded
  text is not already a substring of the note composed so far.  Appending
  the same line twice therefore yields the same note as appending it once.
* Content lines come first, the stamp last.
* Pure functions, no state.  The note is a display projection: workflow
  state lives in the structured approval history and is never recovered
  by scanning this text.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from procurement_kernel.domain.payloads import RequestLine, RequestMeta

CHANGE_SUMMARY_LIMIT = 180


@dataclass(frozen=True)
class StampFormat:
    """Local rendering of stamp timestamps."""

    timezone: str = "UTC"
    pattern: str = "%m/%d/%Y, %I:%M:%S %p"

    def render(self, when: datetime) -> str:
        tz = timezone.utc if self.timezone.upper() == "UTC" else ZoneInfo(self.timezone)
        return when.astimezone(tz).strftime(self.pattern)


DEFAULT_STAMP_FORMAT = StampFormat()


def _normalize(text: str) -> str:
    return text.strip().casefold()


def append_unique(existing: str | None, candidates: Iterable[str | None]) -> str:
    """
    Append each candidate line to ``existing`` unless it is already present.

    Presence is a case-insensitive substring test against the note composed
    so far, so later candidates are also checked against earlier ones.
    """
    note = (existing or "").strip()
    for candidate in candidates:
        line = (candidate or "").strip()
        if not line:
            continue
        if _normalize(line) in note.casefold():
            continue
        note = f"{note}\n{line}" if note else line
    return note


def stamp(
    verb: str,
    actor: str,
    when: datetime,
    tail: str = "",
    fmt: StampFormat = DEFAULT_STAMP_FORMAT,
) -> str:
    """``[<Verb> by <actor> @ <local timestamp>]<tail>``"""
    who = actor.strip() or "—"
    return f"[{verb} by {who} @ {fmt.render(when)}]{tail}"


def comment_tail(comment: str | None) -> str:
    comment = (comment or "").strip()
    return f" Comment: {comment}" if comment else ""


def reason_tail(reason: str | None) -> str:
    reason = (reason or "").strip()
    return f" — Reason: {reason}" if reason else ""


def reason_lines(reason: str | None = None, remarks: str | None = None) -> list[str]:
    lines = []
    if reason and reason.strip():
        lines.append(f"Reason: {reason.strip()}")
    if remarks and remarks.strip():
        lines.append(f"Remarks: {remarks.strip()}")
    return lines


def meta_lines(meta: RequestMeta) -> list[str]:
    lines = []
    if meta.issued_to:
        dept = f" ({meta.department})" if meta.department else ""
        lines.append(f"Issued To: {meta.issued_to}{dept}")
    if meta.business_unit:
        lines.append(f"Business Unit: {meta.business_unit}")
    if meta.deployment_location:
        lines.append(f"Deployment: {meta.deployment_location}")
    return lines


def item_summary_lines(type_label: str, lines: tuple[RequestLine, ...]) -> list[str]:
    """Title plus one numbered line per item for multi-item requests."""
    if len(lines) == 1:
        line = lines[0]
        return [f"{line.quantity} {line.unit_of_measure} — {line.name} ({line.sku})"]
    out = [f"{type_label} — {len(lines)} item(s)"]
    for i, line in enumerate(lines, start=1):
        out.append(f"{i}. {line.quantity} {line.unit_of_measure} — {line.name} ({line.sku})")
    return out


def edited_marker(n: int) -> str:
    return f"Edited #{n}"


def change_summary(changes: list[tuple[str, Any, Any]]) -> str:
    """``Field: “from” → “to”`` joined by ``; ``, truncated for display."""
    if not changes:
        return "No visible field changes"

    def show(value: Any) -> str:
        text = "" if value is None else str(value)
        return text or "—"

    summary = "; ".join(f"{f}: “{show(a)}” → “{show(b)}”" for f, a, b in changes)
    if len(summary) > CHANGE_SUMMARY_LIMIT:
        summary = summary[: CHANGE_SUMMARY_LIMIT - 3] + "…"
    return summary
