"""
Import reconciliation engine.

Turns raw rows from a CSV or OCR producer into ``ImportRow`` drafts for
operator review: fuzzy name matching against the roster, date/time
normalisation, role inference, bulk remediation tools and the commit gate.

All functions are pure; rows are never mutated in place.
"""

import re
from datetime import date, datetime, tzinfo
from difflib import SequenceMatcher
from typing import Dict, Iterable, List, Optional, Tuple

from dateutil import parser as date_parser

from rota.models.company import StaffMember
from rota.models.import_row import OPEN_USER, UNKNOWN_USER, ImportIssue, ImportRow, RawImportRow
from rota.models.shift import DEFAULT_ROLE, ScheduleShift, ShiftStatus, new_shift_id
from rota.services.errors import ImportBlockedError, PreconditionError
from rota.utils.timeutils import compute_span, get_zone

MATCH_THRESHOLD = 15
SUBSTRING_SCORE = 20
FIRST_EXACT_SCORE = 10
FIRST_PARTIAL_SCORE = 8
LAST_EXACT_SCORE = 10
LAST_NEAR_SCORE = 8
NEAR_MATCH_RATIO = 0.8

GENERIC_ROLES = frozenset({"staff", "general", "employee", "unknown", "null", "none", "n/a", "-"})

UNREGISTERED_SUFFIX = " (Unregistered)"

_QUOTES = "\"'“”‘’`"
_DATE_PARTS = re.compile(r"^(\d{1,4})\s*[/.\-]\s*(\d{1,2})\s*[/.\-]\s*(\d{1,4})$")
_CLOCK = re.compile(r"^(\d{1,2})(?:\s*[:.h]\s*(\d{1,2})(?::\d{2})?)?\s*(am|pm|a|p)?$", re.I)
_COMPACT_CLOCK = re.compile(r"^(\d{1,2})(\d{2})$")

COPYABLE_FIELDS = {
    "date": "parsedDate",
    "start": "parsedStart",
    "end": "parsedEnd",
    "role": "finalRole",
}


# ---------------------------------------------------------------------------
# Name resolution
# ---------------------------------------------------------------------------

def normalize_name(value: Optional[str]) -> str:
    cleaned = "".join(ch for ch in (value or "") if ch not in _QUOTES)
    return " ".join(cleaned.lower().split())


def _near(a: str, b: str) -> bool:
    # typo tolerance ("Bela" ~ "Bella"); short tokens must match properly
    return len(a) >= 3 and len(b) >= 3 and SequenceMatcher(None, a, b).ratio() >= NEAR_MATCH_RATIO


def score_candidate(name: str, full_name: str) -> int:
    tokens, candidate = name.split(), full_name.split()
    if not tokens or not candidate:
        return 0
    score = 0
    if name in full_name:
        score += SUBSTRING_SCORE

    first, cand_first = tokens[0], candidate[0]
    if first == cand_first:
        score += FIRST_EXACT_SCORE
    elif first in cand_first or cand_first in first or _near(first, cand_first):
        score += FIRST_PARTIAL_SCORE

    last, cand_last = tokens[-1], candidate[-1]
    if last == cand_last:
        score += LAST_EXACT_SCORE
    elif len(tokens) > 1 and len(candidate) > 1 and _near(last, cand_last):
        score += LAST_NEAR_SCORE
    return score


def match_user(raw_name: Optional[str], roster: Iterable[StaffMember]) -> str:
    """Roster id for ``raw_name``; ``OPEN_USER`` when blank, ``UNKNOWN_USER`` when unmatched."""
    name = normalize_name(raw_name)
    if not name:
        return OPEN_USER
    roster = list(roster)
    for member in roster:
        if normalize_name(member.name) == name:
            return member.id

    best, best_score = None, 0
    for member in roster:
        score = score_candidate(name, normalize_name(member.name))
        if score > best_score:
            best, best_score = member, score
    if best is not None and best_score > MATCH_THRESHOLD:
        return best.id
    return UNKNOWN_USER


# ---------------------------------------------------------------------------
# Date / time normalisation
# ---------------------------------------------------------------------------

def _clean(value: Optional[str]) -> str:
    return (value or "").strip().strip(_QUOTES).strip()


def normalize_date(raw: Optional[str]) -> Optional[str]:
    """``YYYY-MM-DD`` for a day-first or year-first date, else None."""
    s = _clean(raw)
    if not s:
        return None
    m = _DATE_PARTS.match(s)
    if m:
        a, b, c = (int(g) for g in m.groups())
        if a > 1000:
            year, month, day = a, b, c
        else:
            day, month, year = a, b, c
            if year < 100:
                year += 2000
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            pass
    return _generic_date(s)


def _generic_date(s: str) -> Optional[str]:
    # Parse twice with different defaults: a date missing a component would
    # silently borrow it from the default, so disagreement means incomplete.
    try:
        first = date_parser.parse(s, dayfirst=True, default=datetime(2000, 1, 1))
        second = date_parser.parse(s, dayfirst=True, default=datetime(2001, 2, 2))
    except (ValueError, OverflowError):
        return None
    if first.date() != second.date():
        return None
    return first.date().isoformat()


def normalize_time(raw: Optional[str]) -> Optional[str]:
    """Zero-padded ``HH:mm``; accepts ``9``, ``9:5``, ``0930``, ``9.30pm``, ``09:00:00``."""
    s = _clean(raw).lower()
    if not s:
        return None
    m = _COMPACT_CLOCK.match(s) if len(s) in (3, 4) else None
    if m:
        hour, minute, meridiem = int(m.group(1)), int(m.group(2)), None
    else:
        m = _CLOCK.match(s)
        if not m:
            return None
        hour, minute, meridiem = int(m.group(1)), int(m.group(2) or 0), m.group(3)
    if meridiem:
        if hour > 12:
            return None
        if meridiem.startswith("p") and hour < 12:
            hour += 12
        if meridiem.startswith("a") and hour == 12:
            hour = 0
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


# ---------------------------------------------------------------------------
# Role inference
# ---------------------------------------------------------------------------

def is_specific_role(raw_role: Optional[str]) -> bool:
    role = _clean(raw_role)
    return bool(role) and role.lower() not in GENERIC_ROLES


def infer_role(matched_user_id: str, raw_role: Optional[str], roster_by_id: Dict[str, StaffMember]) -> str:
    """Role for a row, or "" when the operator has to choose."""
    if matched_user_id == UNKNOWN_USER:
        return ""
    if is_specific_role(raw_role):
        return _clean(raw_role)
    member = roster_by_id.get(matched_user_id)
    roles = member.known_roles if member else []
    if len(roles) == 1:
        return roles[0]
    if len(roles) > 1:
        return ""
    return DEFAULT_ROLE


def validate_row(row: ImportRow) -> ImportRow:
    """Recompute ``errors`` from the row's resolved fields.

    Times that are not canonical HH:mm are cleared, so they count as missing.
    """
    start, end = _canonical_time(row.parsedStart), _canonical_time(row.parsedEnd)
    errors = []
    if not row.parsedDate or normalize_date(row.parsedDate) != row.parsedDate:
        errors.append(ImportIssue.INVALID_DATE.value)
    if not start:
        errors.append(ImportIssue.MISSING_TIME.value)
    if not end:
        errors.append(ImportIssue.MISSING_END_TIME.value)
    if row.matchedUserId == UNKNOWN_USER:
        errors.append(ImportIssue.NAME_UNKNOWN.value)
    if not row.finalRole.strip():
        errors.append(ImportIssue.AMBIGUOUS_ROLE.value)
    return row.copy(update={"parsedStart": start, "parsedEnd": end, "errors": errors})


def _canonical_time(value: str) -> str:
    return value if value and normalize_time(value) == value else ""


def _sort_key(row: ImportRow) -> Tuple[str, str]:
    return row.parsedDate, row.parsedStart


def reconcile_row(raw: RawImportRow, roster: List[StaffMember],
                  roster_by_id: Optional[Dict[str, StaffMember]] = None) -> ImportRow:
    roster_by_id = roster_by_id or {m.id: m for m in roster}
    matched = match_user(raw.name, roster)
    row = ImportRow(
        rawName=raw.name or "",
        rawDate=raw.date or "",
        rawStart=raw.start or "",
        rawEnd=raw.end or "",
        rawRole=raw.role,
        matchedUserId=matched,
        parsedDate=normalize_date(raw.date) or "",
        parsedStart=normalize_time(raw.start) or "",
        parsedEnd=normalize_time(raw.end) or "",
        finalRole=infer_role(matched, raw.role, roster_by_id),
    )
    return validate_row(row)


def reconcile_rows(raw_rows: Iterable[RawImportRow], roster: List[StaffMember]) -> List[ImportRow]:
    """Review rows sorted by resolved (date, start)."""
    roster_by_id = {m.id: m for m in roster}
    rows = [reconcile_row(raw, roster, roster_by_id) for raw in raw_rows]
    return sorted(rows, key=_sort_key)


# ---------------------------------------------------------------------------
# Operator remediation
# ---------------------------------------------------------------------------

def _check_index(rows: List[ImportRow], index: int) -> None:
    if index < 0 or index >= len(rows):
        raise PreconditionError(f"Row {index} does not exist")


def fill_missing_end_times(rows: List[ImportRow], end_time: str) -> List[ImportRow]:
    """Apply one end time to every row still missing one."""
    end = normalize_time(end_time)
    if end is None:
        raise PreconditionError(f"'{end_time}' is not a valid time")
    return [
        validate_row(row.copy(update={"parsedEnd": end})) if row.has(ImportIssue.MISSING_END_TIME) else row
        for row in rows
    ]


def copy_down(rows: List[ImportRow], index: int, field: str) -> List[ImportRow]:
    """Copy one column's value from ``rows[index]`` into the next row."""
    if field not in COPYABLE_FIELDS:
        raise PreconditionError(f"Cannot copy column '{field}'")
    _check_index(rows, index)
    if index + 1 >= len(rows):
        raise PreconditionError("There is no row below to copy into")
    attr = COPYABLE_FIELDS[field]
    updated = list(rows)
    updated[index + 1] = validate_row(rows[index + 1].copy(update={attr: getattr(rows[index], attr)}))
    return updated


def edit_row(rows: List[ImportRow], index: int, field: str, value: str) -> List[ImportRow]:
    """Operator edit of a single date/start/end/role cell."""
    if field not in COPYABLE_FIELDS:
        raise PreconditionError(f"Cannot edit column '{field}'")
    _check_index(rows, index)
    if field == "date":
        parsed = normalize_date(value) or ""
    elif field in ("start", "end"):
        parsed = normalize_time(value) or ""
    else:
        parsed = _clean(value)
    updated = list(rows)
    updated[index] = validate_row(rows[index].copy(update={COPYABLE_FIELDS[field]: parsed}))
    return updated


def reselect_user(rows: List[ImportRow], index: int, user_id: str, roster: List[StaffMember]) -> List[ImportRow]:
    """Change the matched user and re-run role inference for that row."""
    _check_index(rows, index)
    roster_by_id = {m.id: m for m in roster}
    if user_id not in (OPEN_USER, UNKNOWN_USER) and user_id not in roster_by_id:
        raise PreconditionError(f"User {user_id} is not on the roster")
    row = rows[index]
    updated = list(rows)
    updated[index] = validate_row(row.copy(update={
        "matchedUserId": user_id,
        "finalRole": infer_role(user_id, row.rawRole, roster_by_id),
    }))
    return updated


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------

def _rows_with(rows: List[ImportRow], issue: ImportIssue) -> List[int]:
    return [i for i, row in enumerate(rows) if row.has(issue)]


def check_commit_gate(rows: List[ImportRow]) -> List[ImportRow]:
    """Revalidated rows, or ``ImportBlockedError`` naming the blocking issue."""
    if not rows:
        raise PreconditionError("There are no rows to import")
    rows = [validate_row(row) for row in rows]

    invalid = _rows_with(rows, ImportIssue.INVALID_DATE)
    if invalid:
        raise ImportBlockedError(
            f"{len(invalid)} row(s) have an invalid date. Fix them before importing.",
            details={"rows": invalid}, code="INVALID_DATE",
        )
    missing = _rows_with(rows, ImportIssue.MISSING_TIME)
    if missing:
        raise ImportBlockedError(
            f"{len(missing)} row(s) have no start time. Fix them before importing.",
            details={"rows": missing}, code="MISSING_TIME",
        )
    ambiguous = _rows_with(rows, ImportIssue.AMBIGUOUS_ROLE)
    if ambiguous:
        raise ImportBlockedError(
            f"{len(ambiguous)} row(s) need a role chosen before importing.",
            details={"rows": ambiguous}, code="AMBIGUOUS_ROLE",
        )
    return rows


def build_import_shifts(
    rows: List[ImportRow],
    company_id: str,
    roster: List[StaffMember],
    location_id: Optional[str] = None,
    location_name: Optional[str] = None,
    tz: Optional[tzinfo] = None,
) -> List[ScheduleShift]:
    """One draft shift per row; raises if the commit gate is closed."""
    tz = tz or get_zone()
    rows = check_commit_gate(rows)
    roster_by_id = {m.id: m for m in roster}

    shifts = []
    for i, row in enumerate(rows, 1):
        start, end = compute_span(date.fromisoformat(row.parsedDate), row.parsedStart, row.parsedEnd or None, tz)
        user_id, user_name = None, None
        if row.matchedUserId == UNKNOWN_USER:
            user_name = f"{row.rawName.strip()}{UNREGISTERED_SUFFIX}"
        elif row.matchedUserId != OPEN_USER:
            member = roster_by_id.get(row.matchedUserId)
            if member is None:
                raise PreconditionError(f"Row {i - 1} refers to a staff member who is not on the roster")
            user_id, user_name = member.id, member.name
        shifts.append(ScheduleShift(
            _id=new_shift_id(i),
            companyId=company_id,
            locationId=location_id,
            locationName=location_name,
            userId=user_id,
            userName=user_name,
            role=row.finalRole.strip(),
            startTime=start,
            endTime=end,
            status=ShiftStatus.DRAFT,
        ))
    return shifts
