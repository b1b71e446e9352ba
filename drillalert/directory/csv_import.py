"""
csv_import.py — Parse a student roster CSV into directory entries.

Expected columns: USN, Name, DOB, Class, ParentPhone

Header case varies between exports, so each field accepts a few aliases.
The DOB doubles as the student's initial password.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from drillalert.directory.models import RowError, StudentEntry

_ALIASES: Dict[str, tuple] = {
    "username": ("USN", "usn", "Username", "username"),
    "name": ("Name", "name"),
    "dob": ("DOB", "dob", "Dob"),
    "class_name": ("Class", "class", "CLASS"),
    "parent_phone": ("ParentPhone", "parentPhone", "parent_phone", "parent"),
}


@dataclass
class ParsedRoster:
    entries: List[StudentEntry] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)


def _pick(row: Dict[str, str], key: str) -> Optional[str]:
    for alias in _ALIASES[key]:
        value = row.get(alias)
        if value is not None and value.strip():
            return value.strip()
    return None


def parse_rows(rows: Iterable[Dict[str, str]], default_class: str) -> ParsedRoster:
    roster = ParsedRoster()
    for index, raw in enumerate(rows, start=1):
        row = {(k or "").strip(): (v or "") for k, v in raw.items()}
        username = _pick(row, "username")
        dob = _pick(row, "dob")
        if not username or not dob:
            roster.errors.append(
                RowError(row=index, reason="Missing USN or DOB", username=username)
            )
            continue
        roster.entries.append(
            StudentEntry(
                username=username,
                password=dob,
                name=_pick(row, "name") or username,
                class_name=_pick(row, "class_name") or default_class,
                parent_phone=_pick(row, "parent_phone"),
                row=index,
            )
        )
    return roster


def parse_roster(content: bytes, default_class: str) -> ParsedRoster:
    """Decode an uploaded CSV (UTF-8, BOM tolerated) and parse its rows."""
    text = content.decode("utf-8-sig")
    return parse_rows(csv.DictReader(io.StringIO(text)), default_class)
