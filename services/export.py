from __future__ import annotations

import csv
import io
from typing import Iterable

from models import Candidate


EXPORT_COLUMNS: list[tuple[str, str]] = [
    ("Application No.", "applicationNumber"),
    ("Full Name", "fullName"),
    ("Identity Type", "identityType"),
    ("Identity No.", "identityNumber"),
    ("Date of Birth", "dateOfBirth"),
    ("Visa Type", "visaType"),
    ("Country", "country"),
    ("Profession", "profession"),
    ("Company", "companyName"),
    ("Status", "status"),
    ("Visa No.", "visaNumber"),
    ("Visa Issue Date", "visaIssueDate"),
    ("Visa Expiry Date", "visaExpiryDate"),
    ("Application Date", "applicationDate"),
    ("Remarks", "remarks"),
    ("Created At", "createdAt"),
]

_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def _cell(value) -> str:
    s = "" if value is None else str(value)
    # Spreadsheet apps evaluate leading formula characters.
    if s.startswith(_FORMULA_PREFIXES):
        return "'" + s
    return s


def candidates_to_csv(rows: Iterable[Candidate]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow([label for label, _attr in EXPORT_COLUMNS])
    for c in rows:
        writer.writerow([_cell(getattr(c, attr, "")) for _label, attr in EXPORT_COLUMNS])
    return buf.getvalue()
