"""
File name heuristics: declared file type and embedded business date.

Pure functions.  Unrecognized names classify as Unknown and carry no date;
nothing here guesses further.
"""

from __future__ import annotations

import re
from datetime import date

from recovery_kernel.domain.types import FileType

_TYPE_KEYWORDS: tuple[tuple[str, FileType], ...] = (
    ("sales", FileType.SALES),
    ("inbound", FileType.INBOUND),
    ("outbound", FileType.OUTBOUND),
    ("inventory", FileType.INVENTORY),
)

# MM.DD.YY(YY), MM-DD-YY(YY), MM_DD_YY(YY); one separator throughout
_DATE_PATTERN = re.compile(r"(?<!\d)(\d{1,2})([.\-_])(\d{1,2})\2(\d{4}|\d{2})(?!\d)")


def classify_file_type(file_name: str) -> FileType:
    lower = file_name.lower()
    for keyword, file_type in _TYPE_KEYWORDS:
        if keyword in lower:
            return file_type
    return FileType.UNKNOWN


def parse_business_date(file_name: str) -> date | None:
    """First valid MM?DD?YY(YY) date in the name; two-digit years are 20YY."""
    for match in _DATE_PATTERN.finditer(file_name):
        month, day, year = (int(match.group(i)) for i in (1, 3, 4))
        if year < 100:
            year += 2000
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return None
