"""Transaction date detection for receipts."""

import re
from datetime import date
from loguru import logger
from ..receipt_types import ExtractedField
from .chain import first_result

DATE_SCAN_LINES = 5

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH_NAME = (
    r"(January|February|March|April|May|June|July|August|September|October|November|December"
    r"|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec)\.?"
)

SLASH_DATE = re.compile(r"(?<!\d)(\d{1,4})/(\d{1,2})/(\d{2,4})(?!\d)")
DASH_DOT_DATE = re.compile(r"(?<!\d)(\d{1,4})[-.](\d{1,2})[-.](\d{2,4})(?!\d)")
MONTH_NAME_DATE = re.compile(
    rf"\b{_MONTH_NAME}\s+(\d{{1,2}}),?\s+(\d{{4}})\b|\b(\d{{1,2}})\s+{_MONTH_NAME}\s+(\d{{4}})\b",
    re.IGNORECASE,
)


def _expand_year(year: int) -> int:
    if year < 100:
        return 2000 + year if year <= 30 else 1900 + year
    return year


def _build(year: int, month: int, day: int) -> date | None:
    try:
        candidate = date(_expand_year(year), month, day)
    except ValueError:
        return None
    if not 1900 <= candidate.year <= 2100:
        return None
    return candidate


def _numeric_date(match: re.Match) -> tuple[date | None, bool]:
    """Interpret a three-part numeric date. Returns (date, year_first)."""
    first, second, third = (int(part) for part in match.groups())
    if first > 31:
        return _build(first, second, third), True
    # Month-first; no locale awareness, so 03/04/2024 is always March 4th
    return _build(third, first, second), False


def _scan_numeric(pattern: re.Pattern, lines: list[str]) -> ExtractedField[str] | None:
    for line in lines:
        for match in pattern.finditer(line):
            parsed, year_first = _numeric_date(match)
            if parsed is None:
                continue
            return ExtractedField[str](
                value=parsed.isoformat(),
                confidence=0.95 if year_first else 0.85,
                method="pattern",
                source=match.group(0),
            )
    return None


def _match_slash(lines: list[str]) -> ExtractedField[str] | None:
    return _scan_numeric(SLASH_DATE, lines)


def _match_dash_dot(lines: list[str]) -> ExtractedField[str] | None:
    return _scan_numeric(DASH_DOT_DATE, lines)


def _match_month_name(lines: list[str]) -> ExtractedField[str] | None:
    for line in lines:
        for match in MONTH_NAME_DATE.finditer(line):
            if match.group(1):
                month_name, day, year = match.group(1), match.group(2), match.group(3)
            else:
                day, month_name, year = match.group(4), match.group(5), match.group(6)
            parsed = _build(int(year), MONTHS[month_name[:3].lower()], int(day))
            if parsed is None:
                continue
            return ExtractedField[str](
                value=parsed.isoformat(), confidence=0.9, method="pattern", source=match.group(0)
            )
    return None


def parse_receipt_date(text: str, today: date | None = None) -> ExtractedField[str]:
    """
    Find the receipt date in the first few lines.

    Args:
        text: Raw OCR text
        today: Date used when nothing is found (defaults to date.today())

    Returns:
        ExtractedField holding an ISO YYYY-MM-DD string
    """
    lines = [line.strip() for line in (text or "").splitlines() if line.strip()][:DATE_SCAN_LINES]
    result = first_result([_match_slash, _match_dash_dot, _match_month_name], lines)
    if result is not None:
        logger.debug("Receipt date found", date=result.value, source=result.source)
        return result

    fallback = (today or date.today()).isoformat()
    logger.debug("No receipt date found, using processing date", date=fallback)
    return ExtractedField[str](value=fallback, confidence=0.1, method="fallback")
