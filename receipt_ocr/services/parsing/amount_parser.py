"""
Total / subtotal / tax extraction from receipt text.

The total is found by a cascade of stages; each stage only runs when every
earlier stage came back empty:

1. Decimal repair (text rewrite, not a producer): bare 3-5 digit integers
   are read as cents, e.g. "4860" -> "48.60"
2. A "TOTAL" label alone on its line with the amount on a following line
3. Single-line labelled totals (GRAND TOTAL, AMOUNT DUE, BALANCE DUE, TOTAL,
   FINAL TOTAL) scored with contextual boosts
4. A standalone "TOTAL" line followed within 4 lines by a bare amount line
5. Every currency-shaped token in the document, scored by context

Within the winning stage the highest-confidence candidate wins, ties going to
the larger amount.
"""

import re
from dataclasses import dataclass
from typing import Any
from loguru import logger
from ..receipt_types import ExtractedField

AMOUNT = r"(\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2})"

BARE_INTEGER = re.compile(r"(?<![^\s$#])(\d{3,5})(?!\S)")

MULTILINE_TOTAL = re.compile(
    r"(?<![A-Za-z])(?:GRAND[ \t]+)?TOTAL[ \t]*:?[ \t]*\n(?:[^\n\d]*\n){0,2}[^\n\d$]*\$?[ \t]*" + AMOUNT,
    re.IGNORECASE,
)

_LABEL_TAIL = r"[ \t]*:?[ \t]*\$?[ \t]*" + AMOUNT

# (name, label regex, base confidence, label boost)
PRIORITY_TOTALS = [
    ("grand_total", r"GRAND[ \t]*TOTAL", 0.75, 0.2),
    ("amount_due", r"AMOUNT[ \t]*DUE", 0.75, 0.15),
    ("balance_due", r"BALANCE[ \t]*DUE", 0.75, 0.0),
    ("total", r"(?<![A-Za-z])(?<!SUB )(?<!SUB-)TOTAL(?![ \t]*SUB)", 0.7, 0.0),
    ("final_total", r"FINAL[ \t]*TOTAL", 0.8, 0.0),
]
PRIORITY_PATTERNS = [
    (name, re.compile(label + _LABEL_TAIL, re.IGNORECASE), base, boost)
    for name, label, base, boost in PRIORITY_TOTALS
]

TOTAL_LABEL_LINE = re.compile(r"\s*(?:GRAND\s+)?TOTAL\s*:?\s*", re.IGNORECASE)
BARE_AMOUNT_LINE = re.compile(r"\$?\s*" + AMOUNT)

CURRENCY_TOKEN = re.compile(r"(?:(\$)[ \t]?)?(?<![\d.,])" + AMOUNT + r"(?!\d)")
TOTAL_CONTEXT = re.compile(r"\b(total|due|owed)\b")
NEGATIVE_CONTEXT = re.compile(r"sub\s*-?\s*total|\btax\b|discount")

SUBTOTAL_LABEL = re.compile(r"(?<![A-Za-z])SUB[ \t-]*TOTAL\s*:?\s*\$?\s*" + AMOUNT, re.IGNORECASE)
TAX_LABEL = re.compile(
    r"(?<![A-Za-z])(?:SALES[ \t]+)?TAX(?![ \t]*(?:ID|EXEMPT|#))"
    r"[ \t]*(?:\d+(?:\.\d+)?[ \t]*%)?" + _LABEL_TAIL,
    re.IGNORECASE,
)

SUBTOTAL_WINDOW = 20
CONTEXT_WINDOW = 30
LINE_SCAN_LOOKAHEAD = 4
GLOBAL_MAX_CONFIDENCE = 0.7


@dataclass
class AmountResult:
    total: ExtractedField[float] | None = None
    subtotal: ExtractedField[float] | None = None
    tax: ExtractedField[float] | None = None
    stage: str | None = None  # Name of the stage that produced the total
    text: str = ""  # Text the stages ran on (after decimal repair)


def _to_float(raw: str) -> float:
    return float(raw.replace(",", ""))


def coerce_amount(value: Any) -> float | None:
    """
    Best-effort conversion of a money value to float.

    Handles currency symbols, currency codes, and thousands separators, e.g.
    "$123.45", "USD 123.45", "1,234.56". Returns None when nothing parses.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        amount_str = str(value).replace("$", "").replace(",", "")
        for currency_code in ["USD", "AUD", "EUR", "GBP", "CAD", "JPY", "CNY"]:
            amount_str = amount_str.replace(currency_code, "")
        amount_str = amount_str.strip()
        return float(amount_str) if amount_str else None
    except (ValueError, TypeError):
        logger.warning("Could not parse amount", value=str(value))
        return None


def repair_decimals(text: str) -> str:
    """Rewrite bare 3-5 digit integers (no decimal point) as cents."""
    return BARE_INTEGER.sub(lambda m: f"{int(m.group(1)) / 100:.2f}", text)


def _multiline_total(text: str) -> list[ExtractedField[float]]:
    candidates = []
    for match in MULTILINE_TOTAL.finditer(text):
        preceding = text[max(0, match.start() - SUBTOTAL_WINDOW):match.start()].upper()
        if "SUBTOTAL" in preceding or preceding.rstrip(" \t-").endswith("SUB"):
            continue
        value = _to_float(match.group(1))
        if value > 0:
            candidates.append(ExtractedField[float](
                value=value, confidence=0.95, method="pattern", source=match.group(0).strip()
            ))
    return candidates


def _priority_totals(text: str) -> list[ExtractedField[float]]:
    candidates = []
    for name, pattern, base, boost in PRIORITY_PATTERNS:
        for match in pattern.finditer(text):
            value = _to_float(match.group(1))
            if value <= 0:
                continue
            context = text[max(0, match.start() - CONTEXT_WINDOW):match.end() + CONTEXT_WINDOW].upper()
            confidence = base + boost
            if "SUBTOTAL" not in context and "SUB TOTAL" not in context:
                confidence += 0.1
            candidates.append(ExtractedField[float](
                value=value, confidence=min(confidence, 0.95), method="pattern", source=match.group(0).strip()
            ))
            logger.debug("Labelled total candidate", label=name, amount=value, confidence=confidence)
    return candidates


def _total_line_scan(text: str) -> list[ExtractedField[float]]:
    lines = text.splitlines()
    for index, line in enumerate(lines):
        if not TOTAL_LABEL_LINE.fullmatch(line):
            continue
        for following in lines[index + 1:index + 1 + LINE_SCAN_LOOKAHEAD]:
            match = BARE_AMOUNT_LINE.fullmatch(following.strip())
            if match and _to_float(match.group(1)) > 0:
                return [ExtractedField[float](
                    value=_to_float(match.group(1)), confidence=0.8, method="pattern", source=following.strip()
                )]
    return []


def _global_scan(text: str) -> list[ExtractedField[float]]:
    if not text:
        return []
    scored = []
    for match in CURRENCY_TOKEN.finditer(text):
        value = _to_float(match.group(2))
        if value <= 0:
            continue
        window = text[max(0, match.start() - CONTEXT_WINDOW):match.end() + CONTEXT_WINDOW].lower()
        score = 0
        if TOTAL_CONTEXT.search(window):
            score += 50
        if match.group(1):
            score += 10
        if match.start() / len(text) >= 0.6:
            score += 20
        if NEGATIVE_CONTEXT.search(window):
            score -= 30
        scored.append((score, value, match.group(0).strip()))

    if not scored:
        return []
    score, value, source = max(scored, key=lambda item: (item[0], item[1]))
    confidence = min(GLOBAL_MAX_CONFIDENCE, max(0.1, score / 100))
    logger.debug("Global amount fallback", amount=value, score=score, candidates=len(scored))
    return [ExtractedField[float](value=value, confidence=confidence, method="inferred", source=source)]


TOTAL_STAGES = [
    ("multiline_total", _multiline_total),
    ("priority_total", _priority_totals),
    ("total_line_scan", _total_line_scan),
    ("global_fallback", _global_scan),
]


def _labelled_amount(pattern: re.Pattern, text: str) -> ExtractedField[float] | None:
    match = pattern.search(text)
    if not match:
        return None
    value = _to_float(match.group(1))
    return ExtractedField[float](value=value, confidence=0.85, method="pattern", source=match.group(0).strip())


def parse_amounts(text: str, decimal_repair: bool = True) -> AmountResult:
    """
    Extract total, subtotal and tax.

    Args:
        text: Raw OCR text
        decimal_repair: Apply the bare-integer-as-cents rewrite first

    Returns:
        AmountResult; fields are None when not found
    """
    working = repair_decimals(text or "") if decimal_repair else (text or "")
    result = AmountResult(text=working)

    for stage_name, stage in TOTAL_STAGES:
        candidates = stage(working)
        if candidates:
            result.total = max(candidates, key=lambda c: (c.confidence, c.value))
            result.stage = stage_name
            break

    result.subtotal = _labelled_amount(SUBTOTAL_LABEL, working)
    result.tax = _labelled_amount(TAX_LABEL, working)

    logger.debug(
        "Amounts parsed",
        stage=result.stage,
        total=result.total.value if result.total else None,
        subtotal=result.subtotal.value if result.subtotal else None,
        tax=result.tax.value if result.tax else None,
    )
    return result
