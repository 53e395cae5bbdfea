"""
Vendor detection from the top of a receipt.

Matching order:
1. Known aliases in the first 3 lines (line order first, then table order)
2. Store slogans anywhere in the first 10 lines
3. Fuzzy alias match (Levenshtein similarity) in the first 3 lines
4. First non-empty line, verbatim, at low confidence
"""

import re
from rapidfuzz.distance import Levenshtein
from loguru import logger
from ..receipt_types import ExtractedField
from .chain import first_result

# Canonical name -> text variants seen on receipts (including common OCR misreads)
VENDOR_ALIASES: dict[str, list[str]] = {
    "Home Depot": [
        "HOME DEPOT", "HOMEDEPOT", "THE HOME DEPOT", "HD",
        "OME DEPOT", "HOME DEPO", "HOME DEP0T", "HOM DEPOT", "HONE DEPOT", "H0ME DEPOT",
    ],
    "Lowes": ["LOWES", "LOWE'S", "LOWE S", "L0WES"],
    "Walmart": ["WALMART", "WAL-MART", "WAL MART", "WALM4RT"],
    "Target": ["TARGET", "TGT", "TARG3T"],
    "Costco": ["COSTCO WHOLESALE", "COSTCO", "C0STCO"],
    "CVS": ["CVS PHARMACY", "CVS"],
    "Walgreens": ["WALGREENS", "WALGREEN"],
}

VENDOR_SLOGANS: dict[str, list[str]] = {
    "Home Depot": ["HOW DOERS GET MORE DONE", "MORE SAVING MORE DOING"],
    "Walmart": ["SAVE MONEY LIVE BETTER", "ALWAYS LOW PRICES"],
    "Target": ["EXPECT MORE PAY LESS"],
}

HEADER_LINES = 3
SLOGAN_LINES = 10
FUZZY_THRESHOLD = 0.8
# Aliases this short only count as whole words ("HD" must not match inside "SHDW")
SHORT_ALIAS_LEN = 3


def normalize_vendor_text(text: str) -> str:
    """Uppercase, drop punctuation except hyphen/apostrophe, collapse whitespace."""
    cleaned = re.sub(r"[^\w\s\-']", " ", text.upper())
    return re.sub(r"\s+", " ", cleaned).strip()


def similarity(a: str, b: str) -> float:
    """
    Levenshtein similarity, 1 - distance / longer length.

    Returns 0.0 without computing the distance when the lengths differ by
    more than 30% of the longer string.
    """
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    if abs(len(a) - len(b)) > 0.3 * longest:
        return 0.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def _variants(line: str) -> list[str]:
    normalized = normalize_vendor_text(line)
    dehyphenated = re.sub(r"\s+", " ", normalized.replace("-", " ")).strip()
    return [normalized] if dehyphenated == normalized else [normalized, dehyphenated]


def _contains_alias(haystack: str, alias: str) -> bool:
    if len(alias) <= SHORT_ALIAS_LEN:
        return re.search(rf"(?<!\w){re.escape(alias)}(?!\w)", haystack) is not None
    return alias in haystack


def _match_alias(lines: list[str]) -> ExtractedField[str] | None:
    for line in lines[:HEADER_LINES]:
        for variant in _variants(line):
            for vendor, aliases in VENDOR_ALIASES.items():
                if any(_contains_alias(variant, alias) for alias in aliases):
                    return ExtractedField[str](value=vendor, confidence=0.9, method="pattern", source=line)
    return None


def _match_slogan(lines: list[str]) -> ExtractedField[str] | None:
    head = normalize_vendor_text(" ".join(lines[:SLOGAN_LINES])).replace("'", "")
    for vendor, slogans in VENDOR_SLOGANS.items():
        for slogan in slogans:
            if slogan in head:
                return ExtractedField[str](value=vendor, confidence=0.85, method="inferred", source=slogan)
    return None


def _match_fuzzy(lines: list[str]) -> ExtractedField[str] | None:
    best: tuple[float, str, str] | None = None
    for line in lines[:HEADER_LINES]:
        tokens = normalize_vendor_text(line).split()
        for vendor, aliases in VENDOR_ALIASES.items():
            for alias in aliases:
                if len(alias) <= SHORT_ALIAS_LEN:
                    continue
                width = len(alias.split())
                for start in range(max(len(tokens) - width + 1, 1)):
                    window = " ".join(tokens[start:start + width])
                    score = similarity(window, alias)
                    if score >= FUZZY_THRESHOLD and (best is None or score > best[0]):
                        best = (score, vendor, line)
    if best is None:
        return None
    score, vendor, line = best
    return ExtractedField[str](value=vendor, confidence=round(0.9 * score, 3), method="fuzzy", source=line)


def _first_line(lines: list[str]) -> ExtractedField[str] | None:
    if not lines:
        return None
    return ExtractedField[str](value=lines[0], confidence=0.3, method="fallback", source=lines[0])


def detect_vendor(text: str, fuzzy: bool = True) -> ExtractedField[str]:
    """
    Detect the vendor name of a receipt.

    Args:
        text: Raw OCR text
        fuzzy: Allow the Levenshtein fuzzy stage

    Returns:
        ExtractedField with the canonical vendor name (or the first line
        verbatim when nothing known matched); value is None for empty text.
    """
    lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
    stages = [_match_alias, _match_slogan]
    if fuzzy:
        stages.append(_match_fuzzy)
    stages.append(_first_line)

    result = first_result(stages, lines)
    if result is None:
        logger.debug("No vendor candidates in empty text")
        return ExtractedField[str](value=None, confidence=0.0, method="fallback")

    logger.debug("Vendor detected", vendor=result.value, method=result.method, confidence=result.confidence)
    return result
