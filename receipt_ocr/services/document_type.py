"""
Document type classification by payment-obligation cues.

Each cue is a group of phrases with a weight. Positive weights point to an
invoice (payment still owed), negative weights to a receipt (already paid).
Statement cues are scored separately and win when they clearly dominate.
"""

from loguru import logger
from .receipt_types import DocumentType

# (any of these phrases, weight); each cue counts at most once
OBLIGATION_CUES: list[tuple[tuple[str, ...], int]] = [
    (("amount due", "total due"), 3),
    (("please remit", "please pay", "payment required"), 3),
    (("due date", "payment due"), 4),
    (("net 30", "net 60", "due upon receipt", "payment terms"), 4),
    (("remit to", "remit payment", "make payment to"), 3),
    (("bank details", "bsb", "account number", "eft details"), 3),
    (("wire transfer", "bpay", "direct deposit"), 3),
    (("invoice number", "invoice #", "invoice no", "invoice id"), 2),
]

CONFIRMATION_CUES: list[tuple[tuple[str, ...], int]] = [
    (("thank you for your payment", "payment received"), -3),
    (("amount paid", "paid on", "date paid"), -3),
    (("thank you for shopping", "thanks for shopping", "we appreciate your business"), -3),
    (("change due", "cash tendered", "tendered"), -3),
    (("$0.00", "balance due 0", "no payment required"), -4),
    (("direct debit", "auto-recharge", "autopay"), -3),
    (("paypal", "stripe", "square"), -3),
    (("receipt number", "receipt #", "receipt no", "tax receipt"), -2),
    (("cashier", "register", "return policy", "returns policy"), -2),
]

STATEMENT_CUES: list[tuple[tuple[str, ...], int]] = [
    (("statement period", "statement date", "billing period"), 4),
    (("previous balance", "opening balance", "closing balance"), 4),
    (("account summary", "statement of account"), 3),
    (("minimum payment", "new balance"), 3),
]

CARD_BRANDS = ("visa", "mastercard", "amex", "discover", "debit")
CARD_MASKS = ("****", "xxxx", "ending")

CLASSIFIED_CONFIDENCE = 0.8
UNKNOWN_CONFIDENCE = 0.3


def _score(t: str, cues: list[tuple[tuple[str, ...], int]]) -> int:
    return sum(weight for phrases, weight in cues if any(phrase in t for phrase in phrases))


def obligation_score(text: str) -> int:
    """Positive means payment is owed, negative means it has been made."""
    t = text.lower()
    score = _score(t, OBLIGATION_CUES) + _score(t, CONFIRMATION_CUES)

    if "$0.00" in t:
        # A zero balance cancels the "amount due" style obligation cues
        score -= 3 if ("amount due" in t or "total due" in t) else 0

    if any(brand in t for brand in CARD_BRANDS) and any(mask in t for mask in CARD_MASKS):
        score -= 3

    if "invoice" in t and "receipt" not in t:
        score += 2
    if "receipt" in t and "invoice" not in t:
        score -= 2
    return score


def classify_document_type(text: str) -> tuple[DocumentType, float]:
    """
    Classify a document as receipt, invoice, statement or unknown.

    Args:
        text: Full OCR text

    Returns:
        (document_type, confidence); unknown comes back at 0.3
    """
    if not text:
        return "unknown", UNKNOWN_CONFIDENCE

    t = text.lower()
    statement = _score(t, STATEMENT_CUES)
    obligation = obligation_score(text)

    logger.debug("Document type scoring", obligation=obligation, statement=statement)

    if statement >= 6 and statement > abs(obligation):
        return "statement", CLASSIFIED_CONFIDENCE
    if obligation > 2:
        return "invoice", CLASSIFIED_CONFIDENCE
    if obligation < -2:
        return "receipt", CLASSIFIED_CONFIDENCE
    return "unknown", UNKNOWN_CONFIDENCE
