"""
Domain validation for extracted receipts.

Rules run in priority order (amount, date, vendor, line items). Each returns
a confidence multiplier product plus the issues it found; some rules can also
fix what they flag. ReceiptValidator ties them together:

    validate -> auto_fix (if anything is fixable) -> re-validate
             -> recover (apply remaining suggestions) -> boost_confidence

Validation never raises. A rule that blows up is logged and scored 0.3.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, List, Optional
from loguru import logger
from .receipt_types import MAX_CONFIDENCE, ReceiptRecord, ValidationIssue, ValidationOutcome, clamp_confidence

MATH_TOLERANCE = 0.02
MAX_TOTAL = 100000
MAX_TAX_RATE = 0.15
MAX_DATE_AGE_DAYS = 1825
VENDOR_MIN_LEN = 2
VENDOR_MAX_LEN = 50
ITEM_DESCRIPTION_MIN_LEN = 3
ITEM_MAX_PRICE = 10000

RULE_FAILURE_CONFIDENCE = 0.3
MATH_PENALTY = 0.1
CONFIDENCE_FLOOR = 0.05
MANUAL_REVIEW_CONFIDENCE = 0.6
MANUAL_REVIEW_ERRORS = 2

# Issue codes counted as math-consistency problems
MATH_CODES = {"TOTAL_MISMATCH", "LINE_ITEM_MATH"}

_ITEM_FIELD = re.compile(r"^line_items\[(\d+)\]\.(\w+)$")


@dataclass
class RuleResult:
    confidence: float = 1.0
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not any(issue.severity == "error" for issue in self.issues)


def parse_iso_date(value: Any) -> Optional[date]:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


class ValidationRule:
    """Base rule. Subclasses set name/priority and implement validate()."""

    name = "rule"
    priority = 0

    def validate(self, record: ReceiptRecord, today: date) -> RuleResult:
        raise NotImplementedError

    def auto_fix(self, record: ReceiptRecord, today: date) -> List[str]:
        return []

    def issue(self, **kwargs) -> ValidationIssue:
        return ValidationIssue(rule=self.name, **kwargs)


class AmountRule(ValidationRule):
    name = "amount_validation"
    priority = 100

    @staticmethod
    def _expected_total(record: ReceiptRecord) -> Optional[float]:
        if record.subtotal and record.tax and record.total:
            return round(record.subtotal + record.tax, 2)
        return None

    def validate(self, record: ReceiptRecord, today: date) -> RuleResult:
        result = RuleResult()

        if record.total is not None:
            if record.total <= 0:
                result.issues.append(self.issue(
                    severity="error", field="total", code="TOTAL_NOT_POSITIVE",
                    message="Total amount must be a positive number", current_value=record.total,
                ))
                result.confidence *= 0.3
            elif record.total > MAX_TOTAL:
                result.issues.append(self.issue(
                    severity="warning", field="total", code="TOTAL_TOO_HIGH",
                    message="Total amount seems unusually high", current_value=record.total,
                ))
                result.confidence *= 0.8

        expected = self._expected_total(record)
        if expected is not None and abs(expected - record.total) > MATH_TOLERANCE:
            result.issues.append(self.issue(
                severity="error", field="total", code="TOTAL_MISMATCH",
                message=f"Total ({record.total:.2f}) does not equal subtotal + tax ({expected:.2f})",
                current_value=record.total, suggested_value=expected, auto_fixable=True,
            ))
            result.confidence *= 0.5

        if record.subtotal and record.tax:
            tax_rate = record.tax / record.subtotal
            if tax_rate > MAX_TAX_RATE:
                result.issues.append(self.issue(
                    severity="warning", field="tax", code="TAX_RATE_HIGH",
                    message=f"Tax rate ({tax_rate * 100:.1f}%) seems unusually high", current_value=record.tax,
                ))
                result.confidence *= 0.9

        return result

    def auto_fix(self, record: ReceiptRecord, today: date) -> List[str]:
        expected = self._expected_total(record)
        if expected is None or abs(expected - record.total) <= MATH_TOLERANCE:
            return []
        previous = record.total
        record.total = expected
        record.confidence.total = min((record.confidence.total or 0.8) * 1.1, 0.95)
        logger.info("Auto-fixed total from subtotal and tax", previous=previous, total=expected)
        return [f"total: {previous:.2f} -> {expected:.2f}"]


class DateRule(ValidationRule):
    name = "date_validation"
    priority = 90

    def validate(self, record: ReceiptRecord, today: date) -> RuleResult:
        result = RuleResult()
        if not record.date:
            return result

        parsed = parse_iso_date(record.date)
        if parsed is None:
            result.issues.append(self.issue(
                severity="error", field="date", code="DATE_INVALID",
                message="Invalid date format", current_value=record.date,
            ))
            result.confidence *= 0.3
        elif parsed > today:
            result.issues.append(self.issue(
                severity="warning", field="date", code="DATE_IN_FUTURE",
                message="Date is in the future", current_value=record.date,
                suggested_value=today.isoformat(), auto_fixable=True,
            ))
            result.confidence *= 0.7
        elif (today - parsed).days > MAX_DATE_AGE_DAYS:
            result.issues.append(self.issue(
                severity="warning", field="date", code="DATE_TOO_OLD",
                message="Date is over 5 years old", current_value=record.date,
            ))
            result.confidence *= 0.8
        return result

    def auto_fix(self, record: ReceiptRecord, today: date) -> List[str]:
        parsed = parse_iso_date(record.date)
        if parsed is None or parsed <= today:
            return []
        previous = record.date
        record.date = today.isoformat()
        record.confidence.date = 0.6
        logger.info("Auto-fixed future date", previous=previous, date=record.date)
        return [f"date: {previous} -> {record.date}"]


class VendorRule(ValidationRule):
    name = "vendor_validation"
    priority = 80

    def validate(self, record: ReceiptRecord, today: date) -> RuleResult:
        result = RuleResult()
        vendor = record.vendor
        if not vendor:
            return result

        if not VENDOR_MIN_LEN <= len(vendor) <= VENDOR_MAX_LEN:
            result.issues.append(self.issue(
                severity="error", field="vendor", code="VENDOR_LENGTH",
                message=f"Vendor name length must be {VENDOR_MIN_LEN}-{VENDOR_MAX_LEN} characters",
                current_value=vendor,
            ))
            result.confidence *= 0.3

        if re.search(r"[^\w\s&'\-.]", vendor):
            result.issues.append(self.issue(
                severity="warning", field="vendor", code="VENDOR_CHARACTERS",
                message="Vendor name contains unusual characters", current_value=vendor,
            ))
            result.confidence *= 0.7

        if vendor.isdigit():
            result.issues.append(self.issue(
                severity="error", field="vendor", code="VENDOR_NUMERIC",
                message="Vendor name appears to be numbers only", current_value=vendor,
            ))
            result.confidence *= 0.2
        return result


class LineItemsRule(ValidationRule):
    name = "line_items_validation"
    priority = 70

    def validate(self, record: ReceiptRecord, today: date) -> RuleResult:
        result = RuleResult()
        for index, item in enumerate(record.line_items):
            if len(item.description or "") < ITEM_DESCRIPTION_MIN_LEN:
                result.issues.append(self.issue(
                    severity="warning", field=f"line_items[{index}].description", code="ITEM_DESCRIPTION_SHORT",
                    message="Line item description too short", current_value=item.description,
                ))
                result.confidence *= 0.9

            if item.total_price <= 0 or item.total_price > ITEM_MAX_PRICE:
                result.issues.append(self.issue(
                    severity="warning", field=f"line_items[{index}].total_price", code="ITEM_PRICE_RANGE",
                    message="Line item price seems unrealistic", current_value=item.total_price,
                ))
                result.confidence *= 0.8

            if item.quantity and item.unit_price and item.total_price:
                expected = round(item.quantity * item.unit_price, 2)
                if abs(expected - item.total_price) > MATH_TOLERANCE:
                    result.issues.append(self.issue(
                        severity="error", field=f"line_items[{index}].total_price", code="LINE_ITEM_MATH",
                        message="Line item total does not equal quantity x unit price",
                        current_value=item.total_price, suggested_value=expected, auto_fixable=True,
                    ))
                    result.confidence *= 0.7
        return result

    def auto_fix(self, record: ReceiptRecord, today: date) -> List[str]:
        fixes = []
        for index, item in enumerate(record.line_items):
            if not (item.quantity and item.unit_price and item.total_price):
                continue
            expected = round(item.quantity * item.unit_price, 2)
            if abs(expected - item.total_price) > MATH_TOLERANCE:
                fixes.append(f"line_items[{index}].total_price: {item.total_price:.2f} -> {expected:.2f}")
                item.total_price = expected
        if fixes:
            logger.info("Auto-fixed line item totals", count=len(fixes))
        return fixes


DEFAULT_RULES: List[ValidationRule] = [AmountRule(), DateRule(), VendorRule(), LineItemsRule()]


def _set_field(record: ReceiptRecord, path: str, value: Any) -> bool:
    match = _ITEM_FIELD.match(path)
    if match:
        index, attribute = int(match.group(1)), match.group(2)
        if index < len(record.line_items) and attribute in type(record.line_items[index]).model_fields:
            setattr(record.line_items[index], attribute, value)
            return True
        return False
    if path in ReceiptRecord.model_fields:
        setattr(record, path, value)
        return True
    return False


class ReceiptValidator:
    """
    Runs validation rules against a ReceiptRecord and repairs what it can.

    Args:
        rules: Rules to run (defaults to amount, date, vendor, line items)
        today: Callable returning the reference date (defaults to date.today)
    """

    def __init__(self, rules: Optional[List[ValidationRule]] = None, today: Optional[Callable[[], date]] = None):
        self.rules = sorted(rules if rules is not None else DEFAULT_RULES, key=lambda r: r.priority, reverse=True)
        self._today = today or date.today

    def validate(self, record: ReceiptRecord) -> ValidationOutcome:
        today = self._today()
        issues: List[ValidationIssue] = []
        scores: List[float] = []

        for rule in self.rules:
            try:
                result = rule.validate(record, today)
            except Exception as e:
                logger.warning("Validation rule failed", rule=rule.name, error=str(e))
                issues.append(ValidationIssue(
                    severity="error", field="validation_system", rule=rule.name, code="RULE_FAILED",
                    message=f"Validation rule {rule.name} failed: {e}",
                ))
                scores.append(RULE_FAILURE_CONFIDENCE)
                continue
            issues.extend(result.issues)
            scores.append(result.confidence)
            logger.debug("Validation rule complete", rule=rule.name, issues=len(result.issues), confidence=result.confidence)

        confidence = sum(scores) / len(scores) if scores else 0.0
        math_issues = sum(1 for issue in issues if issue.code in MATH_CODES)
        if math_issues:
            confidence *= max(0.0, 1 - math_issues * MATH_PENALTY)
        confidence = clamp_confidence(max(confidence, CONFIDENCE_FLOOR))

        errors = sum(1 for issue in issues if issue.severity == "error")
        needs_review = confidence < MANUAL_REVIEW_CONFIDENCE or errors > MANUAL_REVIEW_ERRORS
        if needs_review:
            issues.append(ValidationIssue(
                severity="info", field="overall_confidence", code="MANUAL_REVIEW",
                message="Low confidence extraction, manual review recommended", current_value=round(confidence, 4),
            ))

        logger.info(
            "Validation complete",
            errors=errors,
            warnings=sum(1 for issue in issues if issue.severity == "warning"),
            confidence=round(confidence, 4),
            needs_manual_review=needs_review,
        )
        return ValidationOutcome(
            passed=errors == 0,
            confidence=round(confidence, 4),
            needs_manual_review=needs_review,
            issues=issues,
        )

    def auto_fix(self, record: ReceiptRecord) -> List[str]:
        """Apply every rule's fixer in priority order. Running it twice changes nothing."""
        today = self._today()
        fixes: List[str] = []
        for rule in self.rules:
            fixes.extend(rule.auto_fix(record, today))
        return fixes

    def recover(self, record: ReceiptRecord, issues: List[ValidationIssue]) -> List[str]:
        """Apply suggested values from residual issues verbatim."""
        applied = []
        for issue in issues:
            if issue.suggested_value is None:
                continue
            if _set_field(record, issue.field, issue.suggested_value):
                applied.append(f"{issue.field}: recovered -> {issue.suggested_value}")
            else:
                logger.warning("Cannot apply suggestion to unknown field", field=issue.field)
        if applied:
            logger.info("Applied recovery suggestions", count=len(applied))
        return applied

    def boost_confidence(self, record: ReceiptRecord) -> None:
        """Lift vendor/date/total confidences for records extracted at good or excellent quality."""
        confidence = record.confidence
        if record.extraction_quality == "excellent":
            multipliers, ceiling = {"total": 1.2, "vendor": 1.1, "date": 1.1}, MAX_CONFIDENCE
        elif record.extraction_quality == "good":
            multipliers, ceiling = {"total": 1.1, "vendor": 1.05}, 0.95
        else:
            return
        for name, multiplier in multipliers.items():
            current = getattr(confidence, name)
            if current > 0:
                setattr(confidence, name, round(min(current * multiplier, ceiling), 4))

    def run(self, record: ReceiptRecord) -> ReceiptRecord:
        """Validate, fix, recover and boost a record in place; the outcome lands on record.validation."""
        outcome = self.validate(record)
        detected = outcome.issues
        fixes: List[str] = []

        if any(issue.auto_fixable for issue in outcome.issues):
            fixes.extend(self.auto_fix(record))
            outcome = self.validate(record)

        if any(issue.suggested_value is not None for issue in outcome.issues):
            fixes.extend(self.recover(record, outcome.issues))
            outcome = self.validate(record)

        self.boost_confidence(record)
        record.validation = outcome.model_copy(update={"issues": detected, "residual_issues": outcome.issues, "fixes_applied": fixes})
        return record
