"""
Tests for receipt validation, auto-fix, recovery and confidence boosting.
"""

from datetime import date
import pytest
from receipt_ocr.services.parsing import extract_line_items
from receipt_ocr.services.receipt_types import FieldConfidence, LineItem, ReceiptRecord
from receipt_ocr.services.validation_rules import (
    AmountRule,
    ReceiptValidator,
    ValidationRule,
)

TODAY = date(2024, 6, 1)


def make_record(**overrides) -> ReceiptRecord:
    data = dict(
        vendor="Home Depot",
        total=48.60,
        subtotal=45.00,
        tax=3.60,
        date="2024-05-20",
        confidence=FieldConfidence(vendor=0.9, total=0.8, date=0.85, line_items=0.8, document_type=0.8),
        overall_confidence=0.85,
        extraction_quality="excellent",
    )
    data.update(overrides)
    return ReceiptRecord(**data)


@pytest.fixture
def validator():
    return ReceiptValidator(today=lambda: TODAY)


def test_clean_record_passes(validator):
    outcome = validator.validate(make_record())
    assert outcome.passed
    assert outcome.issues == []
    assert outcome.confidence == 0.98
    assert not outcome.needs_manual_review


def test_total_mismatch_is_fixable_error(validator):
    outcome = validator.validate(make_record(total=50.00))
    assert not outcome.passed
    issue = next(i for i in outcome.issues if i.code == "TOTAL_MISMATCH")
    assert issue.severity == "error"
    assert issue.auto_fixable
    assert issue.suggested_value == 48.60


def test_run_auto_fixes_total(validator):
    record = make_record(total=50.00)
    validator.run(record)
    assert record.total == 48.60
    assert record.validation.passed
    assert any(i.code == "TOTAL_MISMATCH" for i in record.validation.issues)
    assert record.validation.residual_issues == []
    assert record.validation.fixes_applied


def test_auto_fix_is_idempotent(validator):
    record = make_record(total=50.00, date="2099-01-01")
    first = validator.auto_fix(record)
    snapshot = record.model_dump()
    second = validator.auto_fix(record)
    assert first
    assert second == []
    assert record.model_dump() == snapshot


def test_future_date_clamped_to_today(validator):
    record = make_record(date="2099-01-01")
    validator.run(record)
    assert record.date == TODAY.isoformat()
    assert any(i.code == "DATE_IN_FUTURE" for i in record.validation.issues)
    assert record.validation.passed


def test_old_date_is_only_a_warning(validator):
    outcome = validator.validate(make_record(date="2015-01-01"))
    assert outcome.passed
    assert [i.code for i in outcome.issues] == ["DATE_TOO_OLD"]


def test_unparseable_date_is_error(validator):
    outcome = validator.validate(make_record(date="not-a-date"))
    assert not outcome.passed
    assert any(i.code == "DATE_INVALID" for i in outcome.issues)


def test_high_tax_rate_warning(validator):
    outcome = validator.validate(make_record(subtotal=40.00, tax=8.60))
    assert outcome.passed
    assert any(i.code == "TAX_RATE_HIGH" and i.severity == "warning" for i in outcome.issues)


def test_non_positive_total_is_error(validator):
    outcome = validator.validate(make_record(total=0.0, subtotal=None, tax=None))
    assert not outcome.passed


def test_vendor_rules(validator):
    numeric = validator.validate(make_record(vendor="12345"))
    assert any(i.code == "VENDOR_NUMERIC" for i in numeric.issues)
    assert not numeric.passed

    long_name = validator.validate(make_record(vendor="X" * 51))
    assert any(i.code == "VENDOR_LENGTH" for i in long_name.issues)

    odd = validator.validate(make_record(vendor="Joe's Shop @ Main"))
    assert odd.passed
    assert any(i.code == "VENDOR_CHARACTERS" for i in odd.issues)


def test_line_item_math_fixed_with_field_path(validator):
    record = make_record(line_items=[
        LineItem(description="WOOD SCREWS", quantity=2, unit_price=3.98, total_price=9.96, confidence=0.7),
    ])
    validator.run(record)
    issue = next(i for i in record.validation.issues if i.code == "LINE_ITEM_MATH")
    assert issue.field == "line_items[0].total_price"
    assert record.line_items[0].total_price == 7.96
    assert record.validation.passed


def test_math_issues_penalize_confidence(validator):
    outcome = validator.validate(make_record(total=50.00))
    # amount rule 0.5, others 1.0 -> mean 0.875, minus 10% for one math issue
    assert outcome.confidence == pytest.approx(0.875 * 0.9, abs=1e-4)


def test_failing_rule_is_isolated():
    class ExplodingRule(ValidationRule):
        name = "exploding"
        priority = 50

        def validate(self, record, today):
            raise RuntimeError("boom")

    validator = ReceiptValidator(rules=[AmountRule(), ExplodingRule()], today=lambda: TODAY)
    outcome = validator.validate(make_record())
    system_issue = next(i for i in outcome.issues if i.field == "validation_system")
    assert system_issue.severity == "error"
    assert outcome.confidence == pytest.approx((1.0 + 0.3) / 2)


def test_manual_review_flag(validator):
    record = make_record(vendor="1", total=-5.0, date="garbage", subtotal=None, tax=None)
    outcome = validator.validate(record)
    assert outcome.needs_manual_review
    assert any(i.severity == "info" and i.code == "MANUAL_REVIEW" for i in outcome.issues)
    assert outcome.confidence >= 0.05


def test_recover_applies_suggestions(validator):
    record = make_record(total=50.00)
    outcome = validator.validate(record)
    applied = validator.recover(record, outcome.issues)
    assert applied
    assert record.total == 48.60


def test_boost_respects_ceiling_and_skips_zero(validator):
    record = make_record(confidence=FieldConfidence(vendor=0.95, total=0.9, date=0.0))
    validator.boost_confidence(record)
    assert record.confidence.total == 0.98
    assert record.confidence.vendor == 0.98
    assert record.confidence.date == 0.0


def test_good_tier_boost():
    record = make_record(extraction_quality="good", confidence=FieldConfidence(vendor=0.8, total=0.8, date=0.8))
    ReceiptValidator(today=lambda: TODAY).boost_confidence(record)
    assert record.confidence.total == pytest.approx(0.88)
    assert record.confidence.vendor == pytest.approx(0.84)
    assert record.confidence.date == 0.8


def test_poor_tier_not_boosted(validator):
    record = make_record(extraction_quality="poor")
    before = record.confidence.model_copy()
    validator.boost_confidence(record)
    assert record.confidence == before


def test_confidences_never_exceed_ceiling(validator):
    record = make_record(total=50.00, confidence=FieldConfidence(vendor=0.98, total=0.98, date=0.98))
    validator.run(record)
    assert max(record.confidence.model_dump().values()) <= 0.98


def test_derived_unit_price_does_not_rewrite_printed_total(validator):
    items = extract_line_items("12 EGGS LARGE 5.00")
    record = make_record(line_items=items)
    validator.run(record)

    assert record.line_items[0].quantity == 12
    assert record.line_items[0].total_price == 5.00
    assert not any(issue.code == "LINE_ITEM_MATH" for issue in record.validation.issues)
    assert record.validation.fixes_applied == []


def test_clean_record_outcome_confidence_is_capped(validator):
    record = ReceiptRecord(vendor="Target", total=5.00, date="2024-05-01")
    validator.run(record)
    assert 0.0 <= record.validation.confidence <= 0.98
