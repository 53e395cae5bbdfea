import pytest
from receipt_ocr.services.parsing import coerce_amount, parse_amounts
from receipt_ocr.services.parsing.amount_parser import repair_decimals


def test_multiline_total_label():
    result = parse_amounts("SUBTOTAL $45.00\nTAX $3.60\nTOTAL\n$48.60")
    assert result.total.value == 48.60
    assert result.total.confidence == 0.95
    assert result.stage == "multiline_total"
    assert result.subtotal.value == 45.00
    assert result.tax.value == 3.60


def test_multiline_subtotal_label_is_not_a_total():
    result = parse_amounts("SUBTOTAL\n$45.00\nBALANCE DUE $48.60")
    assert result.total.value == 48.60
    assert result.stage == "priority_total"


def test_single_line_total_is_not_confused_with_subtotal():
    result = parse_amounts("SUBTOTAL $45.00\nTAX $3.60\nTOTAL $50.00")
    assert result.total.value == 50.00
    assert result.stage == "priority_total"
    assert result.subtotal.value == 45.00


def test_grand_total_outranks_plain_total():
    text = "ITEMS 3\nTOTAL 20.00\n\n\n\n\n\nGRAND TOTAL 25.00"
    result = parse_amounts(text)
    assert result.total.value == 25.00
    assert result.total.confidence == pytest.approx(0.95)


def test_amount_due_boost():
    result = parse_amounts("WIDGET 10.00\nAMOUNT DUE: $10.70")
    assert result.total.value == 10.70
    assert result.total.confidence == pytest.approx(0.95)


def test_tie_prefers_larger_amount():
    result = parse_amounts("BALANCE DUE 12.00\nBALANCE DUE 15.00")
    assert result.total.value == 15.00


def test_total_line_scan_with_gap_lines():
    text = "TOTAL\nVISA\nAPPROVED 0.00\n$23.45"
    result = parse_amounts(text, decimal_repair=False)
    assert result.total.value == 23.45
    assert result.stage == "total_line_scan"
    assert result.total.confidence == 0.8


def test_global_fallback_prefers_late_currency_amounts():
    text = "COFFEE 3.50\nMUFFIN 2.25\nPAID $5.75"
    result = parse_amounts(text)
    assert result.stage == "global_fallback"
    assert result.total.value == 5.75
    assert result.total.confidence <= 0.7


def test_global_fallback_confidence_is_capped():
    text = "SOMETHING\nthe total owed is $19.99"
    result = parse_amounts(text)
    assert result.total.value == 19.99
    assert result.total.confidence == 0.7


def test_decimal_repair_reads_bare_integers_as_cents():
    assert repair_decimals("TOTAL 4860") == "TOTAL 48.60"
    assert repair_decimals("TOTAL $4860") == "TOTAL $48.60"
    # Dates, times and decimals are left alone
    assert repair_decimals("01/15/2024 12:30 4.99") == "01/15/2024 12:30 4.99"


def test_decimal_repair_can_be_disabled():
    assert parse_amounts("TOTAL 4860").total.value == 48.60
    result = parse_amounts("TOTAL 4860", decimal_repair=False)
    assert result.total is None


def test_sales_tax_with_rate():
    result = parse_amounts("SUBTOTAL 29.42\nSALES TAX 7% 2.06\nTOTAL 31.48")
    assert result.tax.value == 2.06
    assert result.total.value == 31.48


def test_thousands_separator():
    assert parse_amounts("GRAND TOTAL $1,234.56").total.value == 1234.56


def test_no_amounts():
    result = parse_amounts("THANK YOU")
    assert result.total is None
    assert result.stage is None


@pytest.mark.parametrize("raw,expected", [
    ("$123.45", 123.45),
    ("USD 123.45", 123.45),
    ("1,234.56", 1234.56),
    (42, 42.0),
    ("n/a", None),
    (None, None),
])
def test_coerce_amount(raw, expected):
    assert coerce_amount(raw) == expected
