from datetime import date
from receipt_ocr.services.parsing import parse_receipt_date

TODAY = date(2024, 6, 1)


def test_month_name_date():
    result = parse_receipt_date("ACME STORE\nJan 15, 2024\nTOTAL 5.00", today=TODAY)
    assert result.value == "2024-01-15"
    assert result.method == "pattern"
    assert result.confidence == 0.9


def test_day_month_name_order():
    assert parse_receipt_date("ACME\n3 March 2024", today=TODAY).value == "2024-03-03"


def test_slash_date_is_month_first():
    # No locale awareness: 03/04/2024 is always March 4th
    result = parse_receipt_date("ACME\n03/04/2024 10:15", today=TODAY)
    assert result.value == "2024-03-04"
    assert result.confidence == 0.85


def test_year_first_when_first_number_exceeds_31():
    result = parse_receipt_date("ACME\n2024-01-15", today=TODAY)
    assert result.value == "2024-01-15"
    assert result.confidence == 0.95


def test_dotted_date_with_two_digit_year():
    assert parse_receipt_date("ACME\n12.24.23", today=TODAY).value == "2023-12-24"


def test_invalid_calendar_date_is_skipped():
    result = parse_receipt_date("ACME\n02/30/2024\n03/01/2024", today=TODAY)
    assert result.value == "2024-03-01"


def test_only_first_five_lines_are_scanned():
    text = "A\nB\nC\nD\nE\n01/02/2024"
    result = parse_receipt_date(text, today=TODAY)
    assert result.value == TODAY.isoformat()
    assert result.confidence == 0.1
    assert result.method == "fallback"


def test_no_date_falls_back_to_today():
    result = parse_receipt_date("", today=TODAY)
    assert result.value == "2024-06-01"
    assert result.confidence == 0.1
