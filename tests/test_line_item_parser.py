import pytest
from receipt_ocr.services.parsing import extract_line_items
from receipt_ocr.services.parsing.line_item_parser import clean_description, extract_price


def test_simple_items_and_deny_list():
    text = "\n".join([
        "THE HOME DEPOT",
        "06/15/2024 14:32",
        "HAMMER 16OZ                 12.99",
        "PAINT ROLLER 9IN             8.47",
        "SUBTOTAL                    21.46",
        "SALES TAX 7%                 1.50",
        "TOTAL                       22.96",
        "VISA ****1234               22.96",
        "012345678901",
        "THANK YOU FOR SHOPPING 1.00",
    ])
    items = extract_line_items(text)
    descriptions = {item.description for item in items}
    assert descriptions == {"HAMMER 16OZ", "PAINT ROLLER 9IN"}
    hammer = next(item for item in items if item.description == "HAMMER 16OZ")
    assert hammer.total_price == 12.99
    assert hammer.quantity is None


def test_quantity_at_unit_price():
    items = extract_line_items("WOOD SCREWS 2 @ 3.98   7.96")
    assert len(items) == 1
    item = items[0]
    assert item.description == "WOOD SCREWS"
    assert item.quantity == 2
    assert item.unit_price == 3.98
    assert item.total_price == 7.96
    assert item.confidence == 0.95


def test_quantity_times_unit_fills_total():
    price = extract_price("3 x 1.25 LIMES")
    assert price.quantity == 3
    assert price.unit_price == 1.25
    assert price.total_price == 3.75
    assert price.derived


def test_leading_quantity_fills_unit_price():
    price = extract_price("2 ORANGE JUICE 7.00")
    assert price.quantity == 2
    assert price.total_price == 7.00
    assert price.unit_price == 3.50


def test_unit_marker():
    price = extract_price("BANANAS 0.59/LB 1.18")
    assert price.unit_price == 0.59
    assert price.total_price == 1.18


def test_inconsistent_math_lowers_confidence():
    consistent = extract_line_items("WOOD SCREWS 2 @ 3.98 7.96")[0]
    inconsistent = extract_line_items("WOOD SCREWS 2 @ 3.98 9.96")[0]
    assert inconsistent.confidence < consistent.confidence


def test_generic_item_description_penalized():
    named = extract_line_items("GARDEN HOSE 19.99")[0]
    generic = extract_line_items("ITEM HOSE 19.99")[0]
    assert generic.confidence == pytest.approx(named.confidence - 0.2)


def test_price_outliers_dropped():
    lines = [f"WIDGET {name}{name} 1.00" for name in "ABCDEFGHIJ"] + ["GOLD BAR 500.00"]
    items = extract_line_items("\n".join(lines))
    assert len(items) == 10
    assert all(item.total_price < 500 for item in items)


def test_near_duplicates_removed():
    text = "PAINT ROLLER 9IN 8.47\nPAINT ROLLER 8.47\nDROP CLOTH 4.99"
    items = extract_line_items(text)
    descriptions = [item.description for item in items]
    assert descriptions.count("PAINT ROLLER 9IN") + descriptions.count("PAINT ROLLER") == 1
    assert "DROP CLOTH" in descriptions


def test_top_twenty_by_confidence():
    text = "\n".join(f"PRODUCT{chr(65 + i)} {chr(65 + i) * 3} {i + 1}.00" for i in range(25))
    items = extract_line_items(text)
    assert len(items) == 20
    confidences = [item.confidence for item in items]
    assert confidences == sorted(confidences, reverse=True)


@pytest.mark.parametrize("line,expected", [
    ("SKU 123456 DRILL BIT 4.99", "DRILL BIT"),
    ("PAINT 1GAL 092345678 24.98 N", "PAINT 1GAL"),
    ("12.99", None),
    ("X 1.00", None),
])
def test_clean_description(line, expected):
    assert clean_description(line) == expected


def test_derived_unit_price_keeps_sub_cent_precision():
    price = extract_price("12 EGGS LARGE 5.00")
    assert price.quantity == 12
    assert price.total_price == 5.00
    assert price.unit_price == pytest.approx(0.4167)
    assert abs(price.quantity * price.unit_price - price.total_price) <= 0.02
