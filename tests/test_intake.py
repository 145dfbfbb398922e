import pytest

from tradecheck.intake import IntakeError, clean_value, clean_weight, normalize_row, parse_shipments_csv


def test_parse_csv_with_header_aliases_and_cleanup():
    content = (
        "Name,Value,Weight,Country,ID,HS_Code\n"
        'Lithium Batteries,"$5,000",10 kg,US,42,8507.60\n'
        ",100,1,US,7\n"
        "Tea,12.50,3lbs,GB,,\n"
    ).encode("utf-8")
    shipments = parse_shipments_csv(content)

    assert len(shipments) == 2
    first, second = shipments
    assert first.item_name == "Lithium Batteries"
    assert first.declared_value == 5000.0
    assert first.weight == 10.0
    assert first.destination_country == "US"
    assert first.item_id == "42"
    assert first.commodity_code == "8507.60"
    assert second.item_id is None
    assert second.weight == 3.0


def test_canonical_headers_win_over_aliases():
    row = normalize_row({"item_name": "Desk", "name": "ignored", "destination_country": "FR", "country": "DE"})
    assert row["item_name"] == "Desk"
    assert row["destination_country"] == "FR"


def test_utf8_bom_is_tolerated():
    content = "\ufeffitem_name,destination_country\nChair,US\n".encode("utf-8")
    assert parse_shipments_csv(content)[0].item_name == "Chair"


def test_non_numeric_value_is_kept_as_missing():
    shipments = parse_shipments_csv(b"item_name,declared_value,destination_country\nLamp,TBD,US\n")
    assert shipments[0].declared_value is None


def test_headerless_upload_is_rejected():
    with pytest.raises(IntakeError):
        parse_shipments_csv(b"")


def test_non_utf8_upload_is_rejected():
    with pytest.raises(IntakeError):
        parse_shipments_csv("item_name\nCafé\n".encode("utf-16"))


def test_value_and_weight_cleaners():
    assert clean_value("$1,234.50") == "1234.50"
    assert clean_value("$") is None
    assert clean_weight("12 KGS") == "12"
    assert clean_weight("4.5lb") == "4.5"
