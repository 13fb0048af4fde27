from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook

from detailer_crm.errors import InvalidCellError, MalformedFileError, MissingIdentityError, UnsupportedFormatError
from detailer_crm.services.imports.readers import read_table
from detailer_crm.services.imports.row_parser import (
    TEMPLATE_COLUMNS,
    ColumnMap,
    coerce_bool,
    coerce_decimal,
    parse_date,
    parse_row,
)


def _template_row(**values) -> list:
    return [values.get(column, "") for column in TEMPLATE_COLUMNS]


def _parse(**values):
    columns = ColumnMap.from_headers(list(TEMPLATE_COLUMNS))
    return parse_row(_template_row(**values), columns, row_number=2)


def test_parse_full_template_row():
    parsed = _parse(
        **{
            "Name": " John Doe ",
            "Phone": "+1234567890",
            "Email": "John@Example.COM",
            "Address 1": "12 Main St",
            "Address 2": "Apt 4",
            "City": "Boston",
            "State": "MA",
            "Zip Code": "2101",
            "Vehicles": "Toyota Camry 2020; Honda Civic 2018",
            "Services": "Full Detail; Ceramic Coating",
            "Customer Type": "returning",
            "First Visit": "01/15/2023",
            "Last Visit": "2024-03-02",
            "Visits": "7",
            "Lifetime Value": "$1,272.00",
            "Location": "Home",
            "Technician": "Sam",
            "Notes": "Gate code 1234",
            "Pets": "Yes",
            "Kids": "no",
            "State Valid": "TRUE",
        }
    )
    row = parsed.row

    assert parsed.warnings == []
    assert row.row_number == 2
    assert row.name == "John Doe"
    assert row.identity.last10 == "1234567890"
    assert row.email == "john@example.com"
    assert row.address == "12 Main St, Apt 4, Boston, MA 02101"
    assert row.vehicles == ["Toyota Camry 2020", "Honda Civic 2018"]
    assert row.services == ["Full Detail", "Ceramic Coating"]
    assert row.customer_type == "returning"
    assert row.first_visit == date(2023, 1, 15)
    assert row.last_visit == date(2024, 3, 2)
    assert row.visit_count == 7
    assert row.lifetime_value == Decimal("1272.00")
    assert row.location == "Home"
    assert row.technician == "Sam"
    assert row.notes == "Gate code 1234"
    assert (row.has_pets, row.has_kids, row.state_valid) == (True, False, True)


def test_missing_phone_is_rejected():
    with pytest.raises(MissingIdentityError) as excinfo:
        _parse(Name="No Phone")
    assert excinfo.value.kind == "MissingIdentity"


def test_phone_without_ten_digits_is_rejected():
    with pytest.raises(MissingIdentityError):
        _parse(Name="Short", Phone="555-1234")


def test_boolean_phone_cell_is_rejected_not_guessed():
    columns = ColumnMap.from_headers(["Name", "Phone"])
    with pytest.raises(InvalidCellError):
        parse_row(["Jane", True], columns, row_number=3)


def test_advisory_columns_degrade_with_warnings():
    parsed = _parse(
        Phone="2125551234",
        **{
            "Lifetime Value": "about forty",
            "Visits": "several",
            "First Visit": "sometime",
            "Pets": "maybe",
        },
    )

    assert parsed.row.lifetime_value == Decimal("0")
    assert parsed.row.visit_count is None
    assert parsed.row.first_visit is None
    assert parsed.row.has_pets is None
    assert len(parsed.warnings) == 4


def test_headers_are_matched_regardless_of_order_and_case():
    columns = ColumnMap.from_headers(["  VEHICLES ", "notes", "phone_number", "Customer Name"])
    parsed = parse_row(["Kia Soul", "hi", "212 555 1234", "Ann"], columns, row_number=2)

    assert parsed.row.name == "Ann"
    assert parsed.row.vehicles == ["Kia Soul"]
    assert parsed.row.notes == "hi"


def test_missing_phone_column_is_fatal():
    with pytest.raises(MalformedFileError):
        ColumnMap.from_headers(["Name", "Email"])


def test_legacy_vehicle_and_address_columns():
    columns = ColumnMap.from_headers(["Phone", "Address", "Vehicle Year", "Make", "Model"])
    parsed = parse_row(["2125551234", "1 Elm St, Austin, TX", 2021, "Ford", "Bronco"], columns, row_number=2)

    assert parsed.row.address == "1 Elm St, Austin, TX"
    assert parsed.row.vehicles == ["2021 Ford Bronco"]


@pytest.mark.parametrize(
    "cell, expected",
    [
        ("$1,272.00", Decimal("1272.00")),
        (" 45 ", Decimal("45")),
        (19.5, Decimal("19.5")),
        ("", Decimal("0")),
        (None, Decimal("0")),
        ("NaN", Decimal("0")),
    ],
)
def test_coerce_decimal(cell, expected):
    value, _ = coerce_decimal(cell)
    assert value == expected


@pytest.mark.parametrize(
    "cell, expected",
    [
        ("2024-02-29", date(2024, 2, 29)),
        ("02/29/2024", date(2024, 2, 29)),
        ("2/3/24", date(2024, 2, 3)),
        ("Mar 5, 2023", date(2023, 3, 5)),
        (datetime(2022, 7, 1, 9, 30), date(2022, 7, 1)),
        ("not a date", None),
        ("", None),
    ],
)
def test_parse_date_formats(cell, expected):
    value, _ = parse_date(cell)
    assert value == expected


@pytest.mark.parametrize(
    "cell, expected",
    [("TRUE", True), ("Yes", True), ("1", True), (1, True), ("false", False), ("No", False), (False, False), ("", None)],
)
def test_coerce_bool(cell, expected):
    value, ok = coerce_bool(cell)
    assert ok
    assert value is expected


def test_row_fingerprint_tracks_raw_cells():
    first = _parse(Phone="2125551234", Notes="Gate code")
    same = _parse(Phone="2125551234", Notes="Gate code")
    changed = _parse(Phone="2125551234", Notes="Gate code", Visits="2")

    assert first.row.fingerprint == same.row.fingerprint
    assert first.row.fingerprint != changed.row.fingerprint


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------

def test_read_csv_skips_blank_rows_and_keeps_row_numbers():
    content = "﻿Name,Phone\nAnn,2125551234\n,\nBob,2125550000\n".encode("utf-8")

    table = read_table(content, "customers.csv")

    assert table.headers == ["Name", "Phone"]
    assert [number for number, _ in table.rows] == [2, 4]
    assert table.total == 2


def test_read_csv_handles_quoted_commas():
    content = b'Name,Phone,Vehicles\n"Doe, John",2125551234,"Kia Soul; Ford F-150"\n'

    table = read_table(content, "customers.CSV")

    assert table.rows[0][1] == ["Doe, John", "2125551234", "Kia Soul; Ford F-150"]


def test_read_xlsx_preserves_cell_types():
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Name", "Phone", "Last Visit", "Pets"])
    sheet.append(["Ann", 2125551234, datetime(2024, 5, 1), True])
    buffer = BytesIO()
    workbook.save(buffer)

    table = read_table(buffer.getvalue(), "export.xlsx")
    columns = ColumnMap.from_headers(table.headers)
    number, cells = table.rows[0]
    parsed = parse_row(cells, columns, number)

    assert number == 2
    assert parsed.row.identity.last10 == "2125551234"
    assert parsed.row.last_visit == date(2024, 5, 1)
    assert parsed.row.has_pets is True


@pytest.mark.parametrize(
    "content, filename",
    [
        (b"not a zip archive", "broken.xlsx"),
        (b"\xff\xfe\xfa binary", "broken.csv"),
        (b"", "empty.csv"),
        (b"Name,Phone\n", "header_only.csv"),
    ],
)
def test_unreadable_files_are_malformed(content, filename):
    with pytest.raises(MalformedFileError):
        read_table(content, filename)


def test_unsupported_extension():
    with pytest.raises(UnsupportedFormatError):
        read_table(b"Name,Phone\n", "customers.xls")
