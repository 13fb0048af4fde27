import pytest

from detailer_crm.services.identity.normalize import (
    canonicalize_multi_value,
    digits_only,
    extract_embedded_phone,
    merge_unique,
    normalize_phone,
)


@pytest.mark.parametrize(
    "raw",
    ["(212) 555-1234", "+1 212 555 1234", "1-212-555-1234", "212.555.1234", 2125551234.0],
)
def test_us_formats_share_one_canonical_identity(raw):
    identity = normalize_phone(raw)

    assert identity.e164 == "+12125551234"
    assert identity.last10 == "2125551234"


@pytest.mark.parametrize(
    "raw",
    ["+1234567890", "(123) 456-7890", "11234567890", "555 123 4567 ext 12", "+44 20 7946 0958", "00 1 212 555 1234"],
)
def test_last10_is_the_trailing_ten_digits(raw):
    identity = normalize_phone(raw)

    assert identity.last10 == digits_only(raw)[-10:]
    if identity.e164 is not None:
        assert identity.e164[-10:] == identity.last10


def test_e164_is_stable_when_renormalized_from_its_digits():
    first = normalize_phone("(212) 555-1234")
    again = normalize_phone(first.e164.lstrip("+"))

    assert again.e164 == first.e164


def test_international_number_keeps_its_country_code():
    identity = normalize_phone("+44 20 7946 0958")

    assert identity.e164 == "+442079460958"
    assert identity.last10 == "2079460958"


@pytest.mark.parametrize("raw", [None, "", "   ", "555-1234", "n/a"])
def test_short_or_empty_phones_have_no_identity(raw):
    identity = normalize_phone(raw)

    assert identity.e164 is None
    assert identity.last10 is None
    assert identity.is_empty


def test_extension_digits_drop_the_e164_form():
    identity = normalize_phone("212-555-1234 x99")

    assert identity.last10 == "2555123499"
    assert identity.e164 is None


def test_canonicalize_multi_value_trims_dedupes_and_keeps_order():
    assert canonicalize_multi_value("Toyota Camry 2020; Honda Civic 2018") == [
        "Toyota Camry 2020",
        "Honda Civic 2018",
    ]
    assert canonicalize_multi_value(" a ; ;b;a; A ") == ["a", "b", "A"]
    assert canonicalize_multi_value("x|y|x", delimiter="|") == ["x", "y"]
    assert canonicalize_multi_value(None) == []
    assert canonicalize_multi_value("") == []


def test_merge_unique_appends_only_new_entries():
    assert merge_unique(["Tesla Model 3", "Ford F-150"], ["Ford F-150", "Kia Soul"]) == [
        "Tesla Model 3",
        "Ford F-150",
        "Kia Soul",
    ]


def test_extract_embedded_phone_reads_labeled_line():
    description = "Customer: Jane Roe\nPhone: (123) 456-7890\nVehicle: 2019 Mazda 3\nServices: Full Detail"

    assert extract_embedded_phone(description) == "(123) 456-7890"
    assert extract_embedded_phone("notes only\nphone:   555 000 1111  \r\n") == "555 000 1111"


def test_extract_embedded_phone_absent():
    assert extract_embedded_phone("Customer: Jane Roe") == ""
    assert extract_embedded_phone(None) == ""
    assert extract_embedded_phone("") == ""
