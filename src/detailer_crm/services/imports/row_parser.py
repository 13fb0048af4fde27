"""Spreadsheet row parsing into typed ``ImportRow`` records.

Cells arrive as ``str`` from CSV uploads and as ``str``/``int``/``float``/
``bool``/``datetime`` from XLSX uploads. Every column goes through an explicit
coercion function; identity columns reject cell types they cannot represent
instead of guessing, while advisory columns (dates, visits, lifetime value,
flags) degrade to ``None``/zero and report a row warning.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from ...errors import InvalidCellError, MalformedFileError, MissingIdentityError
from ...models.domain import ImportRow
from ..identity.normalize import canonicalize_multi_value, normalize_phone
from .readers import Cell

TEMPLATE_COLUMNS: tuple[str, ...] = (
    "Name",
    "Phone",
    "Email",
    "Address 1",
    "Address 2",
    "City",
    "State",
    "Zip Code",
    "Vehicles",
    "Services",
    "Customer Type",
    "First Visit",
    "Last Visit",
    "Visits",
    "Lifetime Value",
    "Location",
    "Technician",
    "Notes",
    "Pets",
    "Kids",
    "State Valid",
)

# Compact header keys (lowercase, no spaces/underscores/hyphens) accepted per field,
# in priority order. Template names come first, legacy export names after.
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "customername", "fullname", "customer"),
    "phone": ("phone", "phonenumber", "customerphone", "mobile", "mobilephone", "cell", "cellphone"),
    "email": ("email", "emailaddress", "customeremail"),
    "address1": ("address1", "addressline1", "street", "streetaddress"),
    "address2": ("address2", "addressline2", "apt", "unit", "suite"),
    "address": ("address", "fulladdress"),
    "city": ("city", "town"),
    "state": ("state", "province"),
    "zip": ("zipcode", "zip", "postalcode", "postcode"),
    "vehicles": ("vehicles",),
    "vehicle": ("vehicle",),
    "vehicle_year": ("vehicleyear", "year"),
    "vehicle_make": ("vehiclemake", "make", "manufacturer", "brand"),
    "vehicle_model": ("vehiclemodel", "model"),
    "services": ("services", "service"),
    "customer_type": ("customertype", "type"),
    "first_visit": ("firstvisit", "firstvisitdate"),
    "last_visit": ("lastvisit", "lastvisitdate"),
    "visits": ("visits", "visitcount", "totalvisits"),
    "lifetime_value": ("lifetimevalue", "ltv", "totalspent"),
    "location": ("location", "locationtype"),
    "technician": ("technician", "tech", "assignedtechnician"),
    "notes": ("notes", "note", "customernotes"),
    "pets": ("pets", "haspets"),
    "kids": ("kids", "haskids"),
    "state_valid": ("statevalid", "addressvalid"),
}

DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y/%m/%d",
    "%m-%d-%Y",
    "%m-%d-%y",
    "%m.%d.%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M %p",
)

_TRUE_VALUES = {"true", "yes", "y", "1", "t", "x"}
_FALSE_VALUES = {"false", "no", "n", "0", "f"}
_HEADER_NOISE = re.compile(r"[\s_\-]+")
_CURRENCY_NOISE = re.compile(r"[$,\s]")


def compact_header(label: str) -> str:
    return _HEADER_NOISE.sub("", label.strip().lower())


@dataclass(slots=True)
class ColumnMap:
    """Field name -> column index, resolved from the header row."""

    indices: dict[str, int]
    headers: list[str] = field(default_factory=list)

    @classmethod
    def from_headers(cls, headers: Sequence[str]) -> "ColumnMap":
        compact = {}
        for index, label in enumerate(headers):
            compact.setdefault(compact_header(label), index)

        indices: dict[str, int] = {}
        for field_name, aliases in COLUMN_ALIASES.items():
            for alias in aliases:
                if alias in compact:
                    indices[field_name] = compact[alias]
                    break

        if "phone" not in indices:
            raise MalformedFileError('Phone column not found. Please ensure your file has a "Phone" column.')
        return cls(indices=indices, headers=list(headers))

    def has(self, field_name: str) -> bool:
        return field_name in self.indices

    def cell(self, cells: Sequence[Cell], field_name: str) -> Cell:
        index = self.indices.get(field_name)
        if index is None or index >= len(cells):
            return None
        return cells[index]


@dataclass(slots=True)
class ParsedRow:
    row: ImportRow
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Cell coercion
# ---------------------------------------------------------------------------

def _number_text(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def coerce_text(cell: Cell, column: str, *, strict: bool = False) -> Optional[str]:
    """Render a cell as trimmed text; ``strict`` columns refuse booleans and dates."""
    if cell is None:
        return None
    if isinstance(cell, bool):
        if strict:
            raise InvalidCellError(f"{column} cannot be a true/false value.")
        return "TRUE" if cell else "FALSE"
    if isinstance(cell, (datetime, date)):
        if strict:
            raise InvalidCellError(f"{column} cannot be a date value.")
        return cell.isoformat()
    if isinstance(cell, (int, float)):
        return _number_text(cell)
    text = str(cell).strip()
    return text or None


def coerce_decimal(cell: Cell) -> tuple[Decimal, bool]:
    """Parse a currency-formatted cell. Returns ``(value, ok)``; failures become zero."""
    if cell is None or isinstance(cell, bool):
        return Decimal("0"), cell is None
    if isinstance(cell, (int, float)):
        value = Decimal(str(cell))
    else:
        cleaned = _CURRENCY_NOISE.sub("", str(cell))
        if not cleaned:
            return Decimal("0"), True
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            return Decimal("0"), False
    if not value.is_finite():
        return Decimal("0"), False
    return value, True


def coerce_int(cell: Cell) -> tuple[Optional[int], bool]:
    if cell is None:
        return None, True
    if isinstance(cell, bool) or isinstance(cell, (datetime, date)):
        return None, False
    if isinstance(cell, int):
        value = cell
    elif isinstance(cell, float):
        if not cell.is_integer():
            return None, False
        value = int(cell)
    else:
        text = str(cell).strip().replace(",", "")
        if not text:
            return None, True
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None, False
        if not number.is_finite() or number != number.to_integral_value():
            return None, False
        value = int(number)
    if value < 0:
        return None, False
    return value, True


def parse_date(cell: Cell) -> tuple[Optional[date], bool]:
    if cell is None:
        return None, True
    if isinstance(cell, datetime):
        return cell.date(), True
    if isinstance(cell, date):
        return cell, True
    if isinstance(cell, (bool, int, float)):
        return None, False
    text = str(cell).strip()
    if not text:
        return None, True
    try:
        return datetime.fromisoformat(text).date(), True
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date(), True
        except ValueError:
            continue
    return None, False


def coerce_bool(cell: Cell) -> tuple[Optional[bool], bool]:
    if cell is None:
        return None, True
    if isinstance(cell, bool):
        return cell, True
    if isinstance(cell, (int, float)):
        if cell in (0, 1):
            return bool(cell), True
        return None, False
    if isinstance(cell, (datetime, date)):
        return None, False
    text = str(cell).strip().lower()
    if not text:
        return None, True
    if text in _TRUE_VALUES:
        return True, True
    if text in _FALSE_VALUES:
        return False, True
    return None, False


def row_fingerprint(cells: Sequence[Cell]) -> str:
    payload = json.dumps([None if cell is None else str(cell) for cell in cells], ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Composite fields
# ---------------------------------------------------------------------------

def build_address(cells: Sequence[Cell], columns: ColumnMap) -> Optional[str]:
    """Join split address columns into ``"street, city, ST 01234"``."""
    if columns.has("address1"):
        street_1 = coerce_text(columns.cell(cells, "address1"), "Address 1") or ""
        street_2 = coerce_text(columns.cell(cells, "address2"), "Address 2") or ""
        city = coerce_text(columns.cell(cells, "city"), "City") or ""
        state = coerce_text(columns.cell(cells, "state"), "State") or ""
        zip_code = coerce_text(columns.cell(cells, "zip"), "Zip Code") or ""
        if zip_code.isdigit() and len(zip_code) < 5:
            # spreadsheets drop leading zeros from zip codes
            zip_code = zip_code.zfill(5)

        if not (street_1 or city or state or zip_code):
            return None
        street = ", ".join(part for part in (street_1, street_2) if part)
        state_zip = " ".join(part for part in (state, zip_code) if part)
        city_line = ", ".join(part for part in (city, state_zip) if part)
        return ", ".join(part for part in (street, city_line) if part) or None

    if columns.has("address"):
        return coerce_text(columns.cell(cells, "address"), "Address")
    return None


def build_vehicles(cells: Sequence[Cell], columns: ColumnMap) -> list[str]:
    if columns.has("vehicles"):
        return canonicalize_multi_value(coerce_text(columns.cell(cells, "vehicles"), "Vehicles"))

    vehicles = canonicalize_multi_value(coerce_text(columns.cell(cells, "vehicle"), "Vehicle"))
    if vehicles:
        return vehicles

    model = coerce_text(columns.cell(cells, "vehicle_model"), "Model")
    if not model:
        return []
    year = coerce_text(columns.cell(cells, "vehicle_year"), "Year")
    make = coerce_text(columns.cell(cells, "vehicle_make"), "Make")
    return [" ".join(part for part in (year, make, model) if part)]


# ---------------------------------------------------------------------------
# Row entry point
# ---------------------------------------------------------------------------

def parse_row(cells: Sequence[Cell], columns: ColumnMap, row_number: int) -> ParsedRow:
    """Parse one data row. Raises ``RowError`` subclasses for rejected rows."""
    raw_phone = coerce_text(columns.cell(cells, "phone"), "Phone", strict=True)
    if not raw_phone:
        raise MissingIdentityError("Phone number is required")
    identity = normalize_phone(raw_phone)
    if identity.last10 is None:
        raise MissingIdentityError(f"Phone number '{raw_phone}' must contain at least 10 digits")

    warnings: list[str] = []

    lifetime_value, ok = coerce_decimal(columns.cell(cells, "lifetime_value"))
    if not ok:
        warnings.append(f"Lifetime value '{columns.cell(cells, 'lifetime_value')}' is not a number; stored as 0")

    visit_count, ok = coerce_int(columns.cell(cells, "visits"))
    if not ok:
        warnings.append(f"Visits '{columns.cell(cells, 'visits')}' is not a whole number; ignored")

    first_visit, ok = parse_date(columns.cell(cells, "first_visit"))
    if not ok:
        warnings.append(f"First visit '{columns.cell(cells, 'first_visit')}' is not a recognized date; ignored")
    last_visit, ok = parse_date(columns.cell(cells, "last_visit"))
    if not ok:
        warnings.append(f"Last visit '{columns.cell(cells, 'last_visit')}' is not a recognized date; ignored")

    flags: dict[str, Optional[bool]] = {}
    for field_name, label in (("pets", "Pets"), ("kids", "Kids"), ("state_valid", "State Valid")):
        value, ok = coerce_bool(columns.cell(cells, field_name))
        if not ok:
            warnings.append(f"{label} '{columns.cell(cells, field_name)}' is not a yes/no value; ignored")
        flags[field_name] = value

    email = coerce_text(columns.cell(cells, "email"), "Email", strict=True)

    row = ImportRow(
        row_number=row_number,
        raw_phone=raw_phone,
        identity=identity,
        fingerprint=row_fingerprint(cells),
        name=coerce_text(columns.cell(cells, "name"), "Name", strict=True),
        email=email.lower() if email else None,
        address=build_address(cells, columns),
        vehicles=build_vehicles(cells, columns),
        services=canonicalize_multi_value(coerce_text(columns.cell(cells, "services"), "Services")),
        customer_type=coerce_text(columns.cell(cells, "customer_type"), "Customer Type"),
        first_visit=first_visit,
        last_visit=last_visit,
        visit_count=visit_count,
        lifetime_value=lifetime_value,
        location=coerce_text(columns.cell(cells, "location"), "Location"),
        technician=coerce_text(columns.cell(cells, "technician"), "Technician"),
        notes=coerce_text(columns.cell(cells, "notes"), "Notes"),
        has_pets=flags["pets"],
        has_kids=flags["kids"],
        state_valid=flags["state_valid"],
    )
    return ParsedRow(row=row, warnings=warnings)
