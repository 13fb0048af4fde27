"""Phone identity and multi-value normalization.

All functions here are pure: no I/O, no settings lookups beyond the default
region argument.
"""

from __future__ import annotations

import re
from typing import Any, Optional

import phonenumbers

from ...config import settings
from ...models.domain import CanonicalIdentity

_NON_DIGIT = re.compile(r"\D")
_PHONE_LINE = re.compile(r"^[ \t]*phone[ \t]*:[ \t]*([^\r\n]*)", re.IGNORECASE | re.MULTILINE)


def _as_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, float) and raw.is_integer():
        # XLSX stores bare phone numbers as floats
        return str(int(raw))
    return str(raw).strip()


def digits_only(raw: Any) -> str:
    return _NON_DIGIT.sub("", _as_text(raw))


def _to_e164(text: str, region: str) -> Optional[str]:
    try:
        parsed = phonenumbers.parse(text, region)
    except phonenumbers.NumberParseException:
        return None
    reason = phonenumbers.is_possible_number_with_reason(parsed)
    if reason != phonenumbers.ValidationResult.IS_POSSIBLE:
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def normalize_phone(raw: Any, region: Optional[str] = None) -> CanonicalIdentity:
    """Turn an arbitrary phone string into its canonical ``{e164, last10}`` pair."""
    text = _as_text(raw)
    digits = digits_only(text)
    last10 = digits[-10:] if len(digits) >= 10 else None
    if last10 is None:
        return CanonicalIdentity(e164=None, last10=None)

    e164 = _to_e164(text, region or settings.default_phone_region)
    if e164 is not None and e164[-10:] != last10:
        # Extensions or trailing junk digits: keep the raw-digit fallback only.
        e164 = None
    return CanonicalIdentity(e164=e164, last10=last10)


def canonicalize_multi_value(raw: Any, delimiter: str = ";") -> list[str]:
    """Split a delimiter-joined cell into trimmed, ordered, exact-unique values."""
    text = _as_text(raw)
    if not text:
        return []
    values: list[str] = []
    seen: set[str] = set()
    for part in text.split(delimiter):
        item = part.strip()
        if not item or item in seen:
            continue
        seen.add(item)
        values.append(item)
    return values


def merge_unique(existing: list[str], incoming: list[str]) -> list[str]:
    """Ordered union: existing entries first, new entries appended."""
    merged = list(existing)
    seen = set(existing)
    for item in incoming:
        if item not in seen:
            seen.add(item)
            merged.append(item)
    return merged


def extract_embedded_phone(free_text: Optional[str]) -> str:
    """Return the value of the first ``Phone:`` line in a description blob."""
    if not free_text:
        return ""
    match = _PHONE_LINE.search(free_text)
    return match.group(1).strip() if match else ""
