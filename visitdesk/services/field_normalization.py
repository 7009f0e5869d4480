"""Canonical field keys for visitor submissions.

Every intake path goes through these helpers so "Full Name", "full name" and
"full_name" always land on the same logical field.
"""

import re
from dataclasses import dataclass
from typing import Any, Mapping

_WHITESPACE = re.compile(r"\s+")

EMAIL_KEYS = ("email",)
PHONE_KEYS = ("phone_number", "phone")
FULL_NAME_KEYS = ("full_name", "name")
ID_NUMBER_KEYS = ("id_number",)


def normalize_field_key(label: str) -> str:
    return _WHITESPACE.sub("_", str(label).strip().lower())


def normalize_form_data(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Re-key a submission with canonical keys, preserving order.

    When two labels collapse to the same key the first one submitted wins.
    """
    normalized: dict[str, Any] = {}
    for key, value in raw.items():
        canonical = normalize_field_key(key)
        if canonical and canonical not in normalized:
            normalized[canonical] = value
    return normalized


def merge_form_data(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Stored shape of form_data: the submission verbatim, then canonical keys it lacked."""
    merged = dict(raw)
    for key, value in normalize_form_data(raw).items():
        merged.setdefault(key, value)
    return merged


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _first(normalized: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = _clean(normalized.get(key))
        if value:
            return value
    return None


@dataclass(frozen=True)
class VisitorFields:
    email: str | None = None
    phone: str | None = None
    full_name: str | None = None
    id_number: str | None = None

    @property
    def has_matching_key(self) -> bool:
        return bool(self.email or self.phone)

    @property
    def has_profile_data(self) -> bool:
        return bool(self.full_name or self.email or self.id_number)

    @property
    def can_provision(self) -> bool:
        # An id number identifies the person on its own; a bare name never does.
        return bool(self.id_number) or (self.has_profile_data and self.has_matching_key)


def extract_visitor_fields(normalized: Mapping[str, Any]) -> VisitorFields:
    email = _first(normalized, EMAIL_KEYS)
    return VisitorFields(
        email=email.lower() if email else None,
        phone=_first(normalized, PHONE_KEYS),
        full_name=_first(normalized, FULL_NAME_KEYS),
        id_number=_first(normalized, ID_NUMBER_KEYS),
    )
