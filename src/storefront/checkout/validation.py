"""Field-level validation for checkout input.

Validation problems are returned as ``{field: [messages]}`` rather than raised,
so the checkout can show them next to the offending fields and stay on the
current step.
"""

import re
from collections.abc import Mapping

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
POSTAL_CODE_PATTERN = re.compile(r"^\d{4}$")

SHIP = "ship"
PICKUP = "pickup"

_ADDRESS_FIELDS = ("address_line1", "address_line2", "city", "postal_code")


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def validate_email(email) -> dict[str, list[str]]:
    email = _clean(email)
    if email is None:
        return {"customer_email": ["Email is required"]}
    if not EMAIL_PATTERN.match(email):
        return {"customer_email": ["Please enter a valid email address"]}
    return {}


def normalize_address(data: Mapping) -> dict:
    """Trim the submitted address and drop the street fields for pickup orders."""
    address = {
        "full_name": _clean(data.get("full_name")),
        "shipping_option": _clean(data.get("shipping_option")),
    }
    for field in _ADDRESS_FIELDS:
        address[field] = _clean(data.get(field))

    if address["shipping_option"] == PICKUP:
        for field in _ADDRESS_FIELDS:
            address[field] = None
    return address


def validate_address(data: Mapping) -> dict[str, list[str]]:
    address = normalize_address(data)
    errors: dict[str, list[str]] = {}

    if address["full_name"] is None:
        errors["full_name"] = ["Full name is required"]

    option = address["shipping_option"]
    if option not in (SHIP, PICKUP):
        errors["shipping_option"] = ["Please choose shipping or pickup"]
        return errors

    if option == SHIP:
        if address["address_line1"] is None:
            errors["address_line1"] = ["Street address is required"]
        if address["city"] is None:
            errors["city"] = ["City is required"]
        if address["postal_code"] is None:
            errors["postal_code"] = ["Postal code is required"]
        elif not POSTAL_CODE_PATTERN.match(address["postal_code"]):
            errors["postal_code"] = ["Postal code must be 4 digits"]

    return errors
