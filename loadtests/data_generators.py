"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the checkout validation rules
(email shape, 4-digit postal codes, address required for shipping) and
match the exact field names expected by the API's Pydantic request schemas.
"""

import random
import uuid

from faker import Faker

fake = Faker("en_NZ")

CATALOG_PRODUCT_IDS = ["1", "2", "3"]

APPROVING_CARD = "pm_card_visa"
DECLINING_CARDS = [
    "pm_card_chargeDeclined",
    "pm_card_chargeDeclinedInsufficientFunds",
    "pm_card_chargeDeclinedExpiredCard",
]


def session_id() -> str:
    """Generate browser session ids like 'lt-a1b2c3d4e5'."""
    return f"lt-{uuid.uuid4().hex[:10]}"


def valid_email() -> str:
    """Generate emails with exactly one @ and a dotted domain."""
    local = fake.user_name()[:20]
    domain = fake.free_email_domain()
    return f"{local}.{uuid.uuid4().hex[:4]}@{domain}"


def add_line_data() -> dict:
    """Generate AddLineRequest payload for a catalog product."""
    return {
        "product_id": random.choice(CATALOG_PRODUCT_IDS),
        "quantity": random.randint(1, 3),
    }


def custom_line_data() -> dict:
    """Generate AddLineRequest payload carrying its own product record."""
    return {
        "product_id": f"custom-{uuid.uuid4().hex[:6]}",
        "quantity": random.randint(1, 2),
        "title": fake.word().capitalize(),
        "price_minor_units": random.randint(500, 5000),
        "image": None,
    }


def shipping_address() -> dict:
    """Generate AddressRequest payload for a shipped order."""
    return {
        "full_name": fake.name()[:100],
        "shipping_option": "ship",
        "address_line1": fake.street_address()[:100],
        "address_line2": None,
        "city": fake.city()[:60],
        "postal_code": f"{random.randint(1000, 9999)}",
    }


def pickup_address() -> dict:
    """Generate AddressRequest payload for in-store pickup."""
    return {
        "full_name": fake.name()[:100],
        "shipping_option": "pickup",
        "address_line1": None,
        "address_line2": None,
        "city": None,
        "postal_code": None,
    }


def address_data() -> dict:
    return random.choice([shipping_address, shipping_address, pickup_address])()


def payment_data(card: str = APPROVING_CARD) -> dict:
    """Generate PaymentRequest payload."""
    return {
        "payment_method": card,
        "cardholder_name": fake.name()[:100],
        "billing_country": "NZ",
    }


def declined_payment_data() -> dict:
    return payment_data(random.choice(DECLINING_CARDS))
