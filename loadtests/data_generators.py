"""Faker-based data generators for Locust load test scenarios.

Payloads match the field names of the API's Pydantic request schemas and
pass the engine's validation: Melbourne coordinates per delivery zone,
integer cent prices and basis-point tax rates.
"""

import random
import uuid
from datetime import date, timedelta

from faker import Faker

fake = Faker("en_AU")

ZONE_CENTRES = {
    "north": (-37.7300, 144.9650),
    "east": (-37.8150, 145.0800),
    "south": (-37.9000, 145.0000),
    "west": (-37.7900, 144.8500),
}

PRODUCE = ["Tomatoes", "Baby spinach", "Basil", "Lemons", "Zucchini", "Strawberries", "Rocket", "Mushrooms"]


def delivery_date(days_ahead: int = 1) -> str:
    return (date.today() + timedelta(days=days_ahead)).isoformat()


def customer_data() -> dict:
    """RegisterCustomerRequest payload with a unique trading email."""
    business = fake.company()[:150]
    return {
        "business_name": business,
        "email": f"orders.{uuid.uuid4().hex[:6]}@{fake.free_email_domain()}",
        "contact_name": fake.name()[:100],
    }


def credit_approval(credit_limit: int = 5_000_000) -> dict:
    return {"credit_limit": credit_limit, "payment_terms": "NET30", "approved_by": "lt-admin", "role": "admin"}


def product_data() -> dict:
    """RegisterProductRequest payload; SKUs are unique per call."""
    name = random.choice(PRODUCE)
    return {
        "sku": f"LT-{name[:3].upper()}-{uuid.uuid4().hex[:6]}",
        "name": f"{name} {random.choice(['500g', '1kg', 'bunch', 'punnet'])}",
        "unit_price": random.randint(150, 2500),
        "tax_rate": random.choice([0, 1000]),
    }


def delivery_address(zone: str | None = None) -> dict:
    """DeliveryAddressRequest payload jittered around the zone centre."""
    zone = zone or random.choice(list(ZONE_CENTRES))
    latitude, longitude = ZONE_CENTRES[zone]
    return {
        "street": fake.street_address()[:255],
        "suburb": fake.city()[:100],
        "state": "VIC",
        "postcode": fake.postcode(),
        "zone": zone,
        "latitude": round(latitude + random.uniform(-0.02, 0.02), 6),
        "longitude": round(longitude + random.uniform(-0.02, 0.02), 6),
    }


def order_data(customer_id: str, product_ids: list[str], day: str) -> dict:
    """PlaceOrderRequest payload with one to three lines of small quantities."""
    lines = random.sample(product_ids, k=min(len(product_ids), random.randint(1, 3)))
    return {
        "customer_id": customer_id,
        "items": [{"product_id": pid, "quantity": random.randint(1, 6)} for pid in lines],
        "delivery_address": delivery_address(),
        "requested_delivery_date": day,
        "placed_by": f"buyer-{uuid.uuid4().hex[:4]}",
    }
