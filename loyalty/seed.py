"""
Demo data for the ledger batch: customers with a points snapshot and a
fuel-purchase history earning one point per dollar spent.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from uuid import UUID

from policy import RandomSource

from .builder import utc_now
from .models import Customer, CustomerStatus, MembershipLevel, Purchase

logger = logging.getLogger(__name__)

FIRST_NAMES = ["John", "Emma", "Michael", "Olivia", "William", "Sophia", "James", "Ava", "Robert", "Isabella"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Rodriguez", "Martinez"]

FUEL_PRICES = {
    "regular": Decimal("3.499"),
    "premium": Decimal("3.999"),
    "diesel": Decimal("3.799"),
    "e85": Decimal("3.299"),
}

SNAPSHOT_POINTS = {
    MembershipLevel.PLATINUM: (5000, 15000),
    MembershipLevel.GOLD: (2000, 4999),
    MembershipLevel.SILVER: (1000, 1999),
    MembershipLevel.BASIC: (0, 999),
}

PURCHASE_COUNTS = {
    CustomerStatus.PREMIUM: (10, 20),
    CustomerStatus.REGULAR: (5, 15),
    CustomerStatus.NEW: (1, 5),
}

PURCHASE_WINDOW_DAYS = 180

_CENTS = Decimal("0.01")


def _random_id(rng: RandomSource) -> UUID:
    # drawn from the seeded source so reruns reproduce customer streams
    return UUID(int=rng.randint(0, 2 ** 128 - 1), version=4)


def _pick(rng: RandomSource, options):
    return options[rng.randint(0, len(options) - 1)]


def status_for(level: MembershipLevel, rng: RandomSource) -> CustomerStatus:
    if level in (MembershipLevel.PLATINUM, MembershipLevel.GOLD):
        return CustomerStatus.PREMIUM
    if level == MembershipLevel.SILVER:
        return CustomerStatus.PREMIUM if rng.random() > 0.5 else CustomerStatus.REGULAR
    return CustomerStatus.REGULAR if rng.random() > 0.7 else CustomerStatus.NEW


def generate_customers(count: int, rng: RandomSource) -> list[Customer]:
    levels = list(MembershipLevel)
    customers = []
    for _ in range(count):
        level = _pick(rng, levels)
        status = status_for(level, rng)
        low, high = SNAPSHOT_POINTS[level]
        customers.append(Customer(
            id=_random_id(rng),
            name=f"{_pick(rng, FIRST_NAMES)} {_pick(rng, LAST_NAMES)}",
            status=status,
            loyalty_points=rng.randint(low, high),
            membership_level=level,
        ))
    return customers


def generate_purchases(customer: Customer, rng: RandomSource, now: Optional[datetime] = None) -> list[Purchase]:
    now = now or utc_now()
    low, high = PURCHASE_COUNTS[customer.status]
    fuel_types = list(FUEL_PRICES)

    purchases = []
    for _ in range(rng.randint(low, high)):
        fuel_type = _pick(rng, fuel_types)
        gallons = round(rng.randint(5, 20) + rng.random(), 2)
        total = (Decimal(str(gallons)) * FUEL_PRICES[fuel_type]).quantize(_CENTS, rounding=ROUND_HALF_UP)
        purchases.append(Purchase(
            id=_random_id(rng),
            customer_id=customer.id,
            date=now - timedelta(days=PURCHASE_WINDOW_DAYS * rng.random()),
            points_earned=int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
            fuel_type=fuel_type,
            gallons=gallons,
            total_amount=total,
        ))
    return purchases


def seed_storage(storage, count: int, rng: RandomSource, now: Optional[datetime] = None) -> list[Customer]:
    """Add ``count`` generated customers with purchase histories to ``storage``."""
    customers = generate_customers(count, rng)
    purchase_total = 0
    for customer in customers:
        purchases = generate_purchases(customer, rng, now=now)
        purchase_total += len(purchases)
        storage.add_customer(customer, purchases)
    logger.info("Seeded %d customers with %d fuel purchases", len(customers), purchase_total)
    return customers
