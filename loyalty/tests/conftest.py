from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from loyalty.models import Customer, CustomerStatus, Purchase


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class ZeroEntropySource:
    """Always returns the lowest possible draw."""

    def randint(self, a: int, b: int) -> int:
        return a

    def random(self) -> float:
        return 0.0


class ScriptedSource:
    """Replays fixed integer and float draws; falls back to the lowest draw when exhausted."""

    def __init__(self, ints=(), floats=()):
        self.ints = list(ints)
        self.floats = list(floats)

    def randint(self, a: int, b: int) -> int:
        value = self.ints.pop(0) if self.ints else a
        assert a <= value <= b, f"scripted draw {value} outside [{a}, {b}]"
        return value

    def random(self) -> float:
        return self.floats.pop(0) if self.floats else 0.0


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def zero_rng():
    return ZeroEntropySource()


@pytest.fixture
def scripted():
    return ScriptedSource


@pytest.fixture
def make_customer():
    def _make(points: int = 0, status: CustomerStatus = CustomerStatus.NEW, customer_id: UUID = None) -> Customer:
        return Customer(id=customer_id or uuid4(), name="Test Customer", status=status, loyalty_points=points)
    return _make


@pytest.fixture
def make_purchase():
    def _make(customer: Customer, points: int, days_ago: float) -> Purchase:
        return Purchase(
            id=uuid4(),
            customer_id=customer.id,
            date=NOW - timedelta(days=days_ago),
            points_earned=points,
            fuel_type="regular",
            gallons=12.5,
        )
    return _make
