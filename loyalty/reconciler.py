import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence
from uuid import uuid4

from .builder import utc_now
from .models import Customer, EntrySource, EntryType, LedgerEntry

logger = logging.getLogger(__name__)

ADJUSTMENT_DESCRIPTION = "System balance adjustment"


@dataclass(frozen=True)
class Reconciliation:
    entries: list[LedgerEntry]
    drift: int
    adjustment: Optional[LedgerEntry] = None


def final_balance(entries: Sequence[LedgerEntry]) -> int:
    return entries[-1].balance if entries else 0


class Reconciler:
    """Forces a ledger's final balance onto the customer's points snapshot.

    The corrective ``adjust`` entry is exempt from the non-negative delta
    guard that synthetic entries obey: it may remove more points than a
    redemption ever could, because it must land exactly on the snapshot.
    The snapshot itself is never negative, so the resulting balance is not
    either.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock

    def drift(self, customer: Customer, entries: Sequence[LedgerEntry]) -> int:
        return customer.loyalty_points - final_balance(entries)

    def reconcile(
        self,
        customer: Customer,
        entries: Sequence[LedgerEntry],
        now: Optional[datetime] = None,
    ) -> Reconciliation:
        drift = self.drift(customer, entries)
        if drift == 0:
            return Reconciliation(entries=list(entries), drift=0)

        now = now or self.clock()
        # never date the correction before the entry it follows
        date = max(now, entries[-1].date) if entries else now
        adjustment = LedgerEntry(
            id=uuid4(),
            customer_id=customer.id,
            date=date,
            type=EntryType.ADJUST,
            points=drift,
            source=EntrySource.ADMIN,
            description=ADJUSTMENT_DESCRIPTION,
            balance=customer.loyalty_points,
            created_at=now,
        )
        logger.info(
            "Customer %s drifted by %d points; appended adjustment to reach %d",
            customer.id, drift, customer.loyalty_points,
        )
        return Reconciliation(entries=[*entries, adjustment], drift=drift, adjustment=adjustment)
