import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional
from uuid import UUID, uuid4

from policy import GenerationPolicy, RandomSource, default_policy

from .models import Customer, EntrySource, EntryType, LedgerEntry, Purchase
from .randomness import make_random_source

logger = logging.getLogger(__name__)

DEBIT_TYPES = (EntryType.REDEEM, EntryType.EXPIRE)


@dataclass(frozen=True)
class DraftEntry:
    """A ledger entry before ordering; carries a delta but no balance yet."""

    date: datetime
    type: EntryType
    points: int
    source: EntrySource
    related_purchase_id: Optional[UUID] = None
    description: str = ""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def describe(entry_type: EntryType, source: EntrySource, points: int) -> str:
    if entry_type == EntryType.EARN:
        if source == EntrySource.PROMOTION:
            return "Earned points from special promotion"
        if source == EntrySource.REFERRAL:
            return "Earned points from customer referral"
        if source == EntrySource.PURCHASE:
            return "Earned points from in-store purchase"
        return "Earned bonus points"
    if entry_type == EntryType.REDEEM:
        spent = abs(points)
        reward = "free fuel" if spent >= 500 else "discount" if spent >= 200 else "store merchandise"
        return f"Redeemed points for {reward}"
    if entry_type == EntryType.EXPIRE:
        return "Points expired"
    return "Points adjusted by administrator"


def describe_purchase(purchase: Purchase) -> str:
    if purchase.gallons is not None and purchase.fuel_type:
        return f"Earned points for fuel purchase ({purchase.gallons:.2f} gallons of {purchase.fuel_type})"
    return "Earned points for fuel purchase"


def sort_drafts(drafts: Iterable[DraftEntry]) -> list[DraftEntry]:
    # sorted() is stable: equal dates keep generation order
    return sorted(drafts, key=lambda d: d.date)


def apply_delta(balance: int, points: int) -> tuple[int, int]:
    """One fold step: returns (applied points, new balance), never below zero."""
    if balance + points < 0:
        points = -balance
    return points, balance + points


def fold_balances(
    customer_id: UUID,
    drafts: Iterable[DraftEntry],
    created_at: Optional[datetime] = None,
) -> list[LedgerEntry]:
    """Replay date-ordered drafts from a zero balance into immutable entries."""
    created_at = created_at or utc_now()
    entries: list[LedgerEntry] = []
    balance = 0

    for draft in drafts:
        points, balance = apply_delta(balance, draft.points)
        if points == 0 and draft.type in DEBIT_TYPES:
            logger.debug("Dropping empty %s for customer %s dated %s", draft.type.value, customer_id, draft.date)
            continue

        description = draft.description
        if points != draft.points or not description:
            description = describe(draft.type, draft.source, points)

        entries.append(LedgerEntry(
            id=uuid4(),
            customer_id=customer_id,
            date=draft.date,
            type=draft.type,
            points=points,
            source=draft.source,
            description=description,
            related_purchase_id=draft.related_purchase_id,
            balance=balance,
            created_at=created_at,
        ))
    return entries


class LedgerBuilder:
    """Builds a customer's loyalty ledger from purchases plus synthetic activity.

    Work happens in three phases: draft unsorted deltas, sort them by date,
    then fold running balances. Balances are only ever computed in the fold,
    since synthetic entries carry random dates that can land before
    purchase-derived ones.
    """

    def __init__(
        self,
        policy: Optional[GenerationPolicy] = None,
        rng: Optional[RandomSource] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.policy = policy or default_policy()
        self.rng = rng or make_random_source()
        self.clock = clock

    def build(
        self,
        customer: Customer,
        purchases: Iterable[Purchase],
        now: Optional[datetime] = None,
    ) -> list[LedgerEntry]:
        now = now or self.clock()
        drafts = self.draft_entries(customer, purchases, now)
        return fold_balances(customer.id, sort_drafts(drafts), created_at=now)

    def draft_entries(
        self,
        customer: Customer,
        purchases: Iterable[Purchase],
        now: datetime,
    ) -> list[DraftEntry]:
        drafts = [self._purchase_draft(p) for p in sorted(purchases, key=lambda p: p.date)]
        balance = sum(d.points for d in drafts)

        count = self.policy.synthetic_count(customer.status.value, self.rng)
        for _ in range(count):
            draft = self._synthetic_draft(balance, now)
            _, balance = apply_delta(balance, draft.points)
            drafts.append(draft)

        logger.debug(
            "Drafted %d entries for customer %s (%d purchases, %d synthetic)",
            len(drafts), customer.id, len(drafts) - count, count,
        )
        return drafts

    def _purchase_draft(self, purchase: Purchase) -> DraftEntry:
        return DraftEntry(
            date=purchase.date,
            type=EntryType.EARN,
            points=purchase.points_earned,
            source=EntrySource.PURCHASE,
            related_purchase_id=purchase.id,
            description=describe_purchase(purchase),
        )

    def _synthetic_draft(self, balance: int, now: datetime) -> DraftEntry:
        policy, rng = self.policy, self.rng
        date = now - timedelta(days=policy.window_days * rng.random())
        roll = rng.random()

        if roll < policy.earn_probability:
            sources = policy.earn_sources
            source = EntrySource(sources[rng.randint(0, len(sources) - 1)])
            return self._draft(date, EntryType.EARN, policy.earn_points.draw(rng), source, balance)

        if roll < policy.earn_probability + policy.redeem_probability and balance >= policy.redeem_threshold:
            points = -min(balance, policy.redeem_points.draw(rng))
            return self._draft(date, EntryType.REDEEM, points, EntrySource.REWARD, balance)

        if rng.random() > 0.5:
            return self._draft(date, EntryType.ADJUST, policy.adjust_points.draw(rng), EntrySource.ADMIN, balance)
        points = -min(balance, policy.expire_points.draw(rng))
        return self._draft(date, EntryType.EXPIRE, points, EntrySource.EXPIRATION, balance)

    def _draft(self, date: datetime, entry_type: EntryType, points: int, source: EntrySource, balance: int) -> DraftEntry:
        points, _ = apply_delta(balance, points)
        return DraftEntry(
            date=date,
            type=entry_type,
            points=points,
            source=source,
            description=describe(entry_type, source, points),
        )
