import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, ContextManager, Iterator, Optional, Protocol, Sequence
from uuid import UUID

from policy import GenerationPolicy, RandomSource

from .builder import LedgerBuilder, utc_now
from .models import (
    BatchReport,
    Customer,
    CustomerFailure,
    CustomerLedgerResult,
    CustomerStatus,
    EntrySource,
    EntryType,
    LedgerBalance,
    LedgerEntry,
    LedgerHistoryResponse,
    LedgerStats,
    MembershipLevel,
    Purchase,
)
from .randomness import customer_random_source
from .reconciler import Reconciler

logger = logging.getLogger(__name__)


class LedgerServiceError(Exception):
    pass


class DataUnavailableError(LedgerServiceError):
    pass


class PersistenceFailureError(LedgerServiceError):
    pass


class CustomerNotFoundError(LedgerServiceError):
    pass


class CustomerSource(Protocol):
    def get_customers(self) -> list[Customer]: ...

    def get_purchases_for(self, customer_id: UUID) -> list[Purchase]: ...


class LedgerWriter(Protocol):
    def persist_ledger(self, customer_id: UUID, entries: Sequence[LedgerEntry]) -> None: ...


class LedgerSink(Protocol):
    def ledger_writer(self) -> ContextManager[LedgerWriter]: ...


class _StagedWriter:
    def __init__(self):
        self.staged: dict[UUID, list[LedgerEntry]] = {}

    def persist_ledger(self, customer_id: UUID, entries: Sequence[LedgerEntry]) -> None:
        if customer_id in self.staged:
            raise PersistenceFailureError(f"Ledger for customer {customer_id} already staged")
        self.staged[customer_id] = list(entries)


class InMemoryStorage:
    def __init__(self, seed: bool = True):
        self.customers: dict[UUID, Customer] = {}
        self.purchases: dict[UUID, list[Purchase]] = {}
        self.ledger_entries: dict[UUID, list[LedgerEntry]] = {}
        self._lock = threading.Lock()
        if seed:
            self._seed_data()

    def _seed_data(self):
        samples = [
            ("550e8400-e29b-41d4-a716-446655440000", "John Smith", CustomerStatus.PREMIUM, 2500, MembershipLevel.GOLD),
            ("660e8400-e29b-41d4-a716-446655440001", "Emma Johnson", CustomerStatus.REGULAR, 870, MembershipLevel.SILVER),
            ("770e8400-e29b-41d4-a716-446655440002", "Michael Brown", CustomerStatus.NEW, 150, MembershipLevel.BASIC),
        ]
        for customer_id, name, status, points, level in samples:
            self.add_customer(Customer(
                id=UUID(customer_id), name=name, status=status,
                loyalty_points=points, membership_level=level,
            ))

    def add_customer(self, customer: Customer, purchases: Sequence[Purchase] = ()) -> None:
        self.customers[customer.id] = customer
        self.purchases.setdefault(customer.id, []).extend(purchases)

    def get_customers(self) -> list[Customer]:
        return list(self.customers.values())

    def get_customer(self, customer_id: UUID) -> Optional[Customer]:
        return self.customers.get(customer_id)

    def get_purchases_for(self, customer_id: UUID) -> list[Purchase]:
        return list(self.purchases.get(customer_id, []))

    def get_ledger(self, customer_id: UUID) -> list[LedgerEntry]:
        return list(self.ledger_entries.get(customer_id, []))

    def clear_ledgers(self) -> None:
        with self._lock:
            self.ledger_entries.clear()

    @contextmanager
    def ledger_writer(self) -> Iterator[_StagedWriter]:
        writer = _StagedWriter()
        yield writer
        # only reached on a clean exit; a raising block commits nothing
        with self._lock:
            existing = [cid for cid in writer.staged if cid in self.ledger_entries]
            if existing:
                raise PersistenceFailureError(f"Ledger already written for customer {existing[0]}")
            self.ledger_entries.update(writer.staged)


class LedgerService:
    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        sink: Optional[LedgerSink] = None,
        policy: Optional[GenerationPolicy] = None,
        random_seed: Optional[int] = None,
        rng_factory: Optional[Callable[[Customer], RandomSource]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.storage = storage if storage is not None else InMemoryStorage()
        self.sink = sink if sink is not None else self.storage
        self.policy = policy
        self.clock = clock
        self.rng_factory = rng_factory or (lambda c: customer_random_source(random_seed, c.id))
        self.reconciler = Reconciler(clock=clock)

    def generate_for_customer(self, customer: Customer) -> CustomerLedgerResult:
        try:
            purchases = self.storage.get_purchases_for(customer.id)
        except LedgerServiceError:
            raise
        except Exception as e:
            raise DataUnavailableError(f"Purchases for customer {customer.id} unavailable: {e}") from e

        now = self.clock()
        builder = LedgerBuilder(policy=self.policy, rng=self.rng_factory(customer), clock=self.clock)
        entries = builder.build(customer, purchases, now=now)
        result = self.reconciler.reconcile(customer, entries, now=now)

        try:
            with self.sink.ledger_writer() as writer:
                writer.persist_ledger(customer.id, result.entries)
        except PersistenceFailureError:
            raise
        except Exception as e:
            raise PersistenceFailureError(f"Could not persist ledger for customer {customer.id}: {e}") from e

        return CustomerLedgerResult(
            customer_id=customer.id,
            entries=result.entries,
            drift=result.drift,
            adjustment=result.adjustment,
        )

    def run_batch(self, max_workers: Optional[int] = None) -> BatchReport:
        try:
            customers = self.storage.get_customers()
        except Exception as e:
            raise DataUnavailableError(f"Customer list unavailable: {e}") from e

        if max_workers and max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                outcomes = list(executor.map(self._run_isolated, customers))
        else:
            outcomes = [self._run_isolated(c) for c in customers]

        report = BatchReport()
        for outcome in outcomes:
            if isinstance(outcome, CustomerFailure):
                report.customers_failed += 1
                report.failures.append(outcome)
                continue
            report.customers_processed += 1
            report.entries_written += len(outcome.entries)
            if outcome.reconciled:
                report.reconciliation_entries += 1

        logger.info(
            "Ledger batch finished: %d processed, %d failed, %d entries written, %d reconciled",
            report.customers_processed, report.customers_failed,
            report.entries_written, report.reconciliation_entries,
        )
        return report

    def _run_isolated(self, customer: Customer):
        try:
            return self.generate_for_customer(customer)
        except LedgerServiceError as e:
            logger.warning("Ledger generation failed for customer %s: %s", customer.id, e)
            return CustomerFailure(customer_id=customer.id, error_type=type(e).__name__, message=str(e))
        except Exception as e:
            logger.exception("Unexpected error generating ledger for customer %s", customer.id)
            return CustomerFailure(customer_id=customer.id, error_type=type(e).__name__, message=str(e))

    def get_balance(self, customer_id: UUID) -> LedgerBalance:
        customer = self._get_customer(customer_id)
        entries = self.storage.get_ledger(customer_id)
        return LedgerBalance(
            customer_id=customer_id,
            current_balance=entries[-1].balance if entries else 0,
            snapshot_points=customer.loyalty_points,
            total_entries=len(entries),
            last_transaction_at=entries[-1].date if entries else None,
        )

    def get_ledger_history(self, customer_id: UUID, limit: int = 10, offset: int = 0) -> LedgerHistoryResponse:
        customer = self._get_customer(customer_id)
        entries = self.storage.get_ledger(customer_id)
        newest_first = list(reversed(entries))

        return LedgerHistoryResponse(
            customer_id=customer_id,
            entries=newest_first[offset:offset + limit],
            total_count=len(entries),
            current_balance=customer.loyalty_points,
            stats=self.compute_stats(entries),
        )

    @staticmethod
    def compute_stats(entries: Sequence[LedgerEntry]) -> LedgerStats:
        totals = {t: 0 for t in EntryType}
        for entry in entries:
            totals[entry.type] += entry.points
        return LedgerStats(
            earned=totals[EntryType.EARN],
            redeemed=abs(totals[EntryType.REDEEM]),
            expired=abs(totals[EntryType.EXPIRE]),
            adjusted=totals[EntryType.ADJUST],
        )

    def verify_ledger(self, customer_id: UUID) -> list[str]:
        """Replay a stored ledger and describe every broken invariant."""
        customer = self._get_customer(customer_id)
        entries = self.storage.get_ledger(customer_id)
        purchases = {p.id: p for p in self.storage.get_purchases_for(customer_id)}
        violations = []

        balance = 0
        for i, entry in enumerate(entries):
            if i and entry.date < entries[i - 1].date:
                violations.append(f"entry {entry.id} dated before its predecessor")
            balance += entry.points
            if entry.balance != balance:
                violations.append(f"entry {entry.id} balance {entry.balance} != replayed {balance}")
            if entry.balance < 0:
                violations.append(f"entry {entry.id} has negative balance {entry.balance}")
            if entry.type == EntryType.EARN and entry.source == EntrySource.PURCHASE:
                purchase = purchases.get(entry.related_purchase_id)
                if entry.related_purchase_id is None:
                    violations.append(f"purchase earn {entry.id} has no related purchase")
                elif purchase is None:
                    violations.append(f"entry {entry.id} references unknown purchase {entry.related_purchase_id}")
                elif purchase.points_earned != entry.points:
                    violations.append(f"entry {entry.id} points differ from purchase {purchase.id}")

        if balance != customer.loyalty_points:
            violations.append(f"final balance {balance} != snapshot {customer.loyalty_points}")
        return violations

    def _get_customer(self, customer_id: UUID) -> Customer:
        customer = self.storage.get_customer(customer_id)
        if not customer:
            raise CustomerNotFoundError(f"Customer {customer_id} not found")
        return customer
