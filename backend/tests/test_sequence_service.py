"""
Unit tests per la numerazione dei documenti.

Il contatore e i numeri esistenti vivono in memoria; il lock di riga
è simulato con un asyncio.Lock trattenuto fino all'uscita dal
savepoint, come il SELECT ... FOR UPDATE nella transazione reale.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date

import pytest
from sqlalchemy.exc import DBAPIError

from app.core.exceptions import SequenceLockError
from app.models import SequenceCounter
from app.services.sequence_service import (
    SequenceDomain,
    SequenceService,
    format_number,
    parse_sequence,
)


class CounterStore:
    def __init__(self, current_year: int = 2025, next_number: int = 1, numbers=()) -> None:
        self.counter = SequenceCounter(
            domain=SequenceDomain.INVOICE.value,
            prefix="FAC",
            current_year=current_year,
            next_number=next_number,
        )
        self.numbers = set(numbers)
        self.lock = asyncio.Lock()


class FakeResult:
    def __init__(self, value=None) -> None:
        self.value = value

    def scalar(self):
        return self.value


class FakeSession:
    """Sessione minima: savepoint, execute e commit."""

    def __init__(self, store: CounterStore) -> None:
        self.store = store
        self.holds_lock = False
        self.statements: list[str] = []
        self.executed: list[tuple] = []
        self.committed = False

    def _release(self) -> None:
        if self.holds_lock:
            self.holds_lock = False
            self.store.lock.release()

    @asynccontextmanager
    async def begin_nested(self):
        try:
            yield
        finally:
            self._release()

    async def execute(self, statement, params=None):
        self.statements.append(str(statement))
        self.executed.append((str(statement), params))
        if "current_setting" in str(statement):
            return FakeResult("0")
        return FakeResult()

    async def flush(self):
        pass

    async def commit(self):
        self.committed = True
        self._release()

    async def rollback(self):
        self._release()


class InMemorySequenceService(SequenceService):
    def __init__(self, store: CounterStore) -> None:
        self.store = store

    async def _lock_counter(self, db, domain, year):
        await self.store.lock.acquire()
        db.holds_lock = True
        db.statements.append("counter locked")
        # Punto di interleaving tra richieste concorrenti
        await asyncio.sleep(0)
        return self.store.counter

    async def _highest_existing(self, db, domain, prefix, year):
        await asyncio.sleep(0)
        return max((parse_sequence(n, prefix, year) for n in self.store.numbers), default=0)

    async def _number_exists(self, db, domain, number):
        return number in self.store.numbers


class LockNotAvailable(Exception):
    pgcode = "55P03"


class DeadlockDetected(Exception):
    pgcode = "40P01"


class LockedSequenceService(SequenceService):
    def __init__(self, orig: Exception) -> None:
        self.orig = orig

    async def _lock_counter(self, db, domain, year):
        raise DBAPIError("SELECT ... FOR UPDATE", None, self.orig)


# ============================================================
# Tests per il formato del numero
# ============================================================


class TestNumberFormat:
    """PREFISSO-AAAA-NNNN."""

    def test_format_pads_to_four_digits(self):
        assert format_number("FAC", 2025, 42) == "FAC-2025-0042"

    def test_format_grows_beyond_four_digits(self):
        assert format_number("OT", 2025, 12345) == "OT-2025-12345"

    def test_parse_sequence(self):
        assert parse_sequence("FAC-2025-0042", "FAC", 2025) == 42
        assert parse_sequence("FAC-2024-0042", "FAC", 2025) == 0
        assert parse_sequence("FAC-2025-ABC", "FAC", 2025) == 0
        assert parse_sequence(None, "FAC", 2025) == 0

    def test_domain_prefixes(self):
        assert SequenceDomain.INVOICE.prefix == "FAC"
        assert SequenceDomain.WORK_ORDER.prefix == "OT"


# ============================================================
# Tests per la riserva del numero
# ============================================================


class TestNextNumber:
    """Regole di calcolo del candidato."""

    async def test_first_number_of_the_year(self):
        store = CounterStore()
        db = FakeSession(store)

        number = await InMemorySequenceService(store).next_number(db, SequenceDomain.INVOICE, date(2025, 6, 1))

        assert number == "FAC-2025-0001"
        assert store.counter.next_number == 2
        assert "lock_timeout" in db.statements[0]
        assert not store.lock.locked()

    async def test_lock_timeout_restored_after_counter_lock(self):
        """Il timeout del contatore non si applica ai lock successivi della transazione."""
        store = CounterStore()
        db = FakeSession(store)

        await InMemorySequenceService(store).next_number(db, SequenceDomain.INVOICE, date(2025, 6, 1))

        set_local = next(i for i, s in enumerate(db.statements) if s.startswith("SET LOCAL lock_timeout"))
        locked = db.statements.index("counter locked")
        restore = next(i for i, s in enumerate(db.statements) if "set_config('lock_timeout'" in s)
        assert set_local < locked < restore
        assert [params for sql, params in db.executed if "set_config" in sql] == [{"value": "0"}]

    async def test_existing_numbers_win_over_counter(self):
        store = CounterStore(next_number=3, numbers={"FAC-2025-0005"})

        number = await InMemorySequenceService(store).next_number(
            FakeSession(store), SequenceDomain.INVOICE, date(2025, 6, 1)
        )

        assert number == "FAC-2025-0006"
        assert store.counter.next_number == 7

    async def test_counter_ahead_of_documents(self):
        store = CounterStore(next_number=10, numbers={"FAC-2025-0005"})

        number = await InMemorySequenceService(store).next_number(
            FakeSession(store), SequenceDomain.INVOICE, date(2025, 6, 1)
        )

        assert number == "FAC-2025-0010"
        assert store.counter.next_number == 11

    async def test_skips_numbers_already_taken(self):
        store = CounterStore(numbers={"FAC-2025-0001", "FAC-2025-0002"})

        class BlindService(InMemorySequenceService):
            async def _highest_existing(self, db, domain, prefix, year):
                return 0

        number = await BlindService(store).next_number(
            FakeSession(store), SequenceDomain.INVOICE, date(2025, 6, 1)
        )

        assert number == "FAC-2025-0003"

    async def test_year_rollover_restarts_from_one(self):
        store = CounterStore(current_year=2024, next_number=57)

        number = await InMemorySequenceService(store).next_number(
            FakeSession(store), SequenceDomain.INVOICE, date(2025, 1, 3)
        )

        assert number == "FAC-2025-0001"
        assert store.counter.current_year == 2025
        assert store.counter.next_number == 2

    async def test_backdated_document_leaves_counter_untouched(self):
        store = CounterStore(current_year=2025, next_number=40, numbers={"FAC-2024-0007"})

        number = await InMemorySequenceService(store).next_number(
            FakeSession(store), SequenceDomain.INVOICE, date(2024, 12, 30)
        )

        assert number == "FAC-2024-0008"
        assert store.counter.current_year == 2025
        assert store.counter.next_number == 40

    async def test_concurrent_reservations_are_unique(self):
        """N richieste concorrenti producono N numeri distinti."""
        store = CounterStore()
        service = InMemorySequenceService(store)

        async def reserve():
            number = await service.next_number(FakeSession(store), SequenceDomain.INVOICE, date(2025, 6, 1))
            await asyncio.sleep(0)
            store.numbers.add(number)
            return number

        numbers = await asyncio.gather(*(reserve() for _ in range(25)))

        assert len(set(numbers)) == 25
        assert store.counter.next_number == 26


# ============================================================
# Tests per il timeout del lock
# ============================================================


class TestLockTimeout:
    """Il lock non ottenuto entro il timeout è un errore transitorio."""

    async def test_lock_timeout_raises_sequence_lock_error(self):
        service = LockedSequenceService(LockNotAvailable())
        db = FakeSession(CounterStore())

        with pytest.raises(SequenceLockError) as exc_info:
            await service.next_number(db, SequenceDomain.INVOICE, date(2025, 6, 1))

        assert exc_info.value.status_code == 503
        assert exc_info.value.extra["retryable"] is True

    async def test_other_database_errors_propagate(self):
        service = LockedSequenceService(DeadlockDetected())

        with pytest.raises(DBAPIError):
            await service.next_number(FakeSession(CounterStore()), SequenceDomain.INVOICE, date(2025, 6, 1))


# ============================================================
# Tests per la sincronizzazione
# ============================================================


class TestSynchronize:
    """Riallineamento del contatore ai documenti esistenti."""

    async def test_synchronize_to_highest_existing(self):
        store = CounterStore(next_number=3, numbers={"FAC-2025-0011", "FAC-2025-0009"})
        db = FakeSession(store)

        counter = await InMemorySequenceService(store).synchronize(db, SequenceDomain.INVOICE, 2025)

        assert counter.next_number == 12
        assert db.committed
