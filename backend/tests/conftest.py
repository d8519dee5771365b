"""
Pytest configuration and fixtures per il motore documenti.

I factory lavorano su un mock di AsyncSession e su istanze ORM reali
(transient): numerazione, configurazione tasse, registro e saldo
cliente sono sostituiti da collaboratori in memoria che registrano
le chiamate.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.events import EventBus
from app.core.exceptions import NotFoundError
from app.models import Client, Invoice, WorkOrder
from app.schemas.tax import TaxRateConfig
from app.services.invoice_service import InvoiceFactory
from app.services.sequence_service import format_number
from app.services.tax_ledger_service import TaxContribution
from app.services.work_order_service import WorkOrderFactory

ISSUE_DATE = date(2025, 3, 14)


# ============================================================
# Collaboratori in memoria
# ============================================================


class FakeSequenceService:
    """Numerazione progressiva in memoria per (dominio, anno)."""

    def __init__(self) -> None:
        self.issued: list[str] = []
        self._next: dict[tuple, int] = {}

    async def next_number(self, db, domain, on_date=None) -> str:
        year = (on_date or date.today()).year
        sequence = self._next.get((domain, year), 1)
        self._next[(domain, year)] = sequence + 1
        number = format_number(domain.prefix, year, sequence)
        self.issued.append(number)
        return number


class StaticTaxConfig:
    """Fornitore di configurazione tasse a valori fissi."""

    def __init__(self, config: Optional[TaxRateConfig] = None) -> None:
        self.config = config or TaxRateConfig()
        self.calls = 0

    async def get(self, db) -> TaxRateConfig:
        self.calls += 1
        return self.config

    def invalidate(self) -> None:
        pass


class FakeClientService:
    """Registra i ricalcoli di saldo richiesti dai factory."""

    def __init__(self) -> None:
        self.refreshed: list[uuid.UUID] = []

    async def refresh_balance(self, db, client_id):
        self.refreshed.append(client_id)
        return Decimal("0.00")


class RecordingLedger:
    """Registro tasse che memorizza i contributi ricevuti."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    async def add_document(self, db, document) -> bool:
        self.calls.append(("add", TaxContribution.from_document(document)))
        return True

    async def remove(self, db, contribution) -> bool:
        self.calls.append(("remove", contribution))
        return contribution is not None

    async def reconcile(self, db, before, after) -> None:
        self.calls.append(("reconcile", (before, after)))


class RecordingBus(EventBus):
    """EventBus che conserva gli eventi emessi."""

    def __init__(self) -> None:
        super().__init__()
        self.emitted: list[tuple] = []

    async def emit(self, event, payload) -> int:
        self.emitted.append((event, payload))
        return await super().emit(event, payload)


def attach_store(factory, documents: dict) -> None:
    """Sostituisce get_by_id del factory con una lettura dallo store."""

    async def get_by_id(db, document_id, include_inactive: bool = False):
        document = documents.get(document_id)
        if document is None or not isinstance(document, factory.model):
            raise NotFoundError(f"{factory.label} {document_id} non trovato")
        if not include_inactive and document.is_active is False:
            raise NotFoundError(f"{factory.label} {document_id} non trovato")
        return document

    factory.get_by_id = get_by_id


# ============================================================
# Fixtures per AsyncSession Mock
# ============================================================


@pytest.fixture
def documents() -> dict:
    """Oggetti aggiunti alla sessione, indicizzati per id."""
    return {}


@pytest.fixture
def mock_db(documents):
    """Crea un mock di AsyncSession che ricorda gli oggetti aggiunti."""

    def remember(obj):
        if getattr(obj, "id", None) is None:
            obj.id = uuid.uuid4()
        documents[obj.id] = obj

    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.get = AsyncMock(return_value=None)
    db.add = MagicMock(side_effect=remember)
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.delete = MagicMock()
    return db


# ============================================================
# Fixtures per i collaboratori
# ============================================================


@pytest.fixture
def sequences():
    return FakeSequenceService()


@pytest.fixture
def tax_config():
    return StaticTaxConfig()


@pytest.fixture
def clients_stub():
    return FakeClientService()


@pytest.fixture
def ledger():
    return RecordingLedger()


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def invoice_factory(tax_config, sequences, clients_stub, bus, ledger, documents):
    """InvoiceFactory con collaboratori in memoria."""
    factory = InvoiceFactory(tax_config, sequences, clients_stub, bus, ledger=ledger)
    attach_store(factory, documents)
    return factory


@pytest.fixture
def work_order_factory(tax_config, sequences, clients_stub, bus, invoice_factory, documents):
    """WorkOrderFactory collegato all'InvoiceFactory di test."""
    factory = WorkOrderFactory(tax_config, sequences, clients_stub, bus, invoices=invoice_factory)
    attach_store(factory, documents)
    return factory


# ============================================================
# Fixtures per le entità
# ============================================================


def make_client(**kwargs) -> Client:
    return Client(
        id=kwargs.get("id", uuid.uuid4()),
        name=kwargs.get("name", "Société Portuaire Atlantique"),
        tax_id=kwargs.get("tax_id", "NIF-000123"),
        balance=kwargs.get("balance", Decimal("0.00")),
        is_active=kwargs.get("is_active", True),
    )


@pytest.fixture
def client(mock_db) -> Client:
    """Cliente attivo restituito da db.get."""
    entity = make_client()
    mock_db.get.return_value = entity
    return entity


def _header(model, **kwargs):
    zero = Decimal("0.00")
    values = dict(
        id=uuid.uuid4(),
        number="DOC-2025-0001",
        category="container",
        tax_category="subject",
        issue_date=ISSUE_DATE,
        client_id=uuid.uuid4(),
        discount_type="none",
        discount_value=zero,
        exempt_vat=False,
        exempt_css=False,
        vat_rate=Decimal("18"),
        css_rate=Decimal("1"),
        subtotal=zero,
        discount_amount=zero,
        vat_amount=zero,
        css_amount=zero,
        total=zero,
        amount_paid=zero,
        forwarder_commission=zero,
        representative_commission=zero,
        is_active=True,
    )
    values.update(kwargs)
    return model(**values)


def make_invoice(**kwargs) -> Invoice:
    kwargs.setdefault("number", "FAC-2025-0001")
    kwargs.setdefault("status", "issued")
    kwargs.setdefault("due_date", date(2025, 4, 13))
    return _header(Invoice, **kwargs)


def make_work_order(**kwargs) -> WorkOrder:
    kwargs.setdefault("number", "OT-2025-0001")
    kwargs.setdefault("status", "in_progress")
    return _header(WorkOrder, **kwargs)


def container_payload(client_id: uuid.UUID, **extra) -> dict:
    """Un container (50.000) con un'operazione 2 × 10.000, sconto 10%."""
    payload = {
        "client_id": client_id,
        "category": "container",
        "issue_date": ISSUE_DATE,
        "discount_type": "percentage",
        "discount_value": Decimal("10"),
        "containers": [
            {
                "number": "MSCU1234567",
                "size": "40'",
                "unit_price": Decimal("50000"),
                "operations": [
                    {"type": "unloading", "quantity": 2, "unit_price": Decimal("10000")},
                ],
            }
        ],
    }
    payload.update(extra)
    return payload
