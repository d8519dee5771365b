"""
Unit tests per la coerenza del saldo cliente.

Saldo = Σ totale − Σ incassato sulle fatture attive non annullate.
"""

import uuid
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from app.models import Invoice
from app.services.client_service import ClientService
from app.services.invoice_service import InvoiceFactory

from conftest import attach_store, container_payload


class InMemoryClientService(ClientService):
    """Somma le fatture scritte dal factory invece di interrogare il database."""

    def __init__(self, documents: dict) -> None:
        self.documents = documents

    async def compute_balance(self, db, client_id):
        balance = Decimal("0.00")
        for document in self.documents.values():
            if (
                isinstance(document, Invoice)
                and document.client_id == client_id
                and document.is_active
                and document.status != "cancelled"
            ):
                balance += document.total - document.amount_paid
        return balance


def expected_balance(documents: dict, client_id) -> Decimal:
    return sum(
        (
            d.total - d.amount_paid
            for d in documents.values()
            if isinstance(d, Invoice) and d.client_id == client_id and d.status != "cancelled" and d.is_active
        ),
        Decimal("0.00"),
    )


@pytest.fixture
def balance_factory(tax_config, sequences, bus, ledger, documents):
    factory = InvoiceFactory(tax_config, sequences, InMemoryClientService(documents), bus, ledger=ledger)
    attach_store(factory, documents)
    return factory


class TestBalanceQuery:
    """Filtri della query di saldo."""

    async def test_where_clause(self, mock_db):
        result = MagicMock()
        result.one.return_value = (Decimal("0"), Decimal("0"))
        mock_db.execute.return_value = result
        client_id = uuid.uuid4()

        await ClientService().compute_balance(mock_db, client_id)

        statement = mock_db.execute.call_args.args[0]
        compiled = statement.compile(dialect=postgresql.dialect())
        sql = str(compiled)
        assert "sum(invoices.total)" in sql
        assert "sum(invoices.amount_paid)" in sql
        where = sql.split("WHERE", 1)[1]
        assert "invoices.client_id = " in where
        assert "invoices.is_active = true" in where
        assert "invoices.status != " in where
        assert client_id in compiled.params.values()
        assert "cancelled" in compiled.params.values()


class TestBalanceSequence:
    """Il saldo resta coerente dopo creazione, incasso, modifica e annullamento."""

    async def test_create_pay_modify_cancel(self, balance_factory, mock_db, client, documents):
        first = await balance_factory.create(mock_db, container_payload(client.id))
        assert client.balance == Decimal("74970.00")

        second = await balance_factory.create(mock_db, container_payload(client.id))
        assert client.balance == Decimal("149940.00")

        await balance_factory.record_payment(mock_db, first.id, Decimal("4970.00"))
        assert client.balance == Decimal("144970.00")

        await balance_factory.modify(
            mock_db,
            second.id,
            {"containers": [{"number": "TGHU0000001", "size": "20", "unit_price": 1000}], "remise_type": "none"},
        )
        assert second.total == Decimal("1190.00")
        assert client.balance == Decimal("71190.00")

        await balance_factory.cancel(mock_db, second.id)
        assert client.balance == Decimal("70000.00")
        assert client.balance == expected_balance(documents, client.id)
