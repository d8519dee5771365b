"""
Unit tests per le provvigioni e il saldo cliente.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.exceptions import IllegalStateTransitionError
from app.models import Commission
from app.services.client_service import ClientService
from app.services.commission_service import CommissionService

from conftest import make_client, make_invoice


service = CommissionService()


def invoice_with_partners(**kwargs):
    values = dict(
        forwarder_id=uuid.uuid4(),
        representative_id=uuid.uuid4(),
        forwarder_commission=Decimal("150.00"),
        representative_commission=Decimal("75.50"),
    )
    values.update(kwargs)
    return make_invoice(**values)


# ============================================================
# Tests per la generazione delle provvigioni
# ============================================================


class TestCreateForInvoice:
    """Provvigioni pending dagli importi della fattura."""

    def test_creates_one_per_beneficiary(self):
        invoice = invoice_with_partners()

        created = service.create_for_invoice(invoice)

        assert [c.beneficiary_type for c in created] == ["forwarder", "representative"]
        assert created[0].partner_id == invoice.forwarder_id
        assert created[1].amount == Decimal("75.50")
        assert all(c.status == "pending" for c in created)
        assert invoice.commissions == created
        assert created[0].description == "Provvigione transitario per fattura FAC-2025-0001"

    def test_zero_amount_ignored(self):
        invoice = invoice_with_partners(representative_commission=Decimal("0"))
        assert len(service.create_for_invoice(invoice)) == 1

    def test_amount_without_partner_ignored(self, caplog):
        invoice = invoice_with_partners(forwarder_id=None)

        created = service.create_for_invoice(invoice)

        assert [c.beneficiary_type for c in created] == ["representative"]
        assert "senza partner" in caplog.text


class TestReplacePending:
    """Sostituzione delle provvigioni in modifica."""

    def test_pending_replaced(self):
        invoice = invoice_with_partners()
        service.create_for_invoice(invoice)
        invoice.forwarder_commission = Decimal("200.00")

        service.replace_pending(invoice)

        amounts = {c.beneficiary_type: c.amount for c in invoice.commissions}
        assert amounts == {"forwarder": Decimal("200.00"), "representative": Decimal("75.50")}

    def test_paid_commission_is_immutable(self, caplog):
        invoice = invoice_with_partners()
        forwarder, _ = service.create_for_invoice(invoice)
        forwarder.status = "paid"
        invoice.forwarder_commission = Decimal("999.00")

        service.replace_pending(invoice)

        forwarders = [c for c in invoice.commissions if c.beneficiary_type == "forwarder"]
        assert forwarders == [forwarder]
        assert forwarder.amount == Decimal("150.00")
        assert "già pagata" in caplog.text

    def test_cancel_pending(self):
        invoice = invoice_with_partners()
        forwarder, representative = service.create_for_invoice(invoice)
        forwarder.status = "paid"

        assert service.cancel_pending(invoice) == 1
        assert representative.status == "cancelled"
        assert forwarder.status == "paid"


class TestMarkPaid:
    """Pagamento di una provvigione."""

    async def test_mark_paid(self, mock_db):
        commission = Commission(id=uuid.uuid4(), amount=Decimal("10.00"), status="pending")
        result = MagicMock()
        result.scalar_one_or_none.return_value = commission
        mock_db.execute.return_value = result

        paid = await service.mark_paid(mock_db, commission.id)

        assert paid.status == "paid"
        assert paid.paid_at is not None
        mock_db.commit.assert_awaited_once()

    async def test_mark_paid_twice_refused(self, mock_db):
        commission = Commission(id=uuid.uuid4(), amount=Decimal("10.00"), status="paid")
        result = MagicMock()
        result.scalar_one_or_none.return_value = commission
        mock_db.execute.return_value = result

        with pytest.raises(IllegalStateTransitionError):
            await service.mark_paid(mock_db, commission.id)


# ============================================================
# Tests per il saldo cliente
# ============================================================


class TestClientBalance:
    """Saldo = Σ totale − Σ incassato sulle fatture valide."""

    async def test_compute_balance(self, mock_db):
        result = MagicMock()
        result.one.return_value = (Decimal("2380.00"), Decimal("1000.00"))
        mock_db.execute.return_value = result

        balance = await ClientService().compute_balance(mock_db, uuid.uuid4())

        assert balance == Decimal("1380.00")

    async def test_refresh_balance_writes_client(self, mock_db):
        entity = make_client(balance=Decimal("5.00"))
        mock_db.get.return_value = entity
        service_under_test = ClientService()
        service_under_test.compute_balance = AsyncMock(return_value=Decimal("420.00"))

        balance = await service_under_test.refresh_balance(mock_db, entity.id)

        assert balance == Decimal("420.00")
        assert entity.balance == Decimal("420.00")
        mock_db.flush.assert_awaited()
        mock_db.commit.assert_not_awaited()

    async def test_refresh_balance_without_client(self, mock_db):
        assert await ClientService().refresh_balance(mock_db, None) is None
