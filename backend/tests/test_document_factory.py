"""
Unit tests per il ciclo di vita dei documenti (ordini di lavoro e fatture).

I factory lavorano su mock_db e su collaboratori in memoria definiti
in conftest.py: numerazione, tasse, registro, saldo ed eventi.
"""

import datetime
import uuid
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.events import DocumentEvent
from app.core.exceptions import (
    BusinessValidationError,
    ConflictError,
    IllegalStateTransitionError,
    LineValidationError,
    NotFoundError,
    ReferentialIntegrityError,
)
from app.schemas.document import DocumentPayload
from app.schemas.invoice import ConversionRequest

from conftest import ISSUE_DATE, container_payload


def emitted_events(bus):
    return [event for event, _ in bus.emitted]


# ============================================================
# Tests per la normalizzazione del payload
# ============================================================


class TestNormalize:
    """Risoluzione degli alias storici e conversione dei valori."""

    def test_legacy_aliases(self, work_order_factory):
        client_id = uuid.uuid4()
        data = work_order_factory.normalize(
            {
                "client_id": str(client_id),
                "type_document": "conteneurs",
                "bl_numero": " BL-778 ",
                "navire": "MSC Anna",
                "remise_type": "pourcentage",
                "remise_valeur": "12,5",
                "prime_transitaire": "300",
                "exempt_css": "oui",
            }
        )

        assert data["client_id"] == client_id
        assert data["category"] == "conteneurs"
        assert data["bl_number"] == "BL-778"
        assert data["vessel"] == "MSC Anna"
        assert data["discount_type"] == "percentage"
        assert data["discount_value"] == Decimal("12.5")
        assert data["forwarder_commission"] == Decimal("300")
        assert data["exempt_css"] is True
        assert data["issue_date"] == datetime.date.today()

    def test_canonical_key_wins_over_alias(self, work_order_factory):
        data = work_order_factory.normalize({"bl_numero": "OLD", "bl_number": "NEW"})
        assert data["bl_number"] == "NEW"

    def test_accepts_pydantic_payload(self, work_order_factory):
        payload = DocumentPayload(client_id=uuid.uuid4(), date_facture="2025-02-01", conteneurs=[{"number": "A"}])
        data = work_order_factory.normalize(payload)
        assert data["issue_date"] == datetime.date(2025, 2, 1)
        assert data["conteneurs"] == [{"number": "A"}]

    def test_invoice_due_date_default(self, invoice_factory):
        data = invoice_factory.normalize({"issue_date": "2025-03-14"})
        assert data["due_date"] == datetime.date(2025, 4, 13)

    def test_invoice_due_date_alias(self, invoice_factory):
        data = invoice_factory.normalize({"issue_date": "2025-03-14", "date_echeance": "2025-03-31"})
        assert data["due_date"] == datetime.date(2025, 3, 31)

    def test_explicit_null_required_field_ignored_on_modify(self, work_order_factory):
        data = work_order_factory.normalize({"client_id": None, "notes": None}, for_create=False)
        assert "client_id" not in data
        assert data["notes"] is None
        assert "issue_date" not in data

    def test_invalid_values(self, work_order_factory):
        with pytest.raises(BusinessValidationError):
            work_order_factory.normalize({"client_id": "not-a-uuid"})
        with pytest.raises(BusinessValidationError):
            work_order_factory.normalize({"representative_commission": "-1"})
        with pytest.raises(BusinessValidationError):
            work_order_factory.normalize({"remise_type": "bonus"})


# ============================================================
# Tests per la creazione
# ============================================================


class TestCreate:
    """Creazione atomica di testata, righe e totali."""

    async def test_reference_work_order(self, work_order_factory, mock_db, client, bus):
        user_id = uuid.uuid4()

        work_order = await work_order_factory.create(mock_db, container_payload(client.id), created_by=user_id)

        assert work_order.number == "OT-2025-0001"
        assert work_order.status == "in_progress"
        assert work_order.category == "container"
        assert work_order.subtotal == Decimal("70000.00")
        assert work_order.discount_amount == Decimal("7000.00")
        assert work_order.vat_amount == Decimal("11340.00")
        assert work_order.css_amount == Decimal("630.00")
        assert work_order.total == Decimal("74970.00")
        assert work_order.amount_paid == Decimal("0.00")
        assert work_order.created_by == user_id
        assert len(work_order.containers[0].operations) == 1
        mock_db.commit.assert_awaited_once()
        assert emitted_events(bus) == [DocumentEvent.WORK_ORDER_CREATED]

    async def test_legacy_category_alias(self, work_order_factory, mock_db, client):
        payload = container_payload(client.id)
        payload["type_document"] = "Conteneur"
        payload["conteneurs"] = payload.pop("containers")
        del payload["category"]

        work_order = await work_order_factory.create(mock_db, payload)

        assert work_order.category == "container"
        assert work_order.total == Decimal("74970.00")

    async def test_invalid_lines_consume_no_number(self, work_order_factory, mock_db, client, sequences, bus):
        payload = container_payload(client.id, containers=[{"size": "20"}])

        with pytest.raises(LineValidationError) as exc_info:
            await work_order_factory.create(mock_db, payload)

        assert exc_info.value.errors == ["Container #1: numero obbligatorio"]
        assert sequences.issued == []
        mock_db.add.assert_not_called()
        mock_db.commit.assert_not_awaited()
        mock_db.rollback.assert_awaited_once()
        assert bus.emitted == []

    async def test_lines_of_other_category_ignored(self, work_order_factory, mock_db, client):
        payload = container_payload(client.id, lots=[{"description": "ignored"}])

        work_order = await work_order_factory.create(mock_db, payload)

        assert work_order.lots == []

    async def test_unknown_client(self, work_order_factory, mock_db, sequences):
        with pytest.raises(NotFoundError):
            await work_order_factory.create(mock_db, container_payload(uuid.uuid4()))
        assert sequences.issued == []

    async def test_missing_client(self, work_order_factory, mock_db):
        payload = container_payload(None)
        del payload["client_id"]
        with pytest.raises(BusinessValidationError):
            await work_order_factory.create(mock_db, payload)

    async def test_integrity_error_becomes_conflict(self, work_order_factory, mock_db, client, bus):
        mock_db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with pytest.raises(ConflictError):
            await work_order_factory.create(mock_db, container_payload(client.id))

        mock_db.rollback.assert_awaited_once()
        assert bus.emitted == []

    async def test_invoice_side_effects(self, invoice_factory, mock_db, client, ledger, clients_stub, bus):
        forwarder_id = uuid.uuid4()
        payload = container_payload(client.id, forwarder_id=forwarder_id, forwarder_commission="500")

        invoice = await invoice_factory.create(mock_db, payload)

        assert invoice.number == "FAC-2025-0001"
        assert invoice.status == "issued"
        assert invoice.due_date == ISSUE_DATE + datetime.timedelta(days=30)
        assert [c.partner_id for c in invoice.commissions] == [forwarder_id]
        action, contribution = ledger.calls[0]
        assert action == "add"
        assert contribution.lines[0].base == Decimal("63000.00")
        assert contribution.lines[0].tax == Decimal("11340.00")
        assert clients_stub.refreshed == [client.id]
        assert emitted_events(bus) == [DocumentEvent.INVOICE_CREATED]

    async def test_due_date_before_issue_date(self, invoice_factory, mock_db, client):
        payload = container_payload(client.id, due_date=ISSUE_DATE - datetime.timedelta(days=1))
        with pytest.raises(BusinessValidationError):
            await invoice_factory.create(mock_db, payload)

    async def test_not_subject_invoice(self, invoice_factory, mock_db, client):
        payload = container_payload(client.id, tax_category="non_assujetti")

        invoice = await invoice_factory.create(mock_db, payload)

        assert invoice.vat_amount == Decimal("0.00")
        assert invoice.css_amount == Decimal("0.00")
        assert invoice.total == Decimal("63000.00")


# ============================================================
# Tests per gli incassi
# ============================================================


class TestRecordPayment:
    """Regola di soglia sull'incassato."""

    async def test_invoice_partial_then_paid(self, invoice_factory, mock_db, client, clients_stub, bus):
        invoice = await invoice_factory.create(mock_db, container_payload(client.id))

        await invoice_factory.record_payment(mock_db, invoice.id, Decimal("4970"))
        assert invoice.status == "partially_paid"

        await invoice_factory.record_payment(mock_db, invoice.id, "70000")
        assert invoice.status == "paid"
        assert invoice.amount_paid == Decimal("74970.00")
        assert clients_stub.refreshed.count(client.id) == 3
        assert emitted_events(bus).count(DocumentEvent.INVOICE_PAYMENT_RECORDED) == 2

    async def test_overpayment_accepted_with_warning(self, invoice_factory, mock_db, client, caplog):
        invoice = await invoice_factory.create(mock_db, container_payload(client.id))

        await invoice_factory.record_payment(mock_db, invoice.id, Decimal("80000"))

        assert invoice.status == "paid"
        assert "oltre il totale" in caplog.text

    async def test_work_order_completed_when_settled(self, work_order_factory, mock_db, client):
        work_order = await work_order_factory.create(mock_db, container_payload(client.id))

        await work_order_factory.record_payment(mock_db, work_order.id, Decimal("74970.00"))

        assert work_order.status == "completed"

    async def test_non_positive_amount(self, invoice_factory, mock_db):
        with pytest.raises(BusinessValidationError):
            await invoice_factory.record_payment(mock_db, uuid.uuid4(), Decimal("0"))

    @pytest.mark.parametrize("amount", ["abc", "NaN", "Infinity", None])
    async def test_invalid_amount(self, invoice_factory, mock_db, amount):
        with pytest.raises(BusinessValidationError):
            await invoice_factory.record_payment(mock_db, uuid.uuid4(), amount)

    async def test_cancelled_document_rejected(self, invoice_factory, mock_db, client):
        invoice = await invoice_factory.create(mock_db, container_payload(client.id))
        await invoice_factory.cancel(mock_db, invoice.id)

        with pytest.raises(ReferentialIntegrityError):
            await invoice_factory.record_payment(mock_db, invoice.id, Decimal("10"))

        assert invoice.amount_paid == Decimal("0.00")


# ============================================================
# Tests per la modifica
# ============================================================


class TestModify:
    """Sostituzione delle righe e ricalcolo degli effetti."""

    async def test_replace_lines(self, invoice_factory, mock_db, client, ledger, bus):
        invoice = await invoice_factory.create(mock_db, container_payload(client.id))

        await invoice_factory.modify(
            mock_db,
            invoice.id,
            {"containers": [{"number": "TGHU0000001", "size": "20", "unit_price": 1000}], "remise_type": "none"},
        )

        assert [c.number for c in invoice.containers] == ["TGHU0000001"]
        assert invoice.subtotal == Decimal("1000.00")
        assert invoice.discount_amount == Decimal("0.00")
        assert invoice.total == Decimal("1190.00")
        action, (before, after) = ledger.calls[-1]
        assert action == "reconcile"
        assert before.lines[0].base == Decimal("63000.00")
        assert after.lines[0].base == Decimal("1000.00")
        assert emitted_events(bus)[-1] == DocumentEvent.INVOICE_UPDATED

    async def test_header_only_keeps_lines(self, work_order_factory, mock_db, client):
        work_order = await work_order_factory.create(mock_db, container_payload(client.id))

        await work_order_factory.modify(mock_db, work_order.id, {"vessel": "CMA CGM Rhone"})

        assert work_order.vessel == "CMA CGM Rhone"
        assert len(work_order.containers) == 1
        assert work_order.total == Decimal("74970.00")

    async def test_category_change_requires_new_lines(self, work_order_factory, mock_db, client):
        work_order = await work_order_factory.create(mock_db, container_payload(client.id))

        with pytest.raises(LineValidationError):
            await work_order_factory.modify(mock_db, work_order.id, {"category": "bulk"})

        assert work_order.category == "container"

    async def test_category_change(self, work_order_factory, mock_db, client):
        work_order = await work_order_factory.create(mock_db, container_payload(client.id))

        await work_order_factory.modify(
            mock_db,
            work_order.id,
            {"type_document": "conventionnel", "lots": [{"designation": "Bobine", "quantity": 2, "unit_price": 500}]},
        )

        assert work_order.category == "bulk"
        assert work_order.containers == []
        assert work_order.subtotal == Decimal("1000.00")

    async def test_total_below_paid_turns_invoice_paid(self, invoice_factory, mock_db, client):
        invoice = await invoice_factory.create(mock_db, container_payload(client.id))
        await invoice_factory.record_payment(mock_db, invoice.id, Decimal("50000"))

        await invoice_factory.modify(
            mock_db, invoice.id, {"containers": [{"number": "A1", "size": "20", "unit_price": 10000}]}
        )

        assert invoice.total == Decimal("10710.00")
        assert invoice.status == "paid"

    async def test_commission_change_replaces_pending(self, invoice_factory, mock_db, client):
        representative_id = uuid.uuid4()
        invoice = await invoice_factory.create(
            mock_db,
            container_payload(client.id, representative_id=representative_id, representative_commission="100"),
        )

        await invoice_factory.modify(mock_db, invoice.id, {"prime_representant": "250"})

        assert [c.amount for c in invoice.commissions] == [Decimal("250.00")]

    async def test_client_change_refreshes_both_balances(self, invoice_factory, mock_db, client, clients_stub):
        invoice = await invoice_factory.create(mock_db, container_payload(client.id))
        new_client_id = uuid.uuid4()

        await invoice_factory.modify(mock_db, invoice.id, {"client_id": new_client_id})

        assert invoice.client_id == new_client_id
        assert clients_stub.refreshed[-2:] == [new_client_id, client.id]

    async def test_cancelled_document_cannot_be_modified(self, work_order_factory, mock_db, client):
        work_order = await work_order_factory.create(mock_db, container_payload(client.id))
        await work_order_factory.cancel(mock_db, work_order.id)

        with pytest.raises(ConflictError):
            await work_order_factory.modify(mock_db, work_order.id, {"notes": "late change"})


# ============================================================
# Tests per duplicazione e conversione
# ============================================================


class TestDuplicate:
    """Copia con nuovo numero e stato iniziale."""

    async def test_duplicate_work_order(self, work_order_factory, mock_db, client):
        source = await work_order_factory.create(mock_db, container_payload(client.id))
        await work_order_factory.record_payment(mock_db, source.id, Decimal("1000"))

        copy = await work_order_factory.duplicate(mock_db, source.id)

        assert copy.id != source.id
        assert copy.number != source.number
        assert copy.status == "in_progress"
        assert copy.amount_paid == Decimal("0.00")
        assert copy.issue_date == datetime.date.today()
        assert copy.total == source.total
        assert [c.number for c in copy.containers] == [c.number for c in source.containers]


class TestConvert:
    """Conversione ordine di lavoro → fattura."""

    async def test_convert(self, work_order_factory, mock_db, client, bus):
        forwarder_id = uuid.uuid4()
        work_order = await work_order_factory.create(
            mock_db,
            container_payload(client.id, bl_number="BL-42", forwarder_id=forwarder_id, forwarder_commission="120"),
        )

        invoice = await work_order_factory.convert(mock_db, work_order.id)

        assert work_order.status == "invoiced"
        assert invoice.work_order_id == work_order.id
        assert invoice.number.startswith("FAC-")
        assert invoice.status == "issued"
        assert invoice.amount_paid == Decimal("0.00")
        assert invoice.bl_number == "BL-42"
        assert invoice.total == work_order.total
        assert invoice.containers[0].operations[0].unit_price == Decimal("10000")
        assert [c.amount for c in invoice.commissions] == [Decimal("120.00")]
        assert emitted_events(bus)[-2:] == [DocumentEvent.INVOICE_CREATED, DocumentEvent.WORK_ORDER_CONVERTED]

    async def test_convert_with_overrides(self, work_order_factory, mock_db, client):
        work_order = await work_order_factory.create(mock_db, container_payload(client.id))

        invoice = await work_order_factory.convert(
            mock_db,
            work_order.id,
            overrides=ConversionRequest(issue_date=datetime.date(2025, 5, 2), due_date=datetime.date(2025, 6, 30)),
        )

        assert invoice.issue_date == datetime.date(2025, 5, 2)
        assert invoice.due_date == datetime.date(2025, 6, 30)

    async def test_convert_twice_refused(self, work_order_factory, mock_db, client):
        work_order = await work_order_factory.create(mock_db, container_payload(client.id))
        await work_order_factory.convert(mock_db, work_order.id)

        with pytest.raises(IllegalStateTransitionError):
            await work_order_factory.convert(mock_db, work_order.id)

    async def test_convert_cancelled_refused(self, work_order_factory, mock_db, client, sequences):
        work_order = await work_order_factory.create(mock_db, container_payload(client.id))
        await work_order_factory.cancel(mock_db, work_order.id)

        with pytest.raises(IllegalStateTransitionError):
            await work_order_factory.convert(mock_db, work_order.id)
        assert sequences.issued == ["OT-2025-0001"]

    async def test_convert_with_existing_invoice(self, work_order_factory, invoice_factory, mock_db, client):
        work_order = await work_order_factory.create(mock_db, container_payload(client.id))
        work_order.invoice = await invoice_factory.create(mock_db, container_payload(client.id))

        with pytest.raises(ConflictError):
            await work_order_factory.convert(mock_db, work_order.id)


# ============================================================
# Tests per annullamento ed eliminazione
# ============================================================


class TestCancelAndDelete:
    """Annullamento e soft delete."""

    async def test_cancel_invoice(self, invoice_factory, mock_db, client, ledger, bus):
        invoice = await invoice_factory.create(
            mock_db,
            container_payload(client.id, forwarder_id=uuid.uuid4(), forwarder_commission="80"),
        )

        await invoice_factory.cancel(mock_db, invoice.id, reason="Errore di intestazione")

        assert invoice.status == "cancelled"
        assert invoice.notes == "[Annullato] Errore di intestazione"
        assert invoice.commissions[0].status == "cancelled"
        action, contribution = ledger.calls[-1]
        assert action == "remove"
        assert contribution.lines[0].base == Decimal("63000.00")
        assert emitted_events(bus)[-1] == DocumentEvent.INVOICE_CANCELLED

    async def test_cancel_twice(self, invoice_factory, mock_db, client):
        invoice = await invoice_factory.create(mock_db, container_payload(client.id))
        await invoice_factory.cancel(mock_db, invoice.id)

        with pytest.raises(IllegalStateTransitionError):
            await invoice_factory.cancel(mock_db, invoice.id)

    async def test_delete_with_payments_refused(self, invoice_factory, mock_db, client):
        invoice = await invoice_factory.create(mock_db, container_payload(client.id))
        await invoice_factory.record_payment(mock_db, invoice.id, Decimal("1"))

        with pytest.raises(ConflictError):
            await invoice_factory.delete(mock_db, invoice.id)
        assert invoice.is_active is True

    async def test_soft_delete(self, invoice_factory, mock_db, client, ledger):
        invoice = await invoice_factory.create(mock_db, container_payload(client.id))

        await invoice_factory.delete(mock_db, invoice.id)

        assert invoice.is_active is False
        assert ledger.calls[-1][0] == "remove"
        with pytest.raises(NotFoundError):
            await invoice_factory.get_by_id(mock_db, invoice.id)
