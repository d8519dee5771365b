"""
Service Layer per la Fatturazione
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Factory delle fatture: alle operazioni comuni del ciclo di vita
aggiunge scadenza, provvigioni, registro mensile delle tasse e
ricalcolo del saldo cliente, tutti nella transazione della fattura.
"""

import datetime
import logging
import uuid
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.events import DocumentEvent
from app.core.exceptions import BusinessValidationError
from app.models import Invoice
from app.schemas.document import INVOICE_TRANSITIONS, InvoiceStatus
from app.services.commission_service import CommissionService, commission_service
from app.services.document_factory import HEADER_ALIASES, DocumentFactory
from app.services.sequence_service import SequenceDomain
from app.services.tax_ledger_service import TaxContribution, TaxLedgerService, tax_ledger_service

# Logger per questo modulo
logger = logging.getLogger(__name__)


class InvoiceFactory(DocumentFactory):
    """
    Factory delle fatture.

    Una fattura nasce 'issued' (non esiste bozza) e si sposta verso
    partially_paid / paid in base all'incassato.
    """

    model = Invoice
    domain = SequenceDomain.INVOICE
    label = "fattura"
    status_enum = InvoiceStatus
    initial_status = InvoiceStatus.ISSUED
    cancelled_status = InvoiceStatus.CANCELLED
    transitions = INVOICE_TRANSITIONS
    events = {
        "created": DocumentEvent.INVOICE_CREATED,
        "updated": DocumentEvent.INVOICE_UPDATED,
        "payment": DocumentEvent.INVOICE_PAYMENT_RECORDED,
        "cancelled": DocumentEvent.INVOICE_CANCELLED,
    }

    field_aliases = {
        **HEADER_ALIASES,
        "date_echeance": "due_date",
        "echeance": "due_date",
    }
    header_fields = (*DocumentFactory.header_fields, "due_date")

    def __init__(
        self,
        *args: Any,
        ledger: Optional[TaxLedgerService] = None,
        commissions: Optional[CommissionService] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.ledger = ledger or tax_ledger_service
        self.commissions = commissions or commission_service

    def _normalize_extra(self, data: dict[str, Any], for_create: bool) -> None:
        """Scadenza di default: data fattura + giorni configurati."""
        if for_create and data.get("due_date") is None:
            data["due_date"] = data["issue_date"] + datetime.timedelta(days=settings.invoice_due_days)

    def _apply_header(self, document: Invoice, data: dict[str, Any]) -> None:
        super()._apply_header(document, data)
        if document.due_date is not None and document.issue_date is not None:
            if document.due_date < document.issue_date:
                raise BusinessValidationError(
                    "La data di scadenza non può precedere la data fattura"
                )

    def _payment_status(self, document: Invoice) -> Optional[InvoiceStatus]:
        if document.status == InvoiceStatus.CANCELLED.value:
            return None
        if document.amount_paid > 0 and document.amount_paid >= document.total:
            return InvoiceStatus.PAID
        if document.amount_paid > 0:
            return InvoiceStatus.PARTIALLY_PAID
        return InvoiceStatus.ISSUED

    def _contribution(self, document: Invoice) -> Optional[TaxContribution]:
        return TaxContribution.from_document(document)

    # ------------------------------------------------------------
    # Effetti collaterali
    # ------------------------------------------------------------
    async def _after_create(self, db: AsyncSession, document: Invoice) -> None:
        self.commissions.create_for_invoice(document)
        await db.flush()
        await self.ledger.add_document(db, document)
        await self.clients.refresh_balance(db, document.client_id)

    async def _after_modify(
        self,
        db: AsyncSession,
        document: Invoice,
        before: Optional[TaxContribution],
        old_client_id: Optional[uuid.UUID],
        commissions_changed: bool,
    ) -> None:
        # Un totale ridotto sotto l'incassato porta la fattura a 'paid'
        status = self._payment_status(document)
        if status is not None and status.value != document.status:
            logger.info(
                "Fattura %s: stato ricalcolato %s → %s", document.number, document.status, status.value
            )
            document.status = status.value

        if commissions_changed:
            self.commissions.replace_pending(document)

        await db.flush()
        await self.ledger.reconcile(db, before, self._contribution(document))
        await self.clients.refresh_balance(db, document.client_id)
        if old_client_id is not None and old_client_id != document.client_id:
            await self.clients.refresh_balance(db, old_client_id)

    async def _after_payment(self, db: AsyncSession, document: Invoice) -> None:
        await self.clients.refresh_balance(db, document.client_id)

    async def _after_cancel(
        self,
        db: AsyncSession,
        document: Invoice,
        before: Optional[TaxContribution],
    ) -> None:
        cancelled = self.commissions.cancel_pending(document)
        if cancelled:
            logger.info("Fattura %s: annullate %d provvigioni pending", document.number, cancelled)
        await self.ledger.remove(db, before)
        await self.clients.refresh_balance(db, document.client_id)

    def _event_payload(self, document: Invoice) -> dict[str, Any]:
        payload = super()._event_payload(document)
        payload["due_date"] = document.due_date.isoformat() if document.due_date else None
        payload["work_order_id"] = str(document.work_order_id) if document.work_order_id else None
        return payload


# Istanza condivisa dall'applicazione
invoice_factory = InvoiceFactory()
