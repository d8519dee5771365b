"""
Service Layer per gli Ordini di Lavoro
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Factory degli ordini di lavoro e conversione in fattura.
"""

import logging
import uuid
from typing import Any, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.events import DocumentEvent
from app.core.exceptions import ConflictError, IllegalStateTransitionError
from app.models import Invoice, WorkOrder
from app.schemas.document import WORK_ORDER_TRANSITIONS, WorkOrderStatus
from app.services.calculators import get_calculator
from app.services.document_factory import DocumentFactory, Payload
from app.services.invoice_service import InvoiceFactory, invoice_factory
from app.services.sequence_service import SequenceDomain

# Logger per questo modulo
logger = logging.getLogger(__name__)


class WorkOrderFactory(DocumentFactory):
    """
    Factory degli ordini di lavoro.

    Gli ordini non alimentano il registro tasse né il saldo cliente:
    sono documenti pre-fatturazione, contabilizzati dalla fattura che
    ne deriva. Gli importi di provvigione restano sull'ordine e passano
    alla fattura in conversione.
    """

    model = WorkOrder
    domain = SequenceDomain.WORK_ORDER
    label = "ordine di lavoro"
    status_enum = WorkOrderStatus
    initial_status = WorkOrderStatus.IN_PROGRESS
    cancelled_status = WorkOrderStatus.CANCELLED
    transitions = WORK_ORDER_TRANSITIONS
    events = {
        "created": DocumentEvent.WORK_ORDER_CREATED,
        "updated": DocumentEvent.WORK_ORDER_UPDATED,
        "payment": DocumentEvent.WORK_ORDER_PAYMENT_RECORDED,
        "cancelled": DocumentEvent.WORK_ORDER_CANCELLED,
    }

    def __init__(
        self,
        *args: Any,
        invoices: Optional[InvoiceFactory] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.invoices = invoices or invoice_factory

    def _payment_status(self, document: WorkOrder) -> Optional[WorkOrderStatus]:
        # Il saldo completo chiude l'ordine, salvo ordine già fatturato
        if (
            document.status == WorkOrderStatus.IN_PROGRESS.value
            and document.amount_paid > 0
            and document.amount_paid >= document.total
        ):
            return WorkOrderStatus.COMPLETED
        return None

    def build_invoice_payload(self, work_order: WorkOrder) -> dict[str, Any]:
        """
        Payload di fattura dall'ordine: riferimenti cliente/partner,
        categoria, condizioni (sconto, esenzioni, provvigioni) e righe
        proiettate dal calcolatore della categoria.
        """
        calculator = get_calculator(work_order.category)
        return {**self.copy_header(work_order), **calculator.project_for_conversion(work_order)}

    async def convert(
        self,
        db: AsyncSession,
        work_order_id: uuid.UUID,
        created_by: Optional[uuid.UUID] = None,
        overrides: Optional[Payload] = None,
    ) -> Invoice:
        """
        Converte un ordine di lavoro in fattura.

        La fattura viene creata nella stessa transazione in cui l'ordine
        passa a 'invoiced': se una delle due scritture fallisce non
        resta nulla.

        Args:
            db: Sessione database
            work_order_id: UUID dell'ordine
            created_by: Utente che esegue la conversione
            overrides: Campi di testata della fattura (es. issue_date, due_date)

        Returns:
            Invoice: La fattura creata

        Raises:
            IllegalStateTransitionError: Ordine annullato o già fatturato
            ConflictError: Esiste già una fattura per l'ordine
        """
        work_order = await self.get_by_id(db, work_order_id)
        if work_order.invoice is not None:
            raise ConflictError(
                f"L'ordine {work_order.number} è già stato convertito nella fattura {work_order.invoice.number}"
            )
        current = WorkOrderStatus(work_order.status)
        if WorkOrderStatus.INVOICED not in self.transitions[current]:
            raise IllegalStateTransitionError(current.value, WorkOrderStatus.INVOICED.value, self.label)

        payload = self.build_invoice_payload(work_order)
        if overrides is not None:
            if isinstance(overrides, BaseModel):
                overrides = overrides.model_dump(exclude_unset=True)
            payload.update({key: value for key, value in overrides.items() if value is not None})

        async with self._unit_of_work(db, f"conversione {self.label}"):
            invoice = await self.invoices._create(
                db, payload, created_by, attributes={"work_order_id": work_order.id}
            )
            self._transition(work_order, WorkOrderStatus.INVOICED)

        logger.info("Ordine %s convertito nella fattura %s", work_order.number, invoice.number)
        await self.invoices.bus.emit(
            self.invoices.events["created"], self.invoices._event_payload(invoice)
        )
        await self.bus.emit(
            DocumentEvent.WORK_ORDER_CONVERTED,
            {**self._event_payload(work_order), "invoice_id": str(invoice.id), "invoice_number": invoice.number},
        )
        return await self.invoices.get_by_id(db, invoice.id)


# Istanza condivisa dall'applicazione
work_order_factory = WorkOrderFactory()
