"""
Schemas Pydantic per gli Ordini di Lavoro
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Definisce gli schemi di validazione e serializzazione per l'API.
"""

import uuid
from typing import Optional

from pydantic import ConfigDict

from app.schemas.document import (
    DocumentPayload,
    DocumentRead,
    PaginatedList,
    WorkOrderStatus,
)


class WorkOrderCreate(DocumentPayload):
    """Payload di creazione di un ordine di lavoro."""


class WorkOrderUpdate(DocumentPayload):
    """
    Payload di modifica.

    Solo i campi presenti vengono aggiornati; le righe fornite
    sostituiscono integralmente quelle della categoria.
    """


class WorkOrderRead(DocumentRead):
    """Schema per la lettura di un ordine di lavoro."""
    model_config = ConfigDict(from_attributes=True)

    status: WorkOrderStatus
    invoice_id: Optional[uuid.UUID] = None


class WorkOrderList(PaginatedList):
    """Risposta paginata degli ordini di lavoro."""
    items: list[WorkOrderRead]


__all__ = [
    "WorkOrderCreate",
    "WorkOrderUpdate",
    "WorkOrderRead",
    "WorkOrderList",
]
