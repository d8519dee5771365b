"""
Schemas Pydantic per le Fatture e le Provvigioni
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Definisce gli schemi di validazione e serializzazione per l'API.
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.document import (
    BeneficiaryType,
    CommissionStatus,
    DocumentPayload,
    DocumentRead,
    InvoiceStatus,
    PaginatedList,
)


class InvoiceCreate(DocumentPayload):
    """Payload di creazione diretta di una fattura."""

    due_date: Optional[datetime.date] = Field(
        None,
        description="Data di scadenza (default: data documento + 30 giorni)",
    )


class InvoiceUpdate(InvoiceCreate):
    """Payload di modifica di una fattura (solo i campi presenti)."""


class CommissionRead(BaseModel):
    """Schema per la lettura di una provvigione."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    invoice_id: uuid.UUID
    partner_id: uuid.UUID
    beneficiary_type: BeneficiaryType
    amount: Decimal
    status: CommissionStatus
    description: Optional[str] = None
    paid_at: Optional[datetime.datetime] = None


class InvoiceRead(DocumentRead):
    """Schema per la lettura di una fattura."""
    model_config = ConfigDict(from_attributes=True)

    status: InvoiceStatus
    due_date: datetime.date
    work_order_id: Optional[uuid.UUID] = None
    commissions: list[CommissionRead] = Field(default_factory=list)


class InvoiceList(PaginatedList):
    """Risposta paginata delle fatture."""
    items: list[InvoiceRead]


class ConversionRequest(BaseModel):
    """Opzioni della conversione ordine di lavoro → fattura."""
    issue_date: Optional[datetime.date] = Field(None, description="Data fattura (default oggi)")
    due_date: Optional[datetime.date] = Field(None, description="Scadenza (default data + 30 giorni)")
    notes: Optional[str] = Field(None, description="Note della fattura")


__all__ = [
    "InvoiceCreate",
    "InvoiceUpdate",
    "InvoiceRead",
    "InvoiceList",
    "CommissionRead",
    "ConversionRequest",
]
