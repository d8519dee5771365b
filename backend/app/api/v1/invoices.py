"""
Router FastAPI per la Fatturazione
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Definisce gli endpoint API per le fatture: creazione diretta,
modifica, incassi, duplicazione, annullamento.
"""

import logging
import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import CurrentUserId
from app.schemas.document import CancelRequest, InvoiceStatus, PaymentCreate
from app.schemas.invoice import (
    InvoiceCreate,
    InvoiceList,
    InvoiceRead,
    InvoiceUpdate,
)
from app.services.invoice_service import invoice_factory

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/invoices",
    tags=["Fatturazione"],
)


# -------------------------------------------------------------------
# Endpoints per Fatture
# -------------------------------------------------------------------

@router.get(
    "/",
    name="fatture_lista",
    summary="Lista fatture",
    description="Recupera la lista paginata delle fatture con eventuali filtri.",
    response_model=InvoiceList,
    status_code=status.HTTP_200_OK,
)
async def get_invoices(
    client_id: Optional[uuid.UUID] = Query(None, description="Filtro per UUID cliente"),
    status_filter: Optional[InvoiceStatus] = Query(None, description="Filtro per stato"),
    category: Optional[str] = Query(None, description="Filtro per categoria"),
    from_date: Optional[date] = Query(None, description="Data inizio periodo (YYYY-MM-DD)"),
    to_date: Optional[date] = Query(None, description="Data fine periodo (YYYY-MM-DD)"),
    search: Optional[str] = Query(None, description="Ricerca per numero o BL"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(10, ge=1, le=100, description="Elementi per pagina"),
    db: AsyncSession = Depends(get_db),
) -> InvoiceList:
    items, total = await invoice_factory.get_all(
        db=db,
        client_id=client_id,
        status_filter=status_filter.value if status_filter else None,
        category=category,
        from_date=from_date,
        to_date=to_date,
        search=search,
        page=page,
        per_page=per_page,
    )
    return InvoiceList(
        items=[InvoiceRead.model_validate(i) for i in items],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/{invoice_id}",
    name="fattura_dettaglio",
    summary="Dettaglio fattura",
    response_model=InvoiceRead,
    status_code=status.HTTP_200_OK,
)
async def get_invoice(
    invoice_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    return InvoiceRead.model_validate(await invoice_factory.get_by_id(db, invoice_id))


@router.post(
    "/",
    name="fattura_crea",
    summary="Crea fattura",
    description="Crea una fattura 'issued' con numerazione FAC-AAAA-NNNN.",
    response_model=InvoiceRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    data: InvoiceCreate,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    invoice = await invoice_factory.create(db, data, created_by=user_id)
    return InvoiceRead.model_validate(invoice)


@router.put(
    "/{invoice_id}",
    name="fattura_modifica",
    summary="Modifica fattura",
    description="Aggiorna testata e righe; riconcilia registro tasse, provvigioni e saldo cliente.",
    response_model=InvoiceRead,
    status_code=status.HTTP_200_OK,
)
async def update_invoice(
    invoice_id: uuid.UUID,
    data: InvoiceUpdate,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    invoice = await invoice_factory.modify(db, invoice_id, data)
    return InvoiceRead.model_validate(invoice)


@router.post(
    "/{invoice_id}/payments",
    name="fattura_incasso",
    summary="Registra incasso",
    response_model=InvoiceRead,
    status_code=status.HTTP_200_OK,
)
async def record_invoice_payment(
    invoice_id: uuid.UUID,
    data: PaymentCreate,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    invoice = await invoice_factory.record_payment(db, invoice_id, data.amount)
    return InvoiceRead.model_validate(invoice)


@router.post(
    "/{invoice_id}/duplicate",
    name="fattura_duplica",
    summary="Duplica fattura",
    response_model=InvoiceRead,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_invoice(
    invoice_id: uuid.UUID,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    invoice = await invoice_factory.duplicate(db, invoice_id, created_by=user_id)
    return InvoiceRead.model_validate(invoice)


@router.post(
    "/{invoice_id}/cancel",
    name="fattura_annulla",
    summary="Annulla fattura",
    description="Storna il contributo al registro tasse e annulla le provvigioni pending.",
    response_model=InvoiceRead,
    status_code=status.HTTP_200_OK,
)
async def cancel_invoice(
    invoice_id: uuid.UUID,
    user_id: CurrentUserId,
    data: Optional[CancelRequest] = None,
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    invoice = await invoice_factory.cancel(db, invoice_id, reason=data.reason if data else None)
    return InvoiceRead.model_validate(invoice)


@router.delete(
    "/{invoice_id}",
    name="fattura_elimina",
    summary="Elimina fattura",
    description="Soft delete: rifiutato se la fattura ha incassi registrati.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_invoice(
    invoice_id: uuid.UUID,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> None:
    await invoice_factory.delete(db, invoice_id)
