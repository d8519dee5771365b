"""
Router FastAPI per gli Ordini di Lavoro
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Endpoint sottili sopra WorkOrderFactory: ogni chiamata è una singola
transazione del motore documenti.
"""

import logging
import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import CurrentUserId
from app.schemas.document import CancelRequest, PaymentCreate, WorkOrderStatus
from app.schemas.invoice import ConversionRequest, InvoiceRead
from app.schemas.work_order import (
    WorkOrderCreate,
    WorkOrderList,
    WorkOrderRead,
    WorkOrderUpdate,
)
from app.services.work_order_service import work_order_factory

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/work-orders",
    tags=["Ordini di Lavoro"],
)


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "/",
    name="ordini_lista",
    summary="Lista ordini di lavoro",
    response_model=WorkOrderList,
    status_code=status.HTTP_200_OK,
)
async def get_work_orders(
    client_id: Optional[uuid.UUID] = Query(None, description="Filtro per UUID cliente"),
    status_filter: Optional[WorkOrderStatus] = Query(None, description="Filtro per stato"),
    category: Optional[str] = Query(None, description="Filtro per categoria"),
    from_date: Optional[date] = Query(None, description="Data inizio periodo"),
    to_date: Optional[date] = Query(None, description="Data fine periodo"),
    search: Optional[str] = Query(None, description="Ricerca per numero o BL"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(10, ge=1, le=100, description="Elementi per pagina"),
    db: AsyncSession = Depends(get_db),
) -> WorkOrderList:
    items, total = await work_order_factory.get_all(
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
    return WorkOrderList(
        items=[WorkOrderRead.model_validate(wo) for wo in items],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/{work_order_id}",
    name="ordine_dettaglio",
    summary="Dettaglio ordine di lavoro",
    response_model=WorkOrderRead,
    status_code=status.HTTP_200_OK,
)
async def get_work_order(
    work_order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> WorkOrderRead:
    return WorkOrderRead.model_validate(await work_order_factory.get_by_id(db, work_order_id))


@router.post(
    "/",
    name="ordine_crea",
    summary="Crea ordine di lavoro",
    description="Crea un ordine con le righe della categoria (container, lotti o prestazioni).",
    response_model=WorkOrderRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_work_order(
    data: WorkOrderCreate,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> WorkOrderRead:
    work_order = await work_order_factory.create(db, data, created_by=user_id)
    return WorkOrderRead.model_validate(work_order)


@router.put(
    "/{work_order_id}",
    name="ordine_modifica",
    summary="Modifica ordine di lavoro",
    response_model=WorkOrderRead,
    status_code=status.HTTP_200_OK,
)
async def update_work_order(
    work_order_id: uuid.UUID,
    data: WorkOrderUpdate,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> WorkOrderRead:
    work_order = await work_order_factory.modify(db, work_order_id, data)
    return WorkOrderRead.model_validate(work_order)


@router.post(
    "/{work_order_id}/payments",
    name="ordine_incasso",
    summary="Registra incasso",
    response_model=WorkOrderRead,
    status_code=status.HTTP_200_OK,
)
async def record_work_order_payment(
    work_order_id: uuid.UUID,
    data: PaymentCreate,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> WorkOrderRead:
    work_order = await work_order_factory.record_payment(db, work_order_id, data.amount)
    return WorkOrderRead.model_validate(work_order)


@router.post(
    "/{work_order_id}/convert",
    name="ordine_converti",
    summary="Converti in fattura",
    description="Crea la fattura dalle righe dell'ordine e segna l'ordine come fatturato.",
    response_model=InvoiceRead,
    status_code=status.HTTP_201_CREATED,
)
async def convert_work_order(
    work_order_id: uuid.UUID,
    user_id: CurrentUserId,
    data: Optional[ConversionRequest] = None,
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    invoice = await work_order_factory.convert(db, work_order_id, created_by=user_id, overrides=data)
    return InvoiceRead.model_validate(invoice)


@router.post(
    "/{work_order_id}/duplicate",
    name="ordine_duplica",
    summary="Duplica ordine di lavoro",
    response_model=WorkOrderRead,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_work_order(
    work_order_id: uuid.UUID,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> WorkOrderRead:
    work_order = await work_order_factory.duplicate(db, work_order_id, created_by=user_id)
    return WorkOrderRead.model_validate(work_order)


@router.post(
    "/{work_order_id}/cancel",
    name="ordine_annulla",
    summary="Annulla ordine di lavoro",
    response_model=WorkOrderRead,
    status_code=status.HTTP_200_OK,
)
async def cancel_work_order(
    work_order_id: uuid.UUID,
    user_id: CurrentUserId,
    data: Optional[CancelRequest] = None,
    db: AsyncSession = Depends(get_db),
) -> WorkOrderRead:
    work_order = await work_order_factory.cancel(db, work_order_id, reason=data.reason if data else None)
    return WorkOrderRead.model_validate(work_order)


@router.delete(
    "/{work_order_id}",
    name="ordine_elimina",
    summary="Elimina ordine di lavoro",
    description="Soft delete: rifiutato se l'ordine ha incassi registrati.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_work_order(
    work_order_id: uuid.UUID,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> None:
    await work_order_factory.delete(db, work_order_id)
