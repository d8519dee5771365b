"""
Router FastAPI per il registro mensile delle tasse
Progetto: Gestionale Logistica (Motore Documenti Commerciali)
"""

import logging

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import CurrentUserId
from app.schemas.tax import MonthlyTaxAggregateRead, YearlyTaxTotal
from app.services.tax_ledger_service import tax_ledger_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/taxes",
    tags=["Registro Tasse"],
)


@router.get(
    "/{year}",
    name="tasse_annuali",
    summary="Cumuli annuali per codice tassa",
    response_model=list[YearlyTaxTotal],
    status_code=status.HTTP_200_OK,
)
async def get_yearly_totals(
    year: int = Path(..., ge=1900, le=9999),
    db: AsyncSession = Depends(get_db),
) -> list[YearlyTaxTotal]:
    return await tax_ledger_service.get_yearly_totals(db, year)


@router.get(
    "/{year}/{month}",
    name="tasse_mensili",
    summary="Aggregati del mese",
    response_model=list[MonthlyTaxAggregateRead],
    status_code=status.HTTP_200_OK,
)
async def get_month(
    year: int = Path(..., ge=1900, le=9999),
    month: int = Path(..., ge=1, le=12),
    db: AsyncSession = Depends(get_db),
) -> list[MonthlyTaxAggregateRead]:
    rows = await tax_ledger_service.get_month(db, year, month)
    return [MonthlyTaxAggregateRead.model_validate(r) for r in rows]


@router.post(
    "/{year}/{month}/recalculate",
    name="tasse_ricalcola",
    summary="Ricalcola il mese dalle fatture",
    description="Ricostruisce gli aggregati del mese dalle fatture attive non annullate.",
    response_model=list[MonthlyTaxAggregateRead],
    status_code=status.HTTP_200_OK,
)
async def recalculate_month(
    user_id: CurrentUserId,
    year: int = Path(..., ge=1900, le=9999),
    month: int = Path(..., ge=1, le=12),
    db: AsyncSession = Depends(get_db),
) -> list[MonthlyTaxAggregateRead]:
    try:
        rows = await tax_ledger_service.recalculate_month(db, year, month)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return [MonthlyTaxAggregateRead.model_validate(r) for r in rows]


@router.post(
    "/{year}/{month}/close",
    name="tasse_chiudi",
    summary="Chiude il periodo fiscale",
    response_model=list[MonthlyTaxAggregateRead],
    status_code=status.HTTP_200_OK,
)
async def close_month(
    user_id: CurrentUserId,
    year: int = Path(..., ge=1900, le=9999),
    month: int = Path(..., ge=1, le=12),
    db: AsyncSession = Depends(get_db),
) -> list[MonthlyTaxAggregateRead]:
    rows = await tax_ledger_service.close_month(db, year, month)
    logger.info("Periodo %d-%02d chiuso dall'utente %s", year, month, user_id)
    return [MonthlyTaxAggregateRead.model_validate(r) for r in rows]
