"""
Router FastAPI per Partner e Provvigioni
Progetto: Gestionale Logistica (Motore Documenti Commerciali)
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import CurrentUserId
from app.schemas.document import CommissionStatus
from app.schemas.invoice import CommissionRead
from app.schemas.partner import PartnerCreate, PartnerRead, PartnerType
from app.services.commission_service import commission_service
from app.services.partner_service import partner_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/partners",
    tags=["Partner"],
)

# Router separato per le provvigioni
commissions_router = APIRouter(
    prefix="/commissions",
    tags=["Provvigioni"],
)


# -------------------------------------------------------------------
# Endpoints per Partner
# -------------------------------------------------------------------

@router.get(
    "/",
    name="partner_lista",
    summary="Lista partner",
    response_model=list[PartnerRead],
    status_code=status.HTTP_200_OK,
)
async def get_partners(
    partner_type: Optional[PartnerType] = Query(None, description="Filtro per ruolo"),
    db: AsyncSession = Depends(get_db),
) -> list[PartnerRead]:
    partners = await partner_service.get_all(db, partner_type)
    return [PartnerRead.model_validate(p) for p in partners]


@router.post(
    "/",
    name="partner_crea",
    summary="Crea partner",
    response_model=PartnerRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_partner(
    data: PartnerCreate,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> PartnerRead:
    return PartnerRead.model_validate(await partner_service.create(db, data))


@router.get(
    "/{partner_id}/commissions",
    name="partner_provvigioni",
    summary="Provvigioni del partner",
    response_model=list[CommissionRead],
    status_code=status.HTTP_200_OK,
)
async def get_partner_commissions(
    partner_id: uuid.UUID,
    status_filter: Optional[CommissionStatus] = Query(None, description="Filtro per stato"),
    db: AsyncSession = Depends(get_db),
) -> list[CommissionRead]:
    await partner_service.get_by_id(db, partner_id)
    commissions = await commission_service.get_by_partner(db, partner_id, status_filter)
    return [CommissionRead.model_validate(c) for c in commissions]


# -------------------------------------------------------------------
# Endpoints per Provvigioni
# -------------------------------------------------------------------

@commissions_router.post(
    "/{commission_id}/pay",
    name="provvigione_paga",
    summary="Segna provvigione come pagata",
    description="Una provvigione pagata non viene più modificata dalle variazioni della fattura.",
    response_model=CommissionRead,
    status_code=status.HTTP_200_OK,
)
async def pay_commission(
    commission_id: uuid.UUID,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> CommissionRead:
    commission = await commission_service.mark_paid(db, commission_id)
    return CommissionRead.model_validate(commission)
