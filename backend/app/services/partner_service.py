"""
Service Layer per i Partner
Progetto: Gestionale Logistica (Motore Documenti Commerciali)
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models import Partner
from app.schemas.partner import PartnerCreate, PartnerType

logger = logging.getLogger(__name__)


class PartnerService:
    """Anagrafica di armatori, transitari e rappresentanti."""

    async def get_all(
        self,
        db: AsyncSession,
        partner_type: Optional[PartnerType] = None,
    ) -> list[Partner]:
        query = select(Partner).where(Partner.is_active == True).order_by(Partner.name.asc())
        if partner_type is not None:
            query = query.where(Partner.partner_type == partner_type.value)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_by_id(self, db: AsyncSession, partner_id: uuid.UUID) -> Partner:
        partner = await db.get(Partner, partner_id)
        if partner is None or not partner.is_active:
            raise NotFoundError(f"Partner con ID {partner_id} non trovato")
        return partner

    async def create(self, db: AsyncSession, data: PartnerCreate) -> Partner:
        partner = Partner(
            name=data.name.strip(),
            partner_type=data.partner_type.value,
            phone=data.phone,
            email=data.email,
            is_active=True,
        )
        db.add(partner)
        await db.commit()
        logger.info("Creato partner %s (%s)", partner.name, partner.partner_type)
        return partner


partner_service = PartnerService()
