"""
Service Layer per le Provvigioni
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Le provvigioni nascono dagli importi forwarder_commission e
representative_commission della fattura, intestate al transitario e
al rappresentante referenziati. Le provvigioni già pagate sono
immutabili.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import IllegalStateTransitionError, NotFoundError
from app.models import Commission, Invoice
from app.schemas.document import BeneficiaryType, CommissionStatus
from app.services.money import round_money, to_decimal

logger = logging.getLogger(__name__)

BENEFICIARY_LABELS = {
    BeneficiaryType.FORWARDER: "transitario",
    BeneficiaryType.REPRESENTATIVE: "rappresentante",
}


class CommissionService:
    """Service per la gestione delle provvigioni delle fatture."""

    @staticmethod
    def _targets(invoice: Invoice) -> list[tuple[BeneficiaryType, Optional[uuid.UUID], Decimal]]:
        return [
            (BeneficiaryType.FORWARDER, invoice.forwarder_id, to_decimal(invoice.forwarder_commission)),
            (BeneficiaryType.REPRESENTATIVE, invoice.representative_id, to_decimal(invoice.representative_commission)),
        ]

    @staticmethod
    def _build(invoice: Invoice, kind: BeneficiaryType, partner_id: uuid.UUID, amount: Decimal) -> Commission:
        return Commission(
            partner_id=partner_id,
            beneficiary_type=kind.value,
            amount=round_money(amount),
            status=CommissionStatus.PENDING.value,
            description=f"Provvigione {BENEFICIARY_LABELS[kind]} per fattura {invoice.number}",
        )

    def create_for_invoice(
        self,
        invoice: Invoice,
        skip: frozenset[str] = frozenset(),
    ) -> list[Commission]:
        """
        Crea le provvigioni pending per gli importi non nulli della fattura.

        Un importo senza partner referenziato non genera provvigioni.

        Args:
            invoice: Fattura (le provvigioni sono aggiunte alla sua collezione)
            skip: Tipi di beneficiario da non generare

        Returns:
            list[Commission]: Provvigioni create
        """
        created = []
        for kind, partner_id, amount in self._targets(invoice):
            if amount <= 0 or kind.value in skip:
                continue
            if partner_id is None:
                logger.warning(
                    "Provvigione %s di %s su fattura %s senza partner: ignorata",
                    kind.value, amount, invoice.number,
                )
                continue
            commission = self._build(invoice, kind, partner_id, amount)
            invoice.commissions.append(commission)
            created.append(commission)
        if created:
            logger.info("Create %d provvigioni per fattura %s", len(created), invoice.number)
        return created

    def replace_pending(self, invoice: Invoice) -> list[Commission]:
        """
        Sostituisce le provvigioni pending con quelle derivate dagli
        importi attuali. Un tipo con una provvigione già pagata resta
        invariato e il nuovo importo viene ignorato.
        """
        paid_kinds = set()
        for commission in list(invoice.commissions):
            if commission.status == CommissionStatus.PAID.value:
                paid_kinds.add(commission.beneficiary_type)
            elif commission.status == CommissionStatus.PENDING.value:
                invoice.commissions.remove(commission)

        for kind, _, amount in self._targets(invoice):
            if kind.value in paid_kinds and amount > 0:
                logger.warning(
                    "Provvigione %s già pagata su fattura %s: nuovo importo %s ignorato",
                    kind.value, invoice.number, amount,
                )
        return self.create_for_invoice(invoice, skip=frozenset(paid_kinds))

    def cancel_pending(self, invoice: Invoice) -> int:
        """Annulla le provvigioni pending (annullamento/eliminazione fattura)."""
        cancelled = 0
        for commission in invoice.commissions:
            if commission.status == CommissionStatus.PENDING.value:
                commission.status = CommissionStatus.CANCELLED.value
                cancelled += 1
        return cancelled

    async def get_by_id(self, db: AsyncSession, commission_id: uuid.UUID) -> Commission:
        result = await db.execute(select(Commission).where(Commission.id == commission_id))
        commission = result.scalar_one_or_none()
        if commission is None:
            raise NotFoundError(f"Provvigione con ID {commission_id} non trovata")
        return commission

    async def get_by_partner(
        self,
        db: AsyncSession,
        partner_id: uuid.UUID,
        status_filter: Optional[CommissionStatus] = None,
    ) -> list[Commission]:
        query = select(Commission).where(Commission.partner_id == partner_id)
        if status_filter is not None:
            query = query.where(Commission.status == status_filter.value)
        result = await db.execute(query.order_by(Commission.created_at.desc()))
        return list(result.scalars().all())

    async def mark_paid(self, db: AsyncSession, commission_id: uuid.UUID) -> Commission:
        """
        Segna una provvigione come pagata.

        Raises:
            NotFoundError: Provvigione inesistente
            IllegalStateTransitionError: Provvigione non pending
        """
        commission = await self.get_by_id(db, commission_id)
        if commission.status != CommissionStatus.PENDING.value:
            raise IllegalStateTransitionError(
                commission.status, CommissionStatus.PAID.value, document="provvigione"
            )
        commission.status = CommissionStatus.PAID.value
        commission.paid_at = datetime.datetime.now(datetime.timezone.utc)
        await db.commit()
        logger.info("Provvigione %s pagata (%s)", commission.id, commission.amount)
        return commission


commission_service = CommissionService()
