"""
Modello SQLAlchemy per le Provvigioni ("Prime")
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Una provvigione nasce da una fattura con importo di provvigione
non nullo per il transitario e/o il rappresentante referenziato.
"""


from __future__ import annotations
import datetime
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.invoice import Invoice


class Commission(Base, UUIDMixin, TimestampMixin):
    """
    Provvigione dovuta a un transitario o a un rappresentante.

    Stati: pending → paid, pending → cancelled. Una provvigione 'paid'
    è immutabile: le modifiche della fattura non la toccano.
    """

    __tablename__ = "commissions"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="Fattura di origine",
    )

    partner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("partners.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        doc="Beneficiario (transitario o rappresentante)",
    )

    beneficiary_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Tipo beneficiario: 'forwarder' o 'representative'",
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        doc="Importo della provvigione",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        doc="Stato: pending, paid, cancelled",
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Descrizione (es. 'Provvigione transitario per fattura FAC-2025-0001')",
    )

    paid_at: Mapped[Optional[datetime.datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Data/ora di pagamento",
    )

    invoice: Mapped["Invoice"] = relationship(
        "Invoice",
        back_populates="commissions",
    )

    __table_args__ = (
        Index("ix_commissions_partner_status", "partner_id", "status"),
        CheckConstraint(
            "beneficiary_type IN ('forwarder', 'representative')",
            name="ck_commissions_beneficiary_type",
        ),
        CheckConstraint(
            "status IN ('pending', 'paid', 'cancelled')",
            name="ck_commissions_status",
        ),
        CheckConstraint("amount > 0", name="ck_commissions_amount_positive"),
    )

    def __repr__(self) -> str:
        return f"<Commission(type={self.beneficiary_type}, amount={self.amount}, status={self.status})>"
