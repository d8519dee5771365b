"""
Modello SQLAlchemy per i partner commerciali
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Armatori, transitari e rappresentanti referenziati dai documenti.
Transitari e rappresentanti sono i beneficiari delle provvigioni.
"""


from __future__ import annotations
from typing import Optional

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin, SoftDeleteMixin


class Partner(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Partner commerciale.

    Attributes:
        name: Denominazione
        partner_type: 'shipowner' (armatore), 'forwarder' (transitario),
            'representative' (rappresentante)
    """

    __tablename__ = "partners"

    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
        doc="Denominazione del partner",
    )

    partner_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Tipo partner: 'shipowner', 'forwarder', 'representative'",
    )

    phone: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        doc="Numero di telefono",
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Indirizzo email",
    )

    __table_args__ = (
        Index("ix_partners_type_name", "partner_type", "name"),
        CheckConstraint(
            "partner_type IN ('shipowner', 'forwarder', 'representative')",
            name="ck_partners_partner_type",
        ),
    )

    def __repr__(self) -> str:
        return f"<Partner(id={self.id}, type={self.partner_type}, name={self.name})>"
