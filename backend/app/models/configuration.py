"""
Modelli SQLAlchemy per configurazione e numerazione
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

- AppConfiguration: configurazioni persistite per chiave (es. 'taxes')
- SequenceCounter: contatore di numerazione per dominio documentale,
  letto e incrementato sotto lock di riga
"""


from __future__ import annotations
from typing import Any

from sqlalchemy import CheckConstraint, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin


class AppConfiguration(Base, UUIDMixin, TimestampMixin):
    """Configurazione applicativa persistita come documento JSON."""

    __tablename__ = "app_configurations"

    key: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        doc="Chiave di configurazione (es. 'taxes')",
    )

    data: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        doc="Valori di configurazione",
    )

    def __repr__(self) -> str:
        return f"<AppConfiguration(key={self.key})>"


class SequenceCounter(Base, UUIDMixin, TimestampMixin):
    """
    Contatore di numerazione.

    Una riga per dominio ('work_order', 'invoice'). Il prossimo numero
    riparte da 1 quando cambia current_year.
    """

    __tablename__ = "sequence_counters"

    domain: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        doc="Dominio di numerazione: 'work_order' o 'invoice'",
    )

    prefix: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        doc="Prefisso del numero (OT, FAC)",
    )

    current_year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Anno a cui si riferisce next_number",
    )

    next_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Prossimo progressivo da assegnare",
    )

    __table_args__ = (
        CheckConstraint("next_number >= 1", name="ck_sequence_counters_next_number"),
    )

    def __repr__(self) -> str:
        return f"<SequenceCounter({self.domain}: {self.prefix}-{self.current_year}-{self.next_number:04d})>"
