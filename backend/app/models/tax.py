"""
Modello SQLAlchemy per l'aggregato mensile delle tasse
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Una riga per (anno, mese, codice tassa): imponibile, tassa e
imponibile esente accumulati su tutte le fatture del mese.
"""


from __future__ import annotations
import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin


class MonthlyTaxAggregate(Base, UUIDMixin, TimestampMixin):
    """
    Aggregato mensile per codice tassa (TVA, CSS).

    I contatori non scendono mai sotto zero. Un mese chiuso
    (is_closed) non accetta più aggiunte né rimozioni.
    """

    __tablename__ = "monthly_tax_aggregates"

    year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Anno",
    )

    month: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Mese (1-12)",
    )

    tax_code: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        doc="Codice tassa: 'VAT' o 'CSS'",
    )

    applied_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Ultima aliquota applicata nel mese",
    )

    taxable_base_total: Mapped[Decimal] = mapped_column(
        Numeric(16, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Imponibile netto tassato",
    )

    tax_amount_total: Mapped[Decimal] = mapped_column(
        Numeric(16, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Importo tassa",
    )

    exempt_base_total: Mapped[Decimal] = mapped_column(
        Numeric(16, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Imponibile dei documenti esenti",
    )

    document_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Numero di documenti contabilizzati",
    )

    exemption_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Numero di documenti esenti",
    )

    is_closed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Mese chiuso (dichiarazione effettuata)",
    )

    closed_at: Mapped[Optional[datetime.datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Data/ora di chiusura",
    )

    __table_args__ = (
        UniqueConstraint("year", "month", "tax_code", name="uq_monthly_tax_period_code"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_monthly_tax_month"),
        CheckConstraint("document_count >= 0", name="ck_monthly_tax_document_count"),
        CheckConstraint("exemption_count >= 0", name="ck_monthly_tax_exemption_count"),
    )

    def __repr__(self) -> str:
        return (
            f"<MonthlyTaxAggregate({self.year}-{self.month:02d} {self.tax_code}, "
            f"base={self.taxable_base_total}, tax={self.tax_amount_total})>"
        )
