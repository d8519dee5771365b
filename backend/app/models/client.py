"""
Modello SQLAlchemy per l'entità Client
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Rappresenta l'anagrafica dei clienti e il loro saldo contabile.
"""


from __future__ import annotations
from decimal import Decimal
from typing import Optional, TYPE_CHECKING, List

from sqlalchemy import Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin, SoftDeleteMixin

if TYPE_CHECKING:
    from app.models.work_order import WorkOrder
    from app.models.invoice import Invoice


class Client(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Modello per l'anagrafica clienti.

    Attributes:
        name: Ragione sociale (obbligatorio)
        tax_id: Identificativo fiscale (NIF)
        balance: Saldo = Σ totale fatture non annullate - Σ incassato.
            Campo derivato, ricalcolato dal ClientService a ogni
            creazione/modifica/pagamento/annullamento di fattura.

    Relationships:
        work_orders: Ordini di lavoro del cliente
        invoices: Fatture del cliente
    """

    __tablename__ = "clients"

    # ------------------------------------------------------------
    # Colonne Dati Anagrafici
    # ------------------------------------------------------------
    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
        doc="Ragione sociale",
    )

    tax_id: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        index=True,
        doc="Identificativo fiscale (NIF)",
    )

    address: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Indirizzo completo",
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

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Note aggiuntive sul cliente",
    )

    # ------------------------------------------------------------
    # Colonne Contabili
    # ------------------------------------------------------------
    balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Saldo cliente (fatture non annullate meno incassi)",
    )

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    work_orders: Mapped[List["WorkOrder"]] = relationship(
        "WorkOrder",
        back_populates="client",
        lazy="noload",
        doc="Ordini di lavoro associati al cliente",
    )

    invoices: Mapped[List["Invoice"]] = relationship(
        "Invoice",
        back_populates="client",
        lazy="noload",
        doc="Fatture associate al cliente",
    )

    __table_args__ = (
        Index("ix_clients_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name={self.name}, balance={self.balance})>"
