"""
Modelli SQLAlchemy per le righe dei documenti
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Tre forme di riga, una per categoria di documento:
- Container (con operazioni annidate) per la categoria 'container'
- Lot per la categoria 'bulk' (merce convenzionale)
- ServiceLine per la categoria 'independent' (operazioni indipendenti)

Le righe appartengono a un ordine di lavoro OPPURE a una fattura:
esattamente una tra work_order_id e invoice_id è valorizzata.
"""


from __future__ import annotations
import datetime
import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import UUIDMixin

# Vincolo comune: la riga appartiene a un solo documento
_ONE_OWNER = "(work_order_id IS NULL) <> (invoice_id IS NULL)"


class _DocumentOwnedMixin:
    """Chiavi esterne verso il documento proprietario e ordinamento."""

    work_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        doc="Ordine di lavoro proprietario",
    )

    invoice_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        doc="Fattura proprietaria",
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Ordine di visualizzazione nel documento",
    )


# ------------------------------------------------------------
# Categoria Container
# ------------------------------------------------------------
class Container(Base, UUIDMixin, _DocumentOwnedMixin):
    """
    Container con prezzo base e operazioni annidate.

    Il contributo all'imponibile è il prezzo base più la somma
    dei totali delle operazioni (anche senza operazioni conta il prezzo base).
    """

    __tablename__ = "document_containers"

    number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Numero container (es. MSCU1234567)",
    )

    size: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        doc="Taglia senza apice finale (es. 20, 40)",
    )

    container_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="DRY",
        doc="Tipo container (DRY, REEFER, ...)",
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Descrizione",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Prezzo base del container",
    )

    operations: Mapped[List["ContainerOperation"]] = relationship(
        "ContainerOperation",
        back_populates="container",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ContainerOperation.position",
        doc="Operazioni eseguite sul container",
    )

    __table_args__ = (
        CheckConstraint(_ONE_OWNER, name="ck_document_containers_owner"),
        CheckConstraint("unit_price >= 0", name="ck_document_containers_price_positive"),
    )

    @property
    def operations_total(self) -> Decimal:
        """Somma dei totali delle operazioni."""
        return sum((op.line_total for op in self.operations), Decimal("0.00"))

    def __repr__(self) -> str:
        return f"<Container(number={self.number}, size={self.size}, ops={len(self.operations)})>"


class ContainerOperation(Base, UUIDMixin):
    """Operazione eseguita su un container (movimentazione, sosta, ...)."""

    __tablename__ = "document_container_operations"

    container_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("document_containers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="Container di appartenenza",
    )

    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="Tipo operazione",
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Descrizione",
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 3),
        nullable=False,
        default=Decimal("1"),
        doc="Quantità",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Prezzo unitario",
    )

    line_total: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Totale riga (quantità × prezzo unitario)",
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Ordine nel container",
    )

    container: Mapped["Container"] = relationship(
        "Container",
        back_populates="operations",
    )

    def __repr__(self) -> str:
        return f"<ContainerOperation(type={self.type}, qty={self.quantity}, total={self.line_total})>"


# ------------------------------------------------------------
# Categoria Bulk (convenzionale)
# ------------------------------------------------------------
class Lot(Base, UUIDMixin, _DocumentOwnedMixin):
    """Lotto di merce convenzionale."""

    __tablename__ = "document_lots"

    lot_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        doc="Numero lotto (LOT-n se non fornito)",
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        doc="Designazione della merce",
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 3),
        nullable=False,
        default=Decimal("1"),
        doc="Quantità (può essere zero)",
    )

    weight: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 3),
        nullable=True,
        doc="Peso",
    )

    volume: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 3),
        nullable=True,
        doc="Volume",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Prezzo unitario",
    )

    line_total: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Totale riga (quantità × prezzo unitario)",
    )

    __table_args__ = (
        CheckConstraint(_ONE_OWNER, name="ck_document_lots_owner"),
        CheckConstraint("quantity >= 0", name="ck_document_lots_quantity_positive"),
    )

    def __repr__(self) -> str:
        return f"<Lot(lot_number={self.lot_number}, qty={self.quantity}, total={self.line_total})>"


# ------------------------------------------------------------
# Categoria Operazioni Indipendenti
# ------------------------------------------------------------
class ServiceLine(Base, UUIDMixin, _DocumentOwnedMixin):
    """
    Prestazione indipendente (noleggio, trasporto, movimentazione,
    doppio sollevamento, stoccaggio).

    Per noleggio e stoccaggio la quantità è il numero di giorni
    tra start_date e end_date (minimo 1).
    """

    __tablename__ = "document_service_lines"

    operation_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="handling",
        doc="Tipo: 'rental', 'transport', 'handling', 'double_lift', 'storage'",
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Descrizione",
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 3),
        nullable=False,
        default=Decimal("1"),
        doc="Quantità o numero di giorni",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Prezzo unitario",
    )

    line_total: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Totale riga (quantità × prezzo unitario)",
    )

    departure_location: Mapped[Optional[str]] = mapped_column(
        String(150),
        nullable=True,
        doc="Luogo di partenza (trasporto)",
    )

    arrival_location: Mapped[Optional[str]] = mapped_column(
        String(150),
        nullable=True,
        doc="Luogo di arrivo (trasporto)",
    )

    start_date: Mapped[Optional[datetime.date]] = mapped_column(
        Date,
        nullable=True,
        doc="Data inizio (noleggio, stoccaggio)",
    )

    end_date: Mapped[Optional[datetime.date]] = mapped_column(
        Date,
        nullable=True,
        doc="Data fine (noleggio, stoccaggio)",
    )

    __table_args__ = (
        CheckConstraint(_ONE_OWNER, name="ck_document_service_lines_owner"),
        CheckConstraint(
            "operation_type IN ('rental', 'transport', 'handling', 'double_lift', 'storage')",
            name="ck_document_service_lines_operation_type",
        ),
        CheckConstraint(
            "end_date IS NULL OR start_date IS NULL OR end_date >= start_date",
            name="ck_document_service_lines_dates",
        ),
    )

    def __repr__(self) -> str:
        return f"<ServiceLine(type={self.operation_type}, qty={self.quantity}, total={self.line_total})>"
