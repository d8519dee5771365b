"""
Modello SQLAlchemy per le Fatture
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

La fattura condivide intestazione e forme di riga con l'ordine di lavoro;
in più porta scadenza, riferimento all'ordine di origine e le provvigioni.
"""


from __future__ import annotations
import datetime
import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.document_line import Container, Lot, ServiceLine
from app.models.mixins import DocumentHeaderMixin, SoftDeleteMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.client import Client
    from app.models.commission import Commission
    from app.models.work_order import WorkOrder


# Gli stati sono definiti in app.schemas.document.InvoiceStatus


class Invoice(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin, DocumentHeaderMixin):
    """
    Fattura.

    Macchina a stati: issued → partially_paid → paid, cancelled
    raggiungibile da qualunque stato non annullato. Le fatture nascono
    sempre 'issued' (nessuno stato bozza).

    Relationships:
        client: Cliente intestatario
        work_order: Ordine di lavoro di origine (conversione)
        containers / lots / service_lines: righe (una sola forma per categoria)
        commissions: Provvigioni di transitario e rappresentante
    """

    __tablename__ = "invoices"

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="issued",
        doc="Stato: issued, partially_paid, paid, cancelled",
    )

    due_date: Mapped[datetime.date] = mapped_column(
        Date,
        nullable=False,
        doc="Data di scadenza (default: emissione + 30 giorni)",
    )

    work_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("work_orders.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        doc="Ordine di lavoro convertito in questa fattura",
    )

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    client: Mapped["Client"] = relationship(
        "Client",
        back_populates="invoices",
        lazy="selectin",
        doc="Cliente intestatario",
    )

    work_order: Mapped[Optional["WorkOrder"]] = relationship(
        "WorkOrder",
        back_populates="invoice",
        lazy="noload",
        doc="Ordine di lavoro di origine",
    )

    containers: Mapped[List[Container]] = relationship(
        Container,
        primaryjoin="Invoice.id == Container.invoice_id",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=Container.position,
        doc="Container (categoria container)",
    )

    lots: Mapped[List[Lot]] = relationship(
        Lot,
        primaryjoin="Invoice.id == Lot.invoice_id",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=Lot.position,
        doc="Lotti (categoria bulk)",
    )

    service_lines: Mapped[List[ServiceLine]] = relationship(
        ServiceLine,
        primaryjoin="Invoice.id == ServiceLine.invoice_id",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=ServiceLine.position,
        doc="Prestazioni (categoria independent)",
    )

    commissions: Mapped[List["Commission"]] = relationship(
        "Commission",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        doc="Provvigioni generate dalla fattura",
    )

    __table_args__ = (
        Index("ix_invoices_client_status", "client_id", "status"),
        Index("ix_invoices_issue_date", "issue_date"),
        CheckConstraint(
            "status IN ('issued', 'partially_paid', 'paid', 'cancelled')",
            name="ck_invoices_status",
        ),
        CheckConstraint(
            "category IN ('container', 'bulk', 'independent')",
            name="ck_invoices_category",
        ),
        CheckConstraint(
            "tax_category IN ('subject', 'non_assujetti')",
            name="ck_invoices_tax_category",
        ),
        CheckConstraint(
            "discount_type IN ('none', 'percentage', 'fixed')",
            name="ck_invoices_discount_type",
        ),
        CheckConstraint("due_date >= issue_date", name="ck_invoices_due_date"),
        CheckConstraint("amount_paid >= 0", name="ck_invoices_amount_paid_positive"),
    )

    def __repr__(self) -> str:
        return f"<Invoice(number={self.number}, status={self.status}, total={self.total})>"
