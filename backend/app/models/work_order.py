"""
Modello SQLAlchemy per gli Ordini di Lavoro
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

L'ordine di lavoro è il documento pre-fatturazione. Le sue righe
hanno una delle tre forme di categoria (container, lotti, prestazioni)
ed è convertibile in fattura.
"""


from __future__ import annotations
import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.document_line import Container, Lot, ServiceLine
from app.models.mixins import DocumentHeaderMixin, SoftDeleteMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.client import Client
    from app.models.invoice import Invoice


# Gli stati sono definiti in app.schemas.document.WorkOrderStatus


class WorkOrder(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin, DocumentHeaderMixin):
    """
    Ordine di lavoro.

    Macchina a stati: in_progress → completed | invoiced, cancelled
    raggiungibile dagli stati non finali. Il saldo completo porta
    in_progress → completed, salvo ordine già fatturato.

    Relationships:
        client: Cliente intestatario
        containers / lots / service_lines: righe (una sola forma per categoria)
        invoice: Fattura generata dalla conversione
    """

    __tablename__ = "work_orders"

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="in_progress",
        doc="Stato: in_progress, completed, invoiced, cancelled",
    )

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    client: Mapped["Client"] = relationship(
        "Client",
        back_populates="work_orders",
        lazy="selectin",
        doc="Cliente intestatario",
    )

    containers: Mapped[List[Container]] = relationship(
        Container,
        primaryjoin="WorkOrder.id == Container.work_order_id",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=Container.position,
        doc="Container (categoria container)",
    )

    lots: Mapped[List[Lot]] = relationship(
        Lot,
        primaryjoin="WorkOrder.id == Lot.work_order_id",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=Lot.position,
        doc="Lotti (categoria bulk)",
    )

    service_lines: Mapped[List[ServiceLine]] = relationship(
        ServiceLine,
        primaryjoin="WorkOrder.id == ServiceLine.work_order_id",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=ServiceLine.position,
        doc="Prestazioni (categoria independent)",
    )

    invoice: Mapped[Optional["Invoice"]] = relationship(
        "Invoice",
        back_populates="work_order",
        uselist=False,
        lazy="selectin",
        doc="Fattura generata dalla conversione",
    )

    __table_args__ = (
        Index("ix_work_orders_client_status", "client_id", "status"),
        Index("ix_work_orders_issue_date", "issue_date"),
        CheckConstraint(
            "status IN ('in_progress', 'completed', 'invoiced', 'cancelled')",
            name="ck_work_orders_status",
        ),
        CheckConstraint(
            "category IN ('container', 'bulk', 'independent')",
            name="ck_work_orders_category",
        ),
        CheckConstraint(
            "tax_category IN ('subject', 'non_assujetti')",
            name="ck_work_orders_tax_category",
        ),
        CheckConstraint(
            "discount_type IN ('none', 'percentage', 'fixed')",
            name="ck_work_orders_discount_type",
        ),
        CheckConstraint("amount_paid >= 0", name="ck_work_orders_amount_paid_positive"),
    )

    @property
    def invoice_id(self) -> Optional[uuid.UUID]:
        """ID della fattura generata, se l'ordine è stato convertito."""
        return self.invoice.id if self.invoice is not None else None

    def __repr__(self) -> str:
        return f"<WorkOrder(number={self.number}, status={self.status}, total={self.total})>"
