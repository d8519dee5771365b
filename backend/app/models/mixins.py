"""
Mixin SQLAlchemy per modelli
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Mixin riutilizzabili per aggiungere funzionalità comuni ai modelli:
identità UUID, timestamp, soft delete e intestazione comune dei
documenti commerciali (ordini di lavoro e fatture).
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy import event
from sqlalchemy.orm import Mapped, mapped_column, Session
from sqlalchemy.sql import func


class SoftDeleteMixin:
    """
    Mixin per implementare la cancellazione logica (soft delete).

    I documenti non vengono mai eliminati fisicamente: la numerazione
    e lo storico restano consultabili.
    """

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        doc="Flag per soft delete: False = eliminato, True = attivo",
    )


class TimestampMixin:
    """Mixin per gestione automatica timestamp creazione e aggiornamento."""

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        doc="Data/ora di creazione del record",
    )

    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        doc="Data/ora ultimo aggiornamento del record",
    )


class UUIDMixin:
    """Mixin per ID UUID generato applicativamente."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        doc="UUID primary key",
    )


class DocumentHeaderMixin:
    """
    Intestazione comune a ordini di lavoro e fatture.

    Raggruppa identità, riferimenti ai partner, sconto, flag fiscali
    e campi importo. I campi importo sono sempre arrotondati a 2 decimali
    e scritti insieme da apply_totals().

    Invariante: total = max(0, subtotal - discount_amount) + vat_amount + css_amount
    """

    # ------------------------------------------------------------
    # Colonne Identità
    # ------------------------------------------------------------
    number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        doc="Numero progressivo PREFISSO-AAAA-NNNN, mai riutilizzato",
    )

    category: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="container",
        doc="Categoria righe: 'container', 'bulk', 'independent'",
    )

    tax_category: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="subject",
        doc="Regime fiscale: 'subject' o 'non_assujetti' (nessuna tassa)",
    )

    issue_date: Mapped[datetime.date] = mapped_column(
        Date,
        nullable=False,
        doc="Data di creazione del documento (determina il periodo fiscale)",
    )

    # ------------------------------------------------------------
    # Colonne Riferimenti
    # ------------------------------------------------------------
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        doc="Cliente intestatario",
    )

    shipowner_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("partners.id", ondelete="SET NULL"),
        nullable=True,
        doc="Armatore",
    )

    forwarder_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("partners.id", ondelete="SET NULL"),
        nullable=True,
        doc="Transitario (beneficiario provvigione)",
    )

    representative_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("partners.id", ondelete="SET NULL"),
        nullable=True,
        doc="Rappresentante (beneficiario provvigione)",
    )

    # ------------------------------------------------------------
    # Colonne Dati Operativi
    # ------------------------------------------------------------
    operation_type: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        doc="Tipo operazione (import, export, ...)",
    )

    bl_number: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        doc="Numero polizza di carico (Bill of Lading)",
    )

    vessel: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        doc="Nome della nave",
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Note",
    )

    # ------------------------------------------------------------
    # Colonne Sconto
    # ------------------------------------------------------------
    discount_type: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
        default="none",
        doc="Tipo sconto: 'none', 'percentage', 'fixed'",
    )

    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Valore sconto (percentuale o importo)",
    )

    # ------------------------------------------------------------
    # Colonne Fiscali
    # ------------------------------------------------------------
    exempt_vat: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Esenzione TVA sul documento",
    )

    exempt_css: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Esenzione CSS sul documento",
    )

    vat_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2),
        nullable=True,
        doc="Aliquota TVA applicata (NULL se la TVA era disattivata)",
    )

    css_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2),
        nullable=True,
        doc="Aliquota CSS applicata (NULL se la CSS era disattivata)",
    )

    # ------------------------------------------------------------
    # Colonne Importi
    # ------------------------------------------------------------
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Imponibile lordo (somma righe, prima dello sconto)",
    )

    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Importo sconto applicato",
    )

    vat_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Importo TVA",
    )

    css_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Importo CSS",
    )

    total: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Totale tasse incluse",
    )

    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Importo incassato",
    )

    # ------------------------------------------------------------
    # Colonne Provvigioni
    # ------------------------------------------------------------
    forwarder_commission: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Provvigione dovuta al transitario",
    )

    representative_commission: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Provvigione dovuta al rappresentante",
    )

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        nullable=True,
        doc="Utente che ha creato il documento",
    )

    @property
    def net_subtotal(self) -> Decimal:
        """Imponibile netto (dopo lo sconto, mai negativo)."""
        return max(Decimal("0.00"), (self.subtotal or Decimal("0")) - (self.discount_amount or Decimal("0")))

    @property
    def balance_due(self) -> Decimal:
        """Importo ancora da incassare."""
        return (self.total or Decimal("0")) - (self.amount_paid or Decimal("0"))


# ------------------------------------------------------------
# Event Listeners
# ------------------------------------------------------------
@event.listens_for(Session, "before_flush")
def update_timestamp(session: Session, flush_context, instances) -> None:
    """
    Aggiorna automaticamente updated_at prima di ogni flush
    per gli oggetti nuovi e per quelli effettivamente modificati.
    """
    now = datetime.datetime.now(datetime.timezone.utc)

    for obj in session.dirty:
        if hasattr(obj, "updated_at") and session.is_modified(obj, include_collections=False):
            obj.updated_at = now

    for obj in session.new:
        if hasattr(obj, "created_at") and obj.created_at is None:
            obj.created_at = now
        if hasattr(obj, "updated_at"):
            obj.updated_at = now
