"""
Schemas Pydantic comuni ai documenti commerciali
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Contiene le enum di dominio (categorie, stati, tipi di sconto e di
operazione), le matrici delle transizioni di stato e gli schemi di
lettura delle righe condivisi da ordini di lavoro e fatture.
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# -------------------------------------------------------------------
# Enum di dominio
# -------------------------------------------------------------------

class DocumentCategory(str, Enum):
    """Forma delle righe del documento."""
    CONTAINER = "container"
    BULK = "bulk"
    INDEPENDENT = "independent"


# Tabella chiusa degli alias in ingresso (valori storici e type_document)
CATEGORY_ALIASES: dict[str, DocumentCategory] = {
    "container": DocumentCategory.CONTAINER,
    "conteneur": DocumentCategory.CONTAINER,
    "conteneurs": DocumentCategory.CONTAINER,
    "bulk": DocumentCategory.BULK,
    "lot": DocumentCategory.BULK,
    "lots": DocumentCategory.BULK,
    "conventionnel": DocumentCategory.BULK,
    "independent": DocumentCategory.INDEPENDENT,
    "independant": DocumentCategory.INDEPENDENT,
    "operations_independantes": DocumentCategory.INDEPENDENT,
}


class TaxCategory(str, Enum):
    """Regime fiscale del documento."""
    SUBJECT = "subject"
    NOT_SUBJECT = "non_assujetti"


class DiscountType(str, Enum):
    """Tipo di sconto applicato all'imponibile."""
    NONE = "none"
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class TaxCode(str, Enum):
    """Codici tassa gestiti dal motore."""
    VAT = "VAT"
    CSS = "CSS"


class IndependentOperationType(str, Enum):
    """Tipi di prestazione indipendente."""
    RENTAL = "rental"
    TRANSPORT = "transport"
    HANDLING = "handling"
    DOUBLE_LIFT = "double_lift"
    STORAGE = "storage"


OPERATION_TYPE_ALIASES: dict[str, IndependentOperationType] = {
    "rental": IndependentOperationType.RENTAL,
    "location": IndependentOperationType.RENTAL,
    "transport": IndependentOperationType.TRANSPORT,
    "handling": IndependentOperationType.HANDLING,
    "manutention": IndependentOperationType.HANDLING,
    "double_lift": IndependentOperationType.DOUBLE_LIFT,
    "double_relevage": IndependentOperationType.DOUBLE_LIFT,
    "storage": IndependentOperationType.STORAGE,
    "stockage": IndependentOperationType.STORAGE,
}


class WorkOrderStatus(str, Enum):
    """Stati dell'ordine di lavoro."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    INVOICED = "invoiced"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    """Stati della fattura (nessuna bozza: si nasce 'issued')."""
    ISSUED = "issued"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"


class CommissionStatus(str, Enum):
    """Stati della provvigione."""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class BeneficiaryType(str, Enum):
    """Beneficiari delle provvigioni."""
    FORWARDER = "forwarder"
    REPRESENTATIVE = "representative"


# -------------------------------------------------------------------
# Matrici delle transizioni di stato valide
# -------------------------------------------------------------------

# La validazione avviene nel service layer (document_factory.py)
WORK_ORDER_TRANSITIONS: dict[WorkOrderStatus, list[WorkOrderStatus]] = {
    WorkOrderStatus.IN_PROGRESS: [
        WorkOrderStatus.COMPLETED,
        WorkOrderStatus.INVOICED,
        WorkOrderStatus.CANCELLED,
    ],
    WorkOrderStatus.COMPLETED: [WorkOrderStatus.INVOICED, WorkOrderStatus.CANCELLED],
    WorkOrderStatus.INVOICED: [WorkOrderStatus.CANCELLED],
    WorkOrderStatus.CANCELLED: [],  # Stato finale
}

INVOICE_TRANSITIONS: dict[InvoiceStatus, list[InvoiceStatus]] = {
    InvoiceStatus.ISSUED: [
        InvoiceStatus.PARTIALLY_PAID,
        InvoiceStatus.PAID,
        InvoiceStatus.CANCELLED,
    ],
    InvoiceStatus.PARTIALLY_PAID: [InvoiceStatus.PAID, InvoiceStatus.CANCELLED],
    InvoiceStatus.PAID: [InvoiceStatus.CANCELLED],
    InvoiceStatus.CANCELLED: [],  # Stato finale
}


# -------------------------------------------------------------------
# Schemas di input comuni
# -------------------------------------------------------------------

class DocumentPayload(BaseModel):
    """
    Payload di creazione/modifica di un documento.

    I campi noti sono tipizzati; gli alias storici (type_document,
    bl_numero, date_facture, conteneurs, remise_type, ...) sono
    accettati come campi extra e risolti da normalize() del factory.
    Le righe restano dizionari: la loro validazione è del calcolatore
    di categoria, che restituisce messaggi per campo.
    """
    model_config = ConfigDict(extra="allow")

    client_id: Optional[uuid.UUID] = Field(None, description="Cliente intestatario")
    category: Optional[str] = Field(None, description="Categoria: container, bulk, independent")
    tax_category: Optional[TaxCategory] = Field(None, description="Regime fiscale")
    issue_date: Optional[datetime.date] = Field(None, description="Data documento (default oggi)")
    shipowner_id: Optional[uuid.UUID] = Field(None, description="Armatore")
    forwarder_id: Optional[uuid.UUID] = Field(None, description="Transitario")
    representative_id: Optional[uuid.UUID] = Field(None, description="Rappresentante")
    operation_type: Optional[str] = Field(None, max_length=50, description="Tipo operazione")
    bl_number: Optional[str] = Field(None, max_length=50, description="Numero BL")
    vessel: Optional[str] = Field(None, max_length=100, description="Nave")
    notes: Optional[str] = Field(None, description="Note")
    discount_type: Optional[DiscountType] = Field(None, description="Tipo sconto")
    discount_value: Optional[Decimal] = Field(None, description="Valore sconto")
    exempt_vat: Optional[bool] = Field(None, description="Esenzione TVA")
    exempt_css: Optional[bool] = Field(None, description="Esenzione CSS")
    forwarder_commission: Optional[Decimal] = Field(None, ge=0, description="Provvigione transitario")
    representative_commission: Optional[Decimal] = Field(None, ge=0, description="Provvigione rappresentante")
    containers: Optional[list[dict[str, Any]]] = Field(None, description="Container (categoria container)")
    lots: Optional[list[dict[str, Any]]] = Field(None, description="Lotti (categoria bulk)")
    lines: Optional[list[dict[str, Any]]] = Field(None, description="Prestazioni (categoria independent)")


class PaymentCreate(BaseModel):
    """Registrazione di un incasso su un documento."""
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Importo incassato")


class CancelRequest(BaseModel):
    """Richiesta di annullamento."""
    reason: Optional[str] = Field(None, max_length=255, description="Motivo dell'annullamento")


# -------------------------------------------------------------------
# Schemas di lettura delle righe
# -------------------------------------------------------------------

class ContainerOperationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: str
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal


class ContainerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    number: str
    size: str
    container_type: str
    description: Optional[str] = None
    unit_price: Decimal
    operations: list[ContainerOperationRead] = Field(default_factory=list)


class LotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    lot_number: str
    description: str
    quantity: Decimal
    weight: Optional[Decimal] = None
    volume: Optional[Decimal] = None
    unit_price: Decimal
    line_total: Decimal


class ServiceLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    operation_type: IndependentOperationType
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    departure_location: Optional[str] = None
    arrival_location: Optional[str] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None


class DocumentRead(BaseModel):
    """
    Campi di lettura comuni a ordini di lavoro e fatture.

    Attributes:
        subtotal: Imponibile lordo
        discount_amount: Sconto applicato
        vat_amount / css_amount: Tasse
        total: Totale tasse incluse
        amount_paid: Importo incassato
    """
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    number: str
    category: DocumentCategory
    tax_category: TaxCategory
    issue_date: datetime.date
    client_id: uuid.UUID
    shipowner_id: Optional[uuid.UUID] = None
    forwarder_id: Optional[uuid.UUID] = None
    representative_id: Optional[uuid.UUID] = None
    operation_type: Optional[str] = None
    bl_number: Optional[str] = None
    vessel: Optional[str] = None
    notes: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal
    exempt_vat: bool
    exempt_css: bool
    vat_rate: Optional[Decimal] = None
    css_rate: Optional[Decimal] = None
    subtotal: Decimal
    discount_amount: Decimal
    vat_amount: Decimal
    css_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    forwarder_commission: Decimal
    representative_commission: Decimal
    created_by: Optional[uuid.UUID] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime
    containers: list[ContainerRead] = Field(default_factory=list)
    lots: list[LotRead] = Field(default_factory=list)
    service_lines: list[ServiceLineRead] = Field(default_factory=list)


class PaginatedList(BaseModel):
    """Metadati di paginazione comuni alle liste."""
    total: int
    page: int
    per_page: int
    total_pages: int = 0

    @model_validator(mode="after")
    def compute_total_pages(self) -> "PaginatedList":
        """Calcola automaticamente il numero totale di pagine."""
        if self.per_page > 0:
            self.total_pages = (self.total + self.per_page - 1) // self.per_page
        return self
