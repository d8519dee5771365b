"""
Schemas Pydantic per il Gestionale Logistica

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
e serializzazione delle richieste e risposte API.
"""

from app.schemas.client import ClientCreate, ClientList, ClientRead, ClientUpdate
from app.schemas.document import (
    BeneficiaryType,
    CancelRequest,
    CommissionStatus,
    DiscountType,
    DocumentCategory,
    DocumentPayload,
    IndependentOperationType,
    InvoiceStatus,
    PaymentCreate,
    TaxCategory,
    TaxCode,
    WorkOrderStatus,
)
from app.schemas.invoice import CommissionRead, ConversionRequest, InvoiceCreate, InvoiceList, InvoiceRead, InvoiceUpdate
from app.schemas.partner import PartnerCreate, PartnerRead, PartnerType
from app.schemas.tax import (
    MonthlyTaxAggregateRead,
    SequenceCounterRead,
    TaxRateConfig,
    TaxRateConfigUpdate,
    YearlyTaxTotal,
)
from app.schemas.token import TokenPayload
from app.schemas.work_order import WorkOrderCreate, WorkOrderList, WorkOrderRead, WorkOrderUpdate

__all__ = [
    "BeneficiaryType",
    "CancelRequest",
    "ClientCreate",
    "ClientList",
    "ClientRead",
    "ClientUpdate",
    "CommissionRead",
    "CommissionStatus",
    "ConversionRequest",
    "DiscountType",
    "DocumentCategory",
    "DocumentPayload",
    "IndependentOperationType",
    "InvoiceCreate",
    "InvoiceList",
    "InvoiceRead",
    "InvoiceStatus",
    "InvoiceUpdate",
    "MonthlyTaxAggregateRead",
    "PartnerCreate",
    "PartnerRead",
    "PartnerType",
    "PaymentCreate",
    "SequenceCounterRead",
    "TaxCategory",
    "TaxCode",
    "TaxRateConfig",
    "TaxRateConfigUpdate",
    "TokenPayload",
    "WorkOrderCreate",
    "WorkOrderList",
    "WorkOrderRead",
    "WorkOrderStatus",
    "WorkOrderUpdate",
    "YearlyTaxTotal",
]
