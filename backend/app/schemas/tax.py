"""
Schemas Pydantic per configurazione tasse e aggregati mensili
Progetto: Gestionale Logistica (Motore Documenti Commerciali)
"""

import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.document import TaxCode


class TaxRateConfig(BaseModel):
    """
    Configurazione aliquote attiva (immutabile, condivisa dalla cache).

    Attributes:
        vat_rate: Aliquota TVA in percentuale (default 18)
        vat_enabled: TVA attiva
        css_rate: Aliquota CSS in percentuale (default 1)
        css_enabled: CSS attiva
    """
    model_config = ConfigDict(frozen=True)

    vat_rate: Decimal = Field(Decimal("18"), ge=0, le=100)
    vat_enabled: bool = True
    css_rate: Decimal = Field(Decimal("1"), ge=0, le=100)
    css_enabled: bool = True

    @field_validator("vat_rate", "css_rate", mode="before")
    @classmethod
    def convert_decimal_from_string(cls, v):
        """Gestisce input con virgola convertendolo in punto."""
        if isinstance(v, str):
            v = v.replace(",", ".")
        return Decimal(str(v))


class TaxRateConfigUpdate(BaseModel):
    """Aggiornamento parziale della configurazione tasse."""
    vat_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    vat_enabled: Optional[bool] = None
    css_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    css_enabled: Optional[bool] = None


class MonthlyTaxAggregateRead(BaseModel):
    """Aggregato mensile per codice tassa."""
    model_config = ConfigDict(from_attributes=True)

    year: int
    month: int
    tax_code: TaxCode
    applied_rate: Decimal
    taxable_base_total: Decimal
    tax_amount_total: Decimal
    exempt_base_total: Decimal
    document_count: int
    exemption_count: int
    is_closed: bool
    closed_at: Optional[datetime.datetime] = None


class YearlyTaxTotal(BaseModel):
    """Cumulo annuale per codice tassa."""
    tax_code: TaxCode
    taxable_base_total: Decimal
    tax_amount_total: Decimal
    exempt_base_total: Decimal
    document_count: int


class SequenceCounterRead(BaseModel):
    """Stato di un contatore di numerazione."""
    model_config = ConfigDict(from_attributes=True)

    domain: str
    prefix: str
    current_year: int
    next_number: int


__all__ = [
    "TaxRateConfig",
    "TaxRateConfigUpdate",
    "MonthlyTaxAggregateRead",
    "YearlyTaxTotal",
    "SequenceCounterRead",
]
