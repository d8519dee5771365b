"""
Schemas Pydantic per i Partner (armatori, transitari, rappresentanti)
Progetto: Gestionale Logistica (Motore Documenti Commerciali)
"""

import datetime
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class PartnerType(str, Enum):
    SHIPOWNER = "shipowner"
    FORWARDER = "forwarder"
    REPRESENTATIVE = "representative"


class PartnerCreate(BaseModel):
    """Schema per la creazione di un partner."""
    name: str = Field(..., min_length=1, max_length=150, description="Ragione sociale")
    partner_type: PartnerType = Field(..., description="Ruolo del partner")
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[EmailStr] = None


class PartnerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    partner_type: PartnerType
    phone: Optional[str] = None
    email: Optional[str] = None
    is_active: bool
    created_at: datetime.datetime


__all__ = ["PartnerType", "PartnerCreate", "PartnerRead"]
