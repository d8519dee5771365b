"""
Schemas Pydantic per l'entità Client
Progetto: Gestionale Logistica (Motore Documenti Commerciali)
"""
# Definisce gli schemi di validazione e serializzazione per l'API.

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.schemas.document import PaginatedList


class ClientBase(BaseModel):
    """
    Campi anagrafici del cliente.

    Attributes:
        name: Ragione sociale
        tax_id: Identificativo fiscale (NIF)
    """
    name: str = Field(..., min_length=1, max_length=150, description="Ragione sociale")
    tax_id: Optional[str] = Field(None, max_length=30, description="Identificativo fiscale")
    address: Optional[str] = Field(None, max_length=255, description="Indirizzo")
    phone: Optional[str] = Field(None, max_length=30, description="Telefono")
    email: Optional[EmailStr] = Field(None, description="Email")
    notes: Optional[str] = Field(None, description="Note")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Rimuove spazi superflui dalla ragione sociale."""
        v = v.strip()
        if not v:
            raise ValueError("La ragione sociale non può essere vuota")
        return v

    @field_validator("tax_id")
    @classmethod
    def normalize_tax_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        return v or None


class ClientCreate(ClientBase):
    """Schema per la creazione di un cliente."""


class ClientUpdate(BaseModel):
    """Schema per l'aggiornamento parziale di un cliente."""
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    tax_id: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[EmailStr] = None
    notes: Optional[str] = None


class ClientRead(ClientBase):
    """Schema per la lettura di un cliente (saldo incluso)."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: Optional[str] = None
    balance: Decimal
    is_active: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime


class ClientList(PaginatedList):
    """Risposta paginata dei clienti."""
    items: list[ClientRead]


__all__ = ["ClientCreate", "ClientUpdate", "ClientRead", "ClientList"]
