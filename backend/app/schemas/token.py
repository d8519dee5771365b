"""
Schemas Pydantic per i token JWT
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Il motore non autentica gli utenti: riceve un token già emesso dal
livello permessi e ne estrae solo l'identità da registrare in created_by.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TokenPayload(BaseModel):
    """
    Payload contenuto nei token JWT.

    Attributes:
        sub: Subject - ID dell'utente come stringa
        role: Ruolo dell'utente (informativo, i permessi sono esterni)
        exp: Expiration - Data/ora di scadenza
        type: Tipo di token ("access" o "refresh")
    """

    sub: str = Field(..., description="ID utente")
    role: Optional[str] = Field(default=None, description="Ruolo dell'utente")
    exp: datetime = Field(..., description="Data/ora di scadenza")
    type: str = Field(default="access", description="Tipo di token (access/refresh)")


__all__ = ["TokenPayload"]
