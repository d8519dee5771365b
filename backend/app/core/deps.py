"""
Dependency Injection per l'identità dell'operatore
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

L'autorizzazione è responsabilità del livello permessi esterno:
qui si estrae soltanto l'identità dell'utente dal token Bearer,
usata dai factory per valorizzare created_by.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.core.security import decode_token

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/v1/auth/login",
    auto_error=False,
)


async def get_current_user_id(
    token: Optional[str] = Depends(oauth2_scheme),
) -> UUID:
    """
    Restituisce l'ID dell'utente che esegue l'operazione.

    Raises:
        HTTPException 401: token assente, invalido o con subject non UUID
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token di autenticazione non fornito",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_data = decode_token(token)

    if token_data.type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token di refresh non valido per questa operazione",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return UUID(token_data.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="ID utente invalido nel token",
            headers={"WWW-Authenticate": "Bearer"},
        )


# Type alias per uso comune negli endpoint
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]


__all__ = [
    "get_current_user_id",
    "oauth2_scheme",
    "CurrentUserId",
]
