"""
Router FastAPI per l'entità Client
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Definisce gli endpoint API per la gestione dei clienti.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.client import (
    ClientCreate,
    ClientList,
    ClientRead,
    ClientUpdate,
)
from app.services.client_service import ClientService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/clients",
    tags=["Clienti"],
)


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_client_service() -> ClientService:
    """Dependency per ottenere un'istanza del ClientService."""
    return ClientService()


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "/",
    name="clienti_lista",
    summary="Lista clienti",
    description="Recupera la lista paginata dei clienti con eventuale filtro di ricerca.",
    response_model=ClientList,
    status_code=status.HTTP_200_OK,
)
async def get_clients(
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(10, ge=1, le=100, description="Elementi per pagina"),
    search: Optional[str] = Query(None, description="Termine di ricerca"),
    include_inactive: bool = Query(False, description="Includi clienti eliminati"),
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> ClientList:
    """Recupera la lista paginata dei clienti (di default solo attivi)."""
    clients, total = await service.get_all(
        db=db,
        page=page,
        per_page=per_page,
        search=search,
        include_inactive=include_inactive,
    )
    return ClientList(
        items=[ClientRead.model_validate(c) for c in clients],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/{client_id}",
    name="cliente_dettaglio",
    summary="Dettaglio cliente",
    description="Recupera un cliente con il saldo aggiornato.",
    response_model=ClientRead,
    status_code=status.HTTP_200_OK,
)
async def get_client(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> ClientRead:
    client = await service.get_by_id(db, client_id)
    return ClientRead.model_validate(client)


@router.post(
    "/",
    name="cliente_crea",
    summary="Crea cliente",
    response_model=ClientRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_client(
    data: ClientCreate,
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> ClientRead:
    client = await service.create(db, data)
    return ClientRead.model_validate(client)


@router.put(
    "/{client_id}",
    name="cliente_aggiorna",
    summary="Aggiorna cliente",
    response_model=ClientRead,
    status_code=status.HTTP_200_OK,
)
async def update_client(
    client_id: uuid.UUID,
    data: ClientUpdate,
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> ClientRead:
    client = await service.update(db, client_id, data)
    return ClientRead.model_validate(client)


@router.delete(
    "/{client_id}",
    name="cliente_elimina",
    summary="Elimina cliente",
    description="Soft delete: consentito solo con saldo a zero.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_client(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> None:
    await service.delete(db, client_id)


@router.post(
    "/{client_id}/balance/refresh",
    name="cliente_ricalcola_saldo",
    summary="Ricalcola saldo cliente",
    description="Ricalcola il saldo dalle fatture valide del cliente.",
    response_model=ClientRead,
    status_code=status.HTTP_200_OK,
)
async def refresh_client_balance(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ClientService = Depends(get_client_service),
) -> ClientRead:
    client = await service.get_by_id(db, client_id)
    balance = await service.refresh_balance(db, client.id)
    await db.commit()
    logger.info("Saldo cliente %s ricalcolato: %s", client_id, balance)
    return ClientRead.model_validate(client)
