"""
Router FastAPI per la configurazione del motore documenti
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Aliquote TVA/CSS (con invalidazione della cache) e contatori di
numerazione.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import CurrentUserId
from app.core.events import DocumentEvent, event_bus
from app.schemas.tax import SequenceCounterRead, TaxRateConfig, TaxRateConfigUpdate
from app.services.sequence_service import SequenceDomain, sequence_service
from app.services.tax_config_service import tax_config_provider

# Logger per questo modulo
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/configuration",
    tags=["Configurazione"],
)


@router.get(
    "/taxes",
    name="configurazione_tasse",
    summary="Configurazione tasse attiva",
    response_model=TaxRateConfig,
    status_code=status.HTTP_200_OK,
)
async def get_tax_config(db: AsyncSession = Depends(get_db)) -> TaxRateConfig:
    return await tax_config_provider.get(db)


@router.put(
    "/taxes",
    name="configurazione_tasse_aggiorna",
    summary="Aggiorna la configurazione tasse",
    description="Persiste le aliquote e invalida la cache: i documenti successivi usano i nuovi valori.",
    response_model=TaxRateConfig,
    status_code=status.HTTP_200_OK,
)
async def update_tax_config(
    data: TaxRateConfigUpdate,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> TaxRateConfig:
    config = await tax_config_provider.update(db, data)
    await event_bus.emit(
        DocumentEvent.TAX_CONFIG_CHANGED,
        {"user_id": str(user_id), **config.model_dump(mode="json")},
    )
    return config


@router.get(
    "/counters",
    name="contatori_lista",
    summary="Contatori di numerazione",
    response_model=list[SequenceCounterRead],
    status_code=status.HTTP_200_OK,
)
async def get_counters(db: AsyncSession = Depends(get_db)) -> list[SequenceCounterRead]:
    counters = await sequence_service.get_counters(db)
    return [SequenceCounterRead.model_validate(c) for c in counters]


@router.post(
    "/counters/{domain}/sync",
    name="contatore_sincronizza",
    summary="Sincronizza un contatore",
    description="Riallinea il contatore al numero più alto esistente dell'anno corrente.",
    response_model=SequenceCounterRead,
    status_code=status.HTTP_200_OK,
)
async def sync_counter(
    domain: SequenceDomain,
    user_id: CurrentUserId,
    db: AsyncSession = Depends(get_db),
) -> SequenceCounterRead:
    counter = await sequence_service.synchronize(db, domain)
    return SequenceCounterRead.model_validate(counter)
