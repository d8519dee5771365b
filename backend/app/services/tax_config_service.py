"""
Service Layer per la configurazione delle tasse
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Fornitore della configurazione aliquote (TVA, CSS) con cache a durata
limitata e invalidazione esplicita. I factory lo ricevono per
iniezione; l'endpoint di configurazione chiama invalidate() dopo
ogni modifica.
"""

import logging
import time
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models import AppConfiguration
from app.schemas.tax import TaxRateConfig, TaxRateConfigUpdate

logger = logging.getLogger(__name__)

TAXES_CONFIG_KEY = "taxes"


def default_tax_config() -> TaxRateConfig:
    """Configurazione di default (TVA 18%, CSS 1%, entrambe attive)."""
    return TaxRateConfig(
        vat_rate=settings.default_vat_rate,
        vat_enabled=True,
        css_rate=settings.default_css_rate,
        css_enabled=True,
    )


class TaxConfigProvider:
    """
    Cache della configurazione tasse.

    Alla prima lettura (o a cache scaduta) la configurazione viene
    ricaricata dalla tabella app_configurations; se la chiave 'taxes'
    non esiste si usano i default.

    Args:
        ttl_seconds: Durata della cache (default da settings, 300 s)
        clock: Sorgente del tempo monotono (sostituibile nei test)
    """

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = settings.tax_config_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._cached: Optional[TaxRateConfig] = None
        self._loaded_at: float = 0.0

    @property
    def is_cached(self) -> bool:
        return self._cached is not None and (self._clock() - self._loaded_at) < self.ttl_seconds

    async def get(self, db: AsyncSession) -> TaxRateConfig:
        """
        Restituisce la configurazione attiva, ricaricandola se scaduta.

        Args:
            db: Sessione database

        Returns:
            TaxRateConfig: Aliquote e flag di attivazione
        """
        if self.is_cached:
            return self._cached

        config = await self._load(db)
        self._cached = config
        self._loaded_at = self._clock()
        logger.debug(
            "Configurazione tasse caricata: TVA %s%% (%s), CSS %s%% (%s)",
            config.vat_rate, config.vat_enabled, config.css_rate, config.css_enabled,
        )
        return config

    def invalidate(self) -> None:
        """Svuota la cache: la prossima get() rilegge dal database."""
        self._cached = None
        self._loaded_at = 0.0
        logger.info("Cache configurazione tasse invalidata")

    async def update(self, db: AsyncSession, data: TaxRateConfigUpdate) -> TaxRateConfig:
        """
        Aggiorna e persiste la configurazione tasse, poi invalida la cache.

        Args:
            db: Sessione database
            data: Campi da aggiornare

        Returns:
            TaxRateConfig: Nuova configurazione
        """
        row = await self._get_row(db)
        current = self._from_row(row)
        merged = current.model_copy(update=data.model_dump(exclude_unset=True, exclude_none=True))
        # Rivalida i limiti delle aliquote
        merged = TaxRateConfig.model_validate(merged.model_dump())

        payload = {
            "vat_rate": str(merged.vat_rate),
            "vat_enabled": merged.vat_enabled,
            "css_rate": str(merged.css_rate),
            "css_enabled": merged.css_enabled,
        }
        if row is None:
            db.add(AppConfiguration(key=TAXES_CONFIG_KEY, data=payload))
        else:
            row.data = payload

        await db.commit()
        self.invalidate()
        logger.info(
            "Configurazione tasse aggiornata: TVA %s%% (%s), CSS %s%% (%s)",
            merged.vat_rate, merged.vat_enabled, merged.css_rate, merged.css_enabled,
        )
        return merged

    async def _load(self, db: AsyncSession) -> TaxRateConfig:
        return self._from_row(await self._get_row(db))

    async def _get_row(self, db: AsyncSession) -> Optional[AppConfiguration]:
        result = await db.execute(
            select(AppConfiguration).where(AppConfiguration.key == TAXES_CONFIG_KEY)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _from_row(row: Optional[AppConfiguration]) -> TaxRateConfig:
        defaults = default_tax_config()
        if row is None or not row.data:
            return defaults
        data = row.data
        return TaxRateConfig(
            vat_rate=data.get("vat_rate", defaults.vat_rate),
            vat_enabled=bool(data.get("vat_enabled", True)),
            css_rate=data.get("css_rate", defaults.css_rate),
            css_enabled=bool(data.get("css_enabled", True)),
        )


# Istanza condivisa dall'applicazione
tax_config_provider = TaxConfigProvider()
