"""
Service Layer per la numerazione dei documenti
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Genera numeri univoci nel formato PREFISSO-AAAA-NNNN (es. FAC-2025-0042)
leggendo e incrementando il contatore del dominio sotto lock di riga
(SELECT ... FOR UPDATE). Il lock è limitato da lock_timeout: allo
scadere si solleva SequenceLockError e il savepoint viene annullato,
quindi nessun numero viene consumato.
"""

import datetime
import logging
from enum import Enum
from typing import Optional

from sqlalchemy import exists, func, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import is_lock_timeout, restore_lock_timeout, set_lock_timeout
from app.core.exceptions import SequenceLockError
from app.models import Invoice, SequenceCounter, WorkOrder

logger = logging.getLogger(__name__)


class SequenceDomain(str, Enum):
    """Domini di numerazione."""
    WORK_ORDER = "work_order"
    INVOICE = "invoice"

    @property
    def prefix(self) -> str:
        if self is SequenceDomain.WORK_ORDER:
            return settings.work_order_prefix
        return settings.invoice_prefix

    @property
    def model(self):
        return WorkOrder if self is SequenceDomain.WORK_ORDER else Invoice


def format_number(prefix: str, year: int, sequence: int) -> str:
    """Formatta il numero documento: PREFISSO-AAAA-NNNN (4 cifre minime)."""
    return f"{prefix}-{year}-{sequence:04d}"


def parse_sequence(number: Optional[str], prefix: str, year: int) -> int:
    """
    Estrae il progressivo da un numero documento.

    Returns:
        int: Progressivo, 0 se il numero non appartiene a prefisso/anno
    """
    head = f"{prefix}-{year}-"
    if not number or not number.startswith(head):
        return 0
    suffix = number[len(head):]
    return int(suffix) if suffix.isdigit() else 0


class SequenceService:
    """
    Service per i contatori di numerazione.

    Un contatore per dominio ('work_order', 'invoice') con l'anno
    corrente: al cambio d'anno il progressivo riparte da 1.
    """

    async def next_number(
        self,
        db: AsyncSession,
        domain: SequenceDomain,
        on_date: Optional[datetime.date] = None,
    ) -> str:
        """
        Riserva il prossimo numero del dominio.

        Steps:
        1. Imposta lock_timeout e blocca la riga del contatore
        2. Candidato = max(next_number, massimo numero esistente + 1)
        3. Verifica che il candidato non esista (anche tra gli eliminati)
        4. Salva next_number = candidato + 1

        Il lock resta fino al commit della transazione chiamante.

        Args:
            db: Sessione database (transazione del documento)
            domain: Dominio di numerazione
            on_date: Data del documento (default oggi)

        Returns:
            str: Numero documento

        Raises:
            SequenceLockError: Lock non ottenuto entro il timeout
        """
        year = (on_date or datetime.date.today()).year
        prefix = domain.prefix

        try:
            async with db.begin_nested():
                previous_timeout = await set_lock_timeout(db, settings.sequence_lock_timeout_ms)
                counter = await self._lock_counter(db, domain, year)
                # Il timeout vale solo per il lock del contatore
                await restore_lock_timeout(db, previous_timeout)

                if year > counter.current_year:
                    logger.info(
                        "Nuovo anno %d per il contatore %s: progressivo riportato a 1",
                        year, domain.value,
                    )
                    counter.current_year = year
                    counter.next_number = 1
                counter.prefix = prefix

                # Documenti retrodatati su un anno passato non toccano il contatore
                is_current_year = year == counter.current_year
                start = counter.next_number if is_current_year else 1

                highest = await self._highest_existing(db, domain, prefix, year)
                candidate = max(start, highest + 1)
                while await self._number_exists(db, domain, format_number(prefix, year, candidate)):
                    candidate += 1

                if is_current_year:
                    counter.next_number = candidate + 1
                await db.flush()
        except DBAPIError as exc:
            if is_lock_timeout(exc):
                logger.warning("Timeout lock contatore %s (anno %d)", domain.value, year)
                raise SequenceLockError(domain.value) from exc
            raise

        number = format_number(prefix, year, candidate)
        logger.debug("Riservato numero %s", number)
        return number

    async def synchronize(
        self,
        db: AsyncSession,
        domain: SequenceDomain,
        year: Optional[int] = None,
    ) -> SequenceCounter:
        """
        Riallinea il contatore al massimo numero esistente dell'anno + 1.

        Operazione di manutenzione (script sync_counters.py, endpoint
        di configurazione). Esegue il commit.
        """
        year = year or datetime.date.today().year
        prefix = domain.prefix
        try:
            await set_lock_timeout(db, settings.sequence_lock_timeout_ms)
            counter = await self._lock_counter(db, domain, year)
            highest = await self._highest_existing(db, domain, prefix, year)
            previous = counter.next_number
            counter.prefix = prefix
            counter.current_year = year
            counter.next_number = highest + 1
            await db.commit()
        except DBAPIError as exc:
            await db.rollback()
            if is_lock_timeout(exc):
                raise SequenceLockError(domain.value) from exc
            raise

        logger.info(
            "Contatore %s sincronizzato: %d → %d (anno %d)",
            domain.value, previous, counter.next_number, year,
        )
        return counter

    async def get_counters(self, db: AsyncSession) -> list[SequenceCounter]:
        result = await db.execute(select(SequenceCounter).order_by(SequenceCounter.domain))
        return list(result.scalars().all())

    # ----------------------------------------------------------------
    # Metodi privati di supporto
    # ----------------------------------------------------------------

    async def _lock_counter(
        self,
        db: AsyncSession,
        domain: SequenceDomain,
        year: int,
    ) -> SequenceCounter:
        """Blocca la riga del contatore (creandola se manca)."""
        result = await db.execute(
            select(SequenceCounter)
            .where(SequenceCounter.domain == domain.value)
            .with_for_update()
        )
        counter = result.scalar_one_or_none()
        if counter is None:
            counter = SequenceCounter(
                domain=domain.value,
                prefix=domain.prefix,
                current_year=year,
                next_number=1,
            )
            db.add(counter)
            await db.flush()
            logger.info("Creato contatore di numerazione %s", domain.value)
        return counter

    async def _highest_existing(
        self,
        db: AsyncSession,
        domain: SequenceDomain,
        prefix: str,
        year: int,
    ) -> int:
        """Progressivo più alto già usato per prefisso/anno (documenti eliminati inclusi)."""
        model = domain.model
        result = await db.execute(
            select(model.number)
            .where(model.number.like(f"{prefix}-{year}-%"))
            .order_by(func.length(model.number).desc(), model.number.desc())
            .limit(1)
        )
        return parse_sequence(result.scalar_one_or_none(), prefix, year)

    async def _number_exists(
        self,
        db: AsyncSession,
        domain: SequenceDomain,
        number: str,
    ) -> bool:
        model = domain.model
        result = await db.execute(select(exists().where(model.number == number)))
        return bool(result.scalar())


sequence_service = SequenceService()
