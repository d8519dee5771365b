"""
Configurazione Database - SQLAlchemy 2.0 Async
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Definisce engine, session factory e dependency injection per FastAPI.
Ogni operazione del motore documenti lavora su una singola sessione:
il commit (o il rollback) chiude l'intera unità di lavoro.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

logger = logging.getLogger(__name__)

# SQLSTATE PostgreSQL per "lock_not_available" (lock_timeout scaduto)
LOCK_NOT_AVAILABLE = "55P03"

# ------------------------------------------------------------
# Engine Async SQLAlchemy 2.0
# ------------------------------------------------------------
engine: AsyncEngine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
)


# ------------------------------------------------------------
# Session Factory
# ------------------------------------------------------------
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency injection per FastAPI.

    Crea una sessione database per ogni richiesta, esegue il rollback
    in caso di eccezione e la chiude al termine.

    Yields:
        AsyncSession: Sessione database async
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def set_lock_timeout(db: AsyncSession, timeout_ms: int) -> str:
    """
    Imposta il lock_timeout per la transazione corrente.

    SET LOCAL non accetta parametri bind: il valore viene forzato a intero.
    Il valore resta attivo fino alla fine della transazione, anche dopo
    il rilascio di un savepoint: va ripristinato con restore_lock_timeout.

    Args:
        db: Sessione database
        timeout_ms: Attesa massima in millisecondi

    Returns:
        str: Valore di lock_timeout in vigore prima della modifica
    """
    result = await db.execute(text("SELECT current_setting('lock_timeout')"))
    previous = result.scalar()
    await db.execute(text(f"SET LOCAL lock_timeout = {int(timeout_ms)}"))
    return previous


async def restore_lock_timeout(db: AsyncSession, previous: str) -> None:
    """Ripristina il lock_timeout letto da set_lock_timeout."""
    await db.execute(
        text("SELECT set_config('lock_timeout', :value, true)"),
        {"value": previous},
    )


def is_lock_timeout(exc: DBAPIError) -> bool:
    """Verifica se l'errore del driver corrisponde a un lock_timeout scaduto."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    return code == LOCK_NOT_AVAILABLE


async def init_db() -> None:
    """
    Inizializza la connessione al database.

    Esegue un test di connessione per verificare
    che il database sia raggiungibile.
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Connessione al database stabilita con successo")
    except Exception as e:
        logger.error("Errore connessione database: %s", e)
        raise


async def close_db() -> None:
    """Chiude le connessioni al database durante lo shutdown."""
    await engine.dispose()
    logger.info("Connessioni database chiuse")
