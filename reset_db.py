import asyncio
import datetime
import sys
import os

# Aggiungi backend/ alla PYTHONPATH per importare app.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from app.core.database import AsyncSessionLocal, engine
from app.models import AppConfiguration, Base, SequenceCounter
from app.services.sequence_service import SequenceDomain
from app.services.tax_config_service import TAXES_CONFIG_KEY, default_tax_config


async def seed() -> None:
    """Contatori di numerazione e configurazione tasse di default."""
    year = datetime.date.today().year
    async with AsyncSessionLocal() as session:
        for domain in SequenceDomain:
            session.add(
                SequenceCounter(
                    domain=domain.value,
                    prefix=domain.prefix,
                    current_year=year,
                    next_number=1,
                )
            )
        session.add(
            AppConfiguration(
                key=TAXES_CONFIG_KEY,
                data=default_tax_config().model_dump(mode="json"),
            )
        )
        await session.commit()


async def reset():
    print("Connessione al database, eliminazione tabelle...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        print("Tabelle eliminate. Creazione nuove tabelle...")
        await conn.run_sync(Base.metadata.create_all)
    print("Inserimento contatori e configurazione tasse...")
    await seed()
    await engine.dispose()
    print("Database resettato con successo!")

if __name__ == "__main__":
    asyncio.run(reset())
