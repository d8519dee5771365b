"""
Riallinea i contatori di numerazione ai documenti esistenti.

Uso:
    python sync_counters.py            # anno corrente
    python sync_counters.py 2024       # anno indicato
"""

import asyncio
import sys
import os

# Aggiungi backend/ alla PYTHONPATH per importare app.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from app.core.database import AsyncSessionLocal, engine
from app.services.sequence_service import SequenceDomain, sequence_service


async def sync(year=None):
    async with AsyncSessionLocal() as session:
        for domain in SequenceDomain:
            counter = await sequence_service.synchronize(session, domain, year)
            print(
                f"{domain.value}: anno {counter.current_year}, "
                f"prossimo numero {counter.next_number}"
            )
    await engine.dispose()

if __name__ == "__main__":
    asyncio.run(sync(int(sys.argv[1]) if len(sys.argv) > 1 else None))
