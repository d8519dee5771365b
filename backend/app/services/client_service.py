"""
Service Layer per l'entità Client
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Definisce la logica di business per la gestione dei clienti e il
ricalcolo del saldo, eseguito dai factory dei documenti nella stessa
transazione della fattura che lo modifica.
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, DuplicateError, NotFoundError
from app.models import Client, Invoice
from app.schemas.client import ClientCreate, ClientUpdate
from app.schemas.document import InvoiceStatus
from app.services.money import round_money

# Logger per questo modulo
logger = logging.getLogger(__name__)


class ClientService:
    """
    Service per la gestione dei clienti.

    Implementa:
    - Soft Delete: cancellazione logica tramite flag is_active
    - Validazione Proattiva: controllo duplicati tax_id prima del create
    - Saldo: Σ totale − Σ incassato sulle fatture attive non annullate
    """

    async def get_all(
        self,
        db: AsyncSession,
        page: int = 1,
        per_page: int = 10,
        search: Optional[str] = None,
        include_inactive: bool = False,
    ) -> tuple[list[Client], int]:
        """
        Recupera la lista paginata dei clienti.

        Returns:
            Tuple di (lista clienti, totale count)
        """
        conditions = []
        if not include_inactive:
            conditions.append(Client.is_active == True)
        if search:
            search_term = f"%{search}%"
            conditions.append(
                or_(
                    Client.name.ilike(search_term),
                    Client.tax_id.ilike(search_term),
                    Client.phone.ilike(search_term),
                    Client.email.ilike(search_term),
                )
            )

        query = select(Client).order_by(Client.name.asc())
        if conditions:
            query = query.where(*conditions)
        query = query.offset((page - 1) * per_page).limit(per_page)
        result = await db.execute(query)
        clients = list(result.scalars().all())

        count_query = select(func.count()).select_from(Client)
        if conditions:
            count_query = count_query.where(*conditions)
        total = (await db.execute(count_query)).scalar() or 0

        logger.info(
            "Recuperati %s clienti su %s totali (pagina %s, include_inactive=%s)",
            len(clients), total, page, include_inactive,
        )
        return clients, total

    async def get_by_id(
        self,
        db: AsyncSession,
        client_id: uuid.UUID,
        include_inactive: bool = False,
    ) -> Client:
        """
        Recupera un cliente tramite ID.

        Raises:
            NotFoundError: Se il cliente non esiste o è stato eliminato
        """
        query = select(Client).where(Client.id == client_id)
        if not include_inactive:
            query = query.where(Client.is_active == True)

        result = await db.execute(query)
        client = result.scalar_one_or_none()
        if client is None:
            logger.warning("Cliente non trovato o eliminato: %s", client_id)
            raise NotFoundError(f"Cliente con ID {client_id} non trovato")
        return client

    async def create(self, db: AsyncSession, client_data: ClientCreate) -> Client:
        """
        Crea un nuovo cliente con saldo zero.

        Raises:
            DuplicateError: Se tax_id è già in uso
            ConflictError: Se il database genera un errore imprevisto
        """
        if client_data.tax_id:
            existing = await self._check_tax_id_exists(db, client_data.tax_id)
            if existing:
                logger.warning(
                    "Tentativo di creare cliente con tax_id duplicato: %s (esistente: %s)",
                    client_data.tax_id, existing.id,
                )
                raise DuplicateError(
                    f"Identificativo fiscale '{client_data.tax_id}' già registrato per un altro cliente"
                )

        client = Client(**client_data.model_dump(), balance=Decimal("0.00"))
        try:
            db.add(client)
            await db.commit()
            await db.refresh(client)
        except IntegrityError as e:
            logger.error("Errore IntegrityError creazione cliente: %s", e.orig)
            await db.rollback()
            raise ConflictError("Errore durante la creazione del cliente")
        except SQLAlchemyError as e:
            logger.error("Errore SQLAlchemy creazione cliente: %s - %s", e.__class__.__name__, e)
            await db.rollback()
            raise ConflictError("Errore del database durante la creazione del cliente")

        logger.info("Creato nuovo cliente: %s - %s", client.id, client.name)
        return client

    async def update(
        self,
        db: AsyncSession,
        client_id: uuid.UUID,
        client_data: ClientUpdate,
    ) -> Client:
        """Aggiorna i dati anagrafici di un cliente (il saldo è derivato)."""
        client = await self.get_by_id(db, client_id)
        update_data = client_data.model_dump(exclude_unset=True)

        new_tax_id = update_data.get("tax_id")
        if new_tax_id and new_tax_id != client.tax_id:
            existing = await self._check_tax_id_exists(db, new_tax_id, exclude_id=client_id)
            if existing:
                raise DuplicateError(
                    f"Identificativo fiscale '{new_tax_id}' già registrato per un altro cliente"
                )

        for field, value in update_data.items():
            setattr(client, field, value)

        try:
            await db.commit()
            await db.refresh(client)
        except SQLAlchemyError as e:
            logger.error("Errore SQLAlchemy aggiornamento cliente: %s - %s", e.__class__.__name__, e)
            await db.rollback()
            raise ConflictError("Errore del database durante l'aggiornamento del cliente")

        logger.info("Aggiornato cliente: %s - %s", client.id, client.name)
        return client

    async def delete(self, db: AsyncSession, client_id: uuid.UUID) -> None:
        """
        Soft delete di un cliente.

        Raises:
            ConflictError: Il cliente ha un saldo aperto
        """
        client = await self.get_by_id(db, client_id)
        if round_money(client.balance) != Decimal("0.00"):
            raise ConflictError(
                f"Impossibile eliminare il cliente: saldo aperto {client.balance}",
                extra={"balance": str(client.balance)},
            )
        client.is_active = False
        await db.commit()
        logger.info("Soft delete cliente: %s - %s", client.id, client.name)

    # ----------------------------------------------------------------
    # Saldo
    # ----------------------------------------------------------------

    async def compute_balance(self, db: AsyncSession, client_id: uuid.UUID) -> Decimal:
        """Σ totale − Σ incassato sulle fatture attive non annullate del cliente."""
        result = await db.execute(
            select(
                func.coalesce(func.sum(Invoice.total), 0),
                func.coalesce(func.sum(Invoice.amount_paid), 0),
            ).where(
                Invoice.client_id == client_id,
                Invoice.is_active == True,
                Invoice.status != InvoiceStatus.CANCELLED.value,
            )
        )
        total, paid = result.one()
        return round_money(total) - round_money(paid)

    async def refresh_balance(self, db: AsyncSession, client_id: Optional[uuid.UUID]) -> Optional[Decimal]:
        """
        Ricalcola e scrive il saldo del cliente.

        Esegue un flush prima della somma, così la fattura in corso di
        scrittura è inclusa. Non esegue il commit: fa parte della
        transazione del documento.
        """
        if client_id is None:
            return None
        await db.flush()
        balance = await self.compute_balance(db, client_id)
        client = await db.get(Client, client_id)
        if client is None:
            logger.warning("Ricalcolo saldo: cliente %s inesistente", client_id)
            return None
        client.balance = balance
        logger.debug("Saldo cliente %s aggiornato: %s", client_id, balance)
        return balance

    async def _check_tax_id_exists(
        self,
        db: AsyncSession,
        tax_id: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[Client]:
        """Verifica se un identificativo fiscale è già in uso (tra i clienti attivi)."""
        query = select(Client).where(Client.tax_id == tax_id, Client.is_active == True)
        if exclude_id:
            query = query.where(Client.id != exclude_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()


client_service = ClientService()
