"""
Interfaccia comune dei calcolatori di categoria
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Ogni categoria di documento (container, bulk, independent) ha un
calcolatore che sa validare le righe in ingresso, crearle sul
documento, calcolarne l'imponibile lordo e proiettarle nel formato
neutro usato per conversione e duplicazione.
"""

import datetime
import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.document import DocumentCategory
from app.schemas.tax import TaxRateConfig
from app.services.money import DocumentTotals, apply_totals, round_money, to_decimal

logger = logging.getLogger(__name__)

ONE = Decimal("1")


# -------------------------------------------------------------------
# Helper di normalizzazione
# -------------------------------------------------------------------

def pick(raw: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Restituisce il primo valore non vuoto tra gli alias indicati."""
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return default


def parse_date(value: Any) -> Optional[datetime.date]:
    """
    Converte date, datetime o stringhe ISO (AAAA-MM-GG) in date.

    Raises:
        ValueError: stringa non interpretabile come data
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return datetime.date.fromisoformat(str(value).strip()[:10])


def check_amount(
    raw: dict[str, Any],
    keys: Iterable[str],
    label: str,
    prefix: str,
    errors: list[str],
) -> None:
    """Aggiunge un errore se il valore (tra gli alias) non è un numero >= 0."""
    value = pick(raw, *keys)
    if value is None:
        return
    try:
        amount = to_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        errors.append(f"{prefix}: {label} non valido")
        return
    if not amount.is_finite() or amount < 0:
        errors.append(f"{prefix}: {label} non può essere negativo")


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    """Totale riga arrotondato al centesimo."""
    return round_money(quantity * unit_price)


class CategoryCalculator(ABC):
    """
    Strategia di calcolo per una categoria di documento.

    Attributes:
        category: Categoria servita
        payload_key: Chiave delle righe nel payload (containers, lots, lines)
        relationship: Collezione del documento che contiene le righe
        aliases: Alias storici accettati per payload_key
    """

    category: DocumentCategory
    payload_key: str
    relationship: str
    aliases: tuple[str, ...] = ()

    # ------------------------------------------------------------
    # Payload
    # ------------------------------------------------------------
    def extract_lines(self, payload: dict[str, Any]) -> Optional[list[dict[str, Any]]]:
        """
        Rimuove dal payload le righe della categoria (chiave o alias).

        Returns:
            La lista di righe, oppure None se il payload non ne contiene
        """
        found = None
        for key in (self.payload_key, *self.aliases):
            if key in payload:
                value = payload.pop(key)
                if found is None and value is not None:
                    found = value
        return found

    @abstractmethod
    def validate(self, lines: Any) -> list[str]:
        """
        Valida le righe in ingresso.

        Non solleva mai eccezioni: restituisce la lista dei messaggi
        di errore per campo (vuota se le righe sono valide).
        """

    @abstractmethod
    def build_line(self, raw: dict[str, Any], index: int) -> Any:
        """Normalizza una riga in ingresso e restituisce l'istanza ORM."""

    # ------------------------------------------------------------
    # Righe persistite
    # ------------------------------------------------------------
    def lines_of(self, document: Any) -> list:
        return getattr(document, self.relationship)

    def create_lines(self, document: Any, raw_lines: list[dict[str, Any]]) -> list:
        """
        Crea le righe sul documento (persistite al flush per cascade).

        Args:
            document: WorkOrder o Invoice
            raw_lines: Righe in ingresso già validate

        Returns:
            list: Le istanze create
        """
        collection = self.lines_of(document)
        created = []
        for index, raw in enumerate(raw_lines):
            line = self.build_line(raw, index)
            line.position = index
            collection.append(line)
            created.append(line)
        logger.debug(
            "Create %d righe %s per documento %s",
            len(created), self.category.value, getattr(document, "number", None),
        )
        return created

    def replace_lines(self, document: Any, raw_lines: list[dict[str, Any]]) -> list:
        """Sostituzione distruttiva: elimina le righe esistenti e ricrea."""
        self.lines_of(document).clear()
        return self.create_lines(document, raw_lines)

    async def ensure_lines_loaded(self, db: AsyncSession, document: Any) -> None:
        """Carica le righe se il documento persistito non le ha in memoria."""
        state = inspect(document)
        if state.persistent and self.relationship in state.unloaded:
            await db.refresh(document, attribute_names=[self.relationship])

    @abstractmethod
    def subtotal(self, document: Any) -> Decimal:
        """Imponibile lordo della categoria."""

    async def recalculate_totals(
        self,
        db: AsyncSession,
        document: Any,
        config: TaxRateConfig,
    ) -> DocumentTotals:
        """
        Ricalcola e scrive i totali del documento.

        Idempotente: due chiamate consecutive senza modifiche alle
        righe producono gli stessi importi.
        """
        await self.ensure_lines_loaded(db, document)
        return apply_totals(document, self.subtotal(document), config)

    @abstractmethod
    def project_for_conversion(self, document: Any) -> dict[str, list[dict[str, Any]]]:
        """
        Proietta le righe nel formato neutro accettato da create_lines.

        Returns:
            dict: {payload_key: [righe]}
        """
