"""
Factory del ciclo di vita dei documenti commerciali
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Struttura comune a ordini di lavoro e fatture:
- normalize: risoluzione degli alias storici del payload
- create / modify: scritture atomiche (testata, righe, totali, registro
  tasse, saldo cliente) delegate al calcolatore della categoria
- record_payment, duplicate, cancel, delete

Ogni operazione è una singola unità di lavoro: qualunque eccezione
esegue il rollback della sessione e viene rilanciata. Gli eventi di
dominio vengono emessi solo dopo il commit.
"""

import datetime
import logging
import uuid
from contextlib import asynccontextmanager
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, AsyncIterator, Optional, Union

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.events import DocumentEvent, EventBus, event_bus
from app.core.exceptions import (
    BusinessValidationError,
    ConflictError,
    IllegalStateTransitionError,
    LineValidationError,
    NotFoundError,
    ReferentialIntegrityError,
)
from app.models import Client
from app.schemas.document import DiscountType, DocumentCategory, TaxCategory
from app.services.calculators import CALCULATORS, CategoryCalculator, get_calculator, resolve_category
from app.services.calculators.base import parse_date
from app.services.client_service import ClientService, client_service
from app.services.money import ZERO, round_money, to_decimal
from app.services.sequence_service import SequenceDomain, SequenceService, sequence_service
from app.services.tax_config_service import TaxConfigProvider, tax_config_provider

logger = logging.getLogger(__name__)

Payload = Union[BaseModel, dict[str, Any]]

# Alias storici dei campi di testata → nome canonico
HEADER_ALIASES: dict[str, str] = {
    "type_document": "category",
    "categorie": "category",
    "bl_numero": "bl_number",
    "numero_bl": "bl_number",
    "navire": "vessel",
    "date": "issue_date",
    "date_facture": "issue_date",
    "date_creation": "issue_date",
    "remise_type": "discount_type",
    "remise_valeur": "discount_value",
    "prime_transitaire": "forwarder_commission",
    "prime_representant": "representative_commission",
    "transitaire_id": "forwarder_id",
    "representant_id": "representative_id",
    "armateur_id": "shipowner_id",
    "type_operation": "operation_type",
    "observations": "notes",
}

DISCOUNT_ALIASES: dict[str, DiscountType] = {
    "none": DiscountType.NONE,
    "aucune": DiscountType.NONE,
    "percentage": DiscountType.PERCENTAGE,
    "pourcentage": DiscountType.PERCENTAGE,
    "fixed": DiscountType.FIXED,
    "montant": DiscountType.FIXED,
}

UUID_FIELDS = ("client_id", "shipowner_id", "forwarder_id", "representative_id")
AMOUNT_FIELDS = ("discount_value", "forwarder_commission", "representative_commission")
TEXT_FIELDS = ("operation_type", "bl_number", "vessel", "notes")
FLAG_FIELDS = ("exempt_vat", "exempt_css")
TRUE_VALUES = {"1", "true", "yes", "si", "oui", "on"}
# Colonne NOT NULL senza default di tipo: un null esplicito viene ignorato
REQUIRED_FIELDS = frozenset({"client_id", "issue_date", "due_date"})

LINE_KEYS = frozenset(
    key
    for calculator in CALCULATORS.values()
    for key in (calculator.payload_key, *calculator.aliases)
)


class DocumentFactory:
    """
    Base dei factory documentali.

    Le sottoclassi definiscono modello, dominio di numerazione,
    macchina a stati ed eventi, e gli hook _after_* per gli effetti
    collaterali specifici (provvigioni, registro tasse, saldo).

    Args:
        tax_config: Fornitore della configurazione tasse
        sequences: Service di numerazione
        clients: Service clienti (saldo)
        bus: Dispatcher degli eventi di dominio
    """

    model: Any
    domain: SequenceDomain
    label: str = "documento"
    status_enum: type[Enum]
    initial_status: Enum
    cancelled_status: Enum
    transitions: dict
    events: dict[str, DocumentEvent]

    field_aliases: dict[str, str] = HEADER_ALIASES
    header_fields: tuple[str, ...] = (
        "client_id",
        "tax_category",
        "issue_date",
        "shipowner_id",
        "forwarder_id",
        "representative_id",
        *TEXT_FIELDS,
        "discount_type",
        "discount_value",
        *FLAG_FIELDS,
        "forwarder_commission",
        "representative_commission",
    )

    def __init__(
        self,
        tax_config: Optional[TaxConfigProvider] = None,
        sequences: Optional[SequenceService] = None,
        clients: Optional[ClientService] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.tax_config = tax_config or tax_config_provider
        self.sequences = sequences or sequence_service
        self.clients = clients or client_service
        self.bus = bus or event_bus

    # ------------------------------------------------------------
    # Normalizzazione del payload
    # ------------------------------------------------------------
    def normalize(self, raw: Optional[Payload], for_create: bool = True) -> dict[str, Any]:
        """
        Risolve gli alias del payload in ingresso e converte i valori.

        Il nome canonico prevale sull'alias quando entrambi sono presenti.
        In creazione la data documento è di default oggi.

        Raises:
            BusinessValidationError: Valore non convertibile (data, UUID, importo)
        """
        if isinstance(raw, BaseModel):
            source = raw.model_dump(exclude_unset=True)
        else:
            source = dict(raw or {})

        data: dict[str, Any] = {}
        for key, value in source.items():
            target = self.field_aliases.get(key, key)
            if key == target:
                data[target] = value
            else:
                data.setdefault(target, value)

        out: dict[str, Any] = {}
        for key, value in data.items():
            if key in LINE_KEYS:
                out[key] = value
            elif key == "category":
                if value not in (None, ""):
                    out["category"] = value
            elif key in self.header_fields:
                if value is None and key in REQUIRED_FIELDS:
                    continue
                out[key] = self._coerce(key, value)
            else:
                logger.debug("Campo '%s' ignorato in normalizzazione", key)

        if for_create and out.get("issue_date") is None:
            out["issue_date"] = datetime.date.today()
        self._normalize_extra(out, for_create)
        return out

    def _normalize_extra(self, data: dict[str, Any], for_create: bool) -> None:
        """Hook per i campi specifici del tipo di documento."""

    def _coerce(self, key: str, value: Any) -> Any:
        if key in UUID_FIELDS:
            if value in (None, ""):
                return None
            try:
                return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
            except ValueError:
                raise BusinessValidationError(f"Identificativo non valido per {key}: {value}")
        if key in AMOUNT_FIELDS:
            try:
                amount = to_decimal(value)
            except (InvalidOperation, ValueError, TypeError):
                raise BusinessValidationError(f"Importo non valido per {key}: {value}")
            if not amount.is_finite() or amount < 0:
                raise BusinessValidationError(f"Il campo {key} non può essere negativo")
            return amount
        if key in FLAG_FIELDS:
            if isinstance(value, str):
                return value.strip().lower() in TRUE_VALUES
            return bool(value)
        if key in TEXT_FIELDS:
            return str(value).strip() if value is not None else None
        if key == "tax_category":
            if value in (None, ""):
                return TaxCategory.SUBJECT.value
            try:
                return TaxCategory(str(getattr(value, "value", value)).strip().lower()).value
            except ValueError:
                raise BusinessValidationError(f"Regime fiscale non valido: {value}")
        if key == "discount_type":
            if value in (None, ""):
                return DiscountType.NONE.value
            kind = DISCOUNT_ALIASES.get(str(getattr(value, "value", value)).strip().lower())
            if kind is None:
                raise BusinessValidationError(f"Tipo di sconto non valido: {value}")
            return kind.value
        if key.endswith("_date"):
            try:
                return parse_date(value)
            except ValueError:
                raise BusinessValidationError(f"Data non valida per {key}: {value}")
        return value

    @staticmethod
    def _pop_lines(data: dict[str, Any], calculator: CategoryCalculator) -> Optional[list]:
        """Estrae le righe della categoria e scarta quelle delle altre."""
        lines = None
        for candidate in CALCULATORS.values():
            extracted = candidate.extract_lines(data)
            if candidate is calculator:
                lines = extracted
        return lines

    # ------------------------------------------------------------
    # Stato
    # ------------------------------------------------------------
    def _transition(self, document: Any, target: Enum) -> None:
        current = self.status_enum(document.status)
        if target not in self.transitions[current]:
            raise IllegalStateTransitionError(current.value, target.value, self.label)
        document.status = target.value

    def _payment_status(self, document: Any) -> Optional[Enum]:
        """Stato derivato dall'incassato (None se invariato)."""
        return None

    def _is_cancelled(self, document: Any) -> bool:
        return document.status == self.cancelled_status.value

    # ------------------------------------------------------------
    # Hook degli effetti collaterali (nella transazione del documento)
    # ------------------------------------------------------------
    def _contribution(self, document: Any) -> Any:
        """Istantanea del contributo al registro tasse (None se non contribuisce)."""
        return None

    async def _after_create(self, db: AsyncSession, document: Any) -> None:
        pass

    async def _after_modify(
        self,
        db: AsyncSession,
        document: Any,
        before: Any,
        old_client_id: Optional[uuid.UUID],
        commissions_changed: bool,
    ) -> None:
        pass

    async def _after_payment(self, db: AsyncSession, document: Any) -> None:
        pass

    async def _after_cancel(self, db: AsyncSession, document: Any, before: Any) -> None:
        pass

    # ------------------------------------------------------------
    # Supporto
    # ------------------------------------------------------------
    @asynccontextmanager
    async def _unit_of_work(self, db: AsyncSession, action: str) -> AsyncIterator[None]:
        """Commit a fine blocco, rollback e rilancio su qualunque errore."""
        try:
            yield
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.error("Errore IntegrityError durante %s: %s", action, e.orig)
            raise ConflictError(f"Conflitto di integrità durante {action}") from e
        except Exception:
            await db.rollback()
            raise

    async def _ensure_client(self, db: AsyncSession, client_id: Optional[uuid.UUID]) -> None:
        if client_id is None:
            raise BusinessValidationError("Il cliente è obbligatorio")
        client = await db.get(Client, client_id)
        if client is None or not client.is_active:
            raise NotFoundError(f"Cliente con ID {client_id} non trovato")

    def _apply_header(self, document: Any, data: dict[str, Any]) -> None:
        for field in self.header_fields:
            if field in data:
                setattr(document, field, data[field])

    def _build(
        self,
        data: dict[str, Any],
        number: str,
        category: DocumentCategory,
        created_by: Optional[uuid.UUID],
    ) -> Any:
        document = self.model(
            number=number,
            category=category.value,
            status=self.initial_status.value,
            tax_category=TaxCategory.SUBJECT.value,
            discount_type=DiscountType.NONE.value,
            discount_value=ZERO,
            exempt_vat=False,
            exempt_css=False,
            subtotal=ZERO,
            discount_amount=ZERO,
            vat_amount=ZERO,
            css_amount=ZERO,
            total=ZERO,
            amount_paid=ZERO,
            forwarder_commission=ZERO,
            representative_commission=ZERO,
            created_by=created_by,
            is_active=True,
        )
        self._apply_header(document, data)
        return document

    def copy_header(self, document: Any) -> dict[str, Any]:
        """Campi di testata riutilizzabili (senza identità, stato, date e incassi)."""
        excluded = {"issue_date", "due_date"}
        header = {
            field: getattr(document, field)
            for field in self.header_fields
            if field not in excluded and hasattr(document, field)
        }
        header["category"] = document.category
        return header

    def _event_payload(self, document: Any) -> dict[str, Any]:
        return {
            "id": str(document.id),
            "number": document.number,
            "client_id": str(document.client_id),
            "status": document.status,
            "total": str(document.total),
            "amount_paid": str(document.amount_paid),
        }

    # ------------------------------------------------------------
    # Lettura
    # ------------------------------------------------------------
    async def get_by_id(
        self,
        db: AsyncSession,
        document_id: uuid.UUID,
        include_inactive: bool = False,
    ) -> Any:
        """
        Recupera un documento con le righe.

        Raises:
            NotFoundError: Documento inesistente o eliminato
        """
        query = (
            select(self.model)
            .where(self.model.id == document_id)
            .execution_options(populate_existing=True)
        )
        if not include_inactive:
            query = query.where(self.model.is_active == True)
        result = await db.execute(query)
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFoundError(f"{self.label.capitalize()} con ID {document_id} non trovato")
        return document

    async def get_all(
        self,
        db: AsyncSession,
        client_id: Optional[uuid.UUID] = None,
        status_filter: Optional[str] = None,
        category: Optional[str] = None,
        from_date: Optional[datetime.date] = None,
        to_date: Optional[datetime.date] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 10,
    ) -> tuple[list[Any], int]:
        """
        Lista paginata dei documenti attivi.

        Returns:
            Tuple di (documenti, totale count)
        """
        conditions = [self.model.is_active == True]
        if client_id:
            conditions.append(self.model.client_id == client_id)
        if status_filter:
            conditions.append(self.model.status == status_filter)
        if category:
            conditions.append(self.model.category == resolve_category(category).value)
        if from_date:
            conditions.append(self.model.issue_date >= from_date)
        if to_date:
            conditions.append(self.model.issue_date <= to_date)
        if search:
            term = f"%{search}%"
            conditions.append(
                self.model.number.ilike(term) | self.model.bl_number.ilike(term)
            )

        query = (
            select(self.model)
            .where(*conditions)
            .order_by(self.model.issue_date.desc(), self.model.number.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        items = list((await db.execute(query)).scalars().all())
        total = (
            await db.execute(select(func.count()).select_from(self.model).where(*conditions))
        ).scalar() or 0
        return items, total

    # ------------------------------------------------------------
    # Creazione
    # ------------------------------------------------------------
    async def _create(
        self,
        db: AsyncSession,
        payload: Payload,
        created_by: Optional[uuid.UUID] = None,
        attributes: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Crea il documento nella transazione corrente, senza commit.

        Le righe sono validate prima di qualunque scrittura: un errore
        di validazione non consuma numeri di sequenza.
        """
        data = self.normalize(payload, for_create=True)
        category = resolve_category(data.pop("category", None))
        calculator = get_calculator(category)
        lines = self._pop_lines(data, calculator)

        errors = calculator.validate(lines)
        if errors:
            logger.info("Validazione righe %s fallita: %s", self.label, errors)
            raise LineValidationError(errors)

        await self._ensure_client(db, data.get("client_id"))
        config = await self.tax_config.get(db)

        number = await self.sequences.next_number(db, self.domain, data["issue_date"])
        document = self._build(data, number, category, created_by)
        for field, value in (attributes or {}).items():
            setattr(document, field, value)
        db.add(document)

        calculator.create_lines(document, lines)
        await calculator.recalculate_totals(db, document, config)
        await self._after_create(db, document)
        await db.flush()
        return document

    async def create(
        self,
        db: AsyncSession,
        payload: Payload,
        created_by: Optional[uuid.UUID] = None,
    ) -> Any:
        """
        Crea un documento in un'unica transazione.

        Steps:
        1. Normalizza il payload e risolve la categoria (default container)
        2. Valida le righe (LineValidationError, nessuna scrittura)
        3. Riserva il numero sotto lock
        4. Crea testata e righe, ricalcola i totali
        5. Effetti collaterali (provvigioni, registro tasse, saldo)
        6. Commit ed evento di creazione

        Raises:
            LineValidationError: Righe non valide
            NotFoundError: Cliente inesistente
            SequenceLockError: Contatore occupato oltre il timeout
            ConflictError: Violazione di integrità al commit
        """
        async with self._unit_of_work(db, f"creazione {self.label}"):
            document = await self._create(db, payload, created_by)

        logger.info(
            "Creato %s %s (categoria %s, totale %s)",
            self.label, document.number, document.category, document.total,
        )
        await self.bus.emit(self.events["created"], self._event_payload(document))
        return await self.get_by_id(db, document.id)

    # ------------------------------------------------------------
    # Modifica
    # ------------------------------------------------------------
    async def modify(
        self,
        db: AsyncSession,
        document_id: uuid.UUID,
        payload: Payload,
    ) -> Any:
        """
        Modifica testata e, se fornite, righe del documento.

        Le righe fornite per la categoria corrente sostituiscono
        integralmente quelle esistenti. Un cambio di categoria richiede
        le righe della nuova categoria e svuota le precedenti.

        Raises:
            ConflictError: Documento annullato
            LineValidationError: Righe non valide
        """
        document = await self.get_by_id(db, document_id)
        if self._is_cancelled(document):
            raise ConflictError(
                f"Impossibile modificare {self.label} {document.number}: documento annullato"
            )

        data = self.normalize(payload, for_create=False)
        requested = data.pop("category", None)
        category = resolve_category(requested) if requested else DocumentCategory(document.category)
        category_changed = category.value != document.category
        calculator = get_calculator(category)
        lines = self._pop_lines(data, calculator)

        if lines is not None or category_changed:
            errors = calculator.validate(lines)
            if errors:
                raise LineValidationError(errors)

        commissions_changed = any(
            field in data
            for field in ("forwarder_commission", "representative_commission", "forwarder_id", "representative_id")
        )
        before = self._contribution(document)
        old_client_id = document.client_id

        async with self._unit_of_work(db, f"modifica {self.label}"):
            if data.get("client_id") not in (None, old_client_id):
                await self._ensure_client(db, data["client_id"])
            self._apply_header(document, data)

            if category_changed:
                for other in CALCULATORS.values():
                    other.lines_of(document).clear()
                document.category = category.value
            if lines is not None:
                calculator.replace_lines(document, lines)

            config = await self.tax_config.get(db)
            await calculator.recalculate_totals(db, document, config)
            await self._after_modify(db, document, before, old_client_id, commissions_changed)
            await db.flush()

        logger.info("Modificato %s %s (totale %s)", self.label, document.number, document.total)
        await self.bus.emit(self.events["updated"], self._event_payload(document))
        return await self.get_by_id(db, document.id)

    # ------------------------------------------------------------
    # Incassi
    # ------------------------------------------------------------
    async def record_payment(
        self,
        db: AsyncSession,
        document_id: uuid.UUID,
        amount: Union[Decimal, int, str],
    ) -> Any:
        """
        Registra un incasso e aggiorna lo stato.

        Regola di soglia: incassato >= totale → saldato; incassato
        parziale → partially_paid (solo fatture).

        Raises:
            BusinessValidationError: Importo non positivo
            ReferentialIntegrityError: Documento annullato
        """
        try:
            value = round_money(amount)
        except (InvalidOperation, ValueError, TypeError):
            raise BusinessValidationError(f"Importo del pagamento non valido: {amount}")
        if not value.is_finite() or value <= 0:
            raise BusinessValidationError("L'importo del pagamento deve essere positivo")

        document = await self.get_by_id(db, document_id)
        if self._is_cancelled(document):
            raise ReferentialIntegrityError(
                f"Pagamento rifiutato: {self.label} {document.number} annullato",
                extra={"document_id": str(document.id), "status": document.status},
            )

        async with self._unit_of_work(db, f"pagamento {self.label}"):
            document.amount_paid = round_money(to_decimal(document.amount_paid) + value)
            if document.amount_paid > document.total:
                logger.warning(
                    "%s %s: incassato %s oltre il totale %s",
                    self.label, document.number, document.amount_paid, document.total,
                )
            target = self._payment_status(document)
            if target is not None and target.value != document.status:
                self._transition(document, target)
            await self._after_payment(db, document)

        logger.info(
            "Registrato incasso di %s su %s %s (stato %s)",
            value, self.label, document.number, document.status,
        )
        await self.bus.emit(
            self.events["payment"], {**self._event_payload(document), "payment": str(value)}
        )
        return document

    # ------------------------------------------------------------
    # Duplicazione
    # ------------------------------------------------------------
    async def duplicate(
        self,
        db: AsyncSession,
        document_id: uuid.UUID,
        created_by: Optional[uuid.UUID] = None,
    ) -> Any:
        """
        Crea una copia del documento con nuovo numero, data odierna,
        stato iniziale e nessun incasso.
        """
        source = await self.get_by_id(db, document_id)
        calculator = get_calculator(source.category)
        payload = {**self.copy_header(source), **calculator.project_for_conversion(source)}
        logger.info("Duplicazione %s %s", self.label, source.number)
        return await self.create(db, payload, created_by)

    # ------------------------------------------------------------
    # Annullamento ed eliminazione
    # ------------------------------------------------------------
    async def cancel(
        self,
        db: AsyncSession,
        document_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> Any:
        """
        Annulla il documento.

        Raises:
            IllegalStateTransitionError: Documento già annullato
        """
        document = await self.get_by_id(db, document_id)
        before = self._contribution(document)

        async with self._unit_of_work(db, f"annullamento {self.label}"):
            self._transition(document, self.cancelled_status)
            if reason:
                document.notes = f"{document.notes}\n[Annullato] {reason}" if document.notes else f"[Annullato] {reason}"
            await self._after_cancel(db, document, before)

        logger.info("Annullato %s %s", self.label, document.number)
        await self.bus.emit(
            self.events["cancelled"], {**self._event_payload(document), "reason": reason}
        )
        return document

    async def delete(self, db: AsyncSession, document_id: uuid.UUID) -> None:
        """
        Soft delete del documento (il numero resta riservato).

        Raises:
            ConflictError: Il documento ha incassi registrati
        """
        document = await self.get_by_id(db, document_id)
        if to_decimal(document.amount_paid) > 0:
            raise ConflictError(
                f"Impossibile eliminare {self.label} {document.number}: incassi registrati",
                extra={"amount_paid": str(document.amount_paid)},
            )
        before = self._contribution(document)

        async with self._unit_of_work(db, f"eliminazione {self.label}"):
            document.is_active = False
            await self._after_cancel(db, document, before)

        logger.info("Soft delete %s %s", self.label, document.number)
