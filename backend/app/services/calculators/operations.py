"""
Strategie per i tipi di prestazione indipendente
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Ogni tipo di prestazione definisce i propri campi obbligatori e il
modo in cui si ricava la quantità fatturata:

- rental / storage: periodo obbligatorio, quantità = giorni (minimo 1)
- transport: luogo di partenza e di arrivo obbligatori
- handling / double_lift: quantità esplicita (default 1)
"""

import datetime
import logging
from decimal import Decimal
from typing import Any, Optional, Union

from app.schemas.document import OPERATION_TYPE_ALIASES, IndependentOperationType
from app.services.calculators.base import ONE, parse_date, pick
from app.services.money import to_decimal

logger = logging.getLogger(__name__)


def resolve_operation_type(
    value: Optional[Union[IndependentOperationType, str]],
) -> Optional[IndependentOperationType]:
    """
    Risolve il tipo di prestazione (inclusi gli alias storici).

    Returns:
        Il tipo risolto, oppure None se il valore è assente o sconosciuto
    """
    if value is None:
        return None
    if isinstance(value, IndependentOperationType):
        return value
    return OPERATION_TYPE_ALIASES.get(str(value).strip().lower())


class OperationStrategy:
    """Prestazione con quantità esplicita."""

    operation_type: IndependentOperationType

    def validate(self, raw: dict[str, Any], prefix: str) -> list[str]:
        return []

    def quantity(self, raw: dict[str, Any]) -> Decimal:
        return to_decimal(pick(raw, "quantity", "quantite"), ONE)

    def fields(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Campi specifici del tipo da salvare sulla riga."""
        return {}


class HandlingStrategy(OperationStrategy):
    operation_type = IndependentOperationType.HANDLING


class DoubleLiftStrategy(OperationStrategy):
    operation_type = IndependentOperationType.DOUBLE_LIFT


class TransportStrategy(OperationStrategy):
    operation_type = IndependentOperationType.TRANSPORT

    def validate(self, raw: dict[str, Any], prefix: str) -> list[str]:
        errors = []
        if not pick(raw, "departure_location", "lieu_depart"):
            errors.append(f"{prefix}: luogo di partenza obbligatorio per il trasporto")
        if not pick(raw, "arrival_location", "lieu_arrivee"):
            errors.append(f"{prefix}: luogo di arrivo obbligatorio per il trasporto")
        return errors

    def fields(self, raw: dict[str, Any]) -> dict[str, Any]:
        return {
            "departure_location": pick(raw, "departure_location", "lieu_depart"),
            "arrival_location": pick(raw, "arrival_location", "lieu_arrivee"),
        }


class PeriodStrategy(OperationStrategy):
    """Prestazione a periodo: si fattura a giorni."""

    @staticmethod
    def _dates(raw: dict[str, Any]) -> tuple[Optional[datetime.date], Optional[datetime.date]]:
        return (
            parse_date(pick(raw, "start_date", "date_debut")),
            parse_date(pick(raw, "end_date", "date_fin")),
        )

    def validate(self, raw: dict[str, Any], prefix: str) -> list[str]:
        try:
            start, end = self._dates(raw)
        except ValueError:
            return [f"{prefix}: date del periodo non valide"]

        errors = []
        if start is None:
            errors.append(f"{prefix}: data inizio obbligatoria")
        if end is None:
            errors.append(f"{prefix}: data fine obbligatoria")
        if start is not None and end is not None and end < start:
            errors.append(f"{prefix}: la data fine deve essere successiva alla data inizio")
        return errors

    def quantity(self, raw: dict[str, Any]) -> Decimal:
        start, end = self._dates(raw)
        return Decimal(max(1, (end - start).days))

    def fields(self, raw: dict[str, Any]) -> dict[str, Any]:
        start, end = self._dates(raw)
        return {"start_date": start, "end_date": end}


class RentalStrategy(PeriodStrategy):
    operation_type = IndependentOperationType.RENTAL


class StorageStrategy(PeriodStrategy):
    operation_type = IndependentOperationType.STORAGE


OPERATION_STRATEGIES: dict[IndependentOperationType, OperationStrategy] = {
    strategy.operation_type: strategy
    for strategy in (
        RentalStrategy(),
        TransportStrategy(),
        HandlingStrategy(),
        DoubleLiftStrategy(),
        StorageStrategy(),
    )
}


def get_strategy(operation_type: IndependentOperationType) -> OperationStrategy:
    return OPERATION_STRATEGIES[operation_type]
