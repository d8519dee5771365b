"""
Calcolatore categoria Independent (prestazioni indipendenti)
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Ogni riga è una prestazione (noleggio, trasporto, movimentazione,
doppio sollevamento, stoccaggio); le regole specifiche del tipo sono
delegate alle strategie di app.services.calculators.operations.
"""

import logging
from decimal import Decimal
from typing import Any

from app.models import ServiceLine
from app.schemas.document import DocumentCategory, IndependentOperationType
from app.services.calculators.base import CategoryCalculator, check_amount, line_total, pick
from app.services.calculators.operations import get_strategy, resolve_operation_type
from app.services.money import ZERO, round_money, round_quantity, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_OPERATION_TYPE = IndependentOperationType.HANDLING


class IndependentCalculator(CategoryCalculator):
    """Documenti a prestazioni: totale riga = quantità × prezzo unitario."""

    category = DocumentCategory.INDEPENDENT
    payload_key = "lines"
    relationship = "service_lines"
    aliases = ("lignes",)

    @staticmethod
    def _raw_type(raw: dict[str, Any]) -> Any:
        return pick(raw, "operation_type", "type_operation", "type")

    def _operation_type(self, raw: dict[str, Any]) -> IndependentOperationType:
        value = self._raw_type(raw)
        resolved = resolve_operation_type(value)
        if resolved is None:
            logger.warning(
                "Tipo prestazione sconosciuto '%s': uso %s", value, DEFAULT_OPERATION_TYPE.value
            )
            return DEFAULT_OPERATION_TYPE
        return resolved

    def validate(self, lines: Any) -> list[str]:
        if not lines or not isinstance(lines, list):
            return ["Almeno una prestazione è obbligatoria"]

        errors: list[str] = []
        for i, raw in enumerate(lines, start=1):
            prefix = f"Riga #{i}"
            if not isinstance(raw, dict):
                errors.append(f"{prefix}: formato non valido")
                continue
            if not str(self._raw_type(raw) or "").strip():
                errors.append(f"{prefix}: tipo operazione obbligatorio")
                continue
            strategy = get_strategy(self._operation_type(raw))
            errors.extend(strategy.validate(raw, prefix))
            check_amount(raw, ("quantity", "quantite"), "quantità", prefix, errors)
            check_amount(raw, ("unit_price", "prix_unitaire"), "prezzo unitario", prefix, errors)
        return errors

    def build_line(self, raw: dict[str, Any], index: int) -> ServiceLine:
        operation_type = self._operation_type(raw)
        strategy = get_strategy(operation_type)
        quantity = round_quantity(strategy.quantity(raw))
        unit_price = round_money(pick(raw, "unit_price", "prix_unitaire"))
        return ServiceLine(
            operation_type=operation_type.value,
            description=pick(raw, "description", "designation"),
            quantity=quantity,
            unit_price=unit_price,
            line_total=line_total(quantity, unit_price),
            **strategy.fields(raw),
        )

    def subtotal(self, document: Any) -> Decimal:
        return sum((to_decimal(line.line_total) for line in document.service_lines), ZERO)

    def project_for_conversion(self, document: Any) -> dict[str, list[dict[str, Any]]]:
        return {
            self.payload_key: [
                {
                    "operation_type": line.operation_type,
                    "description": line.description,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                    "line_total": line.line_total,
                    "departure_location": line.departure_location,
                    "arrival_location": line.arrival_location,
                    "start_date": line.start_date,
                    "end_date": line.end_date,
                }
                for line in document.service_lines
            ]
        }
