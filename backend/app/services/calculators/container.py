"""
Calcolatore categoria Container
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Righe: container (numero, taglia, tipo, prezzo base) con operazioni
annidate (tipo, quantità, prezzo unitario, totale riga).
"""

from decimal import Decimal
from typing import Any

from app.models import Container, ContainerOperation
from app.schemas.document import DocumentCategory
from app.services.calculators.base import ONE, CategoryCalculator, check_amount, line_total, pick
from app.services.money import ZERO, round_money, round_quantity, to_decimal

DEFAULT_CONTAINER_TYPE = "DRY"
DEFAULT_OPERATION_TYPE = "other"


class ContainerCalculator(CategoryCalculator):
    """Documenti di merce containerizzata."""

    category = DocumentCategory.CONTAINER
    payload_key = "containers"
    relationship = "containers"
    aliases = ("conteneurs",)

    def validate(self, lines: Any) -> list[str]:
        if not lines or not isinstance(lines, list):
            return ["Almeno un container è obbligatorio"]

        errors: list[str] = []
        for i, raw in enumerate(lines, start=1):
            prefix = f"Container #{i}"
            if not isinstance(raw, dict):
                errors.append(f"{prefix}: formato non valido")
                continue
            if not str(pick(raw, "number", "numero", default="")).strip():
                errors.append(f"{prefix}: numero obbligatorio")
            if not self._clean_size(pick(raw, "size", "taille", default="")):
                errors.append(f"{prefix}: taglia obbligatoria")
            check_amount(raw, ("unit_price", "prix_unitaire"), "prezzo unitario", prefix, errors)

            operations = pick(raw, "operations", default=[])
            if not isinstance(operations, list):
                errors.append(f"{prefix}: operazioni non valide")
                continue
            for j, op in enumerate(operations, start=1):
                op_prefix = f"{prefix}, operazione #{j}"
                if not isinstance(op, dict):
                    errors.append(f"{op_prefix}: formato non valido")
                    continue
                check_amount(op, ("quantity", "quantite"), "quantità", op_prefix, errors)
                check_amount(op, ("unit_price", "prix_unitaire"), "prezzo unitario", op_prefix, errors)
        return errors

    @staticmethod
    def _clean_size(value: Any) -> str:
        """Rimuove l'apice finale dalla taglia (40' → 40)."""
        return str(value).strip().rstrip("'\"").strip()

    def build_line(self, raw: dict[str, Any], index: int) -> Container:
        container = Container(
            number=str(pick(raw, "number", "numero")).strip(),
            size=self._clean_size(pick(raw, "size", "taille")),
            container_type=str(pick(raw, "container_type", "type", default=DEFAULT_CONTAINER_TYPE)).upper(),
            description=pick(raw, "description"),
            unit_price=round_money(pick(raw, "unit_price", "prix_unitaire")),
        )
        for position, op in enumerate(pick(raw, "operations", default=[])):
            container.operations.append(self._build_operation(op, position))
        return container

    @staticmethod
    def _build_operation(raw: dict[str, Any], position: int) -> ContainerOperation:
        quantity = round_quantity(to_decimal(pick(raw, "quantity", "quantite"), ONE))
        unit_price = round_money(pick(raw, "unit_price", "prix_unitaire"))
        return ContainerOperation(
            type=str(pick(raw, "type", "type_operation", "operation_type", default=DEFAULT_OPERATION_TYPE)),
            description=pick(raw, "description"),
            quantity=quantity,
            unit_price=unit_price,
            line_total=line_total(quantity, unit_price),
            position=position,
        )

    def subtotal(self, document: Any) -> Decimal:
        total = ZERO
        for container in document.containers:
            total += to_decimal(container.unit_price)
            for op in container.operations:
                total += to_decimal(op.line_total)
        return total

    def project_for_conversion(self, document: Any) -> dict[str, list[dict[str, Any]]]:
        return {
            self.payload_key: [
                {
                    "number": c.number,
                    "size": c.size,
                    "container_type": c.container_type,
                    "description": c.description,
                    "unit_price": c.unit_price,
                    "operations": [
                        {
                            "type": op.type,
                            "description": op.description,
                            "quantity": op.quantity,
                            "unit_price": op.unit_price,
                            "line_total": op.line_total,
                        }
                        for op in c.operations
                    ],
                }
                for c in document.containers
            ]
        }
