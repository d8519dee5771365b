"""
Calcolatore categoria Bulk (merce convenzionale a lotti)
Progetto: Gestionale Logistica (Motore Documenti Commerciali)
"""

from decimal import Decimal
from typing import Any

from app.models import Lot
from app.schemas.document import DocumentCategory
from app.services.calculators.base import ONE, CategoryCalculator, check_amount, line_total, pick
from app.services.money import ZERO, round_money, round_quantity, to_decimal


class BulkCalculator(CategoryCalculator):
    """Documenti a lotti: totale riga = quantità × prezzo unitario."""

    category = DocumentCategory.BULK
    payload_key = "lots"
    relationship = "lots"

    def validate(self, lines: Any) -> list[str]:
        if not lines or not isinstance(lines, list):
            return ["Almeno un lotto è obbligatorio"]

        errors: list[str] = []
        for i, raw in enumerate(lines, start=1):
            prefix = f"Lotto #{i}"
            if not isinstance(raw, dict):
                errors.append(f"{prefix}: formato non valido")
                continue
            if not str(pick(raw, "designation", "description", default="")).strip():
                errors.append(f"{prefix}: designazione o descrizione obbligatoria")
            check_amount(raw, ("quantity", "quantite"), "quantità", prefix, errors)
            check_amount(raw, ("unit_price", "prix_unitaire"), "prezzo unitario", prefix, errors)
            check_amount(raw, ("weight", "poids"), "peso", prefix, errors)
            check_amount(raw, ("volume",), "volume", prefix, errors)
        return errors

    def build_line(self, raw: dict[str, Any], index: int) -> Lot:
        quantity = round_quantity(to_decimal(pick(raw, "quantity", "quantite"), ONE))
        unit_price = round_money(pick(raw, "unit_price", "prix_unitaire"))
        weight = pick(raw, "weight", "poids")
        volume = pick(raw, "volume")
        return Lot(
            lot_number=str(pick(raw, "lot_number", "numero_lot", default=f"LOT-{index + 1}")),
            description=str(pick(raw, "designation", "description")).strip(),
            quantity=quantity,
            weight=round_quantity(weight) if weight is not None else None,
            volume=round_quantity(volume) if volume is not None else None,
            unit_price=unit_price,
            line_total=line_total(quantity, unit_price),
        )

    def subtotal(self, document: Any) -> Decimal:
        return sum((to_decimal(lot.line_total) for lot in document.lots), ZERO)

    def project_for_conversion(self, document: Any) -> dict[str, list[dict[str, Any]]]:
        return {
            self.payload_key: [
                {
                    "lot_number": lot.lot_number,
                    "description": lot.description,
                    "quantity": lot.quantity,
                    "weight": lot.weight,
                    "volume": lot.volume,
                    "unit_price": lot.unit_price,
                    "line_total": lot.line_total,
                }
                for lot in document.lots
            ]
        }
