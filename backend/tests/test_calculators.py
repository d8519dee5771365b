"""
Unit tests per i calcolatori di categoria (container, bulk, independent).
"""

from datetime import date
from decimal import Decimal

import pytest

from app.schemas.document import DocumentCategory
from app.schemas.tax import TaxRateConfig
from app.services.calculators import (
    BulkCalculator,
    ContainerCalculator,
    IndependentCalculator,
    get_calculator,
    resolve_category,
)

from conftest import make_invoice, make_work_order


# ============================================================
# Tests per il registro delle categorie
# ============================================================


class TestCategoryRegistry:
    """Risoluzione della categoria e degli alias storici."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, DocumentCategory.CONTAINER),
            ("", DocumentCategory.CONTAINER),
            ("conteneurs", DocumentCategory.CONTAINER),
            ("Conteneur", DocumentCategory.CONTAINER),
            ("conventionnel", DocumentCategory.BULK),
            ("Lot", DocumentCategory.BULK),
            ("operations_independantes", DocumentCategory.INDEPENDENT),
            ("Independant", DocumentCategory.INDEPENDENT),
            (DocumentCategory.BULK, DocumentCategory.BULK),
        ],
    )
    def test_aliases(self, value, expected):
        assert resolve_category(value) == expected

    def test_unknown_falls_back_to_container(self, caplog):
        assert resolve_category("vrac") == DocumentCategory.CONTAINER
        assert "sconosciuta" in caplog.text

    def test_get_calculator(self):
        assert isinstance(get_calculator("lots"), BulkCalculator)
        assert isinstance(get_calculator("independent"), IndependentCalculator)
        assert isinstance(get_calculator(None), ContainerCalculator)


# ============================================================
# Tests per il calcolatore Container
# ============================================================


class TestContainerCalculator:
    """Container con operazioni annidate."""

    calculator = ContainerCalculator()

    def test_empty_lines_rejected(self):
        assert self.calculator.validate([]) == ["Almeno un container è obbligatorio"]
        assert self.calculator.validate(None) == ["Almeno un container è obbligatorio"]

    def test_required_fields(self):
        errors = self.calculator.validate([{"size": "20"}, {"number": "TGHU0001"}])
        assert errors == [
            "Container #1: numero obbligatorio",
            "Container #2: taglia obbligatoria",
        ]

    def test_negative_price_rejected(self):
        errors = self.calculator.validate(
            [{"number": "A", "size": "20", "operations": [{"unit_price": "-3"}]}]
        )
        assert errors == ["Container #1, operazione #1: prezzo unitario non può essere negativo"]

    def test_build_line_normalizes(self):
        container = self.calculator.build_line(
            {
                "numero": " MSCU7654321 ",
                "taille": "40'",
                "prix_unitaire": "1500,50",
                "operations": [{"type_operation": "gate_in", "unit_price": 200}, {"quantite": 3}],
            },
            0,
        )
        assert container.number == "MSCU7654321"
        assert container.size == "40"
        assert container.container_type == "DRY"
        assert container.unit_price == Decimal("1500.50")
        first, second = container.operations
        assert first.type == "gate_in"
        assert first.quantity == Decimal("1")
        assert first.line_total == Decimal("200.00")
        assert second.type == "other"
        assert second.quantity == Decimal("3")
        assert second.line_total == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_subtotal_and_totals(self, mock_db):
        document = make_work_order(discount_type="percentage", discount_value=Decimal("10"))
        self.calculator.create_lines(
            document,
            [
                {
                    "number": "MSCU1234567",
                    "size": "40",
                    "unit_price": 50000,
                    "operations": [{"type": "unloading", "quantity": 2, "unit_price": 10000}],
                }
            ],
        )

        assert self.calculator.subtotal(document) == Decimal("70000.00")
        totals = await self.calculator.recalculate_totals(mock_db, document, TaxRateConfig())
        assert totals.total == Decimal("74970.00")
        assert document.containers[0].position == 0

    def test_replace_lines_is_destructive(self):
        document = make_work_order()
        self.calculator.create_lines(document, [{"number": "A", "size": "20"}, {"number": "B", "size": "20"}])
        self.calculator.replace_lines(document, [{"number": "C", "size": "40"}])
        assert [c.number for c in document.containers] == ["C"]


# ============================================================
# Tests per il calcolatore Bulk
# ============================================================


class TestBulkCalculator:
    """Lotti di merce convenzionale."""

    calculator = BulkCalculator()

    def test_empty_lines_rejected(self):
        assert self.calculator.validate([]) == ["Almeno un lotto è obbligatorio"]

    def test_designation_required(self):
        errors = self.calculator.validate([{"quantity": 3}])
        assert errors == ["Lotto #1: designazione o descrizione obbligatoria"]

    def test_negative_weight_rejected(self):
        errors = self.calculator.validate([{"designation": "Rotoli acciaio", "poids": -10}])
        assert errors == ["Lotto #1: peso non può essere negativo"]

    def test_build_line_defaults(self):
        lot = self.calculator.build_line(
            {"designation": "Sacchi di riso", "quantite": "120", "prix_unitaire": "2.5", "poids": "6000"},
            2,
        )
        assert lot.lot_number == "LOT-3"
        assert lot.description == "Sacchi di riso"
        assert lot.weight == Decimal("6000")
        assert lot.volume is None
        assert lot.line_total == Decimal("300.00")

    def test_subtotal(self):
        document = make_invoice(category="bulk")
        self.calculator.create_lines(
            document,
            [
                {"description": "Tubi", "quantity": 4, "unit_price": "12.345"},
                {"description": "Lamiere", "quantity": 1, "unit_price": 100},
            ],
        )
        # 4 × 12.345 = 49.38 (arrotondato per riga)
        assert self.calculator.subtotal(document) == Decimal("149.38")


# ============================================================
# Tests per la proiezione in conversione
# ============================================================


class TestProjection:
    """La proiezione ricrea righe equivalenti su un altro documento."""

    def test_container_projection_is_lossless(self):
        calculator = ContainerCalculator()
        source = make_work_order()
        calculator.create_lines(
            source,
            [
                {
                    "number": "MSCU1234567",
                    "size": "20",
                    "container_type": "reefer",
                    "description": "Frutta",
                    "unit_price": "750.25",
                    "operations": [
                        {"type": "plug_in", "description": "Energia", "quantity": "4", "unit_price": "30"},
                    ],
                }
            ],
        )

        target = make_invoice()
        calculator.create_lines(target, calculator.project_for_conversion(source)["containers"])

        original, copy = source.containers[0], target.containers[0]
        for field in ("number", "size", "container_type", "description", "unit_price"):
            assert getattr(copy, field) == getattr(original, field)
        for field in ("type", "description", "quantity", "unit_price", "line_total"):
            assert getattr(copy.operations[0], field) == getattr(original.operations[0], field)
        assert calculator.subtotal(target) == calculator.subtotal(source)

    def test_bulk_projection_is_lossless(self):
        calculator = BulkCalculator()
        source = make_work_order(category="bulk")
        calculator.create_lines(
            source,
            [{"lot_number": "L-7", "description": "Cemento", "quantity": 40, "weight": 2000, "volume": "1.5", "unit_price": 8}],
        )

        target = make_invoice(category="bulk")
        calculator.create_lines(target, calculator.project_for_conversion(source)["lots"])

        original, copy = source.lots[0], target.lots[0]
        for field in ("lot_number", "description", "quantity", "weight", "volume", "unit_price", "line_total"):
            assert getattr(copy, field) == getattr(original, field)

    def test_independent_projection_is_lossless(self):
        calculator = IndependentCalculator()
        source = make_work_order(category="independent")
        calculator.create_lines(
            source,
            [
                {"operation_type": "storage", "start_date": "2025-03-01", "end_date": "2025-03-11", "unit_price": 15},
                {"operation_type": "transport", "departure_location": "Porto", "arrival_location": "Deposito", "unit_price": 400},
            ],
        )

        target = make_invoice(category="independent")
        calculator.create_lines(target, calculator.project_for_conversion(source)["lines"])

        fields = (
            "operation_type", "description", "quantity", "unit_price", "line_total",
            "departure_location", "arrival_location", "start_date", "end_date",
        )
        for original, copy in zip(source.service_lines, target.service_lines):
            for field in fields:
                assert getattr(copy, field) == getattr(original, field)
        assert target.service_lines[0].start_date == date(2025, 3, 1)
        assert target.service_lines[0].quantity == Decimal("10")


class TestColumnScale:
    """Quantità e prezzi sono arrotondati alla scala delle colonne prima del totale riga."""

    def test_bulk_price_rounded_before_line_total(self):
        calculator = BulkCalculator()
        source = make_work_order(category="bulk")
        calculator.create_lines(
            source,
            [{"description": "Sacchi", "quantity": "3", "unit_price": "10.005", "weight": "12.34567"}],
        )

        lot = source.lots[0]
        assert lot.unit_price == Decimal("10.01")
        assert lot.weight == Decimal("12.346")
        assert lot.line_total == lot.quantity * lot.unit_price == Decimal("30.03")

        target = make_invoice(category="bulk")
        calculator.create_lines(target, calculator.project_for_conversion(source)["lots"])
        assert target.lots[0].line_total == lot.line_total
        assert calculator.subtotal(target) == calculator.subtotal(source)

    def test_container_operation_quantity_rounded(self):
        calculator = ContainerCalculator()
        source = make_work_order()
        calculator.create_lines(
            source,
            [
                {
                    "number": "MSCU7654321",
                    "size": "40",
                    "unit_price": "99.999",
                    "operations": [{"type": "handling", "quantity": "1.0005", "unit_price": "100"}],
                }
            ],
        )

        container = source.containers[0]
        operation = container.operations[0]
        assert container.unit_price == Decimal("100.00")
        assert operation.quantity == Decimal("1.001")
        assert operation.line_total == Decimal("100.10")

        target = make_invoice()
        calculator.create_lines(target, calculator.project_for_conversion(source)["containers"])
        assert calculator.subtotal(target) == calculator.subtotal(source)

    def test_independent_price_rounded(self):
        calculator = IndependentCalculator()
        source = make_work_order(category="independent")
        calculator.create_lines(source, [{"operation_type": "handling", "quantity": 3, "unit_price": "10.005"}])

        line = source.service_lines[0]
        assert line.unit_price == Decimal("10.01")
        assert line.line_total == Decimal("30.03")
