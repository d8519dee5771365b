"""
Regole monetarie: sconto, tasse e totali
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Funzioni pure per il calcolo dello sconto e delle tasse (TVA, CSS)
e l'orchestrazione apply_totals() che scrive insieme tutti i campi
importo di un documento, arrotondati a 2 decimali (ROUND_HALF_UP).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Union

from app.schemas.document import DiscountType, TaxCategory
from app.schemas.tax import TaxRateConfig

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
MILLI = Decimal("0.001")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Number], default: Decimal = ZERO) -> Decimal:
    """
    Converte un valore in Decimal.

    None e stringhe vuote restituiscono il default; i float passano
    da str() per evitare rappresentazioni binarie (0.1 → 0.1000000000000000055).
    Le stringhe con virgola decimale sono accettate.
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    """Arrotonda un importo a 2 decimali (ROUND_HALF_UP)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_quantity(value: Number) -> Decimal:
    """Arrotonda una quantità (o peso, volume) a 3 decimali (ROUND_HALF_UP)."""
    return to_decimal(value).quantize(MILLI, rounding=ROUND_HALF_UP)


def compute_discount(
    gross_subtotal: Number,
    discount_type: Optional[Union[DiscountType, str]],
    discount_value: Optional[Number],
) -> Decimal:
    """
    Calcola l'importo dello sconto.

    - tipo assente/'none' o valore <= 0: nessuno sconto
    - 'percentage': valore limitato a 100, sconto = lordo × valore / 100
    - 'fixed': sconto = min(valore, lordo)

    Args:
        gross_subtotal: Imponibile lordo
        discount_type: Tipo di sconto
        discount_value: Percentuale o importo

    Returns:
        Decimal: Importo dello sconto (non arrotondato, mai negativo)
    """
    gross = to_decimal(gross_subtotal)
    value = to_decimal(discount_value)

    if not discount_type or value <= 0 or gross <= 0:
        return ZERO

    kind = DiscountType(discount_type)
    if kind == DiscountType.PERCENTAGE:
        return gross * min(value, HUNDRED) / HUNDRED
    if kind == DiscountType.FIXED:
        return min(value, gross)
    return ZERO


@dataclass(frozen=True)
class TaxBreakdown:
    """Tasse calcolate e aliquote effettivamente applicate."""
    vat: Decimal
    css: Decimal
    vat_rate: Optional[Decimal]
    css_rate: Optional[Decimal]

    @property
    def total(self) -> Decimal:
        return self.vat + self.css


def compute_taxes(
    net_subtotal: Number,
    tax_category: Optional[Union[TaxCategory, str]],
    config: TaxRateConfig,
    exempt_vat: bool = False,
    exempt_css: bool = False,
) -> TaxBreakdown:
    """
    Calcola TVA e CSS sull'imponibile netto.

    Un documento 'non_assujetti' non paga tasse qualunque sia la
    configurazione. Una tassa disattivata in configurazione ha
    aliquota None; una tassa esente sul documento vale zero ma
    conserva l'aliquota (serve all'aggregato mensile).

    Args:
        net_subtotal: Imponibile dopo lo sconto
        tax_category: Regime fiscale del documento
        config: Aliquote attive
        exempt_vat: Esenzione TVA sul documento
        exempt_css: Esenzione CSS sul documento

    Returns:
        TaxBreakdown: importi non arrotondati e aliquote applicate
    """
    net = to_decimal(net_subtotal)
    vat_rate = config.vat_rate if config.vat_enabled else None
    css_rate = config.css_rate if config.css_enabled else None

    if tax_category is not None and TaxCategory(tax_category) == TaxCategory.NOT_SUBJECT:
        return TaxBreakdown(vat=ZERO, css=ZERO, vat_rate=vat_rate, css_rate=css_rate)

    vat = net * vat_rate / HUNDRED if vat_rate is not None and not exempt_vat else ZERO
    css = net * css_rate / HUNDRED if css_rate is not None and not exempt_css else ZERO
    return TaxBreakdown(vat=vat, css=css, vat_rate=vat_rate, css_rate=css_rate)


@dataclass(frozen=True)
class DocumentTotals:
    """Totali arrotondati scritti sul documento."""
    subtotal: Decimal
    discount_amount: Decimal
    net_subtotal: Decimal
    vat_amount: Decimal
    css_amount: Decimal
    total: Decimal


def apply_totals(document: Any, gross_subtotal: Number, config: TaxRateConfig) -> DocumentTotals:
    """
    Calcola e scrive tutti i campi importo del documento.

    Le tasse sono calcolate sull'imponibile netto già arrotondato, così
    che total = netto + TVA + CSS valga esattamente sui valori salvati.
    I campi vengono assegnati tutti insieme: il flush successivo li
    scrive in un'unica UPDATE.

    Args:
        document: WorkOrder o Invoice
        gross_subtotal: Imponibile lordo restituito dal calcolatore di categoria
        config: Aliquote attive

    Returns:
        DocumentTotals: i valori scritti
    """
    subtotal = round_money(gross_subtotal)
    discount = round_money(
        compute_discount(subtotal, document.discount_type, document.discount_value)
    )
    net = max(ZERO, subtotal - discount)

    taxes = compute_taxes(
        net,
        document.tax_category,
        config,
        exempt_vat=bool(document.exempt_vat),
        exempt_css=bool(document.exempt_css),
    )
    vat = round_money(taxes.vat)
    css = round_money(taxes.css)
    total = net + vat + css

    document.subtotal = subtotal
    document.discount_amount = discount
    document.vat_amount = vat
    document.css_amount = css
    document.total = total
    document.vat_rate = taxes.vat_rate
    document.css_rate = taxes.css_rate

    logger.debug(
        "Totali documento %s: lordo=%s sconto=%s TVA=%s CSS=%s totale=%s",
        getattr(document, "number", None), subtotal, discount, vat, css, total,
    )

    return DocumentTotals(
        subtotal=subtotal,
        discount_amount=discount,
        net_subtotal=net,
        vat_amount=vat,
        css_amount=css,
        total=total,
    )
