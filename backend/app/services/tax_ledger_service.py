"""
Service Layer per l'aggregato mensile delle tasse
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Tiene i cumuli per (anno, mese, codice tassa) alimentati dalle fatture.
Ogni fattura contribuisce con il proprio imponibile netto e le tasse
calcolate; le modifiche si riconciliano togliendo il contributo
precedente e aggiungendo quello nuovo, nella stessa transazione del
documento.
"""

import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessValidationError, ConflictError
from app.models import Invoice, MonthlyTaxAggregate
from app.schemas.document import InvoiceStatus, TaxCategory, TaxCode
from app.schemas.tax import YearlyTaxTotal
from app.services.money import ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Contributo di un documento
# -------------------------------------------------------------------

@dataclass(frozen=True)
class TaxLine:
    """Quota di un documento su un singolo codice tassa."""
    tax_code: TaxCode
    rate: Decimal
    base: Decimal
    tax: Decimal
    exempt: bool


@dataclass(frozen=True)
class TaxContribution:
    """
    Istantanea del contributo di un documento al registro.

    Catturata prima di una modifica, permette di stornare esattamente
    quanto era stato registrato anche dopo che il documento è cambiato.
    """
    year: int
    month: int
    lines: tuple[TaxLine, ...]

    @classmethod
    def from_document(cls, document: Any) -> Optional["TaxContribution"]:
        """
        Calcola il contributo dai campi salvati sul documento.

        Returns:
            None se il documento non contribuisce (annullato, eliminato
            o senza data)
        """
        if document is None or document.issue_date is None:
            return None
        if document.status == InvoiceStatus.CANCELLED.value or document.is_active is False:
            return None

        not_subject = document.tax_category == TaxCategory.NOT_SUBJECT.value
        base = round_money(document.net_subtotal)
        lines = []
        for code, rate, amount, exempt_flag in (
            (TaxCode.VAT, document.vat_rate, document.vat_amount, document.exempt_vat),
            (TaxCode.CSS, document.css_rate, document.css_amount, document.exempt_css),
        ):
            if rate is None:
                continue
            exempt = not_subject or bool(exempt_flag)
            lines.append(
                TaxLine(
                    tax_code=code,
                    rate=to_decimal(rate),
                    base=base,
                    tax=ZERO if exempt else round_money(amount),
                    exempt=exempt,
                )
            )
        return cls(
            year=document.issue_date.year,
            month=document.issue_date.month,
            lines=tuple(lines),
        )


def _validate_period(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise BusinessValidationError(f"Mese non valido: {month}")
    if year < 1900:
        raise BusinessValidationError(f"Anno non valido: {year}")


class TaxLedgerService:
    """
    Service per il registro mensile delle tasse.

    Solo le fatture alimentano il registro. Un mese chiuso non viene
    più toccato da aggiunte o rimozioni: l'operazione è saltata con
    un warning e il documento viene comunque salvato.
    """

    # ------------------------------------------------------------
    # Accesso alle righe aggregate
    # ------------------------------------------------------------
    async def _get_row(
        self,
        db: AsyncSession,
        year: int,
        month: int,
        tax_code: TaxCode,
    ) -> Optional[MonthlyTaxAggregate]:
        result = await db.execute(
            select(MonthlyTaxAggregate)
            .where(
                MonthlyTaxAggregate.year == year,
                MonthlyTaxAggregate.month == month,
                MonthlyTaxAggregate.tax_code == tax_code.value,
            )
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def _get_or_create_row(
        self,
        db: AsyncSession,
        year: int,
        month: int,
        tax_code: TaxCode,
        rate: Decimal,
    ) -> MonthlyTaxAggregate:
        row = await self._get_row(db, year, month, tax_code)
        if row is None:
            row = MonthlyTaxAggregate(
                year=year,
                month=month,
                tax_code=tax_code.value,
                applied_rate=rate,
                taxable_base_total=ZERO,
                tax_amount_total=ZERO,
                exempt_base_total=ZERO,
                document_count=0,
                exemption_count=0,
                is_closed=False,
            )
            db.add(row)
            await db.flush()
        return row

    @staticmethod
    def _book(row: MonthlyTaxAggregate, line: TaxLine, sign: int) -> None:
        """Somma (sign=1) o storna (sign=-1) una quota; i contatori non scendono sotto zero."""
        if line.exempt:
            row.exempt_base_total = max(ZERO, to_decimal(row.exempt_base_total) + sign * line.base)
            row.exemption_count = max(0, (row.exemption_count or 0) + sign)
        else:
            row.taxable_base_total = max(ZERO, to_decimal(row.taxable_base_total) + sign * line.base)
            row.tax_amount_total = max(ZERO, to_decimal(row.tax_amount_total) + sign * line.tax)
        row.document_count = max(0, (row.document_count or 0) + sign)
        if sign > 0:
            row.applied_rate = line.rate

    async def _apply(
        self,
        db: AsyncSession,
        contribution: Optional[TaxContribution],
        sign: int,
    ) -> bool:
        if contribution is None or not contribution.lines:
            return False

        applied = False
        for line in contribution.lines:
            if sign > 0:
                row = await self._get_or_create_row(
                    db, contribution.year, contribution.month, line.tax_code, line.rate
                )
            else:
                row = await self._get_row(db, contribution.year, contribution.month, line.tax_code)
                if row is None:
                    logger.warning(
                        "Storno %s %d-%02d senza aggregato esistente: ignorato",
                        line.tax_code.value, contribution.year, contribution.month,
                    )
                    continue
            if row.is_closed:
                logger.warning(
                    "Periodo %d-%02d chiuso: aggiornamento %s saltato",
                    contribution.year, contribution.month, line.tax_code.value,
                )
                continue
            self._book(row, line, sign)
            applied = True
        return applied

    # ------------------------------------------------------------
    # Operazioni sui documenti
    # ------------------------------------------------------------
    async def add(self, db: AsyncSession, contribution: Optional[TaxContribution]) -> bool:
        """Registra un contributo. Restituisce True se almeno un aggregato è cambiato."""
        return await self._apply(db, contribution, 1)

    async def remove(self, db: AsyncSession, contribution: Optional[TaxContribution]) -> bool:
        """Storna un contributo registrato in precedenza."""
        return await self._apply(db, contribution, -1)

    async def add_document(self, db: AsyncSession, document: Any) -> bool:
        return await self.add(db, TaxContribution.from_document(document))

    async def remove_document(self, db: AsyncSession, document: Any) -> bool:
        return await self.remove(db, TaxContribution.from_document(document))

    async def reconcile(
        self,
        db: AsyncSession,
        before: Optional[TaxContribution],
        after: Optional[TaxContribution],
    ) -> None:
        """
        Riconcilia una modifica: storna il contributo pre-modifica e
        registra quello post-modifica (anche su periodi diversi).
        """
        if before == after:
            return
        await self.remove(db, before)
        await self.add(db, after)

    # ------------------------------------------------------------
    # Manutenzione del periodo
    # ------------------------------------------------------------
    async def recalculate_month(
        self,
        db: AsyncSession,
        year: int,
        month: int,
    ) -> list[MonthlyTaxAggregate]:
        """
        Ricostruisce gli aggregati del mese dalle fatture attive non annullate.

        Raises:
            ConflictError: Il periodo è chiuso
        """
        _validate_period(year, month)
        rows = {}
        for code in TaxCode:
            row = await self._get_row(db, year, month, code)
            if row is not None and row.is_closed:
                raise ConflictError(
                    f"Periodo {year}-{month:02d} chiuso: ricalcolo non consentito",
                    extra={"year": year, "month": month},
                )
            if row is not None:
                row.taxable_base_total = ZERO
                row.tax_amount_total = ZERO
                row.exempt_base_total = ZERO
                row.document_count = 0
                row.exemption_count = 0
                rows[code] = row

        result = await db.execute(
            select(Invoice).where(
                Invoice.is_active == True,  # noqa: E712
                Invoice.status != InvoiceStatus.CANCELLED.value,
                extract("year", Invoice.issue_date) == year,
                extract("month", Invoice.issue_date) == month,
            )
        )
        invoices = result.scalars().all()

        for invoice in invoices:
            contribution = TaxContribution.from_document(invoice)
            if contribution is None:
                continue
            for line in contribution.lines:
                row = rows.get(line.tax_code)
                if row is None:
                    row = await self._get_or_create_row(db, year, month, line.tax_code, line.rate)
                    rows[line.tax_code] = row
                self._book(row, line, 1)

        await db.flush()
        logger.info(
            "Ricalcolato periodo %d-%02d da %d fatture", year, month, len(invoices)
        )
        return [rows[code] for code in TaxCode if code in rows]

    async def close_month(
        self,
        db: AsyncSession,
        year: int,
        month: int,
    ) -> list[MonthlyTaxAggregate]:
        """
        Chiude il periodo: gli aggregati (creati vuoti se mancanti)
        non accettano più modifiche.
        """
        _validate_period(year, month)
        now = datetime.datetime.now(datetime.timezone.utc)
        rows = []
        for code in TaxCode:
            row = await self._get_row(db, year, month, code)
            if row is None:
                row = await self._get_or_create_row(db, year, month, code, ZERO)
            if not row.is_closed:
                row.is_closed = True
                row.closed_at = now
            rows.append(row)
        await db.commit()
        logger.info("Periodo fiscale %d-%02d chiuso", year, month)
        return rows

    async def get_month(
        self,
        db: AsyncSession,
        year: int,
        month: int,
    ) -> list[MonthlyTaxAggregate]:
        _validate_period(year, month)
        result = await db.execute(
            select(MonthlyTaxAggregate)
            .where(MonthlyTaxAggregate.year == year, MonthlyTaxAggregate.month == month)
            .order_by(MonthlyTaxAggregate.tax_code)
        )
        return list(result.scalars().all())

    async def get_yearly_totals(self, db: AsyncSession, year: int) -> list[YearlyTaxTotal]:
        """Cumuli annuali per codice tassa."""
        result = await db.execute(
            select(
                MonthlyTaxAggregate.tax_code,
                func.coalesce(func.sum(MonthlyTaxAggregate.taxable_base_total), 0),
                func.coalesce(func.sum(MonthlyTaxAggregate.tax_amount_total), 0),
                func.coalesce(func.sum(MonthlyTaxAggregate.exempt_base_total), 0),
                func.coalesce(func.sum(MonthlyTaxAggregate.document_count), 0),
            )
            .where(MonthlyTaxAggregate.year == year)
            .group_by(MonthlyTaxAggregate.tax_code)
            .order_by(MonthlyTaxAggregate.tax_code)
        )
        return [
            YearlyTaxTotal(
                tax_code=TaxCode(code),
                taxable_base_total=round_money(base),
                tax_amount_total=round_money(tax),
                exempt_base_total=round_money(exempt),
                document_count=int(count),
            )
            for code, base, tax, exempt, count in result.all()
        ]


tax_ledger_service = TaxLedgerService()
