"""
Modelli Database SQLAlchemy
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Import centralizzato di tutti i modelli per create_all e usage generico.

Modelli:
- Client: Anagrafica clienti con saldo
- Partner: Armatori, transitari, rappresentanti
- WorkOrder: Ordini di lavoro
- Invoice: Fatture
- Container / ContainerOperation / Lot / ServiceLine: Righe per categoria
- Commission: Provvigioni
- MonthlyTaxAggregate: Aggregato mensile tasse
- AppConfiguration / SequenceCounter: Configurazione e numerazione
"""

# SQLAlchemy 2.0 Base declarativa
# Importato qui per essere disponibile per tutti i modelli
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


from app.models.client import Client
from app.models.partner import Partner
from app.models.document_line import Container, ContainerOperation, Lot, ServiceLine
from app.models.work_order import WorkOrder
from app.models.invoice import Invoice
from app.models.commission import Commission
from app.models.tax import MonthlyTaxAggregate
from app.models.configuration import AppConfiguration, SequenceCounter

__all__ = [
    "Base",
    "Client",
    "Partner",
    "Container",
    "ContainerOperation",
    "Lot",
    "ServiceLine",
    "WorkOrder",
    "Invoice",
    "Commission",
    "MonthlyTaxAggregate",
    "AppConfiguration",
    "SequenceCounter",
]
