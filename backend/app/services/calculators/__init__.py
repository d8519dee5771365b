"""
Registro dei calcolatori di categoria
Progetto: Gestionale Logistica (Motore Documenti Commerciali)
"""

import logging
from typing import Optional, Union

from app.schemas.document import CATEGORY_ALIASES, DocumentCategory
from app.services.calculators.base import CategoryCalculator
from app.services.calculators.bulk import BulkCalculator
from app.services.calculators.container import ContainerCalculator
from app.services.calculators.independent import IndependentCalculator

logger = logging.getLogger(__name__)

CALCULATORS: dict[DocumentCategory, CategoryCalculator] = {
    DocumentCategory.CONTAINER: ContainerCalculator(),
    DocumentCategory.BULK: BulkCalculator(),
    DocumentCategory.INDEPENDENT: IndependentCalculator(),
}


def resolve_category(value: Optional[Union[DocumentCategory, str]]) -> DocumentCategory:
    """
    Risolve la categoria del documento, inclusi gli alias storici.

    Valore assente → container. Valore sconosciuto → container con warning.
    """
    if value is None or value == "":
        return DocumentCategory.CONTAINER
    if isinstance(value, DocumentCategory):
        return value
    category = CATEGORY_ALIASES.get(str(value).strip().lower())
    if category is None:
        logger.warning("Categoria documento sconosciuta '%s': uso container", value)
        return DocumentCategory.CONTAINER
    return category


def get_calculator(category: Optional[Union[DocumentCategory, str]]) -> CategoryCalculator:
    """Restituisce il calcolatore della categoria (alias risolti)."""
    return CALCULATORS[resolve_category(category)]


__all__ = [
    "CALCULATORS",
    "BulkCalculator",
    "CategoryCalculator",
    "ContainerCalculator",
    "IndependentCalculator",
    "get_calculator",
    "resolve_category",
]
