"""
Eventi di dominio del motore documenti
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Dispatcher in-process per i segnali emessi dai factory dei documenti
(creazione, modifica, conversione, pagamento, annullamento).
I consumer (notifiche, invalidazione cache di lettura) si registrano
con subscribe(); il motore non conosce i propri consumer.

Gli eventi vengono emessi DOPO il commit: un listener che fallisce
viene loggato e non può annullare la transazione del documento.
"""

import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Union

logger = logging.getLogger(__name__)


class DocumentEvent(str, Enum):
    """Eventi emessi dal ciclo di vita dei documenti."""
    WORK_ORDER_CREATED = "work_order.created"
    WORK_ORDER_UPDATED = "work_order.updated"
    WORK_ORDER_CONVERTED = "work_order.converted"
    WORK_ORDER_PAYMENT_RECORDED = "work_order.payment_recorded"
    WORK_ORDER_CANCELLED = "work_order.cancelled"
    INVOICE_CREATED = "invoice.created"
    INVOICE_UPDATED = "invoice.updated"
    INVOICE_PAYMENT_RECORDED = "invoice.payment_recorded"
    INVOICE_CANCELLED = "invoice.cancelled"
    TAX_CONFIG_CHANGED = "configuration.taxes_changed"


EventHandler = Callable[[DocumentEvent, Dict[str, Any]], Union[None, Awaitable[None]]]


class EventBus:
    """
    Registro dei listener per evento.

    I listener possono essere funzioni sincrone o coroutine.
    """

    def __init__(self) -> None:
        self._handlers: Dict[DocumentEvent, List[EventHandler]] = {}

    def subscribe(self, event: DocumentEvent, handler: EventHandler) -> None:
        """Registra un listener per l'evento indicato."""
        self._handlers.setdefault(event, []).append(handler)

    def unsubscribe(self, event: DocumentEvent, handler: EventHandler) -> None:
        """Rimuove un listener, se registrato."""
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def clear(self) -> None:
        self._handlers.clear()

    async def emit(self, event: DocumentEvent, payload: Dict[str, Any]) -> int:
        """
        Notifica tutti i listener dell'evento.

        Args:
            event: Evento emesso
            payload: Dati dell'evento (id e numero documento, importi, ...)

        Returns:
            int: Numero di listener eseguiti con successo
        """
        delivered = 0
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(event, payload)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception(
                    "Listener %r fallito per evento %s", handler, event.value
                )
        logger.debug("Evento %s consegnato a %d listener", event.value, delivered)
        return delivered


# Istanza condivisa dall'applicazione
event_bus = EventBus()
