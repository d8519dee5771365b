"""
Eccezioni Custom per l'applicazione.
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Definisce eccezioni specifiche del dominio per una gestione
centralizzata degli errori.

Tassonomia degli errori del motore documenti:
- LineValidationError: righe di categoria non valide (nessuna scrittura, nessun numero consumato)
- SequenceLockError: lock del contatore non ottenuto entro il timeout (errore transitorio)
- IllegalStateTransitionError: transizione di stato non consentita
- ReferentialIntegrityError: operazione incoerente con lo stato dei riferimenti
  (es. pagamento su documento annullato)

NOTA: BusinessValidationError è volutamente distinta da pydantic.ValidationError.
- pydantic.ValidationError: errori di formato/tipo nei dati di input (gestiti da FastAPI → 422)
- BusinessValidationError: violazioni delle regole di business logic (gestiti dal nostro handler → 422)
"""

from typing import Any, Dict, List, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "DuplicateError",
    "BusinessValidationError",
    "ValidationError",       # alias di BusinessValidationError
    "LineValidationError",
    "ConflictError",
    "IllegalStateTransitionError",
    "ReferentialIntegrityError",
    "SequenceLockError",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Attributes:
        status_code: HTTP status code da restituire al client
        error_code: Identificativo univoco dell'errore per il frontend
        detail: Messaggio di errore leggibile per l'utente
        extra: Dizionario con dati aggiuntivi per il frontend
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        detail: str,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.detail = detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(detail)


class NotFoundError(AppException):
    """Eccezione sollevata quando una risorsa non viene trovata."""

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        detail: str = "Risorsa non trovata",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class DuplicateError(AppException):
    """
    Eccezione sollevata quando si tenta di creare una risorsa duplicata.

    Utilizzata per violazioni di vincoli unique (es. numero documento già esistente).
    """

    status_code: int = 409
    error_code: str = "DUPLICATE_RESOURCE"

    def __init__(
        self,
        detail: str = "Risorsa già esistente",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per violazioni delle regole di business logic.

    Eredita da ValueError per essere catturata dai validatori Pydantic.

    Esempi di utilizzo:
        - "L'importo del pagamento deve essere positivo"
        - "Impossibile eliminare un documento con pagamenti registrati"
    """

    status_code: int = 422
    error_code: str = "BUSINESS_VALIDATION_ERROR"

    def __init__(
        self,
        detail: str = "Validazione dati fallita",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


# Alias per compatibilità
ValidationError = BusinessValidationError


class LineValidationError(BusinessValidationError):
    """
    Righe di categoria non valide.

    Raccoglie tutti i messaggi restituiti dal calcolatore di categoria
    (es. "Container #1: numero obbligatorio") in un unico errore.
    """

    error_code: str = "LINE_VALIDATION_ERROR"

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__(
            "Righe del documento non valide: " + "; ".join(self.errors),
            extra={"errors": self.errors},
        )


class ConflictError(AppException):
    """
    Eccezione sollevata per conflitti di stato.

    Utilizzata quando un'operazione non può essere eseguita
    a causa dello stato corrente della risorsa.
    """

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"

    def __init__(
        self,
        detail: str = "Conflitto di stato",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class IllegalStateTransitionError(ConflictError):
    """Transizione di stato non consentita dalla macchina a stati del documento."""

    error_code: str = "ILLEGAL_STATE_TRANSITION"

    def __init__(self, current_status: str, target_status: str, document: str = "documento") -> None:
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Transizione non consentita per {document}: '{current_status}' → '{target_status}'",
            extra={"current_status": current_status, "target_status": target_status},
        )


class ReferentialIntegrityError(ConflictError):
    """Operazione rifiutata perché incoerente con lo stato dei documenti collegati."""

    error_code: str = "REFERENTIAL_INCONSISTENCY"

    def __init__(
        self,
        detail: str = "Operazione incoerente con i riferimenti del documento",
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, extra=extra)


class SequenceLockError(AppException):
    """
    Lock del contatore di numerazione non ottenuto entro il timeout.

    Errore transitorio: nessun numero viene consumato e l'operazione
    può essere ripetuta.
    """

    status_code: int = 503
    error_code: str = "SEQUENCE_LOCK_TIMEOUT"

    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(
            f"Contatore di numerazione '{domain}' occupato, riprovare",
            extra={"domain": domain, "retryable": True},
        )
