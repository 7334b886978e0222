# storefront/domain/errors.py
from enum import Enum


class ErrorKind(str, Enum):
    LIMIT_EXCEEDED = "limit_exceeded"
    PRODUCT_UNAVAILABLE = "product_unavailable"
    NO_COMMON_PAYMENT_METHOD = "no_common_payment_method"
    SHIPPING_CALCULATION_FAILED = "shipping_calculation_failed"
    VALIDATION_FAILED = "validation_failed"
    SUBMISSION_FAILED = "submission_failed"
    PERSISTENCE_FAILURE = "persistence_failure"


#bledy biznesowe sa zwracane jako wartosci (CartResult, Issue),
#wyjatki tylko dla infrastruktury (siec, storage)
class StorefrontError(Exception):
    kind: ErrorKind | None = None


class PersistenceFailure(StorefrontError):
    kind = ErrorKind.PERSISTENCE_FAILURE


class RemoteServiceError(StorefrontError):
    """Zdalny serwis nie odpowiedzial, timeout albo 5xx."""


class CatalogUnavailable(RemoteServiceError):
    pass


class ShippingCalculationFailed(RemoteServiceError):
    kind = ErrorKind.SHIPPING_CALCULATION_FAILED


class OrderServiceUnavailable(RemoteServiceError):
    kind = ErrorKind.SUBMISSION_FAILED


class OrderRejected(StorefrontError):
    """Serwis zamowien odrzucil zadanie (walidacja, brak stanu, limit)."""

    kind = ErrorKind.SUBMISSION_FAILED

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
