# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysyłania powiadomień do klienta sklepu
    (limit przekroczony, produkty usuniete z koszyka, status zamowienia).
    Używa Celery do asynchronicznego przetwarzania.
    """

    @staticmethod
    def notify(identity: str, kind: str, message: str) -> None:
        send_store_notification_task.delay(identity, kind, message)


@celery_app.task(name="storefront.services.notification_service.send_store_notification_task")
def send_store_notification_task(identity: str, kind: str, message: str):
    """
    Celery task - dostarczenie (toast, push) jest poza tym serwisem.
    Teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] {identity} ({kind}): {message}")

    return {"identity": identity, "kind": kind, "status": "sent"}
