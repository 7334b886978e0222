# storefront/utils/retry.py
import redis
import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

ATTEMPTS = 3

#bledy przejsciowe: polaczenie zerwane albo brak odpowiedzi, 4xx/5xx nie sa ponawiane
TRANSIENT_HTTP_ERRORS = (requests.ConnectionError, requests.Timeout)


def _policy(errors, base_wait: float, max_wait: float):
    return retry(
        reraise=True,
        stop=stop_after_attempt(ATTEMPTS),
        wait=wait_exponential(multiplier=base_wait, min=base_wait, max=max_wait),
        retry=retry_if_exception_type(errors),
    )


def http_retry():
    """Tylko dla wywolan idempotentnych: GET katalogu i zamowien, wycena wysylki."""
    return _policy(TRANSIENT_HTTP_ERRORS, base_wait=0.3, max_wait=3)


def redis_retry():
    return _policy(redis.RedisError, base_wait=0.2, max_wait=2)
