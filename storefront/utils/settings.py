# storefront/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL)
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/2")

STORE_API_URL = os.getenv("STORE_API_URL", "http://store-backend:8000")
CATALOG_SERVICE_URL = os.getenv("CATALOG_SERVICE_URL", STORE_API_URL)
SHIPPING_SERVICE_URL = os.getenv("SHIPPING_SERVICE_URL", STORE_API_URL)
ORDER_SERVICE_URL = os.getenv("ORDER_SERVICE_URL", STORE_API_URL)

CART_STORE_BACKEND = os.getenv("CART_STORE_BACKEND", "sql")  # sql | redis | memory
CART_KEY_PREFIX = os.getenv("CART_KEY_PREFIX", "store_cart_")
SESSION_CACHE_SIZE = int(os.getenv("SESSION_CACHE_SIZE", 1000))  # aktywne sesje w pamieci, najstarsze sa zwalniane

SHIPPING_DEBOUNCE_SECONDS = float(os.getenv("SHIPPING_DEBOUNCE_SECONDS", 0.5))
REMOTE_TIMEOUT_SECONDS = float(os.getenv("REMOTE_TIMEOUT_SECONDS", 15))
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", 5))

DEFAULT_CITY = os.getenv("DEFAULT_CITY", "Damascus")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
