# storefront/main.py
import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from storefront.api.deps import Storefront
from storefront.api.routers import carts, catalog, checkout, health, orders
from storefront.data.database import Base, engine
from storefront.domain.errors import RemoteServiceError
from storefront.utils.logging import get_logger
from storefront.utils.settings import CART_STORE_BACKEND

logger = get_logger(__name__)

# IMPORT WSZYSTKICH MODELI NA POCZĄTKU (PRZED JAKIMKOLWIEK CREATE_ALL)
from storefront.data.models.cart_record import CartRecordModel  # noqa: E402,F401


def init_db() -> None:
    logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise


def create_app(storefront: Storefront | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if storefront is None and CART_STORE_BACKEND == "sql":
            init_db()

        app.state.storefront = storefront or Storefront()
        app.state.storefront.loop = asyncio.get_running_loop()

        # katalog raz na start, potem tylko na zewnetrzny trigger
        try:
            await app.state.storefront.catalog.refresh()
        except RemoteServiceError as e:
            logger.warning(f"Initial catalog refresh failed: {e}")
        yield

    app = FastAPI(
        title="Storefront Checkout Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(catalog.router)
    app.include_router(carts.router)
    app.include_router(checkout.router)
    app.include_router(orders.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
