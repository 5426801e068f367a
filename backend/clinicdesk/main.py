from contextlib import asynccontextmanager
from typing import Optional
import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# -------------------------------------------------------
# ⚙️ Core Imports
# -------------------------------------------------------
from . import __version__
from .core.config import settings
from .core.db import Database
from .core.logging_config import setup_logging
from .sales import SaleTransactionManager, SqlSaleStore, SqlStockLedger
from .services.rate_limit import SlidingWindowLimiter

# -------------------------------------------------------
# 🧩 Routers
# -------------------------------------------------------
from .routers import ALL_ROUTERS

log = logging.getLogger("clinicdesk")


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the API. The database connection belongs to the app: it is opened
    in the lifespan, handed to the stock ledger and sale store, and closed on
    shutdown.
    """
    database = database or Database(settings.DATABASE_URL)

    # -------------------------------------------------------
    # 🏁 Startup / Shutdown
    # -------------------------------------------------------
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.LOG_LEVEL)
        database.connect()
        database.create_all()
        os.makedirs(settings.REPORTS_DIR, exist_ok=True)

        ledger = SqlStockLedger(database.session_factory)
        store = SqlSaleStore(database.session_factory)
        app.state.db = database
        app.state.ledger = ledger
        app.state.sale_store = store
        app.state.sales = SaleTransactionManager(ledger, store)
        app.state.feedback_limiter = SlidingWindowLimiter(
            settings.FEEDBACK_RATE_LIMIT, settings.FEEDBACK_RATE_WINDOW_SECONDS
        )

        log.info("🗃️ Database ready (%s)", database.url.split("://", 1)[0])
        log.info("🧾 Reports dir: %s", settings.REPORTS_DIR)
        try:
            yield
        finally:
            database.close()
            log.info("Database connection closed")

    # -------------------------------------------------------
    # 🚀 FastAPI Initialization
    # -------------------------------------------------------
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=__version__,
        description="Clinic Desk – patients, pharmacy inventory, sales, payments and lab workflows",
        lifespan=lifespan,
    )

    # -------------------------------------------------------
    # 🌐 CORS Middleware
    # -------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------
    # ❤️ Health Checks
    # -------------------------------------------------------
    @app.get("/health", tags=["Health"])
    def health():
        return {
            "status": "ok",
            "service": settings.PROJECT_NAME,
            "version": __version__,
        }

    @app.get("/health/db", tags=["Health"])
    def health_db(request: Request):
        ok, error = request.app.state.db.healthcheck()
        return {"database": "ok" if ok else "error", "error": error}

    # -------------------------------------------------------
    # 🔗 Router Registration
    # -------------------------------------------------------
    for router in ALL_ROUTERS:
        app.include_router(router)

    return app


app = create_app()
