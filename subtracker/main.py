import logging
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from subtracker.core import config
from subtracker.core.errors import ServiceError, service_error_handler, validation_error_handler
from subtracker.core.logging_config import setup_logging, sanitize_log_data
from subtracker.api.routes import notifications, subscriptions, contacts, profile, health

logger = logging.getLogger(__name__)


# ============================================
# ✅ STARTUP: LOGGING + SCHEMA
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL, config.LOG_FILE)

    if config.RUN_MIGRATIONS:
        from subtracker.db.migrate import run_migrations
        run_migrations()
    else:
        from subtracker.db.init_db import init_db
        init_db()

    logger.info(f"Delivery settings: {sanitize_log_data(asdict(config.build_delivery_settings()))}")
    yield
    logger.info("Shutting down SubTracker API")


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="SubTracker API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",      # local frontend
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "X-Dispatch-Token"],
)

app.add_exception_handler(ServiceError, service_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(subscriptions.router)
app.include_router(notifications.router)
app.include_router(contacts.router)
app.include_router(profile.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "SubTracker API running"}
