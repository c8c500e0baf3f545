import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from finance_api.api.routes import (
    auth,
    categories,
    expenses,
    dashboard,
    receipts,
    tips,
    meal_plans,
    token_usage,
    sync,
    health,
)
from finance_api.core import config
from finance_api.core.logging_config import setup_logging, sanitize_log_data
from finance_api.db.base import Base
from finance_api.db.session import engine
from finance_api.llm.gemini_client import close_http_client

import finance_api.db.models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def startup_settings() -> dict:
    return {
        "database_url": config.DATABASE_URL,
        "run_migrations": config.RUN_MIGRATIONS,
        "gemini_api_key": config.GEMINI_API_KEY,
        "gemini_model": config.GEMINI_MODEL,
        "cors_origins": config.CORS_ORIGINS,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL)
    if config.RUN_MIGRATIONS:
        from finance_api.db.migrate import run_migrations
        run_migrations()
    else:
        Base.metadata.create_all(bind=engine)
    logger.info(f"Finance API started: {sanitize_log_data(startup_settings())}")
    yield
    close_http_client()
    logger.info("Finance API stopped")


# ============================================
# FASTAPI APP INIT
# ============================================

app = FastAPI(title="Finance API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# REGISTER ALL ROUTERS
# ============================================

for module in (auth, categories, expenses, dashboard, receipts, tips, meal_plans, token_usage, sync, health):
    app.include_router(module.router, prefix=API_PREFIX)


@app.get("/")
def root():
    return {"status": "Finance API running"}
