import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ayahfind.core import config
from ayahfind.core.errors import register_exception_handlers
from ayahfind.core.logging_config import setup_logging

# ✅ Import All API Routes
from ayahfind.api.routes import (
    auth,
    health,
    quran,
    recognition,
    subscriptions,
    usage,
    webhooks,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(log_level=config.LOG_LEVEL, log_dir=config.LOG_DIR)

    if config.RUN_MIGRATIONS:
        from ayahfind.db.migrate import run_migrations
        run_migrations()
    elif config.AUTO_CREATE_TABLES:
        from ayahfind.db.init_db import init_db
        init_db()

    logger.info("AyahFind API started")
    yield
    logger.info("AyahFind API stopped")


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="AyahFind API", version="1.0.0", lifespan=lifespan)

# ✅ CORS: permissive by default, set CORS_ORIGINS in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials="*" not in config.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Device-Id"],
)

register_exception_handlers(app)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(auth.router)
app.include_router(usage.router)
app.include_router(subscriptions.router)
app.include_router(webhooks.router)
app.include_router(quran.router)
app.include_router(recognition.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "AyahFind API running"}
