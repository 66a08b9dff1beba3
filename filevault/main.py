import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from filevault.api.routes import router
from filevault.cleaner import start_cleaner
from filevault.config import CORS_ORIGINS, ENABLE_CLEANER, SESSION_MAX_AGE_SECONDS, SESSION_SECRET
from filevault.core.exceptions import register_exception_handlers
from filevault.core.metrics import metrics
from filevault.db import engine, init_db

app = FastAPI(title="FileVault API", version="1.0.0")

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("filevault")

if not SESSION_SECRET:
    logger.warning("SESSION_SECRET is not set; using an insecure development secret.")

app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET or "dev-session-secret",
    max_age=SESSION_MAX_AGE_SECONDS,
    same_site="lax",
)

origins = [origin.strip() for origin in CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

init_db()

app.include_router(router)
register_exception_handlers(app)

if ENABLE_CLEANER:
    start_cleaner(engine, metrics, logger)
