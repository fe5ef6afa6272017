import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

# Load env from the working directory before settings are read
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from tutor_backend.core.config import settings, validate_config
from tutor_backend.core.logging import configure_logging
from tutor_backend.core.middleware.request_id import RequestIdMiddleware
from tutor_backend.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from tutor_backend.api import chat, health, quota

configure_logging(settings.ENV)
validate_config(strict=settings.CONFIG_STRICT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("tutor")
    logger.info(f"Starting tutor backend (quota store: {settings.QUOTA_STORE})...")
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        logging.getLogger("tutor").info("Stopping tutor backend...")


app = FastAPI(title="Tutor - Backend", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(quota.router, tags=["quota"])
app.include_router(chat.router, tags=["chat"])
