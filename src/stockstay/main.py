import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from src.stockstay import models
from src.stockstay.api.api import api_router
from src.stockstay.core.database import engine
from src.stockstay.services.trial_expiry_service import (
    start_trial_expiry_service,
    stop_trial_expiry_service,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = ["teams", "users", "warehouses"]


def init_database():
    """Create missing tables and log what exists."""
    logger.info("Initializing database tables...")
    try:
        existing_tables = inspect(engine).get_table_names()
        models.Base.metadata.create_all(bind=engine)
        final_tables = inspect(engine).get_table_names()

        for table in EXPECTED_TABLES:
            if table in final_tables:
                if table not in existing_tables:
                    logger.info(f"✓ Table created: {table}")
                else:
                    logger.info(f"✓ Table exists: {table}")
            else:
                logger.warning(f"✗ Table missing: {table}")

        logger.info("Database initialization completed successfully")
    except Exception as e:
        logger.error(f"Error initializing database: {str(e)}")
        raise


def _trial_expiry_enabled() -> bool:
    return os.getenv("RUN_TRIAL_EXPIRY_SERVICE", "true").lower() not in ("0", "false", "no")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_database()
    if _trial_expiry_enabled():
        await start_trial_expiry_service()
    else:
        logger.info("Trial expiry service disabled (RUN_TRIAL_EXPIRY_SERVICE)")
    yield
    await stop_trial_expiry_service()


app = FastAPI(title="StockStay API", lifespan=lifespan)

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Custom validation error handler to log detailed errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error on {request.method} {request.url.path}")

    for error in exc.errors():
        logger.error(
            f"Field: {error.get('loc')}, Error: {error.get('msg')}, Type: {error.get('type')}"
        )

    # Format error messages for user-friendly response
    error_messages = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error.get("loc", []))
        msg = error.get("msg", "Validation error")
        error_messages.append(f"{field}: {msg}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation Error",
            "message": "; ".join(error_messages),
            "details": error_messages,
        },
    )


app.include_router(api_router)
