"""
LedgerFlow - Purchase Approval & Inventory Cost Ledger
FastAPI Application Entry Point
"""
import uvicorn
import logging
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from ledgerflow.core import settings, engine, Base
from ledgerflow.core.errors import (
    LedgerError, ValidationError, NotFoundError, ConflictError, ConsistencyError,
)
from ledgerflow.api.router import api_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Lifespan for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Create tables if not exist
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} starting on port {settings.APP_PORT}")
    yield
    logger.info(f"{settings.APP_NAME} shutting down")

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Purchase Approval & Inventory Cost Ledger",
    version="1.0.0",
    lifespan=lifespan
)

ERROR_STATUS = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ConsistencyError, 500),
]

@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind} {exc.detail}")
    return JSONResponse(status_code=status_code, content=jsonable_encoder(exc.to_dict()))

# Include routers
app.include_router(api_router, prefix="/api")

# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.DEBUG
    )
