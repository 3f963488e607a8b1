"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.api import orders, roles
from app.exceptions import WorkflowError

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Barman Order Workflow",
    description="Procurement order approval chain between pharmacies and the Barman distributor",
    version="0.1.0",
)

# CORS configuration from environment
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    """Map typed workflow errors to HTTP responses carrying their code."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(orders.router, prefix="/api/v1")
app.include_router(roles.router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Barman Order Workflow API", "docs": "/docs"}
