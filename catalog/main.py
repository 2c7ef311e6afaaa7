"""
Catalog Service
Product catalog over REST and GraphQL with a read-through product cache
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from shared.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from catalog.core_settings import get_settings
from catalog.api.routes import router as products_router
from catalog.api.graphql import create_graphql_router
from catalog.application.cache import get_product_cache
from catalog.domain.models import Base
from catalog.infrastructure.db import engine, init_models
from catalog.infrastructure.resilience import default_circuit_breaker_factory

settings = get_settings()
SERVICE_DESCRIPTION = "Product catalog microservice"

setup_logging(
    service_name=settings.SERVICE_NAME,
    level=settings.LOG_LEVEL,
    environment=settings.ENVIRONMENT,
    version=settings.SERVICE_VERSION,
)

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    logger.info(f"Starting {settings.SERVICE_NAME} version {settings.SERVICE_VERSION}")
    try:
        init_models()
        logger.info("Database models initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database models: {e}")
        raise
    yield
    logger.info(f"Shutting down {settings.SERVICE_NAME}")
    engine.dispose()

app = FastAPI(
    title=settings.SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

def _runtime_metrics():
    return {
        "product_cache": get_product_cache().stats().to_dict(),
        "circuit_breakers": default_circuit_breaker_factory().all_status(),
    }

health_service = ServiceHealth(
    settings.SERVICE_NAME,
    settings.SERVICE_VERSION,
    engine=engine,
    expected_tables=Base.metadata.tables.keys(),
    redis_url=settings.REDIS_URL,
    extra_metrics=_runtime_metrics,
)
app.include_router(health_service.create_health_router())

app.include_router(products_router)
app.include_router(create_graphql_router(), prefix="/graphql", include_in_schema=False)

@app.get("/")
async def root():
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "status": "running",
        "docs": "/api/docs",
        "graphql": "/graphql",
    }

@app.get("/info")
async def info():
    """Service information endpoint"""
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "description": SERVICE_DESCRIPTION,
        "environment": settings.ENVIRONMENT,
        "endpoints": {
            "products": "/api/products",
            "graphql": "/graphql",
            "health": "/health",
            "ready": "/health/ready",
            "live": "/health/live",
            "metrics": "/metrics",
            "docs": "/api/docs"
        }
    }
