import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

load_dotenv()

import models  # noqa: F401  registers every table on Base.metadata
from core.celery import celery_app
from core.config import settings
from core.db import Base, db_session, engine
from core.errors import register_exception_handlers
from core.logging_config import setup_logging
from routes.auth import router as auth_router
from routes.coupons import router as coupons_router
from routes.highlights import router as highlights_router
from routes.plans import router as plans_router
from routes.products import router as products_router
from routes.promotions import router as promotions_router
from routes.stores import router as stores_router
from routes.trial import router as trial_router
from services.highlights import seed_default_highlight_configuration

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Ensure tables exist (for dev/test; in prod use Alembic)
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    with db_session() as db:
        seed_default_highlight_configuration(db)
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    openapi_schema["components"]["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }
    openapi_schema["security"] = [{"BearerAuth": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(stores_router)
app.include_router(products_router)
app.include_router(promotions_router)
app.include_router(coupons_router)
app.include_router(highlights_router)
app.include_router(plans_router)
app.include_router(trial_router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": settings.APP_NAME}


@app.get("/celery-health")
async def celery_health_check():
    """Check Celery worker status"""
    try:
        stats = celery_app.control.inspect().stats()
    except Exception as exc:
        logger.warning("Celery inspection failed: %s", exc)
        return {"status": "unhealthy", "error": str(exc)}
    if stats:
        return {"status": "healthy", "workers": len(stats)}
    return {"status": "no_workers", "message": "No Celery workers running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=settings.DEBUG,
    )
