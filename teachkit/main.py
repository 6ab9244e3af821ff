"""
Main FastAPI application for TeachKit.
Serves health, auth, payments, generation, package catalog and metrics.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from teachkit.api.routes import auth, generation, health, packages, payments
from teachkit.core.config import settings
from teachkit.core.errors import GenerationError
from teachkit.core.logging import configure_logging
from teachkit.utils.metrics import router as metrics_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="TeachKit API",
    description="Pay-per-package generation of teaching materials",
    version="1.0.0",
)

# CORS
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            extra={"path": request.url.path, "code": exc.code, "reason": exc.reason, "status_code": exc.status_code},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_unhandled_error", extra={"path": request.url.path, "method": request.method})
    return JSONResponse(status_code=500, content={"error": "Something went wrong", "code": "internal_error"})


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router)
app.include_router(payments.router)
app.include_router(generation.router)
app.include_router(packages.router)
app.include_router(metrics_router)
