"""FastAPI application entry point for Shortly.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Create       │
    │ FastAPI app  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ CORS, error  │
    │ handlers,    │
    │ /metrics     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ startup:    │
    │ init_db()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ shutdown:   │
    │ close_db()  │
    └─────────────┘

How to Use
===========
**Step 1 - Run with uvicorn**::
    uvicorn shortly.main:app --host 0.0.0.0 --port 8000

**Step 2 - Make API calls**::
    curl -X POST http://localhost:8000/links \\
         -H "Content-Type: application/json" \\
         -d '{"originalUrl": "https://example.com", "customAlias": "promo"}'

    curl -i http://localhost:8000/promo/aZ3kQ9

Key Behaviours
===============
- Database tables are created on startup.
- ``ShortlyError`` subclasses and request validation errors are rendered as
  ``{"status": ..., "message": ...}`` with their mapped status codes.
- Unhandled exceptions are logged and returned as 500.
"""

__all__ = ["app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shortly.config import get_settings
from shortly.database import close_db, init_db
from shortly.dependencies import setup_logger
from shortly.exceptions import ShortlyError, ValidationError
from shortly.routes import health_router, links_router, redirect_router

settings = get_settings()
logger = setup_logger(settings)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    logger.info(f"Starting {settings.APP_NAME} ({settings.APP_ENV})")
    await init_db()
    yield
    # Shutdown
    await close_db()
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="URL shortening and redirection service with custom domains",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ShortlyError)
async def shortly_error_handler(request: Request, exc: ShortlyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {message}" if location else message)
    error = ValidationError("; ".join(messages) or None)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal server error"},
    )


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

# Order matters: /links must be matched before the catch-all redirect paths.
app.include_router(health_router)
app.include_router(links_router)
app.include_router(redirect_router)
