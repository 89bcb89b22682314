import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from fastapi.middleware.gzip import GZipMiddleware

from app.core.rate_limiter import limiter, custom_rate_limit_handler
from slowapi.errors import RateLimitExceeded
from app.core.exceptions import CustomHTTPException
from app.core.responses import BaseResponse
from app.core.database import Base, engine
from app.core.storage import REFERENCE_PREFIX
from app.routes import admins, cards, users

# Register models on Base.metadata
from app.models import card, user  # noqa: F401

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting QRbook card service...")
    Base.metadata.create_all(bind=engine)
    yield
    logger.info("Shutting down...")
    engine.dispose()


app = FastAPI(
    title="QRbook Card Service",
    version="1.0.0",
    lifespan=lifespan,
    description="Digital business cards: users, cards, shareable links and payment expiry",
    responses={
        400: {"model": BaseResponse},
        401: {"model": BaseResponse},
        403: {"model": BaseResponse},
        404: {"model": BaseResponse},
        409: {"model": BaseResponse},
        422: {"model": BaseResponse},
        429: {"model": BaseResponse},
        500: {"model": BaseResponse},
    },
)

# <========== Gzip Middleware ==========>
app.add_middleware(GZipMiddleware, minimum_size=1000)  # Compress responses > 1KB

# <========== CORS Configuration ==========>
allowed_origins = os.getenv("ALLOWED_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# <========== Rate limiting ==========>
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, custom_rate_limit_handler)


# <========== API routes ==========>
app.include_router(
    users.router,
    prefix="/api/v1/users",
    tags=["User"],
    responses={404: {"description": "Not found"}},
)
app.include_router(
    cards.router,
    prefix="/api/v1/cards",
    tags=["Card"],
    responses={404: {"description": "Not found"}},
)
app.include_router(
    cards.uploads_router,
    prefix=REFERENCE_PREFIX.rstrip("/"),
    tags=["Card"],
    responses={404: {"description": "Not found"}},
)
app.include_router(
    admins.router,
    prefix="/api/v1/admins",
    tags=["Admin"],
    responses={404: {"description": "Not found"}},
)


# <========== Exception Handlers ==========>
# Custom exception handler
@app.exception_handler(CustomHTTPException)
async def custom_http_exception_handler(request: Request, exc: CustomHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": exc.detail.get("success", False),
            "message": exc.detail.get("message", "An error occurred"),
            "data": exc.detail.get("data", {}),
            "status_code": exc.status_code,
        },
        headers=exc.headers,
    )


# Generic HTTPException handler (auth scheme, 404 routes, ...)
@app.exception_handler(FastAPIHTTPException)
async def http_exception_handler(request: Request, exc: FastAPIHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": (
                exc.detail.get("message")
                if isinstance(exc.detail, dict)
                else str(exc.detail)
            ),
            "data": exc.detail.get("data") if isinstance(exc.detail, dict) else None,
            "status_code": exc.status_code,
        },
        headers=exc.headers,
    )


# <========== System Endpoints ==========>
@app.get("/health", tags=["System"], response_model=BaseResponse)
@limiter.limit(os.getenv("RATE_LIMIT_PUBLIC", "1000/hour"))
async def health_check(request: Request):
    return {
        "success": True,
        "message": "System is healthy",
        "status_code": status.HTTP_200_OK,
    }


@app.get("/", response_model=BaseResponse, tags=["System"])
@limiter.limit(os.getenv("RATE_LIMIT_PUBLIC", "1000/hour"))
async def root(request: Request):
    return {
        "success": True,
        "message": "Welcome to the QRbook card API. Access /docs or /redoc for documentation.",
        "data": {
            "version": app.version,
            "documentation": {"swagger": "/docs", "redoc": "/redoc"},
        },
        "status_code": status.HTTP_200_OK,
    }


# <========== Application Startup ==========>
if __name__ == "__main__":
    port = int(os.getenv("PORT", 8000))
    workers = int(os.getenv("WORKERS", 1))  # Default to 1 worker for dev
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=port,
        workers=workers,
        reload=os.getenv("RELOAD", "false").lower() == "true",  # Auto-reload in dev
    )
