"""
FastAPI application entry point.

Wires the database, the topic weight table, request timing logs and the
structured error handlers around the API router.
"""

import os
import time
import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .database import engine, Base
from .api_routes import router
from .config import API_VERSION, LOG_FORMAT, LOG_DATE_FORMAT, LEETCODE_BASE_URL
from .errors import APIError, ErrorCode, ErrorResponse
from .topic_weights import load_topic_weights

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATE_FORMAT
)
logger = logging.getLogger(__name__)

SERVICE_VERSION = "1.0.0"


def is_production() -> bool:
    """ENVIRONMENT=production, or a Render/Railway deployment."""
    if os.getenv("ENVIRONMENT", "").lower() == "production":
        return True
    return bool(os.getenv("RENDER") or os.getenv("RAILWAY_ENVIRONMENT"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)

    # Read-only for the life of the process
    app.state.topic_weights = load_topic_weights()
    logger.info(f"Topic weights ready: {app.state.topic_weights.info()}")

    yield

    logger.info("LeetCode Insight shutting down.")


app = FastAPI(
    title="LeetCode Insight",
    description="Weak-topic analysis, practice recommendations and contest history for LeetCode users",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

logger.info(
    f"Starting in {'production' if is_production() else 'development'} mode "
    f"(DATABASE_URL {'set' if os.getenv('DATABASE_URL') else 'not set, using SQLite'})"
)


# =============================================================================
# MIDDLEWARE & ERROR HANDLERS
# =============================================================================

@app.middleware("http")
async def log_request_timing(request: Request, call_next: Callable) -> Response:
    """One INFO line per request; elapsed time also goes back as X-Response-Time."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000

    client_ip = request.client.host if request.client else "unknown"
    user_id = request.headers.get("x-user-id", "-")
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} "
        f"in {elapsed_ms:.1f}ms (ip={client_ip} user={user_id})"
    )
    response.headers["X-Response-Time"] = f"{elapsed_ms:.1f}ms"
    return response


@app.exception_handler(APIError)
async def handle_api_error(request: Request, exc: APIError):
    log = logger.error if exc.is_server_side else logger.warning
    log(f"{request.url.path}: {exc.code.value} {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(path=request.url.path).to_dict()
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    trace = traceback.format_exc()
    logger.error(f"Unhandled exception on {request.url.path}: {exc}\n{trace}")

    # Tracebacks stay in the logs in production
    if is_production():
        body = ErrorResponse(
            code=ErrorCode.INTERNAL_ERROR.value,
            message="Internal server error",
            detail="An internal error occurred",
            path=request.url.path
        )
    else:
        body = ErrorResponse(
            code=ErrorCode.INTERNAL_ERROR.value,
            message=str(exc) or type(exc).__name__,
            detail=trace,
            path=request.url.path
        )
    return JSONResponse(status_code=500, content=body.to_dict())


allowed_origins = [LEETCODE_BASE_URL]
client_url = os.getenv("CLIENT_URL")
if client_url:
    allowed_origins.append(client_url.rstrip("/"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Versioned and bare paths serve the same router
app.include_router(router, prefix=f"/api/{API_VERSION}")
app.include_router(router)


# =============================================================================
# SERVICE ENDPOINTS
# =============================================================================

@app.get("/")
def root():
    """Service description and endpoint map."""
    base = f"/api/{API_VERSION}"
    return {
        "message": "LeetCode Insight API",
        "version": SERVICE_VERSION,
        "api_version": API_VERSION,
        "docs": "/docs",
        "endpoints": {
            "health": "GET /health",
            "weak_topics": f"GET {base}/user/topics",
            "generate_recommendations": f"POST {base}/user/problem-recs?push={{bool}}&limit={{n}}",
            "current_recommendations": f"GET {base}/user/problem-recs",
            "contest_history": f"GET {base}/contest/solves?page={{p}}&pageSize={{n}}&forceRefresh={{bool}}",
            "rate_problem": f"POST {base}/problem/rate",
            "rate_problems": f"POST {base}/problem/rate-batch",
        },
        "note": "Every endpoint is also served without the version prefix."
    }


@app.get("/health")
def health_check(request: Request):
    weights = getattr(request.app.state, "topic_weights", None)
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "topic_weights": weights.info() if weights is not None else None
    }
