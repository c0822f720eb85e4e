from contextlib import asynccontextmanager
import logging
import time
import uuid

from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from vetclinic.api.accounting import router as accounting_router
from vetclinic.api.auth import router as auth_router
from vetclinic.api.dashboard import router as dashboard_router
from vetclinic.api.stock import router as stock_router
from vetclinic.core.auth import parse_session_token
from vetclinic.core.config import settings
from vetclinic.core.errors import (
    ConflictError,
    CsvImportError,
    InvalidRangeError,
    NotFoundError,
    PersistenceError,
)
from vetclinic.db.base import Base
from vetclinic.db.session import SessionLocal, engine
from vetclinic.services.realtime import install_change_publisher, realtime_hub, sync_registry
import vetclinic.models  # noqa: F401 - register models with Base.metadata

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s %(message)s",
)
request_logger = logging.getLogger("vetclinic.request")


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    install_change_publisher(SessionLocal, realtime_hub)
    yield
    sync_registry.close_all()


app = FastAPI(
    title="Veterinary Clinic API",
    description="Clinic accounting summary, manual ledger, stock exchange and change notifications",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.app_cors_origins.split(",") if settings.app_cors_origins else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

PUBLIC_PATHS = {
    "/health",
    "/auth/logout",
    "/auth/me",
}

PROTECTED_API_PREFIXES = (
    "/accounting",
    "/dashboard",
    "/stock",
)


@app.middleware("http")
async def request_logging_middleware(request, call_next):
    req_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        request_logger.exception(
            "request_failed id=%s method=%s path=%s ms=%s",
            req_id,
            request.method,
            request.url.path,
            elapsed_ms,
        )
        raise
    elapsed_ms = int((time.perf_counter() - started) * 1000)
    response.headers["x-request-id"] = req_id
    request_logger.info(
        "request_done id=%s method=%s path=%s status=%s ms=%s",
        req_id,
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    path = request.url.path
    token = request.cookies.get(settings.auth_cookie_name)
    user = parse_session_token(token)
    request.state.user = user

    if path in PUBLIC_PATHS or path.startswith("/docs") or path.startswith("/redoc") or path == "/openapi.json":
        return await call_next(request)

    if path.startswith(PROTECTED_API_PREFIXES) and not user:
        return JSONResponse(status_code=401, content={"detail": "Authentication required"})
    return await call_next(request)


@app.exception_handler(InvalidRangeError)
async def invalid_range_handler(request: Request, exc: InvalidRangeError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(CsvImportError)
async def csv_import_handler(request: Request, exc: CsvImportError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "missing_headers": exc.missing_headers})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_handler(request: Request, exc: PersistenceError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


app.include_router(accounting_router)
app.include_router(auth_router)
app.include_router(dashboard_router)
app.include_router(stock_router)


@app.get("/health", tags=["health"])
def health() -> dict:
    db_ok = True
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        request_logger.exception("health_db_unreachable")
        db_ok = False
    return {"ok": db_ok, "env": settings.app_env, "database": "up" if db_ok else "down"}
