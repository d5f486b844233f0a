import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.auth import fastapi_users, auth_backend
from core.config import settings
from core.errors import ConflictError, NotFoundError, StorageError, ValidationError
from core.logging import setup_logging
from core.rate_limit import api_rate_limit, auth_rate_limit
from db.database import build_engine, build_session_maker, create_db_and_tables
from routers.items import router as items_router
from routers.reports import router as reports_router
from routers.transactions import router as transactions_router
from schemas.users import UserRead, UserCreate, UserUpdate
from services.ledger import InventoryLedger
from services.reports import InventoryReports

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    engine = build_engine(settings.database_url, echo=settings.database_echo)
    await create_db_and_tables(engine)

    app.state.session_maker = build_session_maker(engine)
    app.state.ledger = InventoryLedger(app.state.session_maker)
    app.state.reports = InventoryReports(app.state.session_maker)
    logger.info("inventory api started")
    yield
    await engine.dispose()


app = FastAPI(
    title="Inventory Ledger API",
    description="API for tracking stock levels, QR scans and the transaction ledger",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.message, "errors": exc.errors},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        msg = str(err.get("msg", "invalid value"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        errors.append({"field": loc or "__root__", "message": msg})
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation failed", "errors": errors},
    )


@app.exception_handler(ConflictError)
async def conflict_error_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": exc.message})


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}


# Authentication routes (fastapi-users), login and register share the brute-force limit
auth_limited = [Depends(auth_rate_limit)]
api_limited = [Depends(api_rate_limit)]

app.include_router(
    fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"], dependencies=auth_limited
)
app.include_router(
    fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"], dependencies=auth_limited
)
app.include_router(
    fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"], dependencies=api_limited
)

# Inventory routes
app.include_router(items_router, prefix="/items", tags=["items"], dependencies=api_limited)
app.include_router(transactions_router, prefix="/transactions", tags=["transactions"], dependencies=api_limited)
app.include_router(reports_router, prefix="/reports", tags=["reports"], dependencies=api_limited)

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
