import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import EXPOSE_DRIVER_ERRORS, LOG_LEVEL, get_cors_origins
from .db import create_db_and_tables
from .response import error, server_error, unauthorized
from .services.ledger_service import LedgerError

from .routers.auth import router as auth_router
from .routers.common import router as common_router
from .routers.material import router as material_router
from .routers.production import router as production_router
from .routers.plan import router as plan_router
from .routers.quality import router as quality_router
from .routers.shipment import router as shipment_router
from .routers.outsourcing import router as outsourcing_router
from .routers.returns import router as returns_router
from .routers.inventory import router as inventory_router
from .routers.repack import router as repack_router

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("mes_core")


def _validation_message(exc: RequestValidationError) -> str:
    """First pydantic error as one readable line, e.g. 'whsCode is required'."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "form"))
    if first.get("type") == "missing":
        return f"{field} is required"
    message = str(first.get("msg", "invalid value"))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{field}: {message}" if field else message


def register_exception_handlers(app: FastAPI):

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            return server_error(exc.message)
        return error(exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error(_validation_message(exc), 400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 401:
            response = unauthorized(str(exc.detail))
        else:
            response = error(str(exc.detail), exc.status_code)
        for name, value in (exc.headers or {}).items():
            response.headers[name] = value
        return response

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return server_error(str(exc) if EXPOSE_DRIVER_ERRORS else "A database error occurred")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return server_error("An unexpected error occurred")


def create_app() -> FastAPI:
    app = FastAPI(
        title="MES PDA Back-end",
        description="Barcode-driven warehouse and shop-floor operations with a transactional stock ledger",
        version="1.0.0"
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(common_router)
    app.include_router(material_router)
    app.include_router(production_router)
    app.include_router(plan_router)
    app.include_router(quality_router)
    app.include_router(shipment_router)
    app.include_router(outsourcing_router)
    app.include_router(returns_router)
    app.include_router(inventory_router)
    app.include_router(repack_router)

    @app.on_event("startup")
    def on_startup():
        logger.info("Creating database tables at startup...")
        create_db_and_tables()
        logger.info("Database ready.")

    return app


app = create_app()
