import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import SQLModel

from stoneguard.app.services.security_context import SecurityContext

from .error import ClientError, ServerError

logger = logging.getLogger(__name__)


async def handle_client_error(request: Request, exc: ClientError):
    error_dict = {"code": exc.base_error.code, "message": exc.base_error.message}
    logger.warning(f"Client error on {request.url.path}: {error_dict}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": error_dict, **exc.extra},
        headers=exc.headers,
    )


async def handle_server_error(request: Request, exc: ServerError):
    error_dict = {"code": exc.base_error.code, "message": "Internal server error"}
    logger.error(f"Server error on {request.url.path}: {exc.base_error.code}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": error_dict}
    )


async def handle_validation_error(request: Request, exc: RequestValidationError):
    fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
    logger.warning(f"Validation error on {request.url.path}: {fields}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {"code": "VALIDATION_ERROR", "message": "Invalid request"},
            "fields": fields,
        },
    )


@asynccontextmanager
async def create_tables(app: FastAPI):
    from stoneguard.domain import entities  # noqa: F401  registers the tables
    from stoneguard.depends import engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield


def create_app(ApplicationConfig) -> FastAPI:
    if not ApplicationConfig.JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be configured")

    app = FastAPI(
        title="ARKAD Stone Trading API",
        version="0.1.0",
        lifespan=create_tables if ApplicationConfig.AUTO_CREATE_TABLES else None,
    )
    app.state.security = SecurityContext.from_config(ApplicationConfig)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ApplicationConfig.CORS_ORIGINS,
        allow_credentials=ApplicationConfig.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from stoneguard.api.routes import admin, health_check, orders, quotes

    app.include_router(health_check.router, tags=["Health"])
    app.include_router(quotes.router)
    app.include_router(orders.router)
    app.include_router(admin.router)

    app.add_exception_handler(ClientError, handle_client_error)
    app.add_exception_handler(ServerError, handle_server_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    return app
