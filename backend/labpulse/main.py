from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from labpulse.api.data import router as data_router
from labpulse.api.experiments import router as experiments_router
from labpulse.api.tasks import router as tasks_router
from labpulse.config import load_app_config
from labpulse.db.base import Base
from labpulse.db.session import get_engine
from labpulse.services.errors import ApiError


def create_app() -> FastAPI:
    config = load_app_config()
    app = FastAPI(title="LabPulse API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ApiError)
    async def handle_api_error(_: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": exc.code, "message": exc.message}},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "error": {
                    "code": "REQUEST_VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "details": jsonable_encoder(exc.errors()),
                }
            },
        )

    @app.on_event("startup")
    def init_schema() -> None:
        if config.auto_create_schema:
            Base.metadata.create_all(bind=get_engine())

    @app.get("/health", tags=["system"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(experiments_router)
    app.include_router(tasks_router)
    app.include_router(data_router)
    return app


app = create_app()
