"""FastAPI entry point: app factory, error rendering and table bootstrap."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from thesisflow.api.v2 import router as api_v2_router
from thesisflow.config import get_settings
from thesisflow.db import Base, engine
from thesisflow.errors import WorkflowError
from thesisflow.logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Application factory, also used by the tests."""

    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title="Thesisflow API", version="0.1.0")

    @app.on_event("startup")
    def init_models() -> None:
        """Make sure the tables exist."""

        Base.metadata.create_all(bind=engine)

    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning(
                "%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message
            )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    app.include_router(api_v2_router)
    return app


app = create_app()
