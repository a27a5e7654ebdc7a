# apps/api/app_factory.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from apps.api.workflow import create_workflow_router
from services.engine import WorkflowEngine
from services.workflow.errors import ValidationError, WorkflowError

logger = logging.getLogger(__name__)


def create_app(*, engine: WorkflowEngine) -> FastAPI:
    app = FastAPI(title="Packetflow Translation Workflow API")

    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(request: Request, exc: WorkflowError):
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.kind, "detail": str(exc)},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        logger.info("%s %s -> invalid request: %s", request.method, request.url.path, problems)
        return JSONResponse(
            status_code=ValidationError.status_code,
            content={"error": ValidationError.kind, "detail": problems},
        )

    @app.get("/")
    async def root():
        return RedirectResponse(url="/docs")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    app.include_router(create_workflow_router(engine=engine))
    return app
