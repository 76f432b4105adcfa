"""
Gestionnaires d'exceptions.
- PosError (et sous-classes) -> JSON {detail, code, retryable} avec le code HTTP de la classe.
- HTTPException: réponse JSON FastAPI standard.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from washpos.errors import PosError, TransientStoreError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PosError)
    async def pos_error_handler(request: Request, exc: PosError):
        if isinstance(exc, TransientStoreError):
            logger.warning("%s %s -> %s (%s)", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code, "retryable": exc.retryable},
        )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
