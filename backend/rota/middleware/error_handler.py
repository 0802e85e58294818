import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from pydantic import ValidationError
from fastapi.exceptions import HTTPException
from rota.services.errors import PersistenceError, RotaError

logger = logging.getLogger(__name__)


def error_response(status_code: int, error: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


async def rota_error_handler(request: Request, exc: RotaError):
    if isinstance(exc, PersistenceError):
        logger.error("Persistence failure on %s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.to_dict())


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)

        except RotaError as re:
            return await rota_error_handler(request, re)

        except ValidationError as ve:
            return error_response(422, {
                "code": "VALIDATION_ERROR",
                "message": str(ve),
                "details": ve.errors(include_url=False, include_context=False),
            })

        except HTTPException as he:
            return error_response(he.status_code, {"code": "HTTP_EXCEPTION", "message": he.detail})

        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return error_response(500, {"code": "INTERNAL_ERROR", "message": "An internal error occurred."})
