from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from bulkbench.errors import InvalidArgument, StoreError
from bulkbench.logging_config import get_logger
from bulkbench.models import ErrorResponse

logger = get_logger(__name__)


async def invalid_argument_handler(request: Request, exc: InvalidArgument) -> JSONResponse:
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
    body = ErrorResponse(error=exc.kind, message=str(exc))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump(exclude_none=True))


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    body = ErrorResponse(error=exc.kind, message=str(exc), operation=exc.operation, entities=exc.entities)
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body.model_dump(exclude_none=True))


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvalidArgument, invalid_argument_handler)
    app.add_exception_handler(StoreError, store_error_handler)
