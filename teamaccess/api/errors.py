"""
Translation of service outcomes into HTTP responses.
"""

from typing import TypeVar

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from teamaccess.core.result import ErrorKind, Failure, Result
from teamaccess.service.guard import Decision, Deny

T = TypeVar("T")

STATUS_FOR_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def unwrap(result: Result[T]) -> T:
    """
    Return the value of a successful result, or raise the HTTPException
    matching the failure.
    """
    if isinstance(result, Failure):
        raise HTTPException(
            status_code=STATUS_FOR_KIND[result.kind], detail=result.error.value
        )

    return result.value


async def enforce(decision: Decision, log: FilteringBoundLogger) -> None:
    """
    Raise a 403 if a guard denied the request.
    """
    if isinstance(decision, Deny):
        await log.ainfo("api.access_denied", reason=decision.reason)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail=decision.reason.value
        )


async def store_unavailable_handler(request: Request, exc: Exception):
    await get_logger().aerror(
        "api.store_unavailable", path=request.url.path, error=str(exc)
    )
    return JSONResponse(
        status_code=STATUS_FOR_KIND[ErrorKind.STORE_UNAVAILABLE],
        content={"detail": ErrorKind.STORE_UNAVAILABLE.value},
    )


def add_exception_handlers(app: FastAPI) -> FastAPI:
    """
    Connection-level database failures mean the store itself is
    unavailable; report them as 503 rather than a bare 500.
    """
    app.add_exception_handler(OperationalError, store_unavailable_handler)
    app.add_exception_handler(InterfaceError, store_unavailable_handler)
    return app
