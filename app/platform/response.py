from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    *,
    message: str,
    status_code: int = status.HTTP_200_OK,
    data: Optional[Any] = None,
) -> JSONResponse:
    """
    `{status_code, status, message, data}` envelope.

    Lead and webhook endpoints return their documented bodies directly; the
    envelope carries errors and the Meta handshake rejection.
    """
    return JSONResponse(
        status_code=status_code,
        content={
            "status_code": status_code,
            "status": "error" if status_code >= 400 else "success",
            "message": message,
            "data": jsonable_encoder(data) if data is not None else {},
        },
    )


def error_response(status_code: int, message: str, errors: Optional[list[dict]] = None) -> JSONResponse:
    return api_response(
        message=message,
        status_code=status_code,
        data={"errors": errors} if errors else None,
    )
