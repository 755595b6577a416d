# social_publisher/routers/responses.py
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_success(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": True, "data": jsonable_encoder(data)})


def api_error(status_code: int, message: str, code: Optional[str] = None, data: Any = None) -> JSONResponse:
    body = {"success": False, "error": {"message": message, "code": code}}
    if data is not None:
        body["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=status_code, content=body)
