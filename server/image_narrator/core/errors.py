"""异常处理器：所有服务端异常在此统一转换为固定状态码。"""

import logging
import math

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from ..models.schemas.admission import ReasonKind
from .exceptions import AdmissionDenied, InvalidPayload, UpstreamFailure

logger = logging.getLogger(__name__)


async def admission_denied_handler(request: Request, exc: AdmissionDenied):
    decision = exc.decision
    if decision.reason_kind == ReasonKind.RATE_LIMITED:
        headers = {}
        if decision.retry_after is not None:
            headers["Retry-After"] = str(max(1, math.ceil(decision.retry_after)))
        return JSONResponse({"error": "Too Many Requests"}, status_code=429, headers=headers)
    if decision.reason_kind == ReasonKind.BOT:
        return JSONResponse({"error": "No bots allowed"}, status_code=403)
    return JSONResponse({"error": "Forbidden"}, status_code=403)


async def invalid_payload_handler(request: Request, exc: InvalidPayload):
    return PlainTextResponse("Invalid or missing image data", status_code=400)


async def upstream_failure_handler(request: Request, exc: UpstreamFailure):
    logger.error(f"Error in {request.url.path}: {exc}", exc_info=exc.cause or exc)
    return PlainTextResponse("Internal Server Error", status_code=500)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error in {request.url.path}: {exc}", exc_info=exc)
    return PlainTextResponse("Internal Server Error", status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    """注册全局异常处理器。"""
    app.add_exception_handler(AdmissionDenied, admission_denied_handler)
    app.add_exception_handler(InvalidPayload, invalid_payload_handler)
    app.add_exception_handler(UpstreamFailure, upstream_failure_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
