"""中间件配置模块。"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from ..services.response_composer import DESCRIPTION_HEADER

logger = logging.getLogger(__name__)


def setup_middleware(app: FastAPI) -> None:
    """注册全局中间件。"""

    # 浏览器端需要读取描述文本响应头，必须显式暴露
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[DESCRIPTION_HEADER, "Content-Disposition", "Retry-After"],
    )

    logger.info(f"CORS 中间件已配置，暴露响应头 {DESCRIPTION_HEADER}")
