"""健康检查端点。"""

from fastapi import APIRouter, Request
from datetime import datetime

from .... import __version__

router = APIRouter()


@router.get("/health", summary="健康检查")
async def health_check(request: Request) -> dict:
    """健康检查，同时返回当前模型与限流配置（不含任何凭据）。"""
    settings = request.app.state.settings
    admission = settings.admission
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": settings.app_name,
        "version": __version__,
        "models": {
            "vision": settings.provider.VISION_MODEL,
            "tts": settings.provider.TTS_MODEL,
        },
        "rate_limit": {
            "capacity": admission.CAPACITY,
            "refill_rate": admission.REFILL_RATE,
            "interval": admission.INTERVAL,
        },
        "provider_configured": bool(settings.provider.API_KEY),
    }
