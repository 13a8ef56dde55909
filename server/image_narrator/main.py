import logging
from typing import Optional

from fastapi import FastAPI

from . import __version__
from .api.v1.endpoints import describe, health
from .core.config import Settings, get_settings
from .core.errors import register_exception_handlers
from .core.middleware import setup_middleware
from .services.admission import AdmissionGate
from .services.ai_models.prompts import PromptsManager
from .services.ai_models.tts import BaseTTSModel, OpenAITTSAdapter
from .services.ai_models.vision import BaseVisionModel, OpenAIVisionAdapter
from .services.audio_service import AudioService
from .services.description_service import DescriptionService
from .services.pipeline import DescribeImagePipeline

logger = logging.getLogger(__name__)


def build_vision_model(settings: Settings) -> BaseVisionModel:
  provider = settings.provider
  prompts_manager = PromptsManager(settings.prompts.DIR)
  return OpenAIVisionAdapter(
      api_key=provider.API_KEY,
      model_name=provider.VISION_MODEL,
      base_url=provider.BASE_URL,
      max_tokens=provider.VISION_MAX_TOKENS,
      max_chars=provider.MAX_DESCRIPTION_CHARS,
      prompts_manager=prompts_manager,
      prompts_scene=settings.prompts.SCENE,
      prompts_template=settings.prompts.TEMPLATE,
      connect_timeout=provider.CONNECT_TIMEOUT,
      timeout=provider.VISION_TIMEOUT,
  )


def build_tts_model(settings: Settings) -> BaseTTSModel:
  provider = settings.provider
  return OpenAITTSAdapter(
      api_key=provider.API_KEY,
      model_name=provider.TTS_MODEL,
      voice=provider.TTS_VOICE,
      audio_format=provider.TTS_FORMAT,
      base_url=provider.BASE_URL,
      connect_timeout=provider.CONNECT_TIMEOUT,
      timeout=provider.TTS_TIMEOUT,
  )


def create_app(
    settings: Optional[Settings] = None,
    vision_model: Optional[BaseVisionModel] = None,
    tts_model: Optional[BaseTTSModel] = None,
    gate: Optional[AdmissionGate] = None,
) -> FastAPI:
  """FastAPI 应用工厂。

  推理客户端在此创建一次并注入流水线，所有请求复用；
  测试时可传入假模型与自定义网关。
  """
  settings = settings or get_settings()
  app = FastAPI(title=settings.app_name, version=__version__)

  setup_middleware(app)
  register_exception_handlers(app)

  app.include_router(health.router, prefix="/api/v1")
  app.include_router(describe.router, prefix="/api")

  if not settings.provider.API_KEY and (vision_model is None or tts_model is None):
    logger.warning("未配置 OPENAI_API_KEY，推理调用将失败")

  app.state.settings = settings
  app.state.pipeline = DescribeImagePipeline(
      gate=gate or AdmissionGate(settings.admission),
      description_service=DescriptionService(vision_model or build_vision_model(settings)),
      audio_service=AudioService(tts_model or build_tts_model(settings)),
      max_file_size_bytes=settings.upload.MAX_FILE_SIZE_BYTES,
  )

  @app.on_event("startup")
  async def startup_event():
    """应用启动时输出服务信息"""
    admission = settings.admission
    print("\n" + "=" * 60)
    print("📋 服务器信息")
    print("=" * 60)
    print(f"   服务名称: {settings.app_name}")
    print(f"   版本: {__version__}")
    print(f"   主机: {settings.host}")
    print(f"   端口: {settings.port}")
    print(f"   描述端点: POST http://{settings.host}:{settings.port}/api/describe-image")
    print(f"   HTTP 健康检查: http://{settings.host}:{settings.port}/api/v1/health")
    print(f"   视觉模型: {settings.provider.VISION_MODEL} | 语音模型: {settings.provider.TTS_MODEL} ({settings.provider.TTS_VOICE})")
    print(f"   限流: 容量 {admission.CAPACITY}，每 {admission.INTERVAL:.0f}s 补充 {admission.REFILL_RATE}")
    print(f"   上传上限: {settings.upload.MAX_FILE_SIZE_BYTES // (1024 * 1024)} MB")
    print("=" * 60 + "\n")
    logger.info("服务器启动完成")

  @app.on_event("shutdown")
  async def shutdown_event():
    """应用关闭时释放推理客户端连接"""
    pipeline = app.state.pipeline
    for model in (pipeline.description_service.vision_model, pipeline.audio_service.tts_model):
      session = getattr(model, "session", None)
      if session is not None:
        session.close()
    logger.info("服务器关闭完成")

  return app


app = create_app()
