"""
描述生成服务层
对视觉模型的一层封装，保证交给语音合成的描述永远非空
"""

import logging

from .ai_models.vision import BaseVisionModel, FALLBACK_DESCRIPTION

logger = logging.getLogger(__name__)


class DescriptionService:
    """描述生成服务"""

    def __init__(self, vision_model: BaseVisionModel):
        self.vision_model = vision_model

    async def describe(self, image_data_url: str) -> str:
        # 适配器已完成去空白与截断，这里不再改动文本，只做空值回退
        description = await self.vision_model.describe(image_data_url) or ""
        if not description.strip():
            logger.warning("视觉模型返回空描述，使用回退文本")
            return FALLBACK_DESCRIPTION
        return description
