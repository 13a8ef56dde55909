"""视觉描述模型适配器包。"""

from .base_vision import BaseVisionModel
from .content import FALLBACK_DESCRIPTION, normalize_description, parse_message_content
from .openai_vision_adapter import OpenAIVisionAdapter

__all__ = [
    "BaseVisionModel",
    "OpenAIVisionAdapter",
    "FALLBACK_DESCRIPTION",
    "normalize_description",
    "parse_message_content",
]
