"""AI 模型模块"""

from .vision import BaseVisionModel, OpenAIVisionAdapter
from .tts import BaseTTSModel, OpenAITTSAdapter
from .prompts import PromptsManager

__all__ = ["BaseVisionModel", "OpenAIVisionAdapter", "BaseTTSModel", "OpenAITTSAdapter", "PromptsManager"]
