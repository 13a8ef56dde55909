"""语音合成模型适配器包。"""

from .base_tts import BaseTTSModel
from .openai_tts_adapter import OpenAITTSAdapter

__all__ = ["BaseTTSModel", "OpenAITTSAdapter"]
