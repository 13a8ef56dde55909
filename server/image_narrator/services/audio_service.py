"""音频处理服务层。"""

from .ai_models.tts.base_tts import BaseTTSModel
from ..models.schemas.audio import AudioArtifact


class AudioService:
    def __init__(self, tts_model: BaseTTSModel) -> None:
        self._tts_model = tts_model

    @property
    def tts_model(self) -> BaseTTSModel:
        return self._tts_model

    async def synthesize(self, text: str) -> AudioArtifact:
        if not text:
            raise ValueError("synthesize() requires a non-empty description")
        return await self._tts_model.synthesize(text)
