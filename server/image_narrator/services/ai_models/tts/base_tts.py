"""TTS 模型基类。"""

from abc import ABC, abstractmethod

from ....models.schemas.audio import AudioArtifact


class BaseTTSModel(ABC):
    """TTS 模型通用接口。"""

    @abstractmethod
    async def synthesize(self, text: str) -> AudioArtifact:
        raise NotImplementedError
