"""
语音合成适配器（OpenAI 兼容 /v1/audio/speech）
整段描述作为单次输入，不分块、不流式。
"""

import asyncio
import logging
import time
from typing import Optional

import requests

from ....core.exceptions import UpstreamFailure
from ....models.schemas.audio import AudioArtifact
from .base_tts import BaseTTSModel

logger = logging.getLogger(__name__)

AUDIO_MIME_TYPES = {
    "mp3": "audio/mpeg",
    "opus": "audio/ogg",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
}


class OpenAITTSAdapter(BaseTTSModel):
    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gpt-4o-mini-tts",
        voice: str = "onyx",
        audio_format: str = "mp3",
        base_url: Optional[str] = None,
        connect_timeout: float = 5.0,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.voice = voice
        self.audio_format = audio_format
        self.base_url = base_url or "https://api.openai.com"
        self.timeout = (connect_timeout, timeout)
        self.session = session or requests.Session()

    async def synthesize(self, text: str) -> AudioArtifact:
        call_start_time = time.time()
        logger.info(f"开始语音合成: model={self.model_name}, voice={self.voice}, 文本长度 {len(text)}")

        loop = asyncio.get_event_loop()
        try:
            audio_bytes = await loop.run_in_executor(None, self._call_api_sync, text)
        except requests.RequestException as e:
            logger.error(f"语音合成失败（耗时 {time.time() - call_start_time:.2f}s）: {e}")
            raise UpstreamFailure("tts", e) from e

        if not audio_bytes:
            logger.error("语音合成返回空音频")
            raise UpstreamFailure("tts")

        logger.info(f"语音合成完成，耗时 {time.time() - call_start_time:.2f}s，大小 {len(audio_bytes) / 1024:.2f} KB")
        return AudioArtifact(
            data=audio_bytes,
            mime_type=AUDIO_MIME_TYPES.get(self.audio_format, "audio/mpeg"),
        )

    def _call_api_sync(self, text: str) -> bytes:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = {
            "model": self.model_name,
            "voice": self.voice,
            "input": text,
            "response_format": self.audio_format,
        }
        url = f"{self.base_url.rstrip('/')}/v1/audio/speech"

        resp = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        return resp.content
