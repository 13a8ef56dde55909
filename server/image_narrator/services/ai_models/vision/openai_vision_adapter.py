"""
视觉描述适配器（OpenAI 兼容接口）
把图像连同固定提示词发送给多模态对话模型，返回面向视障用户的简短描述。
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import requests

from ....core.exceptions import UpstreamFailure
from ..prompts import PromptsManager
from .base_vision import BaseVisionModel
from .content import MAX_DESCRIPTION_CHARS, normalize_description, parse_message_content

logger = logging.getLogger(__name__)


class OpenAIVisionAdapter(BaseVisionModel):
    """
    通过 /v1/chat/completions 调用视觉模型。
    base_url 和 api_key 由调用方显式传入（通常来自配置）。
    """

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gpt-4.1-mini",
        base_url: Optional[str] = None,
        max_tokens: int = 300,
        max_chars: int = MAX_DESCRIPTION_CHARS,
        prompts_manager: Optional[PromptsManager] = None,
        prompts_scene: str = "image_description",
        prompts_template: str = "default",
        connect_timeout: float = 5.0,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.base_url = base_url or "https://api.openai.com"
        self.max_tokens = max_tokens
        self.max_chars = max_chars
        self.prompts_manager = prompts_manager or PromptsManager()
        self.prompts_scene = prompts_scene
        self.prompts_template = prompts_template
        # 区分连接超时与读取超时
        self.timeout = (connect_timeout, timeout)
        self.session = session or requests.Session()

    def build_messages(self, image_data_url: str) -> list:
        system_prompt = self.prompts_manager.get_system_prompt(self.prompts_scene)
        user_prompt = self.prompts_manager.get_prompt(self.prompts_scene, self.prompts_template)
        return [
            {"role": "system", "content": system_prompt},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": user_prompt},
                    {"type": "image_url", "image_url": {"url": image_data_url}},
                ],
            },
        ]

    async def describe(self, image_data_url: str) -> str:
        call_start_time = time.time()
        logger.info(f"开始调用视觉模型: base_url={self.base_url}, model={self.model_name}, timeout={self.timeout}")

        loop = asyncio.get_event_loop()
        try:
            raw_content = await loop.run_in_executor(None, self._call_api_sync, image_data_url)
        except (requests.RequestException, ValueError, AttributeError, IndexError) as e:
            call_duration = time.time() - call_start_time
            logger.error(f"视觉模型调用失败（耗时 {call_duration:.2f}s）: {e}")
            raise UpstreamFailure("vision", e) from e

        description = normalize_description(parse_message_content(raw_content), self.max_chars)
        logger.info(f"视觉模型调用成功，耗时 {time.time() - call_start_time:.2f}s，描述长度 {len(description)}")
        logger.debug(f"描述: {description[:200]}")
        return description

    def _call_api_sync(self, image_data_url: str) -> Any:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload: Dict[str, Any] = {
            "model": self.model_name,
            "messages": self.build_messages(image_data_url),
            "max_tokens": self.max_tokens,
        }
        url = f"{self.base_url.rstrip('/')}/v1/chat/completions"

        resp = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message") or {}
        return message.get("content")
