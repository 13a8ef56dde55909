"""
图像 -> 描述 -> 语音 的完整流程
准入 -> 提取图像 -> 视觉描述 -> 语音合成 -> 组装响应，严格按顺序执行
"""

import logging
import time

from fastapi import Request, Response

from ..core.exceptions import AdmissionDenied, InvalidPayload
from ..models.schemas.vision import InvalidImage
from .admission import AdmissionGate
from .audio_service import AudioService
from .description_service import DescriptionService
from .payload_extractor import extract_image
from .response_composer import compose_audio_response

logger = logging.getLogger(__name__)


class DescribeImagePipeline:
    """单次请求的编排，不重试，不在请求之间保留任何状态（限流计数除外）"""

    def __init__(
        self,
        gate: AdmissionGate,
        description_service: DescriptionService,
        audio_service: AudioService,
        max_file_size_bytes: int,
    ):
        self.gate = gate
        self.description_service = description_service
        self.audio_service = audio_service
        self.max_file_size_bytes = max_file_size_bytes

    async def run(self, request: Request) -> Response:
        pipeline_start = time.time()

        # 1. 准入判定，先于任何推理开销
        decision = await self.gate.protect(request, requested=1)
        if decision.denied:
            logger.info(f"[{decision.fingerprint}] 准入拒绝: {decision.reason_kind.value}")
            raise AdmissionDenied(decision)
        session_id = decision.fingerprint

        # 2. 提取图像
        extracted = await extract_image(request, self.max_file_size_bytes)
        if isinstance(extracted, InvalidImage):
            raise InvalidPayload(extracted.reason)

        # 3. 视觉描述
        vision_start = time.time()
        description = await self.description_service.describe(extracted.data_url)
        vision_time = time.time() - vision_start
        # 描述完成后不再持有图像
        del extracted
        logger.info(f"[{session_id}] 描述生成完成，耗时 {vision_time:.3f}s，长度 {len(description)}")

        # 4. 语音合成
        tts_start = time.time()
        audio = await self.audio_service.synthesize(description)
        tts_time = time.time() - tts_start
        logger.info(
            f"[{session_id}] 语音合成完成，耗时 {tts_time:.3f}s，"
            f"总耗时 {time.time() - pipeline_start:.3f}s"
        )

        # 5. 组装响应
        return compose_audio_response(audio, description)
