"""视觉模型基类"""

from abc import ABC, abstractmethod


class BaseVisionModel(ABC):
    """视觉模型通用接口"""

    @abstractmethod
    async def describe(self, image_data_url: str) -> str:
        """
        根据 data URL 形式的图像生成描述

        Args:
            image_data_url: data:<mime>;base64,<payload>

        Returns:
            规整后的描述文本（非空，长度受限）

        Raises:
            UpstreamFailure: 调用失败或超时
        """
        raise NotImplementedError
