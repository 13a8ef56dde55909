"""图像输入与视觉模型输出相关模型。"""

import base64
from dataclasses import dataclass, field
from typing import List, Optional, Union

from pydantic import BaseModel


class DescribeImageRequest(BaseModel):
    """JSON 形式的请求体"""
    imageBase64: str


@dataclass
class UploadedImage:
    """单次请求内的图像，描述调用结束后即丢弃，从不落盘"""
    data: bytes
    mime_type: str
    size_bytes: int


def to_data_url(data: bytes, mime_type: str) -> str:
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


@dataclass
class MultipartImage:
    """multipart/form-data 上传的图像"""
    image: UploadedImage

    @property
    def data_url(self) -> str:
        return to_data_url(self.image.data, self.image.mime_type)

    @property
    def uploaded_image(self) -> UploadedImage:
        return self.image


@dataclass
class DataUrlImage:
    """JSON 中直接给出的 data URL，原样透传"""
    data_url: str
    image: UploadedImage

    @property
    def uploaded_image(self) -> UploadedImage:
        return self.image


@dataclass
class InvalidImage:
    reason: str


ExtractedImage = Union[MultipartImage, DataUrlImage, InvalidImage]


# ========= 视觉模型回复内容 =========

@dataclass
class ContentPart:
    kind: str
    text: Optional[str] = None


@dataclass
class PlainText:
    text: str


@dataclass
class PartList:
    parts: List[ContentPart] = field(default_factory=list)


MessageContent = Union[PlainText, PartList]
