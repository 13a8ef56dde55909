"""
图像载荷提取
把 multipart 文件上传与 JSON data URL 两种输入统一成 data URL，
仅在入口处检查一次 Content-Type。
"""

import base64
import binascii
import logging
import re
from typing import Optional

from fastapi import Request
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from ..models.schemas.vision import (
    DataUrlImage,
    DescribeImageRequest,
    ExtractedImage,
    InvalidImage,
    MultipartImage,
    UploadedImage,
)

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = "image/png"
FILE_FIELD = "file"
DATA_URL_RE = re.compile(r"^data:(image/[A-Za-z0-9.+-]+);base64,([A-Za-z0-9+/]*={0,2})$")
# {"imageBase64": "data:image/...;base64,"} 以及空白字符的余量
JSON_ENVELOPE_BYTES = 1024


async def _from_multipart(request: Request, max_bytes: int) -> ExtractedImage:
    form = await request.form()
    try:
        upload = form.get(FILE_FIELD)
        if not isinstance(upload, UploadFile):
            return InvalidImage("missing_file")

        mime_type = upload.content_type or ""
        if not mime_type.startswith("image/"):
            return InvalidImage("not_an_image")

        # 多读一个字节即可判断是否超限
        content = await upload.read(max_bytes + 1)
        if len(content) > max_bytes:
            return InvalidImage("too_large")

        return MultipartImage(UploadedImage(
            data=content,
            mime_type=mime_type or DEFAULT_IMAGE_MIME,
            size_bytes=len(content),
        ))
    finally:
        await form.close()


def json_body_limit(max_bytes: int) -> int:
    """JSON 请求体上限：图像的 base64 长度加上字段名与 data URL 前缀"""
    return 4 * ((max_bytes + 2) // 3) + JSON_ENVELOPE_BYTES


async def _read_capped(request: Request, limit: int) -> Optional[bytes]:
    """按上限读取请求体，超限立即返回 None，不再继续读取"""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        return None

    chunks = []
    total = 0
    async for chunk in request.stream():
        total += len(chunk)
        if total > limit:
            return None
        chunks.append(chunk)
    return b"".join(chunks)


async def _from_json(request: Request, max_bytes: int) -> ExtractedImage:
    raw = await _read_capped(request, json_body_limit(max_bytes))
    if raw is None:
        return InvalidImage("too_large")
    try:
        body = DescribeImageRequest.model_validate_json(raw)
    except (ValueError, ValidationError):
        return InvalidImage("unparseable_json")

    data_url = body.imageBase64
    if not data_url.startswith("data:image"):
        return InvalidImage("not_a_data_url")

    match = DATA_URL_RE.match(data_url)
    if not match:
        return InvalidImage("malformed_data_url")
    mime_type, payload = match.groups()

    # 按 base64 长度先粗判，避免解码超大载荷
    if len(payload) * 3 // 4 > max_bytes + 2:
        return InvalidImage("too_large")
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return InvalidImage("malformed_data_url")
    if not content:
        return InvalidImage("empty_image")
    if len(content) > max_bytes:
        return InvalidImage("too_large")

    return DataUrlImage(
        data_url=data_url,
        image=UploadedImage(data=content, mime_type=mime_type, size_bytes=len(content)),
    )


async def extract_image(request: Request, max_bytes: int) -> ExtractedImage:
    """
    提取请求中的图像

    Args:
        request: 原始请求
        max_bytes: 允许的最大图像字节数

    Returns:
        MultipartImage / DataUrlImage，校验失败返回 InvalidImage
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        result = await _from_multipart(request, max_bytes)
    else:
        result = await _from_json(request, max_bytes)

    if isinstance(result, InvalidImage):
        logger.info(f"图像载荷无效: {result.reason}")
    else:
        image = result.uploaded_image
        logger.info(f"收到图像 | 类型: {image.mime_type} | 大小: {image.size_bytes / 1024:.2f} KB")
    return result
