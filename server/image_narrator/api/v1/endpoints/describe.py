"""图像描述语音端点。"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from ....services.pipeline import DescribeImagePipeline

logger = logging.getLogger(__name__)
router = APIRouter()


def get_pipeline(request: Request) -> DescribeImagePipeline:
    """启动时构建的流水线，测试中可替换为使用假模型的实例"""
    return request.app.state.pipeline


@router.post(
    "/describe-image",
    summary="上传图像，返回描述语音（MP3）",
    response_class=Response,
    responses={
        200: {"content": {"audio/mpeg": {}}},
        400: {"description": "Invalid or missing image data"},
        403: {"description": "Forbidden"},
        429: {"description": "Too Many Requests"},
        500: {"description": "Internal Server Error"},
    },
)
async def describe_image(
    request: Request,
    pipeline: DescribeImagePipeline = Depends(get_pipeline),
) -> Response:
    """
    接收 multipart（字段 file）或 JSON（字段 imageBase64）形式的图像，
    响应体为 MP3，描述文本放在 X-Description-Text 响应头中（百分号编码）。
    """
    return await pipeline.run(request)
