"""
响应组装：音频字节作为响应体，描述文本经百分号编码后放入自定义响应头
"""

from urllib.parse import quote, unquote

from fastapi import Response

from ..models.schemas.audio import AudioArtifact

DESCRIPTION_HEADER = "X-Description-Text"
AUDIO_FILENAME = "description.mp3"

# 与 encodeURIComponent 相同的保留字符集
_UNRESERVED = "-_.!~*'()"


def encode_header_text(text: str) -> str:
    """百分号编码，结果只包含可直接放入响应头的 ASCII 字符"""
    return quote(text, safe=_UNRESERVED)


def decode_header_text(value: str) -> str:
    return unquote(value)


def compose_audio_response(audio: AudioArtifact, description: str) -> Response:
    return Response(
        content=audio.data,
        status_code=200,
        media_type=audio.mime_type,
        headers={
            "Content-Disposition": f"attachment; filename={AUDIO_FILENAME}",
            "Cache-Control": "no-store",
            DESCRIPTION_HEADER: encode_header_text(description),
        },
    )
