"""音频相关模型。"""

from dataclasses import dataclass


@dataclass
class AudioArtifact:
    """语音合成结果，直接写入响应体，不在服务端缓存"""
    data: bytes
    mime_type: str = "audio/mpeg"
