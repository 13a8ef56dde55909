"""
本地可播放音频句柄
类似浏览器的 object URL：句柄指向内存中的音频字节，显式 revoke 之前一直占用内存。
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class AudioBlob:
    data: bytes
    mime_type: str = "audio/mpeg"


class AudioHandleStore:
    """句柄表，create 分配、revoke 释放"""

    def __init__(self) -> None:
        self._blobs: Dict[str, AudioBlob] = {}

    def create(self, data: bytes, mime_type: str = "audio/mpeg") -> str:
        handle = f"blob:{uuid.uuid4()}"
        self._blobs[handle] = AudioBlob(data, mime_type)
        return handle

    def revoke(self, handle: str) -> None:
        # 重复释放是无害的
        self._blobs.pop(handle, None)

    def get(self, handle: str) -> AudioBlob:
        """已释放的句柄会抛出 KeyError"""
        return self._blobs[handle]

    @property
    def live_count(self) -> int:
        return len(self._blobs)


class AudioSlot:
    """
    至多持有一个存活句柄：替换时先释放旧句柄再分配新句柄，
    reset / close / 退出上下文时释放。
    """

    def __init__(self, store: AudioHandleStore) -> None:
        self.store = store
        self._handle: Optional[str] = None

    @property
    def handle(self) -> Optional[str]:
        return self._handle

    def replace(self, data: bytes, mime_type: str = "audio/mpeg") -> str:
        self.release()
        self._handle = self.store.create(data, mime_type)
        return self._handle

    def release(self) -> None:
        if self._handle is not None:
            self.store.revoke(self._handle)
            logger.debug(f"释放音频句柄 {self._handle}")
            self._handle = None

    def close(self) -> None:
        self.release()

    def __enter__(self) -> "AudioSlot":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
