"""上传客户端：状态机 + 本地音频句柄管理"""

from .audio_handles import AudioBlob, AudioHandleStore, AudioSlot
from .controller import (
    ClientController,
    ClientTransportFailure,
    FileInput,
    SelectedFile,
    UploadStatus,
)

__all__ = [
    "AudioBlob",
    "AudioHandleStore",
    "AudioSlot",
    "ClientController",
    "ClientTransportFailure",
    "FileInput",
    "SelectedFile",
    "UploadStatus",
]
