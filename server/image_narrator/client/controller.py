"""
上传控制器
驱动上传流程并维护状态机：Idle -> Uploading -> Processing -> Done，
Uploading / Processing 出错进入 Error；选择新文件时重新开始。
"""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import requests

from .audio_handles import AudioHandleStore, AudioSlot
from ..services.response_composer import DESCRIPTION_HEADER, decode_header_text

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_MB = 10
DESCRIBE_PATH = "/api/describe-image"
USER_AGENT = "image-narrator-client/0.1"

MSG_NOT_IMAGE = "Please select an image file (PNG, JPG, etc.)."
MSG_TOO_LARGE = f"File is too large. Please use an image under {MAX_FILE_SIZE_MB} MB."
MSG_GENERIC_ERROR = "Something went wrong while generating the audio description."


class UploadStatus(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


STATUS_MESSAGES = {
    UploadStatus.IDLE: "No file selected yet.",
    UploadStatus.UPLOADING: "Uploading image…",
    UploadStatus.PROCESSING: "Generating description and audio…",
    UploadStatus.DONE: "Audio description ready.",
}


class ClientTransportFailure(Exception):
    """请求失败或响应无法读取；具体原因不展示给用户"""


@dataclass
class SelectedFile:
    name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path) -> "SelectedFile":
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, mime_type=mime_type or "", data=path.read_bytes())


ChangeHandler = Callable[["FileInput"], Awaitable[None]]


class FileInput:
    """
    文件选择框：只有 value 变化时才触发 change 事件，
    因此每次尝试后都要 clear()，否则重复选择同一文件不会再次触发。
    """

    def __init__(self) -> None:
        self.value = ""
        self.files: List[SelectedFile] = []
        self.change_handlers: List[ChangeHandler] = []

    def on_change(self, handler: ChangeHandler) -> None:
        self.change_handlers.append(handler)

    async def select(self, file: Optional[SelectedFile]) -> bool:
        """选择文件，返回是否触发了 change 事件"""
        new_value = file.name if file else ""
        if new_value == self.value:
            return False
        self.value = new_value
        self.files = [file] if file else []
        for handler in self.change_handlers:
            await handler(self)
        return True

    def clear(self) -> None:
        self.value = ""
        self.files = []


StatusListener = Callable[[UploadStatus, str], None]


class ClientController:
    """单会话上传控制器，同一时间至多一个存活的音频句柄"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        store: Optional[AudioHandleStore] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 120.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.store = store or AudioHandleStore()
        self.audio = AudioSlot(self.store)
        self.session = session or requests.Session()
        self.timeout = timeout

        self.status = UploadStatus.IDLE
        self.error_message: Optional[str] = None
        self.description_text: Optional[str] = None
        self.listeners: List[StatusListener] = []

    # ========= 状态 =========
    @property
    def is_busy(self) -> bool:
        """忙碌时禁用触发按钮"""
        return self.status in (UploadStatus.UPLOADING, UploadStatus.PROCESSING)

    @property
    def audio_handle(self) -> Optional[str]:
        return self.audio.handle

    @property
    def status_message(self) -> str:
        """供读屏软件播报的状态文本"""
        if self.status == UploadStatus.ERROR:
            return self.error_message or MSG_GENERIC_ERROR
        return STATUS_MESSAGES[self.status]

    def _set_status(self, status: UploadStatus, error_message: Optional[str] = None) -> None:
        self.status = status
        if error_message is not None:
            self.error_message = error_message
        for listener in self.listeners:
            listener(status, self.status_message)

    def reset(self) -> None:
        self.audio.release()
        self.description_text = None
        self.error_message = None
        self._set_status(UploadStatus.IDLE)

    # ========= 上传流程 =========
    def bind(self, file_input: FileInput) -> None:
        file_input.on_change(self.handle_file_change)

    async def handle_file_change(self, file_input: FileInput) -> None:
        file = file_input.files[0] if file_input.files else None

        self.audio.release()
        self.description_text = None
        self.error_message = None

        if file is None:
            self._set_status(UploadStatus.IDLE)
            return

        if not file.mime_type.startswith("image/"):
            self._set_status(UploadStatus.ERROR, MSG_NOT_IMAGE)
            file_input.clear()
            return

        if file.size / (1024 * 1024) > MAX_FILE_SIZE_MB:
            self._set_status(UploadStatus.ERROR, MSG_TOO_LARGE)
            file_input.clear()
            return

        self._set_status(UploadStatus.UPLOADING)
        loop = asyncio.get_event_loop()
        try:
            response = await loop.run_in_executor(None, self._post, file)
            try:
                if not response.ok:
                    raise ClientTransportFailure(f"Request failed: {response.status_code}")

                self._set_status(UploadStatus.PROCESSING)
                body = await loop.run_in_executor(None, lambda: response.content)
                if not body:
                    raise ClientTransportFailure("Empty audio body")

                self.audio.replace(body, response.headers.get("Content-Type", "audio/mpeg"))

                description_header = response.headers.get(DESCRIPTION_HEADER)
                decoded = decode_header_text(description_header) if description_header else None
                if decoded:
                    self.description_text = decoded
            finally:
                response.close()

            self._set_status(UploadStatus.DONE)
        except Exception as e:
            logger.error(f"上传失败: {e}", exc_info=True)
            self.audio.release()
            self._set_status(UploadStatus.ERROR, MSG_GENERIC_ERROR)
        finally:
            file_input.clear()

    def _post(self, file: SelectedFile) -> requests.Response:
        return self.session.post(
            f"{self.base_url}{DESCRIBE_PATH}",
            files={"file": (file.name, file.data, file.mime_type)},
            headers={"User-Agent": USER_AGENT},
            stream=True,
            timeout=self.timeout,
        )

    def save_audio(self, path) -> Path:
        """把当前音频写入文件（下载）"""
        if self.audio.handle is None:
            raise RuntimeError("No audio description available")
        path = Path(path)
        path.write_bytes(self.store.get(self.audio.handle).data)
        return path

    # ========= 生命周期 =========
    def close(self) -> None:
        self.audio.close()
        self.session.close()

    def __enter__(self) -> "ClientController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
