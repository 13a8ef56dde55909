import json
from pathlib import Path
from typing import Any, List, Optional

import pytest
import requests
from fastapi.testclient import TestClient
from requests.structures import CaseInsensitiveDict

from image_narrator.core.config import (
    AdmissionConfig,
    PromptsConfig,
    ProviderConfig,
    Settings,
    UploadConfig,
)
from image_narrator.main import create_app
from image_narrator.services.admission import AdmissionGate, TokenBucketLimiter
from image_narrator.services.ai_models.prompts import PromptsManager
from image_narrator.services.ai_models.tts import OpenAITTSAdapter
from image_narrator.services.ai_models.vision import OpenAIVisionAdapter

FAKE_MP3 = b"ID3\x04\x00\x00\x00\x00\x00\x00" + b"\xff\xfb\x90\x00" * 64
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
BROWSER_UA = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def make_png(size: int) -> bytes:
    return PNG_SIGNATURE + b"\x00" * max(0, size - len(PNG_SIGNATURE))


class FakeHttpResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", headers=None, json_body: Any = None):
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        self._json = json_body
        self._content = content if json_body is None else json.dumps(json_body).encode("utf-8")
        self.closed = False

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @property
    def content(self) -> bytes:
        return self._content

    def json(self):
        if self._json is None:
            return json.loads(self._content)
        return self._json

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def close(self):
        self.closed = True


class FakeProviderSession:
    """替代 requests.Session，按 URL 返回视觉 / 语音结果并记录调用"""

    def __init__(self):
        self.vision_content: Any = "A red bicycle leaning against a brick wall."
        self.audio: bytes = FAKE_MP3
        self.vision_error: Optional[Exception] = None
        self.tts_error: Optional[Exception] = None
        self.calls: List[dict] = []
        self.closed = False

    def post(self, url, json=None, headers=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if url.endswith("/v1/chat/completions"):
            if self.vision_error:
                raise self.vision_error
            return FakeHttpResponse(json_body={"choices": [{"message": {"content": self.vision_content}}]})
        if url.endswith("/v1/audio/speech"):
            if self.tts_error:
                raise self.tts_error
            return FakeHttpResponse(content=self.audio, headers={"Content-Type": "audio/mpeg"})
        return FakeHttpResponse(status_code=404)

    def close(self):
        self.closed = True

    @property
    def vision_calls(self):
        return [c for c in self.calls if c["url"].endswith("/v1/chat/completions")]

    @property
    def tts_calls(self):
        return [c for c in self.calls if c["url"].endswith("/v1/audio/speech")]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeVerifier:
    def __init__(self, verified: bool):
        self.verified = verified
        self.calls = []

    async def verify(self, bot, ip):
        self.calls.append((bot.name, ip))
        return self.verified


def make_settings(max_file_size_bytes: int = 10 * 1024 * 1024, **admission) -> Settings:
    admission.setdefault("KEY", "test-admission-key")
    admission.setdefault("VERIFY_BOTS", False)
    return Settings(
        config_file=Path("/nonexistent/app.yaml"),
        provider=ProviderConfig(API_KEY="test-key"),
        admission=AdmissionConfig(**admission),
        upload=UploadConfig(MAX_FILE_SIZE_BYTES=max_file_size_bytes),
        prompts=PromptsConfig(),
    )


@pytest.fixture
def provider():
    return FakeProviderSession()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def build_client(provider, clock):
    """按需构建测试应用：可定制上传上限、准入配置与机器人校验器"""
    clients = []

    def _build(max_file_size_bytes: int = 10 * 1024 * 1024, verifier=None, **admission) -> TestClient:
        settings = make_settings(max_file_size_bytes, **admission)
        gate = AdmissionGate(
            settings.admission,
            limiter=TokenBucketLimiter(
                refill_rate=settings.admission.REFILL_RATE,
                interval=settings.admission.INTERVAL,
                capacity=settings.admission.CAPACITY,
                clock=clock,
            ),
            verifier=verifier,
        )
        app = create_app(
            settings=settings,
            vision_model=OpenAIVisionAdapter(
                api_key="test-key",
                prompts_manager=PromptsManager(),
                session=provider,
            ),
            tts_model=OpenAITTSAdapter(api_key="test-key", session=provider),
            gate=gate,
        )
        client = TestClient(app, headers={"User-Agent": BROWSER_UA})
        client.__enter__()
        clients.append(client)
        return client

    yield _build
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(build_client):
    return build_client()
