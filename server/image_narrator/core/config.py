"""应用配置管理"""

from pydantic_settings import BaseSettings
from pydantic import BaseModel
from typing import List, Optional
from pathlib import Path
import os
import yaml
import logging

logger = logging.getLogger(__name__)

MIB = 1024 * 1024


class ProviderConfig(BaseModel):
    """推理服务（视觉 + 语音合成）配置，OpenAI 兼容接口"""
    API_KEY: Optional[str] = ""
    BASE_URL: str = "https://api.openai.com"

    VISION_MODEL: str = "gpt-4.1-mini"
    VISION_MAX_TOKENS: int = 300
    MAX_DESCRIPTION_CHARS: int = 800

    TTS_MODEL: str = "gpt-4o-mini-tts"
    TTS_VOICE: str = "onyx"
    TTS_FORMAT: str = "mp3"

    # 超时（秒）：连接超时 + 各调用的读取超时，超时按上游失败处理，不重试
    CONNECT_TIMEOUT: float = 5.0
    VISION_TIMEOUT: float = 30.0
    TTS_TIMEOUT: float = 60.0


class AdmissionConfig(BaseModel):
    """准入网关配置（防护规则 / 机器人识别 / 令牌桶）"""
    # 指纹 HMAC 密钥，来自环境变量 ADMISSION_KEY
    KEY: Optional[str] = ""

    SHIELD_MODE: str = "LIVE"
    BOT_MODE: str = "LIVE"
    BOT_ALLOW: List[str] = ["CATEGORY:SEARCH_ENGINE"]
    VERIFY_BOTS: bool = True

    RATE_LIMIT_MODE: str = "LIVE"
    REFILL_RATE: int = 5
    INTERVAL: float = 60.0
    CAPACITY: int = 5

    HOSTING_IP_RANGES: List[str] = []
    TRUST_FORWARDED_FOR: bool = False


class UploadConfig(BaseModel):
    """上传限制"""
    MAX_FILE_SIZE_BYTES: int = 10 * MIB


class PromptsConfig(BaseModel):
    """提示词配置"""
    DIR: Optional[str] = None  # None 表示使用默认目录（server/prompts/）
    SCENE: str = "image_description"
    TEMPLATE: str = "default"


def _server_root() -> Path:
    # 从 image_narrator/core/config.py 回到 server 目录
    return Path(__file__).resolve().parent.parent.parent


def _load_yaml_config(config_file: Optional[Path] = None) -> dict:
    """从 YAML 文件加载配置"""
    config_file = config_file or _server_root() / "config" / "app.yaml"
    try:
        if config_file.exists():
            with open(config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f) or {}
            logger.info(f"成功加载配置文件: {config_file}")
            return config
        logger.debug(f"配置文件不存在: {config_file}，使用默认配置")
        return {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"加载 YAML 配置失败: {e}，使用默认配置")
        return {}


def _apply_yaml_config(yaml_config: dict):
    """将 YAML 中的服务器配置写入环境变量（仅当环境变量不存在时）

    仅处理 HOST / PORT / RELOAD，环境变量优先级高于 YAML。
    """
    if "server" in yaml_config:
        server_config = yaml_config["server"] or {}
        os.environ.setdefault("HOST", str(server_config.get("host", "0.0.0.0")))
        os.environ.setdefault("PORT", str(server_config.get("port", 8000)))
        os.environ.setdefault("RELOAD", str(server_config.get("reload", False)).lower())


def _provider_from_yaml(cfg: dict) -> ProviderConfig:
    vision = cfg.get("vision", {}) or {}
    tts = cfg.get("tts", {}) or {}
    timeouts = cfg.get("timeouts", {}) or {}
    return ProviderConfig(
        # 凭据只从环境变量读取，不写入 app.yaml
        API_KEY=os.getenv("OPENAI_API_KEY", ""),
        BASE_URL=str(cfg.get("base_url", "https://api.openai.com")),
        VISION_MODEL=str(vision.get("model", "gpt-4.1-mini")),
        VISION_MAX_TOKENS=int(vision.get("max_tokens", 300)),
        MAX_DESCRIPTION_CHARS=int(vision.get("max_description_chars", 800)),
        TTS_MODEL=str(tts.get("model", "gpt-4o-mini-tts")),
        TTS_VOICE=str(tts.get("voice", "onyx")),
        TTS_FORMAT=str(tts.get("format", "mp3")),
        CONNECT_TIMEOUT=float(timeouts.get("connect", 5.0)),
        VISION_TIMEOUT=float(timeouts.get("vision", 30.0)),
        TTS_TIMEOUT=float(timeouts.get("tts", 60.0)),
    )


def _admission_from_yaml(cfg: dict) -> AdmissionConfig:
    shield = cfg.get("shield", {}) or {}
    bots = cfg.get("bots", {}) or {}
    bucket = cfg.get("token_bucket", {}) or {}
    return AdmissionConfig(
        KEY=os.getenv("ADMISSION_KEY", ""),
        SHIELD_MODE=str(shield.get("mode", "LIVE")).upper(),
        BOT_MODE=str(bots.get("mode", "LIVE")).upper(),
        BOT_ALLOW=list(bots.get("allow", ["CATEGORY:SEARCH_ENGINE"]) or []),
        VERIFY_BOTS=bool(bots.get("verify", True)),
        RATE_LIMIT_MODE=str(bucket.get("mode", "LIVE")).upper(),
        REFILL_RATE=int(bucket.get("refill_rate", 5)),
        INTERVAL=float(bucket.get("interval", 60)),
        CAPACITY=int(bucket.get("capacity", 5)),
        HOSTING_IP_RANGES=list(cfg.get("hosting_ip_ranges", []) or []),
        TRUST_FORWARDED_FOR=bool(cfg.get("trust_forwarded_for", False)),
    )


class Settings(BaseSettings):
    """应用主配置"""
    app_name: str = "Image Narrator Server"

    provider: ProviderConfig = ProviderConfig()
    admission: AdmissionConfig = AdmissionConfig()
    upload: UploadConfig = UploadConfig()
    prompts: PromptsConfig = PromptsConfig()

    # 服务器配置
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def __init__(self, config_file: Optional[Path] = None, **kwargs):
        # 先加载 YAML 配置并应用到环境变量（作为默认值，仅用于服务器基础配置）
        yaml_config = _load_yaml_config(config_file)
        if yaml_config:
            _apply_yaml_config(yaml_config)

        super().__init__(**kwargs)

        # 其余配置由 app.yaml 显式解析；显式传入的参数优先
        if "provider" not in kwargs:
            self.provider = _provider_from_yaml(yaml_config.get("provider", {}) or {})
        if "admission" not in kwargs:
            self.admission = _admission_from_yaml(yaml_config.get("admission", {}) or {})
        if "upload" not in kwargs:
            upload_cfg = yaml_config.get("upload", {}) or {}
            max_mb = float(upload_cfg.get("max_file_size_mb", 10))
            self.upload = UploadConfig(MAX_FILE_SIZE_BYTES=int(max_mb * MIB))
        if "prompts" not in kwargs:
            prompts_cfg = yaml_config.get("prompts", {}) or {}
            self.prompts = PromptsConfig(
                DIR=str(prompts_cfg.get("dir")) if prompts_cfg.get("dir") is not None else None,
                SCENE=str(prompts_cfg.get("scene", "image_description")),
                TEMPLATE=str(prompts_cfg.get("template", "default")),
            )


def get_settings() -> Settings:
    """延迟创建配置，避免导入时读取环境"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


_settings: Optional[Settings] = None
