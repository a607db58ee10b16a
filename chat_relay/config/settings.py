"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。

进程启动时调用一次 load_settings() 构造 Settings，再把实例显式传给
RelayService / StreamingClient，不在导入时创建全局单例。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_relay.domain.exceptions import ConfigurationError


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_RELAY_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """relay 服务端与客户端共用的配置。"""

    # ---- Provider 相关配置 ----
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API 密钥（GEMINI_API_KEY）")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API 基础URL",
    )
    default_model: str = Field(
        default="chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )
    http_timeout: float = Field(default=30.0, ge=1.0, description="连接 Provider 的超时时间（秒）")

    # ---- 服务端 ----
    host: str = Field(default="0.0.0.0", description="监听地址")
    port: int = Field(default=5000, ge=1, le=65535, description="监听端口（PORT）")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="允许跨域的来源")
    sse_split_newlines: bool = Field(
        default=True,
        description="片段内含换行时拆成多条 data: 行；关闭则按原样写入一行",
    )

    # ---- 客户端 ----
    backend_url: str = Field(default="http://localhost:5000", description="客户端访问的 relay 地址（BACKEND_URL）")

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("gemini_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("backend_url", "gemini_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )

    def require_api_key(self) -> str:
        """服务端启动前调用；缺少密钥时直接失败，而不是等到第一个请求。"""
        if not self.gemini_api_key:
            raise ConfigurationError(
                code="MISSING_API_KEY",
                message="GEMINI_API_KEY not set",
                http_status=500,
            )
        return self.gemini_api_key


def load_settings(**overrides: Any) -> Settings:
    """构造一份配置。overrides 优先级最高，主要供测试与命令行使用。"""

    return Settings(**overrides)
