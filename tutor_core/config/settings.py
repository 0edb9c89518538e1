"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("TUTOR_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
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


def sum_tier_timeouts(credential_timeout: float, personalized_timeout: float, generic_timeout: float) -> float:
    """未显式配置总时限时，取凭证查询与两层 Provider 超时之和。"""

    return credential_timeout + personalized_timeout + generic_timeout


class TutorSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Supabase / Edge Function ----
    supabase_url: Optional[str] = Field(default=None, description="Supabase 项目 URL")
    supabase_anon_key: Optional[str] = Field(default=None, description="Supabase anon key")
    ai_function_name: str = Field(
        default="ai-teacher",
        description="生成回复的 Edge Function 名称",
    )

    # ---- 凭证存储 ----
    credential_backend: str = Field(
        default="supabase",
        description="凭证存储后端：supabase 或 json",
    )
    credential_table: str = Field(default="user_settings", description="凭证所在的表")
    credential_column: str = Field(default="deepseek_api_key", description="凭证所在的列")
    credential_file: str = Field(
        default=".storage/credentials.json",
        description="json 后端使用的凭证文件",
    )

    # ---- 超时（秒） ----
    credential_timeout: float = Field(default=3.0, gt=0, description="凭证查询超时")
    personalized_timeout: float = Field(default=20.0, gt=0, description="个性化 Provider 超时")
    generic_timeout: float = Field(default=15.0, gt=0, description="通用 Provider 超时")
    pipeline_deadline: Optional[float] = Field(
        default=None,
        gt=0,
        description="整条回复链路的总时限，为空时取各层超时之和",
    )

    heuristic_seed: Optional[int] = Field(default=None, description="本地兜底回复的随机种子")

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

    @field_validator("credential_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in {"supabase", "json"}:
            raise ValueError(f"Unknown credential backend: {v!r}")
        return v

    @field_validator("supabase_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()

    def effective_deadline(self) -> float:
        """整条链路的总时限。"""

        if self.pipeline_deadline is not None:
            return self.pipeline_deadline
        return sum_tier_timeouts(self.credential_timeout, self.personalized_timeout, self.generic_timeout)

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


settings = TutorSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = TutorSettings
