"""
Configuration management for consultlog.
Loads from config/consultlog.yaml and environment variables.
"""

from pathlib import Path
from typing import Optional, Dict, Any
import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class LLMConfig(BaseSettings):
    """Text-completion backend configuration."""
    provider: str = Field(default="openai")  # openai (compatible), anthropic
    base_url: str = Field(default="https://api.alluser.site/v1", alias="LLM_BASE_URL")
    api_key: Optional[str] = Field(default=None, alias="LLM_API_KEY")
    api_key_header: str = Field(default="X-API-Key")
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    default_model: str = Field(default="gemma3:4b-it-q4_K_M", alias="LLM_DEFAULT_MODEL")
    temperature: float = Field(default=0.7)
    max_tokens: int = Field(default=2000)
    timeout_seconds: float = Field(default=120.0)
    incomplete_retries: int = Field(default=2)

    model_config = SettingsConfigDict(env_prefix="LLM_", extra="ignore")


class BehaviorConfig(BaseSettings):
    """Behavior-record draft generation configuration."""
    max_consultations: int = Field(default=20)
    max_note_chars: int = Field(default=240)
    min_length: int = Field(default=400)
    max_length: int = Field(default=500)
    max_rewrite_attempts: int = Field(default=4)
    enforce_length: bool = Field(default=False)

    model_config = SettingsConfigDict(env_prefix="BEHAVIOR_", extra="ignore")


class StoreConfig(BaseSettings):
    """Consultation store configuration."""
    db_path: Path = Field(default=Path("data/consultlog.sqlite"), alias="STORE_DB_PATH")

    model_config = SettingsConfigDict(env_prefix="STORE_", extra="ignore")


class LockoutConfig(BaseSettings):
    """Login lockout configuration."""
    threshold: int = Field(default=10, alias="LOCKOUT_THRESHOLD")

    model_config = SettingsConfigDict(env_prefix="LOCKOUT_", extra="ignore")


class ApiConfig(BaseSettings):
    """API server configuration."""
    host: str = Field(default="0.0.0.0", alias="API_HOST")
    port: int = Field(default=8000, alias="API_PORT")
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    rate_limit_requests_per_minute: int = Field(default=30, alias="API_RATE_LIMIT_RPM")

    model_config = SettingsConfigDict(env_prefix="API_", extra="ignore")


class ConsultLogSettings(BaseSettings):
    """Main consultlog configuration."""
    env: str = Field(default="dev", alias="CONSULTLOG_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Path = Field(default=Path("logs/consultlog.log"), alias="LOG_FILE")

    # Sub-configurations
    api: ApiConfig = Field(default_factory=ApiConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    behavior: BehaviorConfig = Field(default_factory=BehaviorConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    lockout: LockoutConfig = Field(default_factory=LockoutConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow"
    )

    @classmethod
    def load_from_yaml(cls, config_path: Optional[Path] = None) -> "ConsultLogSettings":
        """Load settings from YAML file and merge with environment variables."""
        if config_path is None:
            config_path = Path("config/consultlog.yaml")

        config_dict: Dict[str, Any] = {}

        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
                config_dict = yaml_data.get("consultlog", {})

        # Flatten api.rate_limit.requests_per_minute if present
        if "api" in config_dict and isinstance(config_dict["api"], dict):
            api_cfg = dict(config_dict["api"])
            rate_limit = api_cfg.get("rate_limit")
            if isinstance(rate_limit, dict) and "requests_per_minute" in rate_limit:
                api_cfg["rate_limit_requests_per_minute"] = rate_limit["requests_per_minute"]
            if "rate_limit" in api_cfg:
                del api_cfg["rate_limit"]
            config_dict["api"] = api_cfg

        return cls(**config_dict)


# Global settings instance
_settings: Optional[ConsultLogSettings] = None


def get_settings() -> ConsultLogSettings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = ConsultLogSettings.load_from_yaml()
    return _settings


# Alias for convenience
settings = get_settings()
