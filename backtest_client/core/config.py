import os
import yaml
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel
from backtest_client.core.exceptions import ConfigurationError


class SystemConfig(BaseModel):
    enable_logging: bool = True
    log_dir: Optional[str] = None


class ApiConfig(BaseModel):
    base_url: str = "http://localhost:3000"
    request_timeout: float = 30.0
    strategies_path: str = "/api/strategy"
    available_candles_path: str = "/api/candles/available"
    candles_path: str = "/api/candles"
    backtest_path: str = "/api/backtest"
    stream_path: str = "/api/backtest/stream"


class StreamConfig(BaseModel):
    reconnect_delay: float = 3.0


class PresenterConfig(BaseModel):
    page_size: int = 20


class Settings(BaseSettings):
    system: SystemConfig = SystemConfig()
    api: ApiConfig = ApiConfig()
    stream: StreamConfig = StreamConfig()
    presenter: PresenterConfig = PresenterConfig()

    model_config = SettingsConfigDict(
        env_prefix="BACKTEST_", env_file=".env", env_nested_delimiter="__"
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        # 环境变量优先于 YAML 文件
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @classmethod
    def load_from_yaml(cls, path: str = None) -> "Settings":
        if path is None:
            # Default to backtest_client/core/config.yaml
            path = os.path.join(os.path.dirname(__file__), "config.yaml")

        if not os.path.exists(path):
            return cls()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def get_api_base_url(self) -> str:
        """
        Get the backend base URL without a trailing slash.
        """
        base_url = (self.api.base_url or "").strip()

        if not base_url:
            raise ConfigurationError("Backend base_url is missing in configuration")

        return base_url.rstrip("/")


# Singleton instance
settings = Settings.load_from_yaml()
