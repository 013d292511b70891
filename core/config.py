"""
配置文件 - 项目配置管理

All settings are read once at startup (env vars or `.env`) and are not
reloadable. Grouped settings use nested models with the `__` delimiter,
e.g. `WEATHER__API_KEY` or `REALTIME__POLL_INTERVAL`.
"""
import json
from typing import Annotated, Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_CITIES = ["London", "New York", "Tokyo", "Paris", "Sydney", "Dubai"]


def _parse_str_list(v: Any) -> Any:
    """允许 JSON 字符串或逗号分隔字符串两种格式。"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        s = v.strip()
        if s.startswith("[") and s.endswith("]"):
            try:
                arr = json.loads(s)
                if isinstance(arr, list):
                    return arr
            except ValueError:
                pass
        if "," in s:
            return [item.strip() for item in s.split(",") if item.strip()]
        return [s] if s else []
    return v


class WeatherApiSettings(BaseModel):
    api_key: Optional[str] = None
    base_url: str = "http://api.weatherapi.com/v1"
    # per-request timeout, seconds
    timeout: float = 5.0
    # 0 = one attempt per topic per cycle
    max_retries: int = 0
    retry_delay: float = 0.5


class RealtimeSettings(BaseModel):
    cities: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_CITIES))
    initial_delay: float = 5.0
    inter_topic_delay: float = 1.0
    poll_interval: float = 30.0
    send_timeout: float = 5.0
    producer_enabled: bool = True
    welcome_message: str = "Connected to Real-Time Weather Server"

    @field_validator("cities", mode="before")
    @classmethod
    def _parse_cities(cls, v):
        return _parse_str_list(v)

    @field_validator("cities")
    @classmethod
    def _dedupe_cities(cls, v: list[str]) -> list[str]:
        # keep configured order, drop blanks and repeats
        seen: list[str] = []
        for city in v:
            city = city.strip()
            if city and city not in seen:
                seen.append(city)
        return seen


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Weather Relay")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: Optional[str] = Field(default=None, description="覆盖默认日志级别 (DEBUG/INFO/...)")

    # 监听地址
    HOST: str = Field(default="localhost")
    PORT: int = Field(default=8080)

    weather: WeatherApiSettings = Field(default_factory=WeatherApiSettings)
    realtime: RealtimeSettings = Field(default_factory=RealtimeSettings)

    # CORS配置
    CORS_ORIGINS: Annotated[list[str], NoDecode] = Field(default=["http://localhost:3000", "http://localhost:8080"])

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @model_validator(mode="after")
    def _validate_api_key(self):
        # 上游天气接口必须配置 key，否则每个周期的所有拉取都会失败
        if not self.weather.api_key:
            raise ValueError(
                "WEATHER__API_KEY 未配置。请在环境变量或 .env 中设置 WEATHER__API_KEY"
            )
        return self

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        return _parse_str_list(v)


settings = Settings()
