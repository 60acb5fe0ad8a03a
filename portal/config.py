from functools import lru_cache
from typing import Optional

from pydantic import Field, PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    mongo_url: str = Field("mongodb://localhost:27017", validation_alias="MONGO_URL")
    mongo_db_name: str = Field("portal", validation_alias="MONGO_DB_NAME")
    jwt_secret: str = Field("change-me", validation_alias="JWT_SECRET")
    jwt_algorithm: str = Field("HS256", validation_alias="JWT_ALGORITHM")
    jwt_audience: Optional[str] = Field(None, validation_alias="JWT_AUDIENCE")
    redis_url: Optional[str] = Field(None, validation_alias="REDIS_URL")
    fcm_service_account_file: Optional[str] = Field(None, validation_alias="FCM_SERVICE_ACCOUNT_FILE")
    fcm_project_id: Optional[str] = Field(None, validation_alias="FCM_PROJECT_ID")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    # per-channel scan windows for the mention aggregator
    mention_recent_window: PositiveInt = Field(50, validation_alias="MENTION_RECENT_WINDOW")
    mention_all_window: PositiveInt = Field(100, validation_alias="MENTION_ALL_WINDOW")
    recent_mentions_limit: PositiveInt = Field(3, validation_alias="RECENT_MENTIONS_LIMIT")
    recent_saved_limit: PositiveInt = Field(3, validation_alias="RECENT_SAVED_LIMIT")

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
