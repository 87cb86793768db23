from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = Field(alias="DATABASE_URL")

    # JWT Configuration (tokens are issued by the identity service)
    secret_key: str = Field(alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=30, alias="ACCESS_TOKEN_EXPIRE_MINUTES"
    )

    # Validator execution
    rule_timeout_seconds: float = Field(default=10.0, ge=0, alias="RULE_TIMEOUT_SECONDS")

    # Bought accounts are confirmed automatically once this window closes
    account_auto_confirm_minutes: int = Field(
        default=60, ge=0, alias="ACCOUNT_AUTO_CONFIRM_MINUTES"
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    frontend_url: str | None = Field(default=None, alias="FRONTEND_URL")

    @field_validator("frontend_url", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for optional string fields."""
        if v == "":
            return None
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
