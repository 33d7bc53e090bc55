from functools import lru_cache
from typing import Literal, final

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from yarl import URL


class PostgresConfig(BaseModel):
    user: str
    password: str
    host: str
    port: int = 5432
    db: str


class APIConfig(BaseModel):
    title: str = "Checkout Guard API"
    version: str = "1.0.0"
    port: int = 8000
    host: str = "0.0.0.0"
    allowed_hosts: list[str] = Field(default_factory=lambda: ["*"])
    api_key: str | None = None
    public_base_url: str | None = None


class CheckoutConfig(BaseModel):
    # Geolocation enrichment
    geolocation_api_key: str | None = None
    geolocation_api_url: str = "https://ipgeolocation.abstractapi.com/v1/"
    geolocation_timeout_seconds: float = 3.0
    geolocation_cache_ttl_seconds: int = 86_400  # 1 day
    geolocation_retry_transport_errors: bool = True

    # Client IP resolution. Only enable forwarded-for fallback behind a proxy
    # that overwrites client-supplied X-Forwarded-For values.
    trust_forwarded_ip: bool = True

    # Captcha verification
    captcha_mock_enabled: bool = True
    captcha_score_threshold: float = 0.5
    captcha_timeout_seconds: float = 5.0
    captcha_retry_transport_errors: bool = True
    recaptcha_site_key: str | None = None
    recaptcha_secret_key: str | None = None
    recaptcha_verify_url: str = "https://www.google.com/recaptcha/api/siteverify"
    recaptcha_project_id: str | None = None
    recaptcha_api_key: str | None = None
    recaptcha_enterprise_url: str = "https://recaptchaenterprise.googleapis.com/v1"
    recaptcha_expected_action: str = "checkout_validation"

    # Storefront widget configuration endpoint
    config_allowed_hosts: list[str] = Field(default_factory=list)

    # Observability rollups
    recent_default_limit: int = 50
    recent_max_limit: int = 500
    recent_default_days: int = 7
    stats_recent_days: int = 30


@final
class Config(BaseSettings):
    model_config: SettingsConfigDict = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="APP__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: Literal["local", "dev", "prod"] = "local"

    api: APIConfig = Field(default_factory=APIConfig)
    checkout: CheckoutConfig = Field(default_factory=CheckoutConfig)

    postgres: PostgresConfig | None = None
    # Full SQLAlchemy URL; takes precedence over the postgres block when set.
    database_dsn: str | None = None

    @property
    def database_url(self) -> str:
        if self.database_dsn:
            return self.database_dsn
        if self.postgres is None:
            raise ValueError("Either APP__DATABASE_DSN or APP__POSTGRES__* must be set")

        host = "localhost" if self.env == "local" else self.postgres.host
        return URL.build(
            scheme="postgresql+asyncpg",
            user=self.postgres.user,
            password=self.postgres.password,
            host=host,
            port=self.postgres.port,
            path=f"/{self.postgres.db}",
        ).human_repr()


@lru_cache
def get_config() -> Config:
    return Config()
