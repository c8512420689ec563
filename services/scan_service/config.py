from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="SCAN_", extra="ignore")

    port: int = 8000
    environment: str = Field(default="development")
    service_name: str = Field(default="page_scanner")

    user_agent: str = Field(default="PageScanner/1.0 (+single-page quality audit)")

    # Browser
    browser_executable_path: str | None = Field(default=None)
    viewport_width: int = Field(default=1440)
    viewport_height: int = Field(default=900)
    mobile_viewport_width: int = Field(default=390)
    mobile_viewport_height: int = Field(default=844)
    screenshot_quality: int = Field(default=60, ge=1, le=100)
    highlight_screenshot_quality: int = Field(default=70, ge=1, le=100)

    # Timeouts (milliseconds for browser operations, seconds otherwise)
    operation_timeout_ms: int = Field(default=25_000)
    navigation_timeout_ms: int = Field(default=20_000)
    body_wait_timeout_ms: int = Field(default=5_000)
    request_timeout_s: float = Field(default=60.0)
    header_fetch_timeout_s: float = Field(default=8.0)
    sitemap_fetch_timeout_s: float = Field(default=5.0)
    link_probe_timeout_s: float = Field(default=5.0)
    highlight_settle_s: float = Field(default=0.3)
    element_settle_s: float = Field(default=0.15)
    mobile_settle_s: float = Field(default=1.0)

    # Request guard
    max_url_length: int = Field(default=2048)
    rate_limit_max_requests: int = Field(default=5)
    rate_limit_window_s: int = Field(default=60)
    rate_limit_backend: str = Field(default="memory")
    redis_url: str | None = Field(default=None)
    resolve_hostnames: bool = Field(default=True)

    # Checkers
    feature_config_path: str = Field(default="scanner.config.json")
    max_link_checks: int = Field(default=15)
    link_check_concurrency: int = Field(default=5)
    max_element_screenshots: int = Field(default=15)
    max_sitemap_children: int = Field(default=3)
    max_sitemap_urls: int = Field(default=1000)

    cors_origins: str = Field(default="*")

    @field_validator("rate_limit_backend")
    @classmethod
    def validate_rate_limit_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "redis"):
            raise ValueError("rate_limit_backend must be 'memory' or 'redis'")
        return v

    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
