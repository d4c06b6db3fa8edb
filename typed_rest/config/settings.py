from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from typed_rest.helpers.retry import MAX_BACKOFF_WAIT_IN_SECONDS, RetryConfig
from typed_rest.version import __version__

LogLevelType = Literal["ERROR", "WARNING", "INFO", "DEBUG", "CRITICAL"]

DEFAULT_USER_AGENT = f"typed-rest/{__version__}"


class RetrySettings(BaseModel):
    max_attempts: int = Field(default=10, ge=0)
    base_delay: float = Field(default=0.1, ge=0)
    max_backoff_wait: float = Field(default=MAX_BACKOFF_WAIT_IN_SECONDS, ge=0)
    jitter_ratio: float = Field(default=0.1, ge=0, le=0.5)
    respect_retry_after_header: bool = True
    additional_retry_status_codes: list[int] = Field(default_factory=list)

    def to_retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            max_backoff_wait=self.max_backoff_wait,
            base_delay=self.base_delay,
            jitter_ratio=self.jitter_ratio,
            respect_retry_after_header=self.respect_retry_after_header,
            additional_retry_status_codes=self.additional_retry_status_codes,
        )


class ClientSettings(BaseSettings):
    """
    Settings shared by every service client. Read from the environment
    (`TYPED_REST__ENDPOINT`, `TYPED_REST__RETRY__MAX_ATTEMPTS`, ...) or a `.env`
    file; keyword arguments take precedence.
    """

    model_config = SettingsConfigDict(
        env_prefix="TYPED_REST__",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    endpoint: str
    api_version: str | None = None
    # seconds; None leaves requests unbounded unless the caller passes a deadline
    timeout: float | None = Field(default=None, gt=0)
    log_level: LogLevelType = "INFO"
    user_agent: str = DEFAULT_USER_AGENT
    credential_scopes: list[str] = Field(default_factory=list)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an absolute http(s) url")
        return value.rstrip("/")

    @property
    def scopes(self) -> list[str]:
        return self.credential_scopes or [f"{self.endpoint}/.default"]
