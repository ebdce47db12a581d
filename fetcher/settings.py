"""Environment settings powered by Pydantic BaseSettings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from fetcher.config import FetcherConfig
from fetcher.constants import DEFAULT_TIMEOUT_SECONDS


class FetcherSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FETCHER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    magic_vars: bool = False
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    strict_decoding: bool = False
    verify_tls: bool = False
    log_level: str = "INFO"
    log_json: bool = True

    def to_config(self) -> FetcherConfig:
        """Build a FetcherConfig from the environment values."""
        return FetcherConfig(
            magic_vars=self.magic_vars,
            timeout=self.timeout,
            strict_decoding=self.strict_decoding,
            verify_tls=self.verify_tls,
        )


def get_settings() -> FetcherSettings:
    """Get a settings instance."""
    return FetcherSettings()
