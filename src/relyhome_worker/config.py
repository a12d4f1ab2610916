"""Configuration objects for the RelyHome worker."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration pulled from environment variables."""

    worker_secret: Optional[SecretStr] = Field(
        default=None,
        validation_alias="AUTOMATION_WORKER_SECRET",
        description="Shared secret callers must echo; unset disables the check.",
    )
    username: Optional[str] = Field(default=None, validation_alias="RELYHOME_USERNAME")
    password: Optional[SecretStr] = Field(default=None, validation_alias="RELYHOME_PASSWORD")
    base_url: str = Field(default="https://relyhome.com", validation_alias="RELYHOME_BASE_URL")
    headless: bool = Field(default=True, validation_alias="RELYHOME_HEADLESS")
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=3000, validation_alias="PORT")

    navigation_timeout_ms: int = Field(default=30_000, validation_alias="RELYHOME_NAVIGATION_TIMEOUT_MS")
    scrape_timeout_ms: int = Field(default=20_000, validation_alias="RELYHOME_SCRAPE_TIMEOUT_MS")
    login_form_timeout_ms: int = Field(default=15_000, validation_alias="RELYHOME_LOGIN_FORM_TIMEOUT_MS")
    login_redirect_timeout_ms: int = Field(default=25_000, validation_alias="RELYHOME_LOGIN_REDIRECT_TIMEOUT_MS")
    login_redirect_wait_ms: int = Field(default=15_000, validation_alias="RELYHOME_LOGIN_REDIRECT_WAIT_MS")
    post_login_settle_ms: int = Field(default=3_000, validation_alias="RELYHOME_POST_LOGIN_SETTLE_MS")
    login_settle_ms: int = Field(default=2_000, validation_alias="RELYHOME_LOGIN_SETTLE_MS")
    page_settle_ms: int = Field(default=1_500, validation_alias="RELYHOME_PAGE_SETTLE_MS")
    scrape_settle_ms: int = Field(default=2_000, validation_alias="RELYHOME_SCRAPE_SETTLE_MS")
    input_pause_ms: int = Field(default=100, validation_alias="RELYHOME_INPUT_PAUSE_MS")
    pre_submit_pause_ms: int = Field(default=500, validation_alias="RELYHOME_PRE_SUBMIT_PAUSE_MS")
    submit_navigation_timeout_ms: int = Field(default=15_000, validation_alias="RELYHOME_SUBMIT_NAVIGATION_TIMEOUT_MS")
    submit_wait_ms: int = Field(default=5_000, validation_alias="RELYHOME_SUBMIT_WAIT_MS")
    portal_link_settle_ms: int = Field(default=1_500, validation_alias="RELYHOME_PORTAL_LINK_SETTLE_MS")
    keystroke_delay_ms: int = Field(default=30, validation_alias="RELYHOME_KEYSTROKE_DELAY_MS")

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def login_url(self) -> str:
        """Portal login page."""
        return f"{self.base_url.rstrip('/')}/login"

    @property
    def available_jobs_url(self) -> str:
        """Untokenized available-jobs listing used as the portal fallback."""
        return f"{self.base_url.rstrip('/')}/jobs/accept/available-swo.php"

    @property
    def portal_host(self) -> str:
        return urlparse(self.base_url).hostname or ""

    def default_credentials(self) -> Optional[tuple[str, str]]:
        """Configured credentials for unattended session recovery, if both halves are set."""
        if not self.username or not self.password:
            return None
        password = self.password.get_secret_value()
        if not password:
            return None
        return self.username, password
