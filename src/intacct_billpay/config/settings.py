"""Configuration settings for the Intacct bill payment run."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Browser session
    cdp_url: str = Field(default="http://localhost:9222", validation_alias="CDP_URL")
    page_url_match: str = Field(
        default="www-p504.intacct.com",
        validation_alias="PAGE_URL_MATCH",
        description="Substring identifying the Intacct tab to attach to",
    )
    login_url: str = Field(
        default="https://www.intacct.com/ia/acct/login.phtml",
        validation_alias="LOGIN_URL",
    )
    browser_path: str | None = Field(default=None, validation_alias="BROWSER_PATH")
    viewport_width: int = Field(default=1600, validation_alias="VIEWPORT_WIDTH")
    viewport_height: int = Field(default=1200, validation_alias="VIEWPORT_HEIGHT")

    # Intacct credentials (only needed by the login helper)
    intacct_company: str | None = Field(default=None, validation_alias="INTACCT_COMPANY")
    intacct_login: str | None = Field(default=None, validation_alias="INTACCT_LOGIN")
    intacct_password: SecretStr | None = Field(
        default=None, validation_alias="INTACCT_PASSWORD"
    )

    # Files
    ledger_path: Path = Field(default=Path("bills.csv"), validation_alias="LEDGER_PATH")
    success_log_path: Path = Field(
        default=Path("successful_transactions.csv"), validation_alias="SUCCESS_LOG_PATH"
    )
    error_log_path: Path = Field(
        default=Path("error_transactions.csv"), validation_alias="ERROR_LOG_PATH"
    )
    pending_log_path: Path = Field(
        default=Path("pending_transactions.csv"), validation_alias="PENDING_LOG_PATH"
    )

    # Payment form choices
    bank_account_label: str = Field(
        default="CK_Operating x4047--Truist", validation_alias="BANK_ACCOUNT_LABEL"
    )
    credit_card_label: str = Field(default="CC_Truist", validation_alias="CREDIT_CARD_LABEL")

    # Timing (seconds)
    load_timeout: float = Field(default=30.0, validation_alias="LOAD_TIMEOUT")
    row_timeout: float = Field(default=10.0, validation_alias="ROW_TIMEOUT")
    settle_delay: float = Field(default=2.0, validation_alias="SETTLE_DELAY")
    method_delay: float = Field(default=1.0, validation_alias="METHOD_DELAY")

    # Session defaults
    default_batch_size: int = Field(default=5, validation_alias="DEFAULT_BATCH_SIZE")
    filter_months: int = Field(default=12, validation_alias="FILTER_MONTHS")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
