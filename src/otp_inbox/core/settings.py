"""Runtime settings loader."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, model_validator

from otp_inbox.core.models import MailboxCredentials
from otp_inbox.utils.env import get_env, get_int_env


class MailboxSettings(BaseModel):
    address: str = ""
    password: SecretStr = SecretStr("")
    host: str = "mail.inbox.lv"
    port: int = 993
    folder: str = "INBOX"
    timeout_seconds: float = Field(default=10.0, gt=0, le=60)  # socket timeout per IMAP call
    subject_hint: Optional[str] = "security code"
    lookback: int = Field(default=50, ge=1)

    @property
    def configured(self) -> bool:
        return bool(self.address.strip() and self.password.get_secret_value())

    def credentials(self) -> Optional[MailboxCredentials]:
        """Return credentials, or None when address or password is missing."""
        if not self.configured:
            return None
        return MailboxCredentials(
            address=self.address,
            secret=self.password,
            host=self.host,
            port=self.port,
        )


class ExtractorSettings(BaseModel):
    product_name: str = "Axiom"
    context_window: int = Field(default=80, ge=0)


class PollingSettings(BaseModel):
    timeout_seconds: float = 120.0
    interval_seconds: float = 5.0
    recent_window_minutes: Optional[float] = Field(default=3.0, gt=0)

    @model_validator(mode="after")
    def _check_interval(self) -> "PollingSettings":
        if not 0 < self.interval_seconds <= self.timeout_seconds:
            raise ValueError("interval_seconds must be > 0 and <= timeout_seconds")
        return self


class OtpSettings(BaseModel):
    mailbox: MailboxSettings = Field(default_factory=MailboxSettings)
    extractor: ExtractorSettings = Field(default_factory=ExtractorSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)

    @classmethod
    def from_file(cls, path: Path) -> "OtpSettings":
        data = yaml.safe_load(path.read_text()) or {}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid OTP settings: {exc}") from exc

    @classmethod
    def from_env(cls) -> "OtpSettings":
        """Build settings from OTP_MAILBOX_* variables (INBOX_LV_* accepted too)."""
        defaults = MailboxSettings()
        mailbox = {
            "address": get_env("OTP_MAILBOX_ADDRESS", "INBOX_LV_EMAIL", default=""),
            "password": get_env("OTP_MAILBOX_PASSWORD", "INBOX_LV_PASSWORD", default=""),
            "host": get_env("OTP_MAILBOX_HOST", default=defaults.host),
            "port": get_int_env("OTP_MAILBOX_PORT", default=defaults.port),
            "folder": get_env("OTP_MAILBOX_FOLDER", default=defaults.folder),
        }
        extractor = {"product_name": get_env("OTP_PRODUCT_NAME", default=ExtractorSettings().product_name)}
        try:
            return cls.model_validate({"mailbox": mailbox, "extractor": extractor})
        except ValidationError as exc:
            raise ValueError(f"Invalid OTP settings: {exc}") from exc
