"""Data models shared across the OTP retrieval components."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

CODE_PATTERN = r"^[0-9]{6}$"


class ErrorKind(str, Enum):
    """Reasons a mailbox could not be used."""

    CONNECTION_FAILED = "connection_failed"
    TLS_FAILED = "tls_failed"
    AUTH_FAILED = "auth_failed"
    PROTOCOL_ERROR = "protocol_error"

    @property
    def fatal(self) -> bool:
        """Fatal kinds will not be fixed by waiting and retrying."""
        return self in (ErrorKind.AUTH_FAILED, ErrorKind.TLS_FAILED)


class OutcomeStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    TIMED_OUT = "timed_out"
    ERROR = "error"


class ExtractionStrategy(str, Enum):
    """Extraction rules, most specific first."""

    EXACT_PHRASE = "exact_phrase"
    GENERIC_PHRASE = "generic_phrase"
    MARKUP_SPAN = "markup_span"
    CONTEXTUAL = "contextual"


class TextLocation(str, Enum):
    SUBJECT = "subject"
    PLAIN = "plain"
    MARKUP = "markup"


class MailboxCredentials(BaseModel):
    """Address, secret and endpoint of the mailbox that receives codes."""

    model_config = ConfigDict(frozen=True)

    address: str
    secret: SecretStr
    host: str = "mail.inbox.lv"
    port: int = Field(default=993, gt=0, lt=65536)

    @field_validator("address", "host")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("secret")
    @classmethod
    def _secret_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("must not be empty")
        return value


class PlainText(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["plain"] = "plain"
    text: str


class MarkupText(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["markup"] = "markup"
    markup: str


BodyPart = Annotated[Union[PlainText, MarkupText], Field(discriminator="kind")]


class CandidateMessage(BaseModel):
    """Read-only snapshot of an unread message taken during one query."""

    model_config = ConfigDict(frozen=True)

    uid: str
    subject: str = ""
    parts: Tuple[BodyPart, ...] = ()
    received_at: Optional[dt.datetime] = None
    seen: bool = False

    @property
    def plain_parts(self) -> Tuple[PlainText, ...]:
        return tuple(part for part in self.parts if isinstance(part, PlainText))

    @property
    def markup_parts(self) -> Tuple[MarkupText, ...]:
        return tuple(part for part in self.parts if isinstance(part, MarkupText))


class ExtractionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str = Field(pattern=CODE_PATTERN)
    strategy: ExtractionStrategy
    location: TextLocation
    message_id: Optional[str] = None


class FetchOutcome(BaseModel):
    """The single value type returned by every retrieval call."""

    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    result: Optional[ExtractionResult] = None
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None
    elapsed_seconds: Optional[float] = None
    attempts: int = 1

    @model_validator(mode="after")
    def _check_consistency(self) -> "FetchOutcome":
        if (self.status is OutcomeStatus.FOUND) != (self.result is not None):
            raise ValueError("a result is required exactly when a code was found")
        if (self.status is OutcomeStatus.ERROR) != (self.error is not None):
            raise ValueError("an error kind is required exactly for error outcomes")
        return self

    @classmethod
    def found_result(cls, result: ExtractionResult, **extra) -> "FetchOutcome":
        return cls(status=OutcomeStatus.FOUND, result=result, **extra)

    @classmethod
    def not_found(cls, **extra) -> "FetchOutcome":
        return cls(status=OutcomeStatus.NOT_FOUND, **extra)

    @classmethod
    def timed_out(cls, **extra) -> "FetchOutcome":
        return cls(status=OutcomeStatus.TIMED_OUT, **extra)

    @classmethod
    def failed(cls, kind: ErrorKind, detail: Optional[str] = None, **extra) -> "FetchOutcome":
        return cls(status=OutcomeStatus.ERROR, error=kind, detail=detail, **extra)

    @property
    def found(self) -> bool:
        return self.status is OutcomeStatus.FOUND

    @property
    def code(self) -> Optional[str]:
        return self.result.code if self.result else None

    @property
    def requires_manual_entry(self) -> bool:
        """No code yet although the mailbox answered."""
        return self.status in (OutcomeStatus.NOT_FOUND, OutcomeStatus.TIMED_OUT)

    @property
    def mailbox_unreachable(self) -> bool:
        return self.status is OutcomeStatus.ERROR
