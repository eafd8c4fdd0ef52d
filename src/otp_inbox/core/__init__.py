"""Core types, errors and settings for OTP retrieval."""

from .errors import (
    AuthFailed,
    ConfigurationError,
    ConnectionFailed,
    MailboxError,
    MailboxUnavailable,
    OtpInboxError,
    OtpNotReceived,
    OtpRequired,
    ProtocolError,
    TlsFailed,
)
from .models import (
    CandidateMessage,
    ErrorKind,
    ExtractionResult,
    ExtractionStrategy,
    FetchOutcome,
    MailboxCredentials,
    MarkupText,
    OutcomeStatus,
    PlainText,
    TextLocation,
)
from .settings import ExtractorSettings, MailboxSettings, OtpSettings, PollingSettings

__all__ = [
    "AuthFailed",
    "ConfigurationError",
    "ConnectionFailed",
    "MailboxError",
    "MailboxUnavailable",
    "OtpInboxError",
    "OtpNotReceived",
    "OtpRequired",
    "ProtocolError",
    "TlsFailed",
    "CandidateMessage",
    "ErrorKind",
    "ExtractionResult",
    "ExtractionStrategy",
    "FetchOutcome",
    "MailboxCredentials",
    "MarkupText",
    "OutcomeStatus",
    "PlainText",
    "TextLocation",
    "ExtractorSettings",
    "MailboxSettings",
    "OtpSettings",
    "PollingSettings",
]
