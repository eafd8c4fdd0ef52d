"""Exception hierarchy for mailbox access and login-code resolution."""

from __future__ import annotations

from typing import Optional

from otp_inbox.core.models import ErrorKind


class OtpInboxError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(OtpInboxError, ValueError):
    """Invalid credentials or polling parameters."""


class MailboxError(OtpInboxError):
    """Failure talking to the mailbox. Never crosses the retriever boundary."""

    kind: ErrorKind = ErrorKind.PROTOCOL_ERROR
    retryable: bool = False

    def __init__(self, message: str = "", *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message or self.kind.value)
        self.cause = cause


class ConnectionFailed(MailboxError):
    kind = ErrorKind.CONNECTION_FAILED
    retryable = True


class TlsFailed(MailboxError):
    kind = ErrorKind.TLS_FAILED


class AuthFailed(MailboxError):
    kind = ErrorKind.AUTH_FAILED


class ProtocolError(MailboxError):
    kind = ErrorKind.PROTOCOL_ERROR
    retryable = True


class OtpRequired(OtpInboxError):
    """Automatic retrieval is not configured; the code must be entered manually."""


class OtpNotReceived(OtpInboxError):
    """The mailbox was reachable but no code arrived in time."""


class MailboxUnavailable(OtpInboxError):
    """The mailbox could not be used to retrieve a code."""

    def __init__(self, kind: ErrorKind, detail: Optional[str] = None) -> None:
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)
        self.kind = kind
        self.detail = detail
