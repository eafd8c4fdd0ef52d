"""Bridge between a login flow and automatic code retrieval."""

from __future__ import annotations

import asyncio
import re
from typing import Optional

from otp_inbox.core.errors import (
    ConfigurationError,
    MailboxUnavailable,
    OtpNotReceived,
    OtpRequired,
)
from otp_inbox.core.models import CODE_PATTERN, OutcomeStatus
from otp_inbox.core.settings import PollingSettings
from otp_inbox.services.retriever import Duration, OtpRetriever
from otp_inbox.utils.logging import get_logger

_CODE_RE = re.compile(CODE_PATTERN)


class LoginCodeResolver:
    """Supply the verification code a login step asks for.

    A code typed by the user always wins. Without one the mailbox is polled;
    when no retriever is configured the caller must fall back to manual entry.
    """

    def __init__(
        self,
        retriever: Optional[OtpRetriever],
        *,
        timeout: Duration = 120,
        interval: Duration = 5,
        window: Optional[Duration] = 180,
    ) -> None:
        self.retriever = retriever
        self.timeout = timeout
        self.interval = interval
        self.window = window
        self.logger = get_logger("LoginCodeResolver")

    @classmethod
    def from_polling(cls, retriever: Optional[OtpRetriever], polling: PollingSettings) -> "LoginCodeResolver":
        window = polling.recent_window_minutes
        return cls(
            retriever,
            timeout=polling.timeout_seconds,
            interval=polling.interval_seconds,
            window=window * 60 if window is not None else None,
        )

    @property
    def configured(self) -> bool:
        return self.retriever is not None

    def resolve(self, manual_code: Optional[str] = None) -> str:
        if manual_code is not None:
            code = manual_code.strip()
            if not _CODE_RE.match(code):
                raise ConfigurationError("a verification code is exactly six digits")
            return code

        if self.retriever is None:
            raise OtpRequired("automatic code retrieval is not configured; enter the code manually")

        self.logger.info("Waiting for verification email...")
        outcome = self.retriever.wait_for(self.timeout, self.interval, window=self.window)
        if outcome.found:
            return outcome.code
        if outcome.status is OutcomeStatus.ERROR:
            raise MailboxUnavailable(outcome.error, outcome.detail)
        raise OtpNotReceived(f"no verification code received within {outcome.elapsed_seconds or 0:.0f}s")

    async def resolve_async(self, manual_code: Optional[str] = None) -> str:
        return await asyncio.to_thread(self.resolve, manual_code)
