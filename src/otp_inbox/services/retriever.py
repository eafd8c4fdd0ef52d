"""Public entry points for retrieving a verification code from the mailbox."""

from __future__ import annotations

import asyncio
import datetime as dt
import threading
import time
from typing import Callable, Optional, Union

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_none

from otp_inbox.core.errors import ConfigurationError, MailboxError, ProtocolError
from otp_inbox.core.models import FetchOutcome, MailboxCredentials
from otp_inbox.core.settings import OtpSettings
from otp_inbox.services.extractor import CodeExtractor
from otp_inbox.services.mailbox import MailboxSession
from otp_inbox.services.selector import MessageSelector
from otp_inbox.utils.logging import get_logger, mask_code

Duration = Union[int, float, dt.timedelta]
SessionFactory = Callable[[], MailboxSession]


def _seconds(value: Duration) -> float:
    if isinstance(value, dt.timedelta):
        return value.total_seconds()
    return float(value)


def _window(value: Optional[Duration]) -> Optional[dt.timedelta]:
    if value is None:
        return None
    seconds = _seconds(value)
    if seconds <= 0:
        raise ConfigurationError("window must be positive")
    return dt.timedelta(seconds=seconds)


class OtpRetriever:
    """Find, extract and consume verification codes.

    Every call returns a FetchOutcome; mailbox failures are reported as
    error outcomes and never raised. A session is opened per call unless the
    retriever is used as a context manager, in which case one session is
    reused until the block exits.
    """

    def __init__(
        self,
        credentials: Optional[MailboxCredentials] = None,
        *,
        extractor: Optional[CodeExtractor] = None,
        session_factory: Optional[SessionFactory] = None,
        folder: str = "INBOX",
        timeout: float = 10.0,
        selector: Optional[MessageSelector] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if session_factory is None:
            if credentials is None:
                raise ConfigurationError("credentials are required to open a mailbox session")
            selector = selector or MessageSelector()

            def open_session() -> MailboxSession:
                return MailboxSession(credentials, folder=folder, timeout=timeout, selector=selector)

            session_factory = open_session

        self._session_factory = session_factory
        self.extractor = extractor or CodeExtractor()
        self._clock = clock
        self._sleep = sleep
        self._session: Optional[MailboxSession] = None
        self._managed = False
        self._lock = threading.RLock()
        self.logger = get_logger("OtpRetriever")

    # -- public API -------------------------------------------------------

    def fetch_latest(self) -> FetchOutcome:
        """Single pass over every unread message."""
        return self._fetch(None)

    def fetch_recent(self, window: Duration) -> FetchOutcome:
        """Single pass over unread messages received within `window`."""
        return self._fetch(_window(window))

    def wait_for(
        self,
        timeout: Duration,
        interval: Duration,
        *,
        window: Optional[Duration] = None,
    ) -> FetchOutcome:
        """Poll every `interval` until a code is found or `timeout` elapses.

        Connection and protocol errors are retried on the next tick;
        authentication and TLS failures end the wait immediately. When
        `window` is given each poll only considers messages that recent.
        """
        timeout_s, interval_s = _seconds(timeout), _seconds(interval)
        if not 0 < interval_s <= timeout_s:
            raise ConfigurationError(
                f"interval ({interval_s}s) must be > 0 and <= timeout ({timeout_s}s)"
            )
        since = _window(window)

        with self._lock:
            start = self._clock()
            attempts = 0
            reached_mailbox = False
            last_error: Optional[MailboxError] = None
            try:
                while True:
                    attempts += 1
                    try:
                        outcome = self._pass_with_retry(since)
                    except MailboxError as exc:
                        self._discard_session()
                        elapsed = self._clock() - start
                        if exc.kind.fatal:
                            self.logger.error("Giving up on mailbox: %s", exc)
                            return FetchOutcome.failed(
                                exc.kind, str(exc), elapsed_seconds=elapsed, attempts=attempts
                            )
                        self.logger.warning("Poll #%d failed, will retry: %s", attempts, exc)
                        last_error = exc
                    else:
                        reached_mailbox = True
                        elapsed = self._clock() - start
                        if outcome.found:
                            return outcome.model_copy(
                                update={"elapsed_seconds": elapsed, "attempts": attempts}
                            )

                    if elapsed >= timeout_s:
                        if not reached_mailbox and last_error is not None:
                            return FetchOutcome.failed(
                                last_error.kind,
                                str(last_error),
                                elapsed_seconds=elapsed,
                                attempts=attempts,
                            )
                        self.logger.info("No code received within %.0fs", timeout_s)
                        return FetchOutcome.timed_out(elapsed_seconds=elapsed, attempts=attempts)

                    remaining = timeout_s - elapsed
                    self.logger.info("Poll #%d: no code yet, %.0fs remaining", attempts, remaining)
                    self._sleep(min(interval_s, remaining))
            finally:
                self._release()

    async def fetch_latest_async(self) -> FetchOutcome:
        return await asyncio.to_thread(self.fetch_latest)

    async def fetch_recent_async(self, window: Duration) -> FetchOutcome:
        return await asyncio.to_thread(self.fetch_recent, window)

    async def wait_for_async(
        self,
        timeout: Duration,
        interval: Duration,
        *,
        window: Optional[Duration] = None,
    ) -> FetchOutcome:
        return await asyncio.to_thread(self.wait_for, timeout, interval, window=window)

    def close(self) -> None:
        with self._lock:
            self._managed = False
            self._discard_session()

    def __enter__(self) -> "OtpRetriever":
        with self._lock:
            self._managed = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- internals --------------------------------------------------------

    def _fetch(self, since: Optional[dt.timedelta]) -> FetchOutcome:
        with self._lock:
            try:
                return self._pass_with_retry(since)
            except MailboxError as exc:
                self._discard_session()
                self.logger.error("Mailbox unavailable: %s", exc)
                return FetchOutcome.failed(exc.kind, str(exc))
            finally:
                self._release()

    def _pass_with_retry(self, since: Optional[dt.timedelta]) -> FetchOutcome:
        retrying = Retrying(
            stop=stop_after_attempt(2),
            wait=wait_none(),
            retry=retry_if_exception_type(ProtocolError),
            before_sleep=lambda state: self._discard_session(),
            reraise=True,
        )
        return retrying(self._single_pass, since)

    def _single_pass(self, since: Optional[dt.timedelta]) -> FetchOutcome:
        session = self._acquire()
        for message in session.list_unread(since):
            result = self.extractor.extract_message(message)
            if result is None:
                continue
            session.mark_read(message.uid)
            self.logger.info(
                "Found code %s in message %s via %s",
                mask_code(result.code),
                message.uid,
                result.strategy.value,
            )
            return FetchOutcome.found_result(result)
        return FetchOutcome.not_found()

    def _acquire(self) -> MailboxSession:
        if self._session is None or not self._session.is_open:
            self._session = self._session_factory().connect()
        return self._session

    def _release(self) -> None:
        if not self._managed:
            self._discard_session()

    def _discard_session(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.close()


def from_settings(settings: OtpSettings) -> Optional[OtpRetriever]:
    """Build a retriever, or return None when the mailbox is not configured."""
    credentials = settings.mailbox.credentials()
    if credentials is None:
        return None
    mailbox = settings.mailbox
    return OtpRetriever(
        credentials,
        extractor=CodeExtractor(
            settings.extractor.product_name,
            context_window=settings.extractor.context_window,
        ),
        folder=mailbox.folder,
        timeout=mailbox.timeout_seconds,
        selector=MessageSelector(subject_hint=mailbox.subject_hint, lookback=mailbox.lookback),
    )
