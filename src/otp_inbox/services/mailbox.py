"""IMAP mailbox session used to locate and consume verification-code messages."""

from __future__ import annotations

import datetime as dt
import imaplib
import ssl
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Type

from otp_inbox.core.errors import (
    AuthFailed,
    ConnectionFailed,
    MailboxError,
    ProtocolError,
    TlsFailed,
)
from otp_inbox.core.models import CandidateMessage, MailboxCredentials
from otp_inbox.services.selector import MessageSelector, parse_fetch_response
from otp_inbox.utils.logging import get_logger

_FETCH_ITEMS = "(UID FLAGS INTERNALDATE BODY.PEEK[])"


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class MailboxSession:
    """One TLS-secured IMAP connection with the target folder selected.

    A session is not safe for concurrent use; callers checking several
    accounts at once need one session per account.
    """

    def __init__(
        self,
        credentials: MailboxCredentials,
        *,
        folder: str = "INBOX",
        timeout: float = 10.0,
        selector: Optional[MessageSelector] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
        now: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self.credentials = credentials
        self.folder = folder
        self.timeout = timeout
        self.selector = selector or MessageSelector()
        self._ssl_context = ssl_context
        self._now = now
        self._client: Optional[imaplib.IMAP4] = None
        self._selected = False
        self.logger = get_logger("MailboxSession")

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def connect(self) -> "MailboxSession":
        """Open the connection, authenticate and select the folder.

        Raises ConnectionFailed, TlsFailed or AuthFailed so that callers can
        tell a network problem from a certificate or credential problem.
        """
        if self._client is not None:
            return self
        host, port = self.credentials.host, self.credentials.port
        context = self._ssl_context or ssl.create_default_context()
        try:
            client = imaplib.IMAP4_SSL(host, port, ssl_context=context, timeout=self.timeout)
        except ssl.SSLError as exc:
            raise TlsFailed(f"TLS negotiation with {host}:{port} failed: {exc}", cause=exc) from exc
        except (OSError, imaplib.IMAP4.abort) as exc:
            raise ConnectionFailed(f"Cannot reach {host}:{port}: {exc}", cause=exc) from exc
        except imaplib.IMAP4.error as exc:
            raise ProtocolError(f"Unexpected greeting from {host}: {exc}", cause=exc) from exc

        self._client = client
        try:
            with self._translate("login", rejected=AuthFailed):
                client.login(self.credentials.address, self.credentials.secret.get_secret_value())
            with self._translate("select"):
                status, _ = client.select(self.folder)
                if status != "OK":
                    raise ProtocolError(f"Unable to select folder {self.folder!r}")
            self._selected = True
        except BaseException:
            self.close()
            raise
        self.logger.info("Connected to %s as %s", host, self.credentials.address)
        return self

    def list_unread(self, since: Optional[dt.timedelta] = None) -> List[CandidateMessage]:
        """Unread messages, optionally received within `since`, newest first."""
        client = self._require_client()
        now = self._now()
        criteria = self.selector.criteria(since, now)
        with self._translate("search"):
            status, data = client.uid("SEARCH", *criteria)
            if status != "OK":
                raise ProtocolError(f"SEARCH {' '.join(criteria)} returned {status}")
            try:
                uids = self.selector.newest_uids(data)
            except ValueError as exc:
                raise ProtocolError(f"Malformed SEARCH response: {data!r}", cause=exc) from exc

        messages = []
        for uid in uids:
            with self._translate("fetch"):
                status, data = client.uid("FETCH", uid, _FETCH_ITEMS)
                if status != "OK":
                    raise ProtocolError(f"FETCH {uid} returned {status}")
            message = parse_fetch_response(uid, data)
            if message is not None:
                messages.append(message)
        selected = self.selector.select(messages, since, now)
        self.logger.debug("%d unread candidate(s) out of %d searched", len(selected), len(uids))
        return selected

    def mark_read(self, message_id: str) -> None:
        """Set \\Seen on a message. Marking an already-read message is fine."""
        client = self._require_client()
        with self._translate("store"):
            status, _ = client.uid("STORE", message_id, "+FLAGS", "(\\Seen)")
            if status != "OK":
                raise ProtocolError(f"STORE {message_id} returned {status}")

    def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        steps = [client.close, client.logout] if self._selected else [client.logout]
        self._selected = False
        for step in steps:
            try:
                step()
            except (imaplib.IMAP4.error, OSError) as exc:
                self.logger.debug("Ignoring error during %s: %s", step.__name__, exc)

    def __enter__(self) -> "MailboxSession":
        return self.connect()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _require_client(self) -> imaplib.IMAP4:
        if self._client is None:
            raise ConnectionFailed("Mailbox session is not connected")
        return self._client

    @contextmanager
    def _translate(self, operation: str, *, rejected: Type[MailboxError] = ProtocolError) -> Iterator[None]:
        try:
            yield
        except MailboxError:
            raise
        except imaplib.IMAP4.abort as exc:
            raise ConnectionFailed(f"Connection dropped during {operation}: {exc}", cause=exc) from exc
        except imaplib.IMAP4.error as exc:
            raise rejected(f"{operation} rejected: {exc}", cause=exc) from exc
        except UnicodeEncodeError as exc:
            # imaplib sends arguments as ASCII only.
            raise rejected(f"{operation} arguments are not ASCII: {exc.reason}", cause=exc) from exc
        except OSError as exc:
            raise ConnectionFailed(f"Network error during {operation}: {exc}", cause=exc) from exc
