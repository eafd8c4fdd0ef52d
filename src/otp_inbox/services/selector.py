"""Turn raw IMAP fetch responses into candidate messages, newest first."""

from __future__ import annotations

import datetime as dt
import email
import imaplib
import time
from email import policy
from email.message import EmailMessage
from email.utils import parsedate_to_datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from otp_inbox.core.models import BodyPart, CandidateMessage, MarkupText, PlainText

_EPOCH = dt.datetime.min.replace(tzinfo=dt.timezone.utc)


def imap_date(value: dt.datetime) -> str:
    """Format a date for SEARCH SINCE without depending on the C locale."""
    return f"{value.day:02d}-{imaplib.Months[value.month]}-{value.year}"


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _decode_part(part: EmailMessage) -> str:
    try:
        return part.get_content()
    except (LookupError, UnicodeError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def _header_date(message: EmailMessage) -> Optional[dt.datetime]:
    raw = message.get("Date")
    if not raw:
        return None
    try:
        value = parsedate_to_datetime(str(raw))
    except (TypeError, ValueError, IndexError):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value


def parse_message(
    uid: str,
    raw: bytes,
    *,
    flags: Sequence[bytes] = (),
    internal_date: Optional[dt.datetime] = None,
) -> CandidateMessage:
    """Build a snapshot from RFC 822 bytes. Attachments are ignored."""
    message = email.message_from_bytes(raw, policy=policy.default)
    parts: List[BodyPart] = []
    for part in message.walk():
        if part.is_multipart() or part.get_content_disposition() == "attachment":
            continue
        content_type = part.get_content_type()
        if content_type == "text/plain":
            parts.append(PlainText(text=_decode_part(part)))
        elif content_type == "text/html":
            parts.append(MarkupText(markup=_decode_part(part)))

    return CandidateMessage(
        uid=uid,
        subject=str(message.get("Subject") or ""),
        parts=tuple(parts),
        received_at=internal_date or _header_date(message),
        seen=b"\\Seen" in flags,
    )


def parse_fetch_response(uid: str, data: Sequence) -> Optional[CandidateMessage]:
    """Parse one `UID FETCH (FLAGS INTERNALDATE BODY.PEEK[])` response.

    Servers may place FLAGS before or after the literal, so the metadata is
    gathered from every non-literal fragment. Returns None when the message
    disappeared between SEARCH and FETCH.
    """
    meta = b""
    raw: Optional[bytes] = None
    for item in data or ():
        if isinstance(item, tuple):
            meta += item[0]
            raw = item[1]
        elif isinstance(item, bytes):
            meta += item
    if raw is None:
        return None

    internal_date = None
    stamp = imaplib.Internaldate2tuple(meta)
    if stamp is not None:
        internal_date = dt.datetime.fromtimestamp(time.mktime(stamp), dt.timezone.utc)
    return parse_message(uid, raw, flags=imaplib.ParseFlags(meta), internal_date=internal_date)


class MessageSelector:
    """Builds the unread search and orders the resulting snapshots."""

    def __init__(self, *, subject_hint: Optional[str] = None, lookback: int = 50) -> None:
        if lookback < 1:
            raise ValueError("lookback must be >= 1")
        self.subject_hint = subject_hint
        self.lookback = lookback

    def criteria(self, since: Optional[dt.timedelta], now: dt.datetime) -> Tuple[str, ...]:
        criteria = ["UNSEEN"]
        if self.subject_hint and self.subject_hint.isascii():
            criteria += ["SUBJECT", _quote(self.subject_hint)]
        if since is not None:
            # SINCE has day granularity in the server's timezone; widen by a day
            # and enforce the exact window in select().
            criteria += ["SINCE", imap_date(now - since - dt.timedelta(days=1))]
        return tuple(criteria)

    def newest_uids(self, search_data: Sequence[bytes]) -> List[str]:
        """Return at most `lookback` UIDs from a SEARCH response, highest first."""
        if not search_data or not search_data[0]:
            return []
        uids = sorted({int(token) for token in search_data[0].split()}, reverse=True)
        return [str(uid) for uid in uids[: self.lookback]]

    def select(
        self,
        messages: Iterable[CandidateMessage],
        since: Optional[dt.timedelta],
        now: dt.datetime,
    ) -> List[CandidateMessage]:
        cutoff = now - since if since is not None else None
        selected = []
        for message in messages:
            if message.seen:
                continue
            if cutoff is not None and (message.received_at is None or message.received_at < cutoff):
                continue
            selected.append(message)
        selected.sort(key=lambda m: (m.received_at or _EPOCH, int(m.uid)), reverse=True)
        return selected
