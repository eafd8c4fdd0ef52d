from __future__ import annotations

import datetime as dt
import imaplib
from email.message import EmailMessage
from typing import Dict, List, Optional

import pytest

NOW = dt.datetime(2026, 10, 18, 12, 0, tzinfo=dt.timezone.utc)


def make_raw(subject: str, text: Optional[str] = None, html: Optional[str] = None) -> bytes:
    message = EmailMessage()
    message["From"] = "noreply@axiom.trade"
    message["To"] = "trader@inbox.lv"
    message["Subject"] = subject
    message["Date"] = "Sun, 18 Oct 2026 11:59:00 +0000"
    message.set_content(text or "")
    if html is not None:
        message.add_alternative(html, subtype="html")
    return message.as_bytes()


class FakeMessage:
    def __init__(self, raw: bytes, received: dt.datetime, seen: bool = False) -> None:
        self.raw = raw
        self.received = received
        self.flags = {"\\Seen"} if seen else set()


class FakeServer:
    """In-memory IMAP mailbox shared by every FakeIMAP connection."""

    def __init__(self) -> None:
        self.password = "secret"
        self.folders = {"INBOX"}
        self.messages: Dict[int, FakeMessage] = {}
        self.commands: List[tuple] = []
        self.connect_error: Optional[BaseException] = None
        self.search_error: Optional[BaseException] = None
        self.select_error: Optional[BaseException] = None
        self.connections = 0
        self.logouts = 0

    def add(self, uid: int, raw: bytes, *, received: dt.datetime = NOW, seen: bool = False) -> None:
        self.messages[uid] = FakeMessage(raw, received, seen)

    def seen(self, uid: int) -> bool:
        return "\\Seen" in self.messages[uid].flags


@pytest.fixture
def imap_server(monkeypatch) -> FakeServer:
    server = FakeServer()

    class FakeIMAP:
        def __init__(self, host, port, ssl_context=None, timeout=None):
            server.commands.append(("connect", host, port, timeout))
            if server.connect_error is not None:
                raise server.connect_error
            server.connections += 1

        def login(self, user, password):
            server.commands.append(("login", user))
            # imaplib encodes command arguments as ASCII before sending them.
            user.encode("ascii")
            password.encode("ascii")
            if password != server.password:
                raise imaplib.IMAP4.error("b'[AUTHENTICATIONFAILED] LOGIN failed'")
            return "OK", [b"LOGIN completed"]

        def select(self, folder):
            server.commands.append(("select", folder))
            if server.select_error is not None:
                raise server.select_error
            if folder not in server.folders:
                return "NO", [b"Mailbox does not exist"]
            return "OK", [str(len(server.messages)).encode()]

        def uid(self, command, *args):
            server.commands.append((command, *args))
            if command == "SEARCH":
                if server.search_error is not None:
                    raise server.search_error
                uids = [uid for uid, m in sorted(server.messages.items()) if "\\Seen" not in m.flags]
                return "OK", [" ".join(str(uid) for uid in uids).encode()]
            if command == "FETCH":
                message = server.messages.get(int(args[0]))
                if message is None:
                    return "OK", [None]
                flags = " ".join(sorted(message.flags))
                meta = (
                    f"1 (UID {args[0]} FLAGS ({flags}) "
                    f"INTERNALDATE {imaplib.Time2Internaldate(message.received)} "
                    f"BODY[] {{{len(message.raw)}}}"
                ).encode()
                return "OK", [(meta, message.raw), b")"]
            if command == "STORE":
                server.messages[int(args[0])].flags.add("\\Seen")
                return "OK", [b"stored"]
            raise AssertionError(f"unexpected command {command}")

        def close(self):
            server.commands.append(("close",))
            return "OK", []

        def logout(self):
            server.logouts += 1
            return "BYE", []

    monkeypatch.setattr("imaplib.IMAP4_SSL", FakeIMAP)
    return server
