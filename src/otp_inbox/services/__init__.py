"""Mailbox access, code extraction and retrieval services."""

from .extractor import CodeExtractor
from .login_code import LoginCodeResolver
from .mailbox import MailboxSession
from .retriever import OtpRetriever, from_settings
from .selector import MessageSelector

__all__ = [
    "CodeExtractor",
    "LoginCodeResolver",
    "MailboxSession",
    "MessageSelector",
    "OtpRetriever",
    "from_settings",
]
