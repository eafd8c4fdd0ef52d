"""Automatic one-time-password retrieval from an IMAP mailbox."""

from .core.models import ErrorKind, FetchOutcome, OutcomeStatus
from .services.extractor import CodeExtractor, extract
from .services.retriever import OtpRetriever, from_settings

__all__ = [
    "__version__",
    "CodeExtractor",
    "ErrorKind",
    "FetchOutcome",
    "OtpRetriever",
    "OutcomeStatus",
    "extract",
    "from_settings",
]

__version__ = "0.1.0"
