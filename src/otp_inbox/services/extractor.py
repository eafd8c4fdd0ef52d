"""Helpers for extracting one-time passwords from unstructured mail text.

Strategies run from most to least specific. Each one is tried against the
subject, then the plain-text parts, then the markup parts, before the next
strategy is considered, so a precise phrase anywhere beats a loose number
earlier in the text.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence, Tuple, Union

from bs4 import BeautifulSoup, Comment

from otp_inbox.core.models import (
    BodyPart,
    CandidateMessage,
    ExtractionResult,
    ExtractionStrategy,
    MarkupText,
    PlainText,
    TextLocation,
)

# Exactly six ASCII digits; a trailing digit or letter disqualifies the run.
_CODE = r"([0-9]{6})(?![0-9A-Za-z])"
_STANDALONE_RE = re.compile(r"(?<![0-9A-Za-z])([0-9]{6})(?![0-9A-Za-z])")
_INLINE_TAGS = ("b", "strong", "span", "em", "i", "font", "code", "mark")
_MARKUP_SPAN_RE = re.compile(
    rf"<({'|'.join(_INLINE_TAGS)})\b[^>]*>\s*{_CODE}\s*</\1\s*>",
    re.IGNORECASE,
)
_GENERIC_RE = re.compile(rf"security\s+code(?:\s+is)?[:\s]*{_CODE}", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")

Body = Union[str, BodyPart, Sequence[BodyPart], None]


def render_markup(markup: str) -> str:
    """Return the visible text of an HTML fragment on a single line."""
    soup = BeautifulSoup(markup, "html.parser")
    for node in soup(["script", "style", "title"]):
        node.decompose()
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()
    return _WS_RE.sub(" ", soup.get_text(" ", strip=True)).strip()


def _phrase(words: str) -> str:
    return r"\s+".join(re.escape(word) for word in words.split())


class CodeExtractor:
    """Recover a 6-digit code from a message subject and body."""

    def __init__(self, product_name: str = "Axiom", *, context_window: int = 80) -> None:
        if context_window < 0:
            raise ValueError("context_window must be >= 0")
        self.product_name = product_name.strip()
        self.context_window = context_window

        anchors = [_phrase("security code")]
        self._exact: Optional[re.Pattern[str]] = None
        if self.product_name:
            product = _phrase(self.product_name)
            self._exact = re.compile(
                rf"{product}\s+security\s+code\s+is[:\s]*{_CODE}",
                re.IGNORECASE,
            )
            anchors.append(product)
        self._anchor = re.compile("|".join(anchors), re.IGNORECASE)

    def extract(self, subject: Optional[str], body: Body = None) -> Optional[str]:
        result = self.extract_result(subject, body)
        return result.code if result else None

    def extract_message(self, message: CandidateMessage) -> Optional[ExtractionResult]:
        return self.extract_result(message.subject, message.parts, message_id=message.uid)

    def extract_result(
        self,
        subject: Optional[str],
        body: Body = None,
        *,
        message_id: Optional[str] = None,
    ) -> Optional[ExtractionResult]:
        texts = self._texts(subject, body)
        for strategy in ExtractionStrategy:
            for location, raw, rendered in texts:
                if strategy is ExtractionStrategy.MARKUP_SPAN:
                    code = self._search(_MARKUP_SPAN_RE, raw, group=2)
                else:
                    code = self._apply(strategy, rendered)
                if code:
                    return ExtractionResult(
                        code=code,
                        strategy=strategy,
                        location=location,
                        message_id=message_id,
                    )
        return None

    def _apply(self, strategy: ExtractionStrategy, text: str) -> Optional[str]:
        if strategy is ExtractionStrategy.EXACT_PHRASE:
            return self._search(self._exact, text) if self._exact else None
        if strategy is ExtractionStrategy.GENERIC_PHRASE:
            return self._search(_GENERIC_RE, text)
        return self._contextual(text)

    @staticmethod
    def _search(pattern: re.Pattern[str], text: str, *, group: int = 1) -> Optional[str]:
        match = pattern.search(text)
        return match.group(group) if match else None

    def _contextual(self, text: str) -> Optional[str]:
        anchors = [(m.start(), m.end()) for m in self._anchor.finditer(text)]
        if not anchors:
            return None
        for match in _STANDALONE_RE.finditer(text):
            for start, end in anchors:
                if end <= match.start():
                    gap = match.start() - end
                else:
                    gap = start - match.end()
                if 0 <= gap <= self.context_window:
                    return match.group(1)
        return None

    @staticmethod
    def _texts(subject: Optional[str], body: Body) -> List[Tuple[TextLocation, str, str]]:
        if body is None:
            parts: Sequence[BodyPart] = ()
        elif isinstance(body, str):
            parts = (PlainText(text=body),)
        elif isinstance(body, (PlainText, MarkupText)):
            parts = (body,)
        else:
            parts = tuple(body)

        texts = [(TextLocation.SUBJECT, subject or "", subject or "")]
        texts.extend((TextLocation.PLAIN, p.text, p.text) for p in parts if isinstance(p, PlainText))
        texts.extend(
            (TextLocation.MARKUP, p.markup, render_markup(p.markup))
            for p in parts
            if isinstance(p, MarkupText)
        )
        return texts


_DEFAULT = CodeExtractor()


def extract(subject: Optional[str], body: Body = None) -> Optional[str]:
    """Module-level shortcut using the default product name and window."""
    return _DEFAULT.extract(subject, body)
