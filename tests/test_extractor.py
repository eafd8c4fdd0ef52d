from __future__ import annotations

import pytest

from otp_inbox.core.models import (
    CandidateMessage,
    ExtractionStrategy,
    MarkupText,
    PlainText,
    TextLocation,
)
from otp_inbox.services.extractor import CodeExtractor, extract, render_markup


@pytest.fixture
def extractor() -> CodeExtractor:
    return CodeExtractor("Axiom", context_window=40)


def test_subject_example_keeps_leading_zero():
    assert extract("Your Axiom security code is 045830", None) == "045830"


@pytest.mark.parametrize(
    "text, strategy",
    [
        ("Your Axiom security code is: 280296", ExtractionStrategy.EXACT_PHRASE),
        ("Here is your security code: 280296", ExtractionStrategy.GENERIC_PHRASE),
        ("Use <strong>280296</strong> to sign in", ExtractionStrategy.MARKUP_SPAN),
        ("Axiom login. Enter 280296 when asked.", ExtractionStrategy.CONTEXTUAL),
    ],
)
def test_each_phrasing_recovers_code(extractor, text, strategy):
    result = extractor.extract_result("", text)
    assert result is not None
    assert result.code == "280296"
    assert result.strategy is strategy


@pytest.mark.parametrize("code", ["000000", "000123", "999999", "100001"])
def test_code_is_returned_verbatim(extractor, code):
    assert extractor.extract(f"Your Axiom security code is {code}", "") == code
    assert extractor.extract("", f"security code {code}") == code


@pytest.mark.parametrize("digits", ["1234567", "12345"])
def test_wrong_length_runs_are_rejected(extractor, digits):
    assert extractor.extract("", f"Your Axiom security code is {digits}") is None
    assert extractor.extract(f"security code is {digits}", "") is None
    assert extractor.extract("", f"<b>{digits}</b> security code") is None


def test_non_digit_inside_span_is_rejected(extractor):
    assert extractor.extract("", "Your Axiom security code is 123a56") is None


def test_exact_phrase_beats_earlier_contextual_number(extractor):
    body = "Axiom order 111111 shipped. Your Axiom security code is 222222"
    result = extractor.extract_result("", body)
    assert result.code == "222222"
    assert result.strategy is ExtractionStrategy.EXACT_PHRASE


def test_subject_is_scanned_before_body(extractor):
    result = extractor.extract_result("Your Axiom security code is 111111", "security code: 222222")
    assert result.code == "111111"
    assert result.location is TextLocation.SUBJECT


def test_strategy_order_wins_over_location(extractor):
    # A stronger strategy in the body beats a weaker one in the subject.
    result = extractor.extract_result("Axiom 333333", "security code: 444444")
    assert result.code == "444444"
    assert result.location is TextLocation.PLAIN


def test_plain_text_is_scanned_before_markup(extractor):
    parts = (
        MarkupText(markup="<p>Your Axiom security code is <b>555555</b></p>"),
        PlainText(text="Your Axiom security code is 666666"),
    )
    result = extractor.extract_result("", parts)
    assert result.code == "666666"
    assert result.location is TextLocation.PLAIN


def test_markup_phrase_is_read_through_tags(extractor):
    part = MarkupText(markup="<p>Your Axiom security code is:</p>\n<div>&nbsp;<i>\n</i>045830</div>")
    result = extractor.extract_result("", part)
    assert result.code == "045830"
    assert result.strategy is ExtractionStrategy.EXACT_PHRASE
    assert result.location is TextLocation.MARKUP


def test_html_span_with_styles():
    body = """
    <div style="background-color: #f5f5f5; padding: 15px;">
      <span style="font-size: 24px; font-weight: bold;">280296</span>
    </div>
    <p>Your Axiom security code</p>
    """
    assert extract("", MarkupText(markup=body)) == "280296"


def test_style_blocks_are_not_visible_text():
    assert render_markup("<style>.a{width:123456px}</style><p>Hi &amp; bye</p>") == "Hi & bye"


def test_html_comments_are_not_visible_text():
    markup = "<p>Welcome</p><!-- old template: a > b security code 111111 -->"
    assert render_markup(markup) == "Welcome"
    assert extract("", MarkupText(markup=markup)) is None


def test_script_text_is_not_searched():
    markup = "<script>var security_code = 'security code 222222';</script><p>Hello</p>"
    assert extract("", MarkupText(markup=markup)) is None


@pytest.mark.parametrize("text", ["security code: 123456abc", "Your Axiom security code is 123456x"])
def test_code_followed_by_letters_is_rejected(extractor, text):
    assert extractor.extract("", text) is None
    assert extractor.extract(text, "") is None


def test_no_code_returns_none(extractor):
    assert extractor.extract("Welcome", "This email contains no OTP code.") is None
    assert extractor.extract(None, None) is None


def test_number_without_anchor_is_ignored(extractor):
    assert extractor.extract("Invoice", "Order number 123456 has shipped") is None


class TestContextWindow:
    def test_gap_equal_to_window_matches(self):
        extractor = CodeExtractor("Axiom", context_window=10)
        text = "security code" + "." * 10 + "123456"
        result = extractor.extract_result("", text)
        assert result.code == "123456"
        assert result.strategy is ExtractionStrategy.CONTEXTUAL

    def test_gap_beyond_window_is_ignored(self):
        extractor = CodeExtractor("Axiom", context_window=10)
        text = "security code" + "." * 11 + "123456"
        assert extractor.extract("", text) is None

    def test_anchor_after_the_number(self):
        extractor = CodeExtractor("Axiom", context_window=5)
        assert extractor.extract("", "123456 is your Axiom code") is None
        assert extractor.extract("", "123456 Axiom") == "123456"

    def test_product_name_is_configurable(self):
        extractor = CodeExtractor("Acme Wallet", context_window=20)
        result = extractor.extract_result("Your Acme Wallet security code is 010203", "")
        assert result.strategy is ExtractionStrategy.EXACT_PHRASE
        assert extractor.extract("", "Acme Wallet: 987654") == "987654"

    def test_negative_window_is_rejected(self):
        with pytest.raises(ValueError):
            CodeExtractor(context_window=-1)


def test_extract_message_records_message_id(extractor):
    message = CandidateMessage(
        uid="42",
        subject="Sign in",
        parts=(PlainText(text="Your security code is 314159"),),
    )
    result = extractor.extract_message(message)
    assert result.code == "314159"
    assert result.message_id == "42"
