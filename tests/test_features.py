"""Tests for feature extraction and pattern families."""

import re

import pytest

from smsguard.spam.features import FeatureExtractor, Features
from smsguard.spam.patterns import PATTERN_FAMILIES, PatternFamily, Polarity, families, get_family


@pytest.fixture
def extractor():
    return FeatureExtractor()


def test_empty_text_yields_zero_features(extractor):
    assert extractor.extract("") == Features()


def test_otp_message(extractor):
    features = extractor.extract("Your OTP is 654321. Do not share. Valid for 10 min.")

    assert features.has_otp
    assert not features.has_banking_terms
    assert features.spam_keyword_count == 0
    assert features.legit_pattern_count == 2
    assert "otp" in features.matched_families


def test_banking_message(extractor):
    features = extractor.extract("Rs.1500 debited from A/c XX1234. Available bal: Rs.5000")

    assert features.has_banking_terms
    assert features.has_money_amount
    assert not features.has_url
    assert features.legit_pattern_count == 3


def test_prize_scam(extractor):
    features = extractor.extract("URGENT! You won $1,000,000! Click here NOW!!!")

    assert features.spam_keyword_count == 3
    assert features.exclamation_count == 5
    assert features.has_money_amount
    assert not features.has_banking_terms
    assert set(features.matched_families) == {"promotional", "financial_scam"}


def test_url_detection(extractor):
    assert extractor.extract("see https://example.org/x").has_url
    assert extractor.extract("go to www.example").has_url
    assert extractor.extract("short link bit.ly/abc").has_url
    assert not extractor.extract("see you at lunch").has_url


def test_phone_detection(extractor):
    assert extractor.extract("call 9876543210 today").has_phone_number
    assert extractor.extract("call 555-123-4567").has_phone_number
    assert not extractor.extract("room 12").has_phone_number


def test_capital_ratio_counts_letters_only():
    assert FeatureExtractor.capital_ratio("ABC def") == 0.5
    assert FeatureExtractor.capital_ratio("123 !!!") == 0.0
    assert FeatureExtractor.capital_ratio("HELLO") == 1.0


def test_urgency_uses_whole_words(extractor):
    # "known" contains "now" but is not the word "now"
    assert extractor.urgency_score("i have known her for years") == 0.0
    assert extractor.urgency_score("reply now") == pytest.approx(0.1)


def test_urgency_exclamation_bonus_is_capped(extractor):
    text = "hi! " * 20
    assert extractor.urgency_score(text) == pytest.approx(0.3)


def test_urgency_score_never_exceeds_one(extractor):
    text = " ".join(["urgent immediately now hurry quick fast expire expires limited today deadline"] * 3)
    assert extractor.urgency_score(text + "!!! !!! !!!") == 1.0


def test_counts_and_word_count(extractor):
    features = extractor.extract("Are you coming? Really?? Yes!")
    assert features.question_count == 3
    assert features.exclamation_count == 1
    assert features.word_count == 5


def test_family_registry():
    assert {f.name for f in families(Polarity.SPAM)} == {
        "promotional", "financial_scam", "phishing", "generic_spam",
    }
    assert {f.name for f in families(Polarity.LEGITIMATE)} == {
        "banking", "otp", "delivery", "booking", "service",
    }
    assert get_family("otp").polarity is Polarity.LEGITIMATE
    with pytest.raises(KeyError):
        get_family("nope")


def test_custom_families_extend_extraction():
    crypto = PatternFamily("crypto", Polarity.SPAM, (re.compile(r"\bbitcoin\b"),))
    extractor = FeatureExtractor(families=PATTERN_FAMILIES + (crypto,))

    features = extractor.extract("Double your bitcoin")
    assert features.spam_keyword_count == 1
    assert "crypto" in features.matched_families
