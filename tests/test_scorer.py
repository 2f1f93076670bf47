"""Tests for the deterministic scorer."""

import pytest

from smsguard.spam.features import FeatureExtractor, Features
from smsguard.spam.scorer import Scorer, ScoringWeights


@pytest.fixture
def score():
    extractor = FeatureExtractor()
    scorer = Scorer()
    return lambda text: scorer.score(extractor.extract(text))


def test_otp_message_is_ham(score):
    result = score("Your OTP is 654321. Do not share. Valid for 10 min.")

    assert not result.is_spam
    assert result.confidence >= 0.7
    assert "OTP" in result.reason


def test_prize_scam_is_spam(score):
    result = score("URGENT! You won $1,000,000! Click here NOW!!!")

    assert result.is_spam
    assert result.confidence >= 0.6
    assert result.reason.startswith("Spam detected:")
    assert "spam keyword" in result.reason


def test_banking_debit_is_ham(score):
    result = score("Rs.1500 debited from A/c XX1234. Available bal: Rs.5000")

    assert not result.is_spam
    assert "banking transaction" in result.reason


def test_neutral_text_sits_on_the_boundary(score):
    result = score("See you at lunch tomorrow")

    assert not result.is_spam
    assert result.confidence == 0.0
    assert result.reason == "No spam indicators found"


def test_confidence_is_distance_from_boundary():
    scorer = Scorer()
    features = Features(spam_keyword_count=1)

    assert scorer.raw_score(features) == pytest.approx(0.65)
    result = scorer.score(features)
    assert result.is_spam
    assert result.confidence == pytest.approx(0.3)


def test_score_is_clamped():
    scorer = Scorer()
    assert scorer.raw_score(Features(spam_keyword_count=20)) == 1.0
    assert scorer.raw_score(Features(legit_pattern_count=20, has_otp=True)) == 0.0


def test_url_counts_only_outside_banking_context():
    scorer = Scorer()
    assert scorer.raw_score(Features(has_url=True)) == pytest.approx(0.7)
    # Banking cancels the link bonus and subtracts its own weight
    assert scorer.raw_score(Features(has_url=True, has_banking_terms=True)) == pytest.approx(0.2)


def test_thresholds_are_strict():
    scorer = Scorer()
    # Exactly at the thresholds does not fire
    assert scorer.raw_score(Features(urgency_score=0.5, capital_ratio=0.5, exclamation_count=2)) == 0.5
    assert scorer.raw_score(Features(urgency_score=0.6)) == pytest.approx(0.7)
    assert scorer.raw_score(Features(capital_ratio=0.6)) == pytest.approx(0.65)
    assert scorer.raw_score(Features(exclamation_count=3)) == pytest.approx(0.6)


def test_money_with_banking_is_extra_legitimate():
    scorer = Scorer()
    banking = scorer.raw_score(Features(has_banking_terms=True))
    with_money = scorer.raw_score(Features(has_banking_terms=True, has_money_amount=True))
    assert banking - with_money == pytest.approx(0.2)


def test_spam_with_no_listed_indicator_has_generic_reason():
    weights = ScoringWeights(per_spam_keyword=0.0)
    scorer = Scorer(weights)
    assert scorer.explain(Features(), is_spam=True) == "Spam pattern detected"


def test_custom_weights():
    scorer = Scorer(ScoringWeights(per_spam_keyword=0.05))
    assert scorer.raw_score(Features(spam_keyword_count=2)) == pytest.approx(0.6)


@pytest.mark.parametrize("text", [
    "",
    "!!!!!!!!!!!!!!!!!!!!",
    "FREE FREE FREE FREE FREE FREE FREE FREE",
    "₹ ₹ ₹",
    "a" * 5000,
])
def test_result_always_well_formed(score, text):
    result = score(text)
    assert 0.0 <= result.confidence <= 1.0
    assert result.reason
