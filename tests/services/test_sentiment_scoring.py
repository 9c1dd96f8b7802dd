"""
Tests for text sentiment scoring and aggregation helpers.
"""

import json

import pytest

from survey_analytics.services.sentiment import (
    AISentimentScorer,
    KeywordSentimentScorer,
    SentimentScore,
    confidence_from_dispersion,
    normalize,
    sentiment_label,
)


@pytest.fixture
def scorer():
    return KeywordSentimentScorer()


class TestKeywordScorer:
    def test_positive_text(self, scorer):
        score = scorer.score("Great team and excellent support")
        assert score.label == "positive"
        # two positive keywords
        assert score.raw_score == pytest.approx(0.8)
        assert score.confidence == pytest.approx(0.8)

    def test_positive_score_is_capped(self, scorer):
        score = scorer.score("great excellent amazing wonderful fantastic outstanding")
        assert score.raw_score == pytest.approx(0.9)

    def test_negative_text(self, scorer):
        score = scorer.score("Terrible tooling, everything is slow")
        assert score.label == "negative"
        assert score.raw_score == pytest.approx(0.2)
        assert score.confidence == pytest.approx(0.8)

    def test_negative_score_has_floor(self, scorer):
        score = scorer.score("terrible awful horrible disappointing frustrating annoying")
        assert score.raw_score == pytest.approx(0.1)
        assert score.confidence == pytest.approx(0.9)

    def test_balanced_text_is_neutral(self, scorer):
        score = scorer.score("Great people but slow processes")
        assert score.label == "neutral"
        assert score.raw_score == 0.5
        assert score.confidence == 0.7

    def test_matching_is_case_insensitive(self, scorer):
        assert scorer.score("GREAT").label == "positive"

    @pytest.mark.parametrize("text", ["", "   ", None, 42])
    def test_empty_or_non_text(self, scorer, text):
        score = scorer.score(text)
        assert score.label == "neutral"
        assert score.raw_score == 0.5
        assert score.confidence == 0.8


class TestNormalize:
    def test_neutral_is_zero(self):
        assert normalize(SentimentScore("neutral", 0.9, 0.5)) == 0.0

    def test_positive(self):
        assert normalize(SentimentScore("positive", 0.8, 0.8)) == pytest.approx(0.6)

    def test_negative(self):
        assert normalize(SentimentScore("negative", 0.2, 0.8)) == pytest.approx(-0.6)


class TestSentimentLabel:
    @pytest.mark.parametrize(
        "value,label",
        [
            (0.35, "positive"),
            (0.3, "positive"),
            (0.25, "slightly positive"),
            (0.1, "slightly positive"),
            (0.0, "neutral"),
            (-0.05, "neutral"),
            (-0.1, "neutral"),
            (-0.2, "slightly negative"),
            (-0.31, "negative"),
        ],
    )
    def test_bands(self, value, label):
        assert sentiment_label(value) == label


class TestConfidence:
    def test_identical_scores_are_fully_confident(self):
        assert confidence_from_dispersion([0.4, 0.4, 0.4]) == 100

    def test_spread_reduces_confidence(self):
        # population stddev of [-1, 1] is 1
        assert confidence_from_dispersion([-1.0, 1.0]) == 50

    def test_empty(self):
        assert confidence_from_dispersion([]) == 0


class TestAIScorer:
    @pytest.mark.asyncio
    async def test_uses_ai_verdict(self, fake_ai):
        client = fake_ai(json.dumps({
            "sentiment": "Positive",
            "score": 1.4,
            "confidence": 0.9,
            "emotions": ["joy"],
            "reasoning": "Upbeat",
        }))
        score = await AISentimentScorer(client).score("I love it here")

        assert score.source == "ai"
        assert score.label == "positive"
        # out of range numbers are clamped
        assert score.raw_score == 1.0
        assert score.emotions == ("joy",)

    @pytest.mark.asyncio
    async def test_falls_back_on_provider_error(self, ai_client):
        score = await AISentimentScorer(ai_client).score("Terrible tooling")
        assert score.source == "keywords"
        assert score.label == "negative"

    @pytest.mark.asyncio
    async def test_falls_back_on_invalid_payload(self, fake_ai):
        score = await AISentimentScorer(fake_ai("not json at all")).score("great stuff")
        assert score.source == "keywords"
        assert score.label == "positive"

    @pytest.mark.asyncio
    async def test_blank_text_skips_ai(self, fake_ai):
        client = fake_ai("{}")
        score = await AISentimentScorer(client).score("  ")
        assert score.label == "neutral"
        assert client.calls == []
