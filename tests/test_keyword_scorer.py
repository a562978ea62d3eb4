"""Tests for keyword/phrase scoring."""

import pytest

from agent_routing.routing.keyword_scorer import KeywordScorer
from agent_routing.routing.types import AgentRole, RoutingSource


@pytest.fixture
def scorer() -> KeywordScorer:
    return KeywordScorer()


class TestKeywordScorer:

    def test_phrases_outweigh_words(self, scorer):
        scores = {s.role: s for s in scorer.score_all("can you do a code review")}

        # "code review" phrase plus the words "code" and "review"
        assert scores[AgentRole.CODER].score == 3 + 1 + 1
        assert "code review" in scores[AgentRole.CODER].matched_terms

    def test_home_request(self, scorer):
        decision = scorer.score("turn off the living room lights")

        assert decision.target_agent is AgentRole.HOME
        assert decision.source is RoutingSource.KEYWORD
        assert decision.confidence == pytest.approx(0.95)
        assert decision.rationale.startswith("Keyword match: ")

    def test_confidence_grows_with_score(self, scorer):
        decision = scorer.score("debug python")

        assert decision.target_agent is AgentRole.CODER
        assert decision.confidence == pytest.approx(0.75)

    def test_ties_go_to_earlier_role(self, scorer):
        # coder: debug, python / researcher: search, news
        scores = {s.role: s.score for s in scorer.score_all("debug python search news")}
        assert scores[AgentRole.CODER] == scores[AgentRole.RESEARCHER] == 2

        decision = scorer.score("debug python search news")
        assert decision.target_agent is AgentRole.CODER

    @pytest.mark.parametrize("text", ["hmm interesting", "hi", ""])
    def test_below_minimum_score_returns_none(self, scorer, text):
        assert scorer.score(text) is None

    def test_coordinator_is_never_scored(self, scorer):
        roles = [s.role for s in scorer.score_all("plan everything for me")]

        assert AgentRole.ORCHESTRATOR not in roles

    def test_word_matching_uses_whole_tokens(self, scorer):
        # "bugle" and "coded" must not count as "bug" and "code"
        assert scorer.score("my bugle was coded") is None

    def test_confidence_stays_below_explicit(self, scorer):
        decision = scorer.score(
            "code review of the pull request: debug this bug fix, write code, git commit and git push"
        )

        assert decision.confidence < 0.99

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            KeywordScorer(max_confidence=0.99)
        with pytest.raises(ValueError):
            KeywordScorer(phrase_weight=1, word_weight=1)
