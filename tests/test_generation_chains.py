"""Tests for the generation chains.

Uses mocked Anthropic responses.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest

from brief_engine.core.errors import GenerationEmpty, GenerationFailed
from tests.fixtures_briefs import RESEARCH_TEXT, make_insight, make_strategy

# =============================================================================
# Helpers
# =============================================================================


def _mock_anthropic_response(content_text, input_tokens=100, output_tokens=50):
    """Create a mock Anthropic messages.create response."""
    response = MagicMock()
    response.content = [MagicMock(type="text", text=content_text)]
    response.usage = MagicMock(input_tokens=input_tokens, output_tokens=output_tokens)
    return response


def _client(mock_anthropic_cls, payload):
    mock_client = AsyncMock()
    mock_anthropic_cls.return_value = mock_client
    text = payload if isinstance(payload, str) else json.dumps(payload)
    mock_client.messages.create.return_value = _mock_anthropic_response(text)
    return mock_client


# =============================================================================
# Insight extraction
# =============================================================================


class TestExtractInsights:
    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.log_llm_usage")
    @patch("anthropic.AsyncAnthropic")
    async def test_extracts_and_normalizes(self, mock_anthropic_cls, mock_log):
        from brief_engine.chains.extract_insights import extract_insights

        _client(mock_anthropic_cls, {
            "category_context": "UK skincare is crowded.",
            "insights": [
                {
                    "insight_headline": "Tight by noon",
                    "insight_text": "I wash every night. But my skin feels tight by noon.",
                    "verbatims": ["my skin still feels tight", {"text": "no time", "source": "p.4"}],
                    "relevance_score": 14,
                    "tension_type": "physical",
                    "jtbd": "Feel comfortable all day",
                },
                {"id": 1, "insight_text": "Second", "relevance_score": "6"},
            ],
        })

        result = await extract_insights(RESEARCH_TEXT, session_id="s1")

        assert result.category_context == "UK skincare is crowded."
        first, second = result.insights
        assert first.id == 1
        assert first.relevance_score == 10.0
        assert first.tension_type == "functional"
        assert first.verbatims[0].quote == "my skin still feels tight"
        assert first.verbatims[1].source_location == "p.4"
        # Duplicate id reassigned
        assert second.id == 2
        assert second.relevance_score == 6.0
        mock_log.assert_called_once()
        assert mock_log.call_args.kwargs["chain"] == "extract_insights"

    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.log_llm_usage")
    @patch("anthropic.AsyncAnthropic")
    async def test_fenced_json(self, mock_anthropic_cls, mock_log):
        from brief_engine.chains.extract_insights import extract_insights

        _client(
            mock_anthropic_cls,
            '```json\n{"category_context": "c", "insights": [{"id": 1, "insight_text": "x"}]}\n```',
        )
        result = await extract_insights(RESEARCH_TEXT)
        assert len(result.insights) == 1

    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.log_llm_usage")
    @patch("anthropic.AsyncAnthropic")
    async def test_no_insights_is_empty(self, mock_anthropic_cls, mock_log):
        from brief_engine.chains.extract_insights import extract_insights

        _client(mock_anthropic_cls, {"category_context": "c", "insights": []})
        with pytest.raises(GenerationEmpty):
            await extract_insights(RESEARCH_TEXT)

    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.log_llm_usage")
    @patch("anthropic.AsyncAnthropic")
    async def test_unparseable_response_fails(self, mock_anthropic_cls, mock_log):
        from brief_engine.chains.extract_insights import extract_insights

        _client(mock_anthropic_cls, "Sorry, I cannot help with that.")
        with pytest.raises(GenerationFailed, match="Invalid insights response"):
            await extract_insights(RESEARCH_TEXT)

    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.log_llm_usage")
    @patch("anthropic.AsyncAnthropic")
    async def test_long_research_is_pruned(self, mock_anthropic_cls, mock_log):
        from brief_engine.chains.extract_insights import extract_insights

        client = _client(mock_anthropic_cls, {"insights": [{"id": 1, "insight_text": "x"}]})
        await extract_insights("a" * 10_000)

        sent = client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert "a" * 6000 + "..." in sent
        assert "a" * 6001 not in sent


class TestProviderErrors:
    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.log_llm_usage")
    @patch("anthropic.AsyncAnthropic")
    async def test_rate_limit_message(self, mock_anthropic_cls, mock_log):
        from brief_engine.chains.extract_insights import extract_insights

        mock_client = AsyncMock()
        mock_anthropic_cls.return_value = mock_client
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_client.messages.create.side_effect = anthropic.RateLimitError(
            "rate limited", response=httpx.Response(429, request=request), body=None
        )

        with pytest.raises(GenerationFailed, match="rate limit") as exc_info:
            await extract_insights(RESEARCH_TEXT)
        assert exc_info.value.retryable is True
        assert exc_info.value.chain == "extract_insights"
        mock_log.assert_not_called()

    @pytest.mark.asyncio
    @patch("anthropic.AsyncAnthropic")
    async def test_authentication_is_not_retryable(self, mock_anthropic_cls):
        from brief_engine.chains.synthesize_strategy import synthesize_strategy

        mock_client = AsyncMock()
        mock_anthropic_cls.return_value = mock_client
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_client.messages.create.side_effect = anthropic.AuthenticationError(
            "bad key", response=httpx.Response(401, request=request), body=None
        )

        with pytest.raises(GenerationFailed, match="authentication failed") as exc_info:
            await synthesize_strategy(RESEARCH_TEXT, "insight")
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.get_settings")
    async def test_unknown_provider(self, mock_settings):
        from brief_engine.core.llm import generate_text

        mock_settings.return_value = MagicMock(LLM_PROVIDER="gemini")
        with pytest.raises(GenerationFailed, match="Unknown LLM provider"):
            await generate_text("system", "user", chain="extract_insights")


# =============================================================================
# Strategy synthesis
# =============================================================================


class TestSynthesizeStrategy:
    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.log_llm_usage")
    @patch("anthropic.AsyncAnthropic")
    async def test_parses_camel_case_red_thread(self, mock_anthropic_cls, mock_log):
        from brief_engine.chains.synthesize_strategy import synthesize_strategy

        _client(mock_anthropic_cls, {
            "redThreadEssence": "Confidence without the routine",
            "redThreadUnlock": "Skin that keeps up",
            "sections": [{"id": 1, "title": "Business Landscape", "content": "..."}],
        })

        summary = await synthesize_strategy(RESEARCH_TEXT, "I never have time")

        assert summary.red_thread_essence == "Confidence without the routine"
        assert summary.sections[0].id == "1"

    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.log_llm_usage")
    @patch("anthropic.AsyncAnthropic")
    async def test_no_sections_is_empty(self, mock_anthropic_cls, mock_log):
        from brief_engine.chains.synthesize_strategy import synthesize_strategy

        _client(mock_anthropic_cls, {"red_thread_essence": "x", "sections": []})
        with pytest.raises(GenerationEmpty):
            await synthesize_strategy(RESEARCH_TEXT, "insight")


# =============================================================================
# Pink Brief generation
# =============================================================================


class TestGeneratePinkBrief:
    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.log_llm_usage")
    @patch("anthropic.AsyncAnthropic")
    async def test_missing_fields_are_defaulted(self, mock_anthropic_cls, mock_log):
        from brief_engine.chains.generate_pink_brief import generate_pink_brief

        _client(mock_anthropic_cls, {
            "business_objective": {"to_grow": "share", "to": None},
            "insights": [{"insight_text": "I never have time"}, "stray"],
            "execution": {"key_media": "TV", "success_measures": {"business": "+2 pts"}},
        })

        content = await generate_pink_brief(make_insight(1), "UK skincare", RESEARCH_TEXT)

        assert content.business_objective.to_grow == "share"
        assert content.business_objective.to == ""
        assert content.consumer_problem.jtbd == ""
        assert [i.insight_number for i in content.insights] == [1]
        assert content.execution.key_media == []
        assert content.execution.success_measures.business == "+2 pts"

    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.log_llm_usage")
    @patch("anthropic.AsyncAnthropic")
    async def test_strategy_is_included_in_prompt(self, mock_anthropic_cls, mock_log):
        from brief_engine.chains.generate_pink_brief import generate_pink_brief

        client = _client(mock_anthropic_cls, {})
        await generate_pink_brief(make_insight(1), "UK skincare", RESEARCH_TEXT, strategy=make_strategy())

        sent = client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert 'Essence: "Confidence without the routine"' in sent
        assert "• Business Landscape: Crowded" in sent
        assert "CATEGORY CONTEXT:\nUK skincare" in sent

    def test_strategy_block_empty_without_strategy(self):
        from brief_engine.chains.generate_pink_brief import build_strategy_block

        assert build_strategy_block(None) == ""


# =============================================================================
# Bespoke insight
# =============================================================================


class TestEvaluateBespokeInsight:
    @pytest.mark.asyncio
    @patch("brief_engine.core.llm.log_llm_usage")
    @patch("anthropic.AsyncAnthropic")
    async def test_uses_given_id_and_defaults(self, mock_anthropic_cls, mock_log):
        from brief_engine.chains.evaluate_bespoke_insight import evaluate_bespoke_insight

        client = _client(mock_anthropic_cls, {"id": 1, "relevance_score": 3, "tension_type": "emotional"})

        insight = await evaluate_bespoke_insight(RESEARCH_TEXT, "I want glow without effort", insight_id=4)

        assert insight.id == 4
        assert insight.insight_headline == "Custom Insight"
        assert insight.insight_text == "I want glow without effort"
        assert insight.tension_type == "emotional"
        assert client.messages.create.call_args.kwargs["max_tokens"] == 2048
