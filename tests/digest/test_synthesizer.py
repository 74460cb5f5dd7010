"""Tests for cluster-brief synthesis."""

import json
from unittest.mock import MagicMock

import pytest

from daybrief.digest.errors import (
    CollaboratorError,
    PipelineStage,
    PromptTemplateError,
    SynthesisError,
)
from daybrief.digest.models import Beat, Cluster
from daybrief.digest.synthesizer import ClusterBriefSynthesizer, format_beat, parse_brief

TEMPLATE = (
    "CLUSTER slug:{cluster_slug} titles:{candidate_titles} tags:{cluster_tags} "
    "urgency:{cluster_urgency} formats:{cluster_formats}\n{cluster_items}"
)


def _beat(number: int, **overrides) -> Beat:
    data = {
        "item_number": number,
        "group_key": "market-pulse",
        "headline": f"Headline {number}",
        "why_it_matters": "Growth positioning gets hit.",
        "urgency_score": 4,
        "urgency_label": "High",
        "fast_facts": ["Nasdaq down 2.1%", "10y at 4.6%"],
        "soundbite": "Traders call it a tantrum",
        "format_cue": "📄 Quick read",
        "tags": ["markets", "stocks"],
    }
    data.update(overrides)
    return Beat.model_validate(data)


def _cluster(**overrides) -> Cluster:
    data = {
        "slug": "market-pulse",
        "display_index": 2,
        "beats": (_beat(1), _beat(3)),
        "tags": ("markets", "stocks"),
        "format_cues": ("📄 Quick read", "🎧 Audio briefing"),
        "urgency_score": 4,
        "urgency_label": "High",
    }
    data.update(overrides)
    return Cluster(**data)


def _brief_json(**overrides) -> str:
    data = {
        "cluster_title": "Markets wobble",
        "narrative_paragraph": "Tech shares stumbled as yields rose.",
        "key_takeaways": ["Nasdaq slides", "Rotation into defensives"],
        "bridge_sentence": "From markets to policy.",
    }
    data.update(overrides)
    return json.dumps(data)


class TestFormatBeat:
    def test_fields_rendered(self):
        text = format_beat(_beat(3, action_step="Rebalance", forward_signal="CPI Thursday"))
        lines = text.splitlines()
        assert lines[0] == "Item 3:"
        assert "  Headline: Headline 3" in lines
        assert "  Urgency: High (4/5)" in lines
        assert "    • Nasdaq down 2.1%" in lines
        assert "  Tags: markets, stocks" in lines
        assert "  Action: Rebalance" in lines
        assert "  Watch next: CPI Thursday" in lines

    def test_segment_title_after_item_line(self):
        text = format_beat(_beat(1, segment_title="Market Pulse"))
        assert text.splitlines()[1] == "  Segment: Market Pulse"

    def test_optional_lines_omitted(self):
        text = format_beat(_beat(1))
        assert "Action:" not in text
        assert "Segment:" not in text


class TestBuildPrompt:
    def test_cluster_fields(self):
        synthesizer = ClusterBriefSynthesizer(MagicMock(), TEMPLATE)
        prompt = synthesizer.build_prompt(_cluster())
        assert "slug:market-pulse" in prompt
        assert "titles:Headline 1 | Headline 3" in prompt
        assert "tags:markets, stocks" in prompt
        assert "urgency:High (4/5)" in prompt
        assert "formats:📄 Quick read | 🎧 Audio briefing" in prompt
        assert "Item 1:" in prompt and "Item 3:" in prompt

    def test_fallbacks(self):
        synthesizer = ClusterBriefSynthesizer(MagicMock(), TEMPLATE)
        prompt = synthesizer.build_prompt(_cluster(tags=(), format_cues=()))
        assert "tags:general" in prompt
        assert "formats:mixed" in prompt


class TestParseBrief:
    def test_identity_copied_from_cluster(self):
        brief = parse_brief(_brief_json(), _cluster())
        assert brief.slug == "market-pulse"
        assert brief.display_index == 2
        assert brief.tags == ("markets", "stocks")
        assert brief.urgency_score == 4
        assert brief.urgency_label == "High"

    def test_model_cannot_override_identity(self):
        brief = parse_brief(_brief_json(slug="other", display_index=9), _cluster())
        assert brief.slug == "market-pulse"
        assert brief.display_index == 2

    def test_first_item_number_is_lowest_member(self):
        brief = parse_brief(_brief_json(), _cluster())
        assert brief.first_item_number == 1

    def test_optional_fields(self):
        brief = parse_brief(
            _brief_json(soundbite="It's a tantrum", recommended_action=None), _cluster()
        )
        assert brief.soundbite == "It's a tantrum"
        assert brief.recommended_action == ""

    def test_invalid_json(self):
        with pytest.raises(SynthesisError) as exc_info:
            parse_brief("nope", _cluster())
        assert exc_info.value.stage is PipelineStage.SYNTHESIZING
        assert exc_info.value.identifier == "market-pulse"

    def test_array_rejected(self):
        with pytest.raises(SynthesisError, match="expected a JSON object"):
            parse_brief("[1, 2]", _cluster())

    def test_missing_field(self):
        payload = json.loads(_brief_json())
        del payload["bridge_sentence"]
        with pytest.raises(SynthesisError, match="failed validation"):
            parse_brief(json.dumps(payload), _cluster())

    def test_duplicate_takeaways(self):
        with pytest.raises(SynthesisError):
            parse_brief(_brief_json(key_takeaways=["Same point", "same point"]), _cluster())


class TestSynthesize:
    def test_one_call_per_cluster(self):
        complete = MagicMock(return_value=_brief_json())
        brief = ClusterBriefSynthesizer(complete, TEMPLATE).synthesize(_cluster())
        assert complete.call_count == 1
        assert brief.cluster_title == "Markets wobble"

    def test_model_failure_wrapped(self):
        complete = MagicMock(side_effect=TimeoutError("slow"))
        with pytest.raises(CollaboratorError) as exc_info:
            ClusterBriefSynthesizer(complete, TEMPLATE).synthesize(_cluster())
        assert exc_info.value.stage is PipelineStage.SYNTHESIZING
        assert exc_info.value.identifier == "market-pulse"

    def test_unknown_placeholder_rejected_at_construction(self):
        with pytest.raises(PromptTemplateError) as exc_info:
            ClusterBriefSynthesizer(MagicMock(), "CLUSTER {cluster_slug} {weather}")
        assert exc_info.value.stage is PipelineStage.SYNTHESIZING
