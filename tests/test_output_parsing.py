"""
Test Suite: Response Normalizer

Tests:
- Fenced and bare JSON replies
- Legacy string-to-list coercion
- Degraded result for non-JSON replies
- Reading stored aiAnalysis values
"""

import json

import pytest

from dental_marketing.output import (
    AIResponseNormalizer,
    Priority,
    load_stored_analysis,
    normalize_ai_response,
    parse_priority,
    split_legacy_list,
)


class TestFenceExtraction:
    """Markdown fences around the JSON are removed."""

    def test_json_fence_matches_bare_json(self, valid_ai_reply):
        fenced = f"分析結果です。\n```json\n{valid_ai_reply}\n```\n以上です。"

        assert normalize_ai_response(fenced) == normalize_ai_response(valid_ai_reply)

    def test_untagged_fence(self, valid_ai_reply):
        fenced = f"```\n{valid_ai_reply}\n```"
        result = normalize_ai_response(fenced)

        assert result.current_analysis == "Web集客は平均的な水準です。"

    def test_bare_json_fields(self, valid_ai_reply):
        result = normalize_ai_response(valid_ai_reply)

        assert result.main_issues == ["口コミ数が少ない", "広告の直帰率が高い"]
        assert result.recommendations == ["口コミ依頼カードを配布する"]
        assert result.web_analysis == "流入数は平均的です。"
        assert result.competitor_analysis is None
        assert result.proposed_services[0].priority == Priority.HIGH
        assert result.proposed_services[0].estimated_cost == "月額3万円〜5万円"
        assert result.proposed_services[0].timeline is None


class TestLegacyCoercion:
    """Single strings are split back into lists."""

    def test_bullet_string_becomes_list(self):
        result = normalize_ai_response('{"mainIssues": "A・B・C"}')
        assert result.main_issues == ["A", "B", "C"]

    def test_mixed_separators(self):
        raw = json.dumps({"recommendations": "● 口コミ促進\n• HP改善\n\n・ SEO対策"}, ensure_ascii=False)
        result = normalize_ai_response(raw)

        assert result.recommendations == ["口コミ促進", "HP改善", "SEO対策"]

    def test_lists_pass_through_unchanged(self):
        raw = json.dumps({"mainIssues": ["A・B", "C"]}, ensure_ascii=False)
        assert normalize_ai_response(raw).main_issues == ["A・B", "C"]

    def test_split_legacy_list_drops_empty_fragments(self):
        assert split_legacy_list("\n・\n A \n") == ["A"]

    def test_absent_fields_default(self):
        result = normalize_ai_response("{}")

        assert result.current_analysis == ""
        assert result.main_issues == []
        assert result.recommendations == []
        assert result.proposed_services == []
        assert result.expected_effects == ""
        assert result.measure_evaluation is None

    def test_normalizing_own_output_is_idempotent(self, valid_ai_reply):
        first = normalize_ai_response(valid_ai_reply)
        second = normalize_ai_response(json.dumps(first.to_dict(), ensure_ascii=False))

        assert second == first


class TestDegradedResult:
    """Unparseable replies keep the raw text."""

    def test_not_json(self):
        result = normalize_ai_response("not json at all")

        assert result.to_dict() == {
            "currentAnalysis": "not json at all",
            "mainIssues": [],
            "recommendations": [],
            "proposedServices": [],
            "expectedEffects": "",
        }

    def test_broken_json_in_fence_keeps_whole_reply(self):
        raw = "```json\n{\"currentAnalysis\": \n```"
        assert normalize_ai_response(raw).current_analysis == raw

    def test_json_array_is_degraded(self):
        assert normalize_ai_response("[1, 2]").current_analysis == "[1, 2]"

    def test_empty_reply(self):
        assert normalize_ai_response("").current_analysis == ""

    def test_deeply_nested_json_is_degraded(self):
        raw = "[" * 100000 + "]" * 100000
        result = normalize_ai_response(raw)

        assert result.current_analysis == raw
        assert result.main_issues == []


class TestProposedServices:
    """Proposed service coercion."""

    @pytest.mark.parametrize("value,expected", [
        ("HIGH", Priority.HIGH),
        ("low", Priority.LOW),
        (" Medium ", Priority.MEDIUM),
        ("URGENT", Priority.MEDIUM),
        (None, Priority.MEDIUM),
    ])
    def test_parse_priority(self, value, expected):
        assert parse_priority(value) == expected

    def test_single_object_and_junk_entries(self):
        normalizer = AIResponseNormalizer()

        single = normalizer.from_dict({"proposedServices": {"name": "SEO対策"}})
        assert [s.name for s in single.proposed_services] == ["SEO対策"]

        mixed = normalizer.from_dict({"proposedServices": ["SEO対策", {"name": "SNS運用", "timeline": "3ヶ月"}]})
        assert [s.name for s in mixed.proposed_services] == ["SNS運用"]
        assert mixed.proposed_services[0].to_dict()["timeline"] == "3ヶ月"


class TestStoredAnalysis:
    """Reading aiAnalysis values persisted by current and older versions."""

    def test_none_and_empty(self):
        assert load_stored_analysis(None) is None
        assert load_stored_analysis("") is None

    def test_legacy_json_string(self):
        blob = json.dumps({"currentAnalysis": "旧形式", "mainIssues": "A\nB"}, ensure_ascii=False)
        result = load_stored_analysis(blob)

        assert result.current_analysis == "旧形式"
        assert result.main_issues == ["A", "B"]

    def test_normalized_dict(self, valid_ai_reply):
        stored = normalize_ai_response(valid_ai_reply).to_dict()
        assert load_stored_analysis(stored) == normalize_ai_response(valid_ai_reply)

    def test_unexpected_type(self):
        assert load_stored_analysis(42) is None
