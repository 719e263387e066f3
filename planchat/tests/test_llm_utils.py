"""Tests for shared LLM response parsing utilities."""

import pytest
from planchat.common.llm_utils import parse_llm_json


class TestParseLlmJson:
    def test_valid_classification_json(self):
        raw = '{"question_type": "TAKEOFF_QUANTITY", "targets": ["roofing"]}'
        assert parse_llm_json(raw) == {"question_type": "TAKEOFF_QUANTITY", "targets": ["roofing"]}

    def test_json_with_markdown_fences(self):
        raw = '```json\n{"question_type": "PAGE_CONTENT", "pages": [5]}\n```'
        assert parse_llm_json(raw) == {"question_type": "PAGE_CONTENT", "pages": [5]}

    def test_json_embedded_in_text(self):
        raw = 'Classification: {"question_type": "OTHER"} hope that helps.'
        assert parse_llm_json(raw) == {"question_type": "OTHER"}

    @pytest.mark.parametrize("raw", [
        "",
        "This is not JSON at all",
        '{"broken: json',
        '["TAKEOFF_COST"]',
        "42",
        "null",
    ])
    def test_non_object_returns_empty_dict(self, raw):
        assert parse_llm_json(raw) == {}

    def test_nested_json(self):
        raw = '{"targets": ["door", "window"], "levels": ["first floor"]}'
        result = parse_llm_json(raw)
        assert len(result["targets"]) == 2
