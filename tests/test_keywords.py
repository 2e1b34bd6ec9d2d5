"""Tests for the keyword clean-up utility."""

import json

import pytest

from singaseong_chat.keywords import (
    dedupe,
    extract_keywords_from_summary,
    is_generic_keyword,
    normalize_document,
    normalize_item,
    parse_keywords,
    process_file,
    refine_generic_keyword,
    sanitize_keyword,
    strip_particles,
)

SUMMARY = "정부가 반도체 지원 정책을 발표했다"


class TestSanitize:
    @pytest.mark.parametrize("raw, expected", [
        ("  삼성전자  ", "삼성전자"),
        ("- 반도체", "반도체"),
        ("1. 반도체", "반도체"),
        ("키워드: 2차전지", "2차전지"),
        ('"HBM 메모리"', "HBM 메모리"),
        ("AI   반도체", "AI 반도체"),
        (None, ""),
    ])
    def test_sanitize(self, raw, expected):
        assert sanitize_keyword(raw) == expected


class TestStripParticles:
    def test_particle(self):
        assert strip_particles("정부가") == "정부"
        assert strip_particles("정책을") == "정책"

    def test_verb_ending(self):
        assert strip_particles("발표했다") == "발표"

    def test_short_word_keeps_verb_like_ending(self):
        assert strip_particles("최고") == "최고"


class TestGeneric:
    @pytest.mark.parametrize("keyword", ["정부 관련", "시장 동향", "지원", "!!", "", "IT관련"])
    def test_generic(self, keyword):
        assert is_generic_keyword(keyword)

    @pytest.mark.parametrize("keyword", ["AI", "반도체", "삼성전자"])
    def test_specific(self, keyword):
        assert not is_generic_keyword(keyword)


class TestRefine:
    def test_refines_from_summary(self):
        assert refine_generic_keyword("정부 관련", SUMMARY) == "정부 반도체"

    def test_no_summary(self):
        assert refine_generic_keyword("정부 관련", "") == ""

    def test_no_match(self):
        assert refine_generic_keyword("비즈니스 관련", SUMMARY) == ""


class TestParseKeywords:
    def test_dedupe_and_generic_refinement(self):
        result = parse_keywords(["정부 관련", "삼성전자, 삼성전자"], SUMMARY)
        assert result == ["정부 반도체", "삼성전자"]

    def test_string_input_split(self):
        assert parse_keywords("반도체; 2차전지\nHBM") == ["반도체", "2차전지", "HBM"]

    def test_limit(self):
        raw = ", ".join(f"종목{i}" for i in range(10))
        assert len(parse_keywords(raw, limit=6)) == 6

    def test_summary_supplements(self):
        summary = "엔비디아 실적 호조로 엔비디아 주가 급등 반도체 업황 개선"
        result = parse_keywords([], summary, limit=3)
        assert result[0] == "엔비디아"
        assert len(result) == 3

    def test_non_string_entries_skipped(self):
        assert parse_keywords([None, 3, "반도체"]) == ["반도체"]


class TestSummaryExtraction:
    def test_existing_keywords_not_repeated(self):
        result = extract_keywords_from_summary("반도체 반도체 장비 수출", ["반도체 장비"])
        assert "반도체" not in result
        assert "수출" not in result  # two characters, too generic
        assert result == []

    def test_empty(self):
        assert extract_keywords_from_summary("") == []


class TestNormalize:
    def test_item_fields(self):
        item = {"title": "t", "overview": SUMMARY, "tags": ["정부 관련"]}
        out = normalize_item(item)
        assert out["keywords"][0] == "정부 반도체"
        assert out["title"] == "t"
        assert "keywords" not in item

    def test_non_dict(self):
        assert normalize_item("x") is None

    def test_array_keeps_non_dicts(self):
        out = normalize_document([{"keywords": "반도체"}, 5])
        assert out == [{"keywords": ["반도체"]}, 5]

    def test_unsupported(self):
        with pytest.raises(ValueError):
            normalize_document("just a string")


class TestProcessFile:
    def test_round_trip_file(self, tmp_path):
        src = tmp_path / "in.json"
        dst = tmp_path / "out.json"
        src.write_text(json.dumps(
            [{"summary": SUMMARY, "keywords": ["정부 관련", "반도체"]}],
            ensure_ascii=False,
        ), encoding="utf-8")
        process_file(src, dst)
        data = json.loads(dst.read_text(encoding="utf-8"))
        assert data[0]["keywords"][:2] == ["정부 반도체", "반도체"]

    def test_dedupe_helper(self):
        assert dedupe(["a", "", "b", "a"]) == ["a", "b"]
