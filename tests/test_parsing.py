"""Tests for model reply parsing and keyword classification."""

import pytest

from multas.classification.categories import (
    CATEGORIES,
    category_name,
    get_category,
    is_valid_category,
)
from multas.classification.keywords import classify_by_keywords
from multas.classification.parsing import (
    extract_first_number,
    parse_classification,
    parse_elements,
)


class TestParseClassification:
    def test_japanese_labels(self):
        assert parse_classification("カテゴリ: 3\n理由: 病態の理解", 8) == (3, "病態の理解")

    def test_full_width_colon_and_long_vowel(self):
        assert parse_classification("カテゴリー：12\n理由：予防接種", 8) == (12, "予防接種")

    def test_english_labels(self):
        assert parse_classification("Category 7\nReason: team work", 8) == (7, "team work")

    @pytest.mark.parametrize("reply", ["カテゴリ: 13", "カテゴリ: 0", "わかりません", ""])
    def test_unusable_category_uses_default(self, reply):
        assert parse_classification(reply, 8)[0] == 8

    def test_missing_reason(self):
        assert parse_classification("カテゴリ: 4", 8) == (4, "")


class TestParseElements:
    def test_extracts_in_order(self):
        reply = (
            "要素1: 患者さんの訴えを丁寧に傾聴した\n"
            "要素2: 多職種カンファレンスで方針を共有した\n"
        )
        assert parse_elements(reply) == [
            "患者さんの訴えを丁寧に傾聴した",
            "多職種カンファレンスで方針を共有した",
        ]

    def test_short_elements_dropped(self):
        reply = "要素1: 短い\n要素2: 訪問診療で高齢者の生活環境を観察した"
        assert parse_elements(reply) == ["訪問診療で高齢者の生活環境を観察した"]

    def test_exactly_min_length_dropped(self):
        assert parse_elements("要素1: " + "あ" * 10) == []
        assert parse_elements("要素1: " + "あ" * 11) == ["あ" * 11]

    def test_limit(self):
        reply = "\n".join(f"要素{i}: 十分に長い学習要素の説明その{i}" for i in range(1, 8))
        assert len(parse_elements(reply, limit=5)) == 5

    def test_no_elements(self):
        assert parse_elements("特に要素はありません") == []


@pytest.mark.parametrize(
    "reply,expected",
    [("7", 7), ("カテゴリ11です", 11), ("13", 8), ("0", 8), ("なし", 8), ("", 8)],
)
def test_extract_first_number(reply, expected):
    assert extract_first_number(reply, 8) == expected


class TestCategories:
    def test_twelve_categories(self):
        assert [c.id for c in CATEGORIES] == list(range(1, 13))

    def test_lookup(self):
        assert get_category(8).name == "コミュニケーション"
        assert get_category(0) is None
        assert category_name(0) == "未分類"

    @pytest.mark.parametrize(
        "value,expected",
        [(1, True), (12, True), (0, False), (13, False), (True, False), ("3", False)],
    )
    def test_is_valid_category(self, value, expected):
        assert is_valid_category(value) is expected


class TestKeywordClassification:
    def test_first_matching_category_wins(self):
        result = classify_by_keywords("守秘義務について学んだ")
        assert result.category == 1
        assert result.provider == "keyword"
        assert result.reason == "キーワード分類: 医療倫理"

    def test_category_order_breaks_ties(self):
        # 在宅 (2) and 診察 (4) both match
        assert classify_by_keywords("在宅で診察を見学した").category == 2

    def test_substring_match(self):
        assert classify_by_keywords("ソーシャルワーカーと面談した").category == 10

    def test_no_match_uses_default(self):
        result = classify_by_keywords("今日は晴れていた", default=5)
        assert result.category == 5
        assert result.provider == "fallback"
        assert result.reason == "デフォルト分類: 問題解決能力"
