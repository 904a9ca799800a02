"""Tests for submission validation and the experience service."""

from unittest.mock import MagicMock

import pytest

from conftest import FakeModel
from multas.classification.pipeline import ClassificationPipeline
from multas.protocols import StorageError
from multas.storage.hybrid import HybridStorage
from multas.submissions import ExperienceService, validate_submission
from multas.types import DEFAULT_USER_NAME

LONG_TEXT = "救急外来で" + "初期対応の流れを見学し、トリアージの判断を学んだ。" * 10


class TestValidateSubmission:
    @pytest.mark.parametrize("text", [None, "", 123])
    def test_text_required(self, text):
        with pytest.raises(ValueError, match="Text is required"):
            validate_submission(text)

    def test_blank_text(self):
        with pytest.raises(ValueError, match="Text is empty"):
            validate_submission("   \n ")

    def test_too_long(self):
        with pytest.raises(ValueError, match="too long"):
            validate_submission("あ" * 10001)

    def test_max_length_allowed(self):
        text, _, _ = validate_submission("あ" * 10000)
        assert len(text) == 10000

    def test_text_is_trimmed(self):
        assert validate_submission("  聴診した  ")[0] == "聴診した"

    def test_guest_user(self):
        assert validate_submission("t", "  ")[1] == DEFAULT_USER_NAME
        assert validate_submission("t", None)[1] == DEFAULT_USER_NAME

    def test_user_name_truncated(self):
        assert validate_submission("t", "名" * 150)[1] == "名" * 100

    @pytest.mark.parametrize(
        "category,expected",
        [(None, None), (3, 3), ("5", 5), (0, 8), (99, 8), ("x", 8)],
    )
    def test_category(self, category, expected):
        assert validate_submission("t", "u", category)[2] == expected


@pytest.fixture
def storage(workbook):
    return HybridStorage(workbook)


class TestExperienceService:
    def test_explicit_category_skips_classification(self, storage):
        model = FakeModel()
        service = ExperienceService(storage, ClassificationPipeline(model))

        result = service.submit("病棟で採血を見学した", "山田", category=4, reason="手技")

        assert model.prompts == []
        [record] = result.records
        assert record.category == 4
        assert record.reason == "手技"
        assert record.user_name == "山田"
        assert result.is_multiple is False

    def test_short_text_classified_once(self, storage):
        service = ExperienceService(
            storage, ClassificationPipeline(FakeModel(["カテゴリ: 8\n理由: 傾聴"]))
        )

        result = service.submit("患者さんの話を傾聴した", "山田")

        [record] = storage.load_all_records()
        assert record.category == 8
        assert record.reason == "傾聴"
        assert result.to_dict()["is_multiple"] is False

    def test_long_text_becomes_one_record_per_element(self, storage):
        def reply(prompt):
            if "要素1:" in prompt:
                return "要素1: トリアージの判断基準を学んだ\n要素2: 救急外来での初期対応を見学した"
            return "カテゴリ: 5\n理由: 判断" if "トリアージ" in prompt else "カテゴリ: 3\n理由: 対応"

        service = ExperienceService(storage, ClassificationPipeline(FakeModel(reply)))
        result = service.submit(LONG_TEXT, "佐藤")

        records = storage.load_all_records()
        assert result.is_multiple is True
        assert [r.text for r in records] == [
            "トリアージの判断基準を学んだ",
            "救急外来での初期対応を見学した",
        ]
        assert [r.category for r in records] == [5, 3]
        assert len({r.id for r in records}) == 2
        assert all(r.user_name == "佐藤" for r in records)

    def test_classification_failure_still_stores(self, storage):
        service = ExperienceService(
            storage, ClassificationPipeline(FakeModel(error=RuntimeError("down")))
        )
        service.submit("患者さんの話を聞いた")

        [record] = storage.load_all_records()
        assert record.category == 8
        assert record.reason == "エラー: down"
        assert record.user_name == DEFAULT_USER_NAME

    def test_storage_failure_propagates(self):
        storage = MagicMock()
        storage.add_record.side_effect = StorageError("disk full")
        service = ExperienceService(storage, ClassificationPipeline())
        with pytest.raises(StorageError):
            service.submit("患者さんの話を聞いた", category=8)

    def test_invalid_input_rejected_before_storage(self):
        storage = MagicMock()
        service = ExperienceService(storage, ClassificationPipeline())
        with pytest.raises(ValueError):
            service.submit("")
        storage.add_record.assert_not_called()

    def test_synced_flag(self, storage):
        service = ExperienceService(storage, ClassificationPipeline())
        assert service.submit("検査の説明をした", category=1).synced is False


class TestEdit:
    def test_reclassifies_and_updates(self, storage):
        service = ExperienceService(storage, ClassificationPipeline())
        record = service.submit("検査の説明をした", category=1).records[0]

        assert service.edit(record.id, "多職種カンファレンスに参加した") is True

        [updated] = storage.load_all_records()
        assert updated.text == "多職種カンファレンスに参加した"
        assert updated.category == 7
        assert updated.timestamp == record.timestamp

    def test_unknown_record(self, storage):
        service = ExperienceService(storage, ClassificationPipeline())
        assert service.edit("missing", "多職種で連携した") is False
