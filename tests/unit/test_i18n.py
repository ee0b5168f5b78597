"""Unit tests for localized command messages."""

import pytest

from openspec.i18n import CATALOGS, LanguageContext, detect_language
from openspec.models import TaskProgress


class TestDetectLanguage:
    """Test cases for language detection."""

    def test_explicit_value_wins(self, monkeypatch):
        monkeypatch.setenv("OPENSPEC_LANG", "en")

        assert detect_language("zh-CN") == "zh"

    @pytest.mark.parametrize("value,expected", [("zh_CN.UTF-8", "zh"), ("en_US", "en"), ("fr_FR", "en")])
    def test_environment(self, monkeypatch, value, expected):
        monkeypatch.setenv("OPENSPEC_LANG", value)

        assert detect_language() == expected

    def test_falls_back_to_locale(self, monkeypatch):
        monkeypatch.delenv("OPENSPEC_LANG")
        monkeypatch.delenv("LC_ALL", raising=False)
        monkeypatch.delenv("LC_MESSAGES", raising=False)
        monkeypatch.setenv("LANG", "zh_TW.UTF-8")

        assert LanguageContext.detect().language == "zh"

    def test_defaults_to_english(self, monkeypatch):
        for name in ("OPENSPEC_LANG", "LC_ALL", "LC_MESSAGES", "LANG"):
            monkeypatch.delenv(name, raising=False)

        assert detect_language() == "en"


class TestLanguageContext:
    """Test cases for message lookup."""

    def test_formats_parameters(self):
        assert LanguageContext("en").t("archive.failed", error="boom") == "Archive failed: boom"
        assert LanguageContext("zh").t("archive.failed", error="boom") == "归档失败: boom"

    def test_missing_translation_falls_back_to_english(self, monkeypatch):
        monkeypatch.setitem(CATALOGS["en"], "test.only_english", "Only {what}")

        assert LanguageContext("zh").t("test.only_english", what="English") == "Only English"

    def test_unknown_key_is_returned(self):
        assert LanguageContext("en").t("no.such.key") == "no.such.key"

    def test_catalogs_share_keys(self):
        assert set(CATALOGS["zh"]) <= set(CATALOGS["en"])

    @pytest.mark.parametrize(
        "progress,expected",
        [
            (TaskProgress(total=0, completed=0), "No tasks"),
            (TaskProgress(total=3, completed=3), "✓ Complete"),
            (TaskProgress(total=3, completed=1), "1/3 tasks"),
        ],
    )
    def test_task_status(self, progress, expected):
        assert LanguageContext("en").task_status(progress) == expected
