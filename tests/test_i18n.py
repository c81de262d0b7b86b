"""
Test suite for translation loading and lookup.
"""

import json
from pathlib import Path

import pytest

from stepwise.core.exceptions import TranslationsLoadError, TranslationsTimeoutError
from stepwise.services.i18n import Translator


@pytest.fixture
def translations_dir(tmp_path: Path) -> Path:
    for language, resources in {
        "en": {"pages": {"name": {"header": "Your name"}}, "only": {"en": "English"}},
        "cy": {"pages": {"name": {"header": "Eich enw"}}},
    }.items():
        path = tmp_path / language / "default.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps(resources), encoding="utf-8")
    return tmp_path


@pytest.fixture
def translator(translations_dir: Path) -> Translator:
    translator = Translator(translations_dir, languages=["en", "cy"], autoload=False)
    translator.load()
    return translator


class TestLookup:
    """Test suite for dotted key lookup."""

    def test_dotted_key(self, translator: Translator):
        assert translator.translate("pages.name.header") == "Your name"

    def test_requested_language(self, translator: Translator):
        assert translator.translate("pages.name.header", lang="cy") == "Eich enw"

    def test_falls_back_to_default_language(self, translator: Translator):
        assert translator.translate("only.en", lang="cy") == "English"

    def test_missing_key_returns_key(self, translator: Translator):
        assert translator.translate("pages.nope.header") == "pages.nope.header"

    def test_missing_key_returns_default(self, translator: Translator):
        assert translator("pages.nope.header", default="Fallback") == "Fallback"

    def test_nested_mapping_returned(self, translator: Translator):
        assert translator.translate("pages.name") == {"header": "Your name"}

    def test_default_language_always_loaded(self, translations_dir: Path):
        translator = Translator(translations_dir, languages=["cy"], autoload=False)

        assert translator.languages == ["cy", "en"]


class TestLoading:
    """Test suite for readiness and load failures."""

    def test_background_load_becomes_ready(self, translations_dir: Path):
        translator = Translator(translations_dir)

        assert translator.wait_until_ready(5) is True
        assert translator.is_ready

    def test_not_ready_before_load(self, translations_dir: Path):
        translator = Translator(translations_dir, autoload=False)

        assert translator.is_ready is False
        assert translator.wait_until_ready(0.01) is False

    def test_missing_directory_loads_empty(self, tmp_path: Path):
        translator = Translator(tmp_path / "missing", autoload=False)
        translator.load()

        assert translator.is_ready
        assert translator.translate("anything") == "anything"

    def test_invalid_json_raises_load_error(self, tmp_path: Path):
        path = tmp_path / "en" / "default.json"
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")
        translator = Translator(tmp_path, autoload=False)
        translator.load()

        assert translator.is_ready is False
        with pytest.raises(TranslationsLoadError):
            translator.wait_until_ready(1)

    @pytest.mark.asyncio
    async def test_ready_times_out(self, translations_dir: Path):
        translator = Translator(translations_dir, autoload=False)

        with pytest.raises(TranslationsTimeoutError):
            await translator.ready(0.05)

    @pytest.mark.asyncio
    async def test_ready_returns_once_loaded(self, translator: Translator):
        await translator.ready(1)

        assert translator.is_ready

    def test_timeout_error_maps_to_unavailable(self):
        assert TranslationsTimeoutError("late").status_code == 503
