import json

import pytest

from ruralcare.client.errors import ServiceUnavailable
from ruralcare.client.translation import (
    SUPPORTED_LANGUAGES,
    TRANSLATION_DICTIONARY,
    PreferenceStore,
    TranslationContext,
    dictionary_key,
)


class CountingApi:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    async def translate(self, text, target_language, source_language="en"):
        self.calls.append((text, target_language))
        if self.fail:
            raise ServiceUnavailable("translation down", 503)
        return f"{target_language}:{text}"


def test_supported_languages():
    assert [language.code for language in SUPPORTED_LANGUAGES] == ["en", "zu", "xh", "af", "st", "sw", "fr", "pt"]
    assert set(TRANSLATION_DICTIONARY["zu"]) == set(TRANSLATION_DICTIONARY["en"])
    assert set(TRANSLATION_DICTIONARY["xh"]) == set(TRANSLATION_DICTIONARY["en"])


def test_dictionary_key_normalises_phrases():
    assert dictionary_key("  Voice Consultation ") == "voice_consultation"


def test_translate_text_uses_dictionary():
    context = TranslationContext()
    context.set_language("xh")

    assert context.translate_text("Doctor") == "Ugqirha"
    assert context.translate_text("Unlisted phrase") == "Unlisted phrase"


def test_unknown_language_is_rejected():
    with pytest.raises(ValueError):
        TranslationContext().set_language("de")


async def test_english_never_calls_backend():
    api = CountingApi()
    context = TranslationContext(api=api)

    assert await context.translate("Hello there") == "Hello there"
    assert api.calls == []


async def test_remote_translations_are_cached():
    api = CountingApi()
    context = TranslationContext(api=api)
    context.set_language("sw")

    assert await context.translate("Take with food") == "sw:Take with food"
    assert await context.translate("Take with food") == "sw:Take with food"
    assert api.calls == [("Take with food", "sw")]


async def test_translate_text_ignores_remote_cache():
    api = CountingApi()
    context = TranslationContext(api=api)
    context.set_language("sw")

    await context.translate("Take with food")

    assert context.translate_text("Take with food") == "Take with food"


async def test_dictionary_wins_over_backend():
    api = CountingApi()
    context = TranslationContext(api=api)

    assert await context.translate("Emergency", "zu") == "Isimo esiphuthumayo"
    assert api.calls == []


async def test_failed_translation_returns_original():
    api = CountingApi(fail=True)
    context = TranslationContext(api=api)

    assert await context.translate("Take with food", "fr") == "Take with food"
    assert not context.is_translating
    await context.translate("Take with food", "fr")
    assert len(api.calls) == 2


def test_language_preference_is_persisted(tmp_path):
    path = tmp_path / "prefs" / "preferences.json"
    context = TranslationContext(preferences=PreferenceStore(str(path)))
    context.set_language("zu")

    assert json.loads(path.read_text()) == {"preferred_language": "zu"}
    restored = TranslationContext(preferences=PreferenceStore(str(path)))
    assert restored.current_language.code == "zu"


def test_corrupt_preferences_fall_back_to_english(tmp_path):
    path = tmp_path / "preferences.json"
    path.write_text("{not json")

    context = TranslationContext(preferences=PreferenceStore(str(path)))

    assert context.current_language.code == "en"
