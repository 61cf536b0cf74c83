import pytest

from transcript_engine.core.classifier import LanguageClassifier, classify


class TestClassify:

    @pytest.mark.parametrize("text", [
        "",
        "Hello, how are you?",
        "Order #42: $19.99 (tax incl.) - ok!",
        "line one\nline two\ttabbed\r\n",
    ])
    def test_default_text(self, text):
        result = classify(text)
        assert result.is_non_default_language is False
        assert result.is_target_locale is False
        assert result.should_attempt_fallback is False

    def test_latin_accent_is_non_default_only(self):
        result = classify("café")
        assert result.is_non_default_language is True
        assert result.is_target_locale is False
        assert result.should_attempt_fallback is True

    def test_devanagari_is_target_locale(self):
        result = classify("नमस्ते, how are you?")
        assert result.is_non_default_language is True
        assert result.is_target_locale is True

    def test_target_locale_found_after_other_non_default_chars(self):
        result = classify("café नमस्ते")
        assert result.is_target_locale is True

    def test_other_script_is_not_target_locale(self):
        result = classify("こんにちは")
        assert result.is_non_default_language is True
        assert result.is_target_locale is False


class TestLanguageClassifier:

    def test_custom_block(self):
        # Hiragana
        classifier = LanguageClassifier(0x3040, 0x309F)
        assert classifier("こんにちは").is_target_locale is True
        assert classifier("नमस्ते").is_target_locale is False

    def test_inverted_block_rejected(self):
        with pytest.raises(ValueError):
            LanguageClassifier(0x097F, 0x0900)
