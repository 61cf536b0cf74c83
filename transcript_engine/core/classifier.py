"""
Language/content classification for transcript text.

Classification is advisory: it never blocks display. It toggles the fallback
transcription path and adds UI annotations, and tells the analysis client
whether to ask for bilingual handling.
"""

from dataclasses import dataclass

# Devanagari
DEFAULT_TARGET_LOCALE_START = 0x0900
DEFAULT_TARGET_LOCALE_END = 0x097F

_DEFAULT_WHITESPACE = frozenset("\t\n\r")


@dataclass(frozen=True)
class LanguageClassification:
    is_non_default_language: bool = False
    is_target_locale: bool = False

    @property
    def should_attempt_fallback(self) -> bool:
        return self.is_non_default_language


def _is_default_char(char: str) -> bool:
    return 0x20 <= ord(char) <= 0x7E or char in _DEFAULT_WHITESPACE


class LanguageClassifier:
    """
    Flags text outside printable ASCII, and text in a secondary-locale block.

    Any character outside printable ASCII (plus tab/CR/LF) marks the text as
    non-default language. Any character inside the configured Unicode block
    marks it as target locale, which always implies non-default.
    """

    def __init__(self, target_locale_start: int = DEFAULT_TARGET_LOCALE_START,
                 target_locale_end: int = DEFAULT_TARGET_LOCALE_END):
        if target_locale_start > target_locale_end:
            raise ValueError("target_locale_start must not exceed target_locale_end")
        self.target_locale_start = target_locale_start
        self.target_locale_end = target_locale_end

    def classify(self, text: str) -> LanguageClassification:
        if not text:
            return LanguageClassification()
        non_default = False
        target_locale = False
        for char in text:
            if _is_default_char(char):
                continue
            non_default = True
            if self.target_locale_start <= ord(char) <= self.target_locale_end:
                target_locale = True
                break
        return LanguageClassification(is_non_default_language=non_default, is_target_locale=target_locale)

    __call__ = classify


_default_classifier = LanguageClassifier()


def classify(text: str) -> LanguageClassification:
    """Classify `text` with the default (Devanagari) target locale."""
    return _default_classifier.classify(text)
