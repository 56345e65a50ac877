"""
Utterance language detection.

Classifies the language of a transcribed utterance from its text alone using
an ordered list of lexical and character-class rules. The first matching rule
wins; when nothing matches the configured default tag is returned and the
result is flagged as a default (ambiguous) classification.

Detection is a pure function of the text: no network calls, no randomness.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from trade_interpreter.config import get_settings

logger = logging.getLogger(__name__)


def primary_subtag(tag: str | None) -> str:
    """Return the lower-cased primary language subtag (``sr-RS`` -> ``sr``)."""
    return (tag or "").strip().replace("_", "-").split("-", 1)[0].lower()


def same_language(a: str | None, b: str | None) -> bool:
    """Check whether two language tags name the same language."""
    return primary_subtag(a) == primary_subtag(b)


@dataclass(frozen=True)
class LanguageRule:
    language: str
    name: str
    pattern: re.Pattern[str]
    confidence: float


@dataclass(frozen=True)
class LanguageDetection:
    language: str
    confidence: float
    matched_rule: str | None = None

    @property
    def is_default(self) -> bool:
        """True when no rule matched and the default tag was returned."""
        return self.matched_rule is None


def _words(*words: str) -> str:
    return r"\b(?:" + "|".join(words) + r")\b"


# Order matters: scripts first, then language-unique diacritics, then
# shared diacritics, then stop-words.
DEFAULT_RULES: tuple[LanguageRule, ...] = (
    LanguageRule("zh", "han-script", re.compile(r"[\u4e00-\u9fff]"), 0.95),
    LanguageRule("hi", "devanagari-script", re.compile(r"[\u0900-\u097f]"), 0.95),
    LanguageRule("sr", "cyrillic-script", re.compile(r"[\u0400-\u04ff]"), 0.9),
    LanguageRule(
        "vi",
        "vietnamese-diacritics",
        re.compile(r"[ạảầấậẩẫăằắặẳẵẹẻẽềếệểễịỉĩọỏồốộổỗơờớợởỡụủũưừứựửữỳỵỷỹ]", re.IGNORECASE),
        0.9,
    ),
    LanguageRule("pl", "polish-diacritics", re.compile(r"[ąęłńśźż]", re.IGNORECASE), 0.85),
    LanguageRule("cs", "czech-diacritics", re.compile(r"[ěřůďť]", re.IGNORECASE), 0.85),
    LanguageRule("sr", "serbian-latin-diacritics", re.compile(r"[đćčšž]", re.IGNORECASE), 0.75),
    LanguageRule(
        "vi",
        "vietnamese-words",
        re.compile(_words("xin chào", "giá", "bao nhiêu", "đồng", "cảm ơn"), re.IGNORECASE),
        0.7,
    ),
    LanguageRule(
        "sr",
        "serbian-words",
        re.compile(
            _words(
                "zdravo", "cena", "cene", "mogu", "možete", "možemo", "kako", "šta",
                "evra", "dolara", "dinara", r"komad[aie]?", "hvala", "molim", "isporuka",
            ),
            re.IGNORECASE,
        ),
        0.7,
    ),
    LanguageRule(
        "pl",
        "polish-words",
        re.compile(_words("dzień dobry", "ile", "kosztuje", "złoty", "dziękuję", "proszę"), re.IGNORECASE),
        0.7,
    ),
    LanguageRule(
        "cs",
        "czech-words",
        re.compile(_words("dobrý den", "kolik", "stojí", r"korun[ay]?", "děkuji", "prosím"), re.IGNORECASE),
        0.7,
    ),
    LanguageRule(
        "en",
        "english-words",
        re.compile(
            _words(
                "the", "you", "can", "we", "is", "are", "what", "how", "price", "prices",
                "per", "each", "units?", "need", "deliver(?:y|ed)?", "hello", "thanks?",
            ),
            re.IGNORECASE,
        ),
        0.6,
    ),
)


class LanguageDetector:
    """Rule-based utterance language classifier."""

    def __init__(
        self,
        rules: tuple[LanguageRule, ...] | None = None,
        default_language: str | None = None,
    ) -> None:
        """
        Initialize the detector.

        Args:
            rules: Ordered detection rules (defaults to DEFAULT_RULES).
            default_language: Tag returned when nothing matches (uses config if None).
        """
        self._rules = rules if rules is not None else DEFAULT_RULES
        self._default_language = default_language or get_settings().default_language

    @property
    def default_language(self) -> str:
        """Get the fallback language tag."""
        return self._default_language

    def detect_with_confidence(self, text: str) -> LanguageDetection:
        """
        Classify the language of an utterance.

        Args:
            text: Raw utterance text.

        Returns:
            Detection result; ``is_default`` is set when no rule matched.
        """
        t = (text or "").strip()
        if not t:
            return LanguageDetection(language=self._default_language, confidence=0.0)

        for rule in self._rules:
            if rule.pattern.search(t):
                return LanguageDetection(
                    language=rule.language,
                    confidence=rule.confidence,
                    matched_rule=rule.name,
                )

        logger.debug(f"No language rule matched; defaulting to {self._default_language}")
        return LanguageDetection(language=self._default_language, confidence=0.0)

    def detect(self, text: str) -> str:
        """Return the detected language tag for ``text``."""
        return self.detect_with_confidence(text).language
