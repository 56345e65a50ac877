"""
Voice selection.

Maps a target language tag (and optional gender preference) to a synthesis
voice identifier. Unknown languages fall back to the language family, then
to the default English voice, so selection never fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from trade_interpreter.nlp.language_detector import primary_subtag
from trade_interpreter.schemas import VoiceGender

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoicePair:
    male: str
    female: str

    def pick(self, gender: VoiceGender | None) -> str:
        return self.male if gender == "male" else self.female


DEFAULT_VOICES: dict[str, VoicePair] = {
    "en-US": VoicePair("en-US-DavisNeural", "en-US-AriaNeural"),
    "sr-RS": VoicePair("sr-RS-NicholasNeural", "sr-RS-SophieNeural"),
    "zh-CN": VoicePair("zh-CN-YunxiNeural", "zh-CN-XiaoxiaoNeural"),
    "hi-IN": VoicePair("hi-IN-MadhurNeural", "hi-IN-SwaraNeural"),
    "vi-VN": VoicePair("vi-VN-NamMinhNeural", "vi-VN-HoaiMyNeural"),
    "pl-PL": VoicePair("pl-PL-MarekNeural", "pl-PL-ZofiaNeural"),
    "cs-CZ": VoicePair("cs-CZ-AntoninNeural", "cs-CZ-VlastaNeural"),
    "es-ES": VoicePair("es-ES-AlvaroNeural", "es-ES-ElviraNeural"),
    "fr-FR": VoicePair("fr-FR-HenriNeural", "fr-FR-DeniseNeural"),
    "de-DE": VoicePair("de-DE-ConradNeural", "de-DE-KatjaNeural"),
    "ja-JP": VoicePair("ja-JP-KeitaNeural", "ja-JP-NanamiNeural"),
    "ar-SA": VoicePair("ar-SA-HamedNeural", "ar-SA-ZariyahNeural"),
}

DEFAULT_LANGUAGE = "en-US"


class VoiceRouter:
    """Static language -> voice table with family and default fallback."""

    def __init__(
        self,
        voices: dict[str, VoicePair] | None = None,
        default_language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self._voices = dict(voices if voices is not None else DEFAULT_VOICES)
        if default_language not in self._voices:
            raise ValueError(f"Default language {default_language!r} has no voices")
        self._default_language = default_language

        # First full tag registered for a primary subtag serves the family.
        self._families: dict[str, str] = {}
        for tag in self._voices:
            self._families.setdefault(primary_subtag(tag), tag)

    @property
    def languages(self) -> list[str]:
        """Get the language tags with a dedicated voice pair."""
        return list(self._voices)

    def voice_for(self, language: str, gender: VoiceGender | None = None) -> str:
        """
        Select a voice for speech in ``language``.

        Args:
            language: Target language tag (``sr``, ``sr-RS``, ``zh-Hans-CN``...).
            gender: Preferred voice gender; female when None.

        Returns:
            A synthesis voice identifier. Never raises.
        """
        tag = (language or "").strip()
        pair = self._voices.get(tag)
        if pair is None:
            family = self._families.get(primary_subtag(tag))
            if family is not None:
                pair = self._voices[family]
        if pair is None:
            logger.debug(f"No voice for {language!r}; using {self._default_language}")
            pair = self._voices[self._default_language]
        return pair.pick(gender)
