"""Voice selection and speech delivery."""

from trade_interpreter.voice.synthesis import (
    HTTPVoiceSynthesisProvider,
    SpeechDelivery,
    SynthesisDelivery,
    SynthesisError,
    VoiceSynthesisProviderBase,
)
from trade_interpreter.voice.voice_router import VoicePair, VoiceRouter

__all__ = [
    "HTTPVoiceSynthesisProvider",
    "SpeechDelivery",
    "SynthesisDelivery",
    "SynthesisError",
    "VoiceSynthesisProviderBase",
    "VoicePair",
    "VoiceRouter",
]
