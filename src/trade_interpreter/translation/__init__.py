"""
Translation module.

Provider adapters and the number-preserving translator wrapped around them.
"""

from trade_interpreter.translation.preserving_translator import PreservingTranslator, TranslationOutcome
from trade_interpreter.translation.provider import (
    HTTPTranslationProvider,
    TranslationProviderBase,
    TranslationProviderError,
)

__all__ = [
    "PreservingTranslator",
    "TranslationOutcome",
    "HTTPTranslationProvider",
    "TranslationProviderBase",
    "TranslationProviderError",
]
