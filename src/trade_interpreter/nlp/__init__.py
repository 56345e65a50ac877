"""
Text analysis for transcribed utterances.

Language detection, trade term extraction and numeric token matching.
"""

from trade_interpreter.nlp.language_detector import (
    LanguageDetection,
    LanguageDetector,
    primary_subtag,
    same_language,
)
from trade_interpreter.nlp.numeric_tokens import NumericToken, collect_tokens, tokens_preserved
from trade_interpreter.nlp.trade_extractor import TradeEntityExtractor

__all__ = [
    "LanguageDetection",
    "LanguageDetector",
    "primary_subtag",
    "same_language",
    "NumericToken",
    "collect_tokens",
    "tokens_preserved",
    "TradeEntityExtractor",
]
