"""
Trade Interpreter.

Real-time bilingual voice interpretation for cross-border trade
negotiations, with guaranteed preservation of prices and quantities.
"""

__version__ = "0.1.0"
