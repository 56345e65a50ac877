"""
Numeric and currency token matching.

Shared pattern fragments used by the trade term extractor, plus the token
collection, verification and slot-finding helpers the preserving translator
uses to guarantee numeric fidelity.

A *token* is a numeric or currency substring of a source utterance that must
survive translation verbatim (``$4.50``, ``120``, ``4,50``, ``USD``). A *slot*
is a numeric-looking span in a provider's output that may be a (possibly
mangled) rendering of a token: a localized number, a rounded value, a
spelled-out number or a currency code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

TokenKind = Literal["amount", "code", "words"]

CURRENCY_SYMBOLS = "$€£¥₹₫"
CURRENCY_CODES: tuple[str, ...] = (
    "USD", "EUR", "GBP", "CNY", "INR", "RSD", "PLN", "CZK", "VND", "JPY", "CHF",
)

# Pattern fragments (shared with trade_extractor)
SYMBOL = rf"[{re.escape(CURRENCY_SYMBOLS)}]"
AMOUNT = r"\d+(?:[.,]\d+)*"
CODE = r"\b(?:" + "|".join(CURRENCY_CODES) + r")\b"

# A symbol glued to the digits before it belongs to that amount (``958€ 120``).
_TOKEN_RE = re.compile(
    rf"{SYMBOL}\s?{AMOUNT}"
    rf"|{AMOUNT}(?:{SYMBOL}|\s{SYMBOL}(?!\s?\d))?"
    rf"|{CODE}"
)

_SLOT_NUMBER = r"\d+(?:(?:[.,'\u00a0\u202f]|\s(?=\d{3}\b))\d+)*"

_UNIT_WORDS: dict[str, int] = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
    "thirteen": 13, "fourteen": 14, "fifteen": 15, "sixteen": 16,
    "seventeen": 17, "eighteen": 18, "nineteen": 19, "twenty": 20,
    "thirty": 30, "forty": 40, "fifty": 50, "sixty": 60, "seventy": 70,
    "eighty": 80, "ninety": 90,
    # Serbian (Latin)
    "nula": 0, "jedan": 1, "jedna": 1, "jedno": 1, "dva": 2, "dve": 2,
    "tri": 3, "četiri": 4, "pet": 5, "šest": 6, "sedam": 7, "osam": 8,
    "devet": 9, "deset": 10, "dvadeset": 20, "trideset": 30,
    "četrdeset": 40, "pedeset": 50, "šezdeset": 60, "sedamdeset": 70,
    "osamdeset": 80, "devedeset": 90, "sto": 100,
}
_SCALE_WORDS: dict[str, int] = {
    "hundred": 100, "thousand": 1000, "million": 1_000_000,
    "hiljada": 1000, "hiljadu": 1000, "miliona": 1_000_000,
}
_JOINERS = {"and", "i"}
_POINTS = {"point", "zarez"}

_NUMBER_WORD = "(?:" + "|".join(sorted({*_UNIT_WORDS, *_SCALE_WORDS}, key=len, reverse=True)) + ")"
_WORDS_SLOT = (
    rf"\b{_NUMBER_WORD}"
    rf"(?:(?:\s+|-)(?:(?:{'|'.join(sorted(_JOINERS | _POINTS))})\s+)?{_NUMBER_WORD})*\b"
)

_SLOT_RE = re.compile(
    rf"(?P<amount>(?:{SYMBOL}\s?)?{_SLOT_NUMBER}(?:{SYMBOL}|\s{SYMBOL}(?!\s?\d))?)"
    rf"|(?P<code>{CODE})"
    rf"|(?P<words>{_WORDS_SLOT})",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class NumericToken:
    """A numeric or currency substring located in a piece of text."""

    text: str
    start: int
    end: int
    kind: TokenKind


def parse_amount(text: str) -> float | None:
    """
    Parse a possibly localized number (``4.50``, ``4,50``, ``1,000``, ``4.500,00``).

    A lone comma followed by exactly three digits is read as a thousands
    separator; any other lone separator is a decimal point.
    """
    s = re.sub(r"[^\d.,]", "", text or "")
    if not s or not s[0].isdigit():
        return None

    if "," in s and "." in s:
        decimal = "," if s.rfind(",") > s.rfind(".") else "."
        thousands = "." if decimal == "," else ","
        s = s.replace(thousands, "").replace(decimal, ".")
    elif "," in s:
        parts = s.split(",")
        if len(parts) == 2 and len(parts[1]) != 3:
            s = s.replace(",", ".")
        else:
            s = s.replace(",", "")
    elif s.count(".") > 1:
        s = s.replace(".", "")

    try:
        return float(s)
    except ValueError:
        return None


def _candidate_values(text: str) -> list[float]:
    """All plausible values of a localized number, covering ``4.500`` = 4.5 or 4500."""
    values: list[float] = []
    parsed = parse_amount(text)
    if parsed is not None:
        values.append(parsed)
    digits = re.sub(r"[^\d.,]", "", text or "")
    if re.fullmatch(r"\d+[.,]\d{3}", digits):
        values.append(float(re.sub(r"[.,]", "", digits)))
        values.append(float(digits.replace(",", ".")))
    return values


def parse_number_words(text: str) -> float | None:
    """Parse spelled-out numbers (``one hundred twenty``, ``four point five``, ``sto dvadeset``)."""
    words = [w for w in re.split(r"[\s\-]+", (text or "").lower()) if w]
    if not words:
        return None

    total = 0
    current = 0
    decimals: str | None = None
    for w in words:
        if w in _JOINERS:
            continue
        if w in _POINTS:
            decimals = ""
            continue
        if decimals is not None:
            v = _UNIT_WORDS.get(w)
            if v is None or v > 9:
                return None
            decimals += str(v)
            continue
        if w in _SCALE_WORDS:
            scale = _SCALE_WORDS[w]
            if scale == 100:
                current = max(current, 1) * 100
            else:
                total += max(current, 1) * scale
                current = 0
        elif w in _UNIT_WORDS:
            current += _UNIT_WORDS[w]
        else:
            return None

    value = total + current
    if decimals:
        return float(f"{value}.{decimals}")
    return float(value)


def token_value(token: NumericToken) -> float | None:
    """Numeric value of an amount or words token, None for currency codes."""
    if token.kind == "amount":
        return parse_amount(token.text)
    if token.kind == "words":
        return parse_number_words(token.text)
    return None


def collect_tokens(text: str) -> list[NumericToken]:
    """
    Collect numeric/currency tokens left to right.

    Symbol+amount compounds (``$4.50``, ``4.50€``) are one token; bare numbers
    and ISO currency codes are tokens of their own. A trailing symbol is only
    split off when a space separates it from the amount and a number follows.
    """
    tokens: list[NumericToken] = []
    for m in _TOKEN_RE.finditer(text or ""):
        kind: TokenKind = "code" if m.group(0).upper() in CURRENCY_CODES else "amount"
        tokens.append(NumericToken(text=m.group(0), start=m.start(), end=m.end(), kind=kind))
    return tokens


def find_slots(text: str) -> list[NumericToken]:
    """Find numeric-looking spans in translated text that may render a token."""
    slots: list[NumericToken] = []
    for m in _SLOT_RE.finditer(text or ""):
        kind: TokenKind = m.lastgroup  # type: ignore[assignment]
        slots.append(NumericToken(text=m.group(0), start=m.start(), end=m.end(), kind=kind))
    return slots


def _token_pattern(token_text: str) -> re.Pattern[str]:
    body = re.escape(token_text)
    if token_text[:1].isalpha():
        return re.compile(rf"\b{body}\b")
    lead = r"(?<!\d)(?<!\d[.,])" if token_text[:1].isdigit() else ""
    trail = r"(?!\d)(?![.,]\d)" if token_text[-1:].isdigit() else ""
    return re.compile(rf"{lead}{body}{trail}")


def find_token(text: str, token_text: str, start: int = 0) -> int:
    """Return the index of a whole-token occurrence at or after ``start``, or -1."""
    m = _token_pattern(token_text).search(text, start)
    return m.start() if m else -1


def tokens_preserved(tokens: list[NumericToken], text: str) -> bool:
    """Check that every token appears verbatim in ``text``, in the same relative order."""
    pos = 0
    for token in tokens:
        idx = find_token(text, token.text, pos)
        if idx < 0:
            return False
        pos = idx + len(token.text)
    return True


def missing_tokens(tokens: list[NumericToken], text: str) -> list[str]:
    """List token texts that are absent from ``text`` (order-insensitive)."""
    return [t.text for t in tokens if find_token(text, t.text) < 0]


def digits_only(text: str) -> str:
    return re.sub(r"\D", "", text or "")


def resembles(token: NumericToken, slot: NumericToken) -> bool:
    """
    Check whether ``slot`` is plausibly a rendering of ``token``.

    Accepts identical text, identical digit sequences (localized separators),
    and values within rounding distance.
    """
    if token.kind == "code":
        return slot.kind == "code" and slot.text.upper() == token.text.upper()
    if slot.kind == "code":
        return False
    if slot.text == token.text:
        return True
    if slot.kind == "amount" and digits_only(slot.text) == digits_only(token.text):
        return True

    expected = token_value(token)
    if expected is None:
        return False
    observed = _candidate_values(slot.text) if slot.kind == "amount" else [token_value(slot)]
    tolerance = max(0.5, abs(expected) * 0.05)
    return any(v is not None and abs(v - expected) <= tolerance for v in observed)


def compatible(token: NumericToken, slot: NumericToken) -> bool:
    """Check whether ``slot`` has a kind that could render ``token``."""
    if token.kind == "code":
        return slot.kind == "code"
    return slot.kind in ("amount", "words")
