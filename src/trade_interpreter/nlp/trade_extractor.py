"""
Trade term extraction.

Scans an utterance for quantity / unit / price / currency facts using an
ordered list of numeric pattern matchers. Only the first structural match is
returned; utterances carrying several terms yield their first one.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from trade_interpreter.config import get_settings
from trade_interpreter.nlp.numeric_tokens import AMOUNT, CODE, SYMBOL, parse_amount
from trade_interpreter.schemas import TradeTerm

logger = logging.getLogger(__name__)

_UNIT = (
    r"(?P<unit>units?|pieces?|pcs|items?|kilogram(?:s|a|u|e)?|kilos?|kg|"
    r"tonnes?|ton[ae]|tons?|liters?|litres?|litara|boxes|box|pallets?|crates?|"
    r"komad[aie]?|kutij[ae]|吨|公斤|个|件)"
    r"(?![A-Za-z])"
)
_CURRENCY_WORD = (
    r"(?:dollars?|dolara|euros?|evr[ao]|pounds?|yuan|元|rupees?|dinar[ai]?|"
    r"złotych|złoty|zł|korun[ay]?|koruna|đồng)"
)
_PRICE = rf"(?:{SYMBOL}\s?)?(?P<price>{AMOUNT})"
_PRICE_MARKER = rf"(?:\s?{SYMBOL}|\s?{_CURRENCY_WORD}|\s?{CODE})"

# Secondary pass: first marker found decides the currency code.
CURRENCY_MARKERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\$|\bdollars?\b|\bdolara\b|\bUSD\b|美元|डॉलर", re.IGNORECASE), "USD"),
    (re.compile(r"€|\beuros?\b|\bevr[ao]\b|\bEUR\b", re.IGNORECASE), "EUR"),
    (re.compile(r"£|\bpounds?\b|\bGBP\b", re.IGNORECASE), "GBP"),
    (re.compile(r"¥|\byuan\b|元|人民币|\bCNY\b", re.IGNORECASE), "CNY"),
    (re.compile(r"₹|\brupees?\b|रुपए|\bINR\b", re.IGNORECASE), "INR"),
    (re.compile(r"\bdinar[ai]?\b|\bRSD\b", re.IGNORECASE), "RSD"),
    (re.compile(r"\bzł|\bPLN\b", re.IGNORECASE), "PLN"),
    (re.compile(r"\bKč|\bkorun[ay]?\b|\bCZK\b", re.IGNORECASE), "CZK"),
    (re.compile(r"₫|đồng|\bVND\b", re.IGNORECASE), "VND"),
)


@dataclass(frozen=True)
class _Matcher:
    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str]], tuple[float, str, float]]


def _group_amount(m: re.Match[str], name: str) -> float:
    try:
        raw = m.group(name)
    except IndexError:
        return 0.0
    value = parse_amount(raw) if raw else None
    return value if value is not None else 0.0


def _unit(m: re.Match[str]) -> str:
    try:
        return (m.group("unit") or "units").lower()
    except IndexError:
        return "units"


DEFAULT_MATCHERS: tuple[_Matcher, ...] = (
    # "120 units at $4.50", "120 komada po 4,50 dolara"
    _Matcher(
        "quantity-unit-at-price",
        re.compile(
            rf"(?P<qty>{AMOUNT})\s*{_UNIT}[^.?!\d]{{0,24}}?(?:\s(?:at|for|po|za)\s+|\s*@\s*){_PRICE}",
            re.IGNORECASE,
        ),
        lambda m: (_group_amount(m, "qty"), _unit(m), _group_amount(m, "price")),
    ),
    # "3,50 evra po kilogramu", "$4.50 per unit"
    _Matcher(
        "price-per-unit",
        re.compile(
            rf"{_PRICE}{_PRICE_MARKER}?\s*(?:per|po|a|/)\s*{_UNIT}",
            re.IGNORECASE,
        ),
        lambda m: (0.0, _unit(m), _group_amount(m, "price")),
    ),
    # "$4.50", "25 euros", "120元"
    _Matcher(
        "currency-amount",
        re.compile(
            rf"{SYMBOL}\s?(?P<price>{AMOUNT})|(?P<price_after>{AMOUNT}){_PRICE_MARKER}",
            re.IGNORECASE,
        ),
        lambda m: (
            0.0,
            "units",
            _group_amount(m, "price") or _group_amount(m, "price_after"),
        ),
    ),
    # "5 tons", "120 komada"
    _Matcher(
        "quantity-unit",
        re.compile(rf"(?P<qty>{AMOUNT})\s*{_UNIT}", re.IGNORECASE),
        lambda m: (_group_amount(m, "qty"), _unit(m), 0.0),
    ),
)


class TradeEntityExtractor:
    """
    Pattern-based extractor for trade terms.

    Returns None for the (frequent) utterances that carry no price or
    quantity; never raises on unrecognized input.
    """

    def __init__(
        self,
        default_currency: str | None = None,
        matchers: tuple[_Matcher, ...] | None = None,
    ) -> None:
        """
        Initialize the extractor.

        Args:
            default_currency: Currency used when no marker is found (uses config if None).
            matchers: Ordered matchers (defaults to DEFAULT_MATCHERS).
        """
        self._default_currency = default_currency or get_settings().default_currency
        self._matchers = matchers if matchers is not None else DEFAULT_MATCHERS

    def extract(self, text: str) -> TradeTerm | None:
        """
        Extract the first trade term from an utterance.

        Args:
            text: Utterance text.

        Returns:
            The extracted TradeTerm, or None when no matcher applies.
        """
        t = (text or "").strip()
        if not t:
            return None

        for matcher in self._matchers:
            m = matcher.pattern.search(t)
            if not m:
                continue
            quantity, unit, unit_price = matcher.build(m)
            total = round(quantity * unit_price, 4) if quantity and unit_price else 0.0
            term = TradeTerm(
                quantity=quantity,
                unit=unit,
                unit_price=unit_price,
                currency=self.resolve_currency(t),
                total_value=total,
            )
            logger.debug(f"Trade term via {matcher.name}: {term.model_dump()}")
            return term

        return None

    def resolve_currency(self, text: str) -> str:
        """Resolve the currency code mentioned in ``text`` (default when none)."""
        for pattern, code in CURRENCY_MARKERS:
            if pattern.search(text or ""):
                return code
        return self._default_currency
