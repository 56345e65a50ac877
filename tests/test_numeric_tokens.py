"""
Tests for numeric token collection, parsing and verification helpers.
"""

import pytest

from trade_interpreter.nlp.numeric_tokens import (
    NumericToken,
    collect_tokens,
    find_slots,
    missing_tokens,
    parse_amount,
    parse_number_words,
    resembles,
    tokens_preserved,
)


def _amount(text: str) -> NumericToken:
    return NumericToken(text=text, start=0, end=len(text), kind="amount")


class TestCollectTokens:
    def test_symbol_amount_is_one_token(self) -> None:
        tokens = collect_tokens("Can you do 120 units at $4.50 each?")
        assert [t.text for t in tokens] == ["120", "$4.50"]
        assert all(t.kind == "amount" for t in tokens)

    def test_codes_and_trailing_symbols(self) -> None:
        tokens = collect_tokens("Total 1,000 USD or 950€")
        assert [(t.text, t.kind) for t in tokens] == [("1,000", "amount"), ("USD", "code"), ("950€", "amount")]

    def test_offsets_point_into_source(self) -> None:
        text = "Cena je 3,50 evra"
        (token,) = collect_tokens(text)
        assert text[token.start : token.end] == "3,50"

    def test_glued_symbol_stays_with_preceding_amount(self) -> None:
        assert [t.text for t in collect_tokens("Price is 12€ 5 boxes")] == ["12€", "5"]
        assert [t.text for t in collect_tokens("za 958€ 120 kutija")] == ["958€", "120"]
        assert [t.text for t in collect_tokens("kg at 285€ 901€ kg.")] == ["285€", "901€"]
        assert [t.text for t in collect_tokens("120 $4.50 each")] == ["120", "$4.50"]

    def test_no_tokens(self) -> None:
        assert collect_tokens("Hello there") == []
        assert collect_tokens("") == []


class TestParsing:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("4,50", 4.5),
            ("4.50", 4.5),
            ("1,000", 1000.0),
            ("4.500,00", 4500.0),
            ("1,234.56", 1234.56),
            ("1.234.567", 1234567.0),
            ("$4.50", 4.5),
            ("120", 120.0),
        ],
    )
    def test_parse_amount(self, text: str, expected: float) -> None:
        assert parse_amount(text) == pytest.approx(expected)

    def test_parse_amount_rejects_non_numbers(self) -> None:
        assert parse_amount("abc") is None
        assert parse_amount("") is None

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("one hundred twenty", 120.0),
            ("four point five", 4.5),
            ("two thousand five hundred", 2500.0),
            ("sto dvadeset", 120.0),
            ("twenty-five", 25.0),
        ],
    )
    def test_parse_number_words(self, text: str, expected: float) -> None:
        assert parse_number_words(text) == pytest.approx(expected)

    def test_parse_number_words_rejects_other_words(self) -> None:
        assert parse_number_words("banana") is None


class TestVerification:
    def test_tokens_preserved_in_order(self) -> None:
        tokens = collect_tokens("120 units at $4.50")
        assert tokens_preserved(tokens, "Možete 120 jedinica po $4.50")
        assert not tokens_preserved(tokens, "Po $4.50 možete 120 jedinica")

    def test_tokens_must_stand_alone(self) -> None:
        tokens = collect_tokens("120 units")
        assert not tokens_preserved(tokens, "1200 jedinica")
        assert not tokens_preserved(tokens, "120.5 jedinica")
        assert tokens_preserved(tokens, "(120) jedinica")

    @pytest.mark.parametrize(
        "text",
        ["Danas saljemo za 958€ 120 kutija.", "247€ 12 price can?", "kg at 285€ 901€ kg.", "Price € 5 today"],
    )
    def test_tokens_are_found_in_their_own_text(self, text: str) -> None:
        assert tokens_preserved(collect_tokens(text), text)

    def test_missing_tokens(self) -> None:
        tokens = collect_tokens("120 units at $4.50")
        assert missing_tokens(tokens, "120 jedinica") == ["$4.50"]


class TestSlots:
    def test_finds_localized_and_spelled_out_numbers(self) -> None:
        slots = find_slots("sto dvadeset jedinica po $4,50 ili 1 000 EUR")
        assert [(s.text, s.kind) for s in slots] == [
            ("sto dvadeset", "words"),
            ("$4,50", "amount"),
            ("1 000", "amount"),
            ("EUR", "code"),
        ]

    def test_glued_symbol_slot(self) -> None:
        slots = find_slots("Danas saljemo za 958€ 120 kutija.")
        assert [s.text for s in slots] == ["958€", "120"]

    @pytest.mark.parametrize("slot_text", ["$4,50", "4.5", "$5", "4.50"])
    def test_resembles_renderings(self, slot_text: str) -> None:
        assert resembles(_amount("$4.50"), _amount(slot_text))

    def test_resembles_rejects_other_values(self) -> None:
        assert not resembles(_amount("$4.50"), _amount("120"))
        assert not resembles(_amount("120"), NumericToken(text="USD", start=0, end=3, kind="code"))
