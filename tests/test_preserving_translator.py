"""
Tests for the number-preserving translator.

Adversarial fake providers mangle numeric tokens the ways real machine
translation does; the translator must always hand back text that carries
every source token verbatim and in order.
"""

import asyncio
import logging
import random
import re
import time
from collections.abc import Callable

import pytest

from trade_interpreter.nlp.numeric_tokens import collect_tokens, tokens_preserved
from trade_interpreter.schemas import DeliveryStatus
from trade_interpreter.translation import preserving_translator
from trade_interpreter.translation.preserving_translator import PreservingTranslator, correct_numeric_tokens
from trade_interpreter.translation.provider import TranslationProviderBase, TranslationProviderError

SCENARIO = "Can you do 120 units at $4.50 each?"


class FakeProvider(TranslationProviderBase):
    """Provider that rewrites text with a fixed function."""

    def __init__(self, render: Callable[[str], str]) -> None:
        self._render = render
        self.calls: list[tuple[str, str, str, list[str] | None]] = []

    async def translate(self, text, source_language, target_language, preserve=None):
        self.calls.append((text, source_language, target_language, preserve))
        return self._render(text)


class SlowProvider(TranslationProviderBase):
    def __init__(self, delay_s: float) -> None:
        self._delay_s = delay_s
        self.calls = 0

    async def translate(self, text, source_language, target_language, preserve=None):
        self.calls += 1
        await asyncio.sleep(self._delay_s)
        return text


class FlakyProvider(TranslationProviderBase):
    """Fails a fixed number of times, then echoes the text."""

    def __init__(self, failures: int) -> None:
        self._failures = failures
        self.calls = 0

    async def translate(self, text, source_language, target_language, preserve=None):
        self.calls += 1
        if self.calls <= self._failures:
            raise TranslationProviderError("provider unavailable", status_code=503)
        return f"[{target_language}] {text}"


def _translator(provider: TranslationProviderBase, timeout_s: float = 1.0) -> PreservingTranslator:
    return PreservingTranslator(provider, timeout_s=timeout_s, max_retries=1, backoff_s=0.01)


def _assert_preserved(source: str, output: str) -> None:
    assert tokens_preserved(collect_tokens(source), output), f"{source!r} -> {output!r}"


class TestIdentity:
    @pytest.mark.asyncio
    async def test_same_language_skips_provider(self) -> None:
        provider = FakeProvider(lambda t: "should not be used")
        translator = _translator(provider)

        assert await translator.translate(SCENARIO, "en", "en-US") == SCENARIO
        outcome = await translator.translate_with_report("Cena je 3,50 evra", "sr-RS", "sr")
        assert outcome.status == DeliveryStatus.PASSTHROUGH
        assert outcome.text == "Cena je 3,50 evra"
        assert provider.calls == []


class TestVerification:
    @pytest.mark.asyncio
    async def test_faithful_output_is_kept(self) -> None:
        provider = FakeProvider(lambda t: "Možete li 120 jedinica po $4.50 po komadu?")
        outcome = await _translator(provider).translate_with_report(SCENARIO, "en", "sr")

        assert outcome.text == "Možete li 120 jedinica po $4.50 po komadu?"
        assert outcome.status == DeliveryStatus.TRANSLATED
        assert outcome.corrected is False
        assert outcome.tokens == ["120", "$4.50"]

    @pytest.mark.asyncio
    async def test_tokens_are_sent_as_preserve_hints(self) -> None:
        provider = FakeProvider(lambda t: t)
        await _translator(provider).translate(SCENARIO, "en", "sr")
        assert provider.calls[0][3] == ["120", "$4.50"]


class TestAdversarialProviders:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "provider_output",
        [
            # localized decimal separator
            "Možete li 120 jedinica po $4,50 po komadu?",
            # spelled out quantity
            "Možete li sto dvadeset jedinica po $4.50 po komadu?",
            "Can you do one hundred twenty units at $4.50 each?",
            # rounded price
            "Možete li 120 jedinica po $4.5 po komadu?",
            "Možete li 120 jedinica po $5 po komadu?",
            # dropped price
            "Možete li 120 jedinica?",
            # dropped everything
            "Možete li?",
            # reordered
            "Po $4.50 po komadu, možete li 120 jedinica?",
            # empty output
            "",
        ],
    )
    async def test_output_is_corrected(self, provider_output: str) -> None:
        provider = FakeProvider(lambda t: provider_output)
        outcome = await _translator(provider).translate_with_report(SCENARIO, "en", "sr")

        _assert_preserved(SCENARIO, outcome.text)
        assert outcome.status == DeliveryStatus.TRANSLATED
        assert outcome.corrected is True
        assert outcome.fidelity_violation is False

    def test_localized_separator_is_replaced_in_place(self) -> None:
        tokens = collect_tokens(SCENARIO)
        corrected = correct_numeric_tokens(SCENARIO, tokens, "Možete li 120 jedinica po $4,50?")
        assert corrected == "Možete li 120 jedinica po $4.50?"

    def test_spelled_out_number_is_replaced_in_place(self) -> None:
        tokens = collect_tokens(SCENARIO)
        corrected = correct_numeric_tokens(SCENARIO, tokens, "Možete li sto dvadeset jedinica po $4.50?")
        assert corrected == "Možete li 120 jedinica po $4.50?"

    def test_dropped_token_is_inserted_on_a_word_boundary(self) -> None:
        tokens = collect_tokens(SCENARIO)
        corrected = correct_numeric_tokens(SCENARIO, tokens, "Možete li 120 jedinica?")
        assert corrected == "Možete li 120 $4.50 jedinica?"

    def test_replaced_slot_does_not_fuse_with_next_number(self) -> None:
        source = "12,50 and 5"
        corrected = correct_numeric_tokens(source, collect_tokens(source), "12€5")
        assert corrected == "12,50 5"

    @pytest.mark.asyncio
    async def test_forced_fallback_when_correction_fails(self, monkeypatch, caplog) -> None:
        monkeypatch.setattr(preserving_translator, "correct_numeric_tokens", lambda source, tokens, text: text)
        provider = FakeProvider(lambda t: "Možete li jedinica?")

        with caplog.at_level(logging.ERROR):
            outcome = await _translator(provider).translate_with_report(SCENARIO, "en", "sr")

        assert outcome.fidelity_violation is True
        assert outcome.text == "Možete li jedinica? (120 $4.50)"
        _assert_preserved(SCENARIO, outcome.text)
        assert any("fidelity violation" in r.getMessage() for r in caplog.records)


class TestGluedCurrencySymbols:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "source",
        ["247€ 12 price can?", "kg at 285€ 901€ kg.", "We ship 958€ 120 boxes."],
    )
    async def test_unchanged_output_is_accepted(self, source: str) -> None:
        outcome = await _translator(FakeProvider(lambda t: t)).translate_with_report(source, "en", "sr")

        assert outcome.text == source
        assert outcome.corrected is False
        assert outcome.fidelity_violation is False

    @pytest.mark.asyncio
    async def test_reordered_amounts_are_not_merged(self) -> None:
        source = "We ship 120 boxes for 958€ today."
        provider = FakeProvider(lambda t: "Danas saljemo za 958€ 120 kutija.")
        outcome = await _translator(provider).translate_with_report(source, "en", "sr")

        _assert_preserved(source, outcome.text)
        assert outcome.fidelity_violation is False
        assert "958120" not in outcome.text
        assert outcome.text == "Danas saljemo za 958€ 120 958€ kutija."


class TestProviderFailures:
    @pytest.mark.asyncio
    async def test_timeout_degrades_within_budget(self) -> None:
        provider = SlowProvider(delay_s=10.0)
        translator = _translator(provider, timeout_s=0.2)

        started = time.monotonic()
        outcome = await translator.translate_with_report(SCENARIO, "en", "sr")
        elapsed = time.monotonic() - started

        assert outcome.status == DeliveryStatus.DEGRADED
        assert outcome.text == SCENARIO
        assert elapsed < 1.0

    @pytest.mark.asyncio
    async def test_single_failure_is_retried(self) -> None:
        provider = FlakyProvider(failures=1)
        outcome = await _translator(provider).translate_with_report(SCENARIO, "en", "sr")

        assert provider.calls == 2
        assert outcome.attempts == 2
        assert outcome.status == DeliveryStatus.TRANSLATED
        assert outcome.text == f"[sr] {SCENARIO}"

    @pytest.mark.asyncio
    async def test_repeated_failure_degrades(self) -> None:
        provider = FlakyProvider(failures=5)
        outcome = await _translator(provider).translate_with_report(SCENARIO, "en", "sr")

        assert provider.calls == 2
        assert outcome.status == DeliveryStatus.DEGRADED
        assert outcome.text == SCENARIO


# Seeded randomized fidelity cases

_WORDS = ["we", "can", "ship", "units", "boxes", "at", "for", "price", "total", "each", "kg", "today"]
_SPELLED = {
    "5": "five",
    "12": "twelve",
    "20": "twenty",
    "40": "forty",
    "120": "one hundred twenty",
    "300": "three hundred",
}


def _random_amount(rng: random.Random) -> str:
    kind = rng.randrange(5)
    if kind == 0:
        return rng.choice(list(_SPELLED))
    if kind == 1:
        return f"${rng.randrange(1, 100)}.{rng.randrange(10, 100)}"
    if kind == 2:
        return f"{rng.randrange(1, 100)},{rng.randrange(10, 100)}"
    if kind == 3:
        return f"{rng.randrange(1, 10)},{rng.randrange(100, 1000)}"
    return rng.choice(["USD", "EUR", f"{rng.randrange(10, 999)}€"])


def _random_utterance(rng: random.Random) -> str:
    parts = [rng.choice(_WORDS) for _ in range(rng.randrange(2, 5))]
    for _ in range(rng.randrange(1, 4)):
        parts.insert(rng.randrange(len(parts) + 1), _random_amount(rng))
    return " ".join(parts) + rng.choice(["?", ".", ""])


def _localize(text: str, rng: random.Random) -> str:
    return re.sub(r"(\d)\.(\d)", r"\1,\2", text)


def _spell_out(text: str, rng: random.Random) -> str:
    return " ".join(_SPELLED.get(w, w) for w in text.split(" "))


def _round(text: str, rng: random.Random) -> str:
    return re.sub(r"(\d+)[.,](\d\d)\b", lambda m: str(round(float(f"{m.group(1)}.{m.group(2)}"))), text)


def _drop(text: str, rng: random.Random) -> str:
    words = text.split(" ")
    numeric = [i for i, w in enumerate(words) if re.search(r"\d|USD|EUR", w)]
    if numeric:
        words.pop(rng.choice(numeric))
    return " ".join(words)


def _reorder(text: str, rng: random.Random) -> str:
    words = text.split(" ")
    rng.shuffle(words)
    return " ".join(words)


_MUTATIONS = [_localize, _spell_out, _round, _drop, _reorder]


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(40))
async def test_randomized_numeric_fidelity(seed: int) -> None:
    rng = random.Random(seed)
    source = _random_utterance(rng)
    mutations = rng.sample(_MUTATIONS, rng.randrange(1, 3))

    def render(text: str) -> str:
        out = text
        for mutate in mutations:
            out = mutate(out, rng)
        return out

    outcome = await _translator(FakeProvider(render)).translate_with_report(source, "en", "sr")
    _assert_preserved(source, outcome.text)
    assert outcome.fidelity_violation is False
