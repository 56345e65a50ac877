"""
Number-preserving translation.

Wraps an untrusted translation provider and guarantees that every numeric or
currency token of the source utterance reappears verbatim, and in the same
left-to-right order, in the text that is handed back to the caller.

Pipeline:
    identity fast path -> collect tokens -> provider call (bounded budget,
    one retry) -> verify -> correct -> re-verify -> forced fallback
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from pydantic import BaseModel, Field

from trade_interpreter.config import get_settings
from trade_interpreter.nlp.language_detector import same_language
from trade_interpreter.nlp.numeric_tokens import (
    NumericToken,
    collect_tokens,
    compatible,
    find_slots,
    missing_tokens,
    resembles,
    tokens_preserved,
)
from trade_interpreter.schemas import DeliveryStatus
from trade_interpreter.translation.provider import TranslationProviderBase, TranslationProviderError

logger = logging.getLogger(__name__)


class TranslationOutcome(BaseModel):
    """Result of one preserving translation."""

    text: str = Field(..., description="Text safe to deliver")
    source_language: str
    target_language: str
    status: DeliveryStatus = Field(..., description="translated, passthrough or degraded")
    tokens: list[str] = Field(default_factory=list, description="Numeric/currency tokens of the source")
    provider_text: str | None = Field(default=None, description="Raw provider output, if any")
    corrected: bool = Field(default=False, description="Provider output failed verification and was corrected")
    fidelity_violation: bool = Field(
        default=False,
        description="Correction was insufficient and the forced fallback was used",
    )
    attempts: int = Field(default=0, ge=0, description="Provider calls made")


@dataclass(frozen=True)
class _Placement:
    start: int
    end: int
    text: str


def _snap_to_boundary(text: str, pos: int, lower: int, upper: int) -> int:
    """Move an insertion point onto whitespace so a word is never split."""
    if pos <= 0 or pos >= len(text) or text[pos].isspace() or text[pos - 1].isspace():
        return pos
    for k in range(pos, upper):
        if text[k].isspace():
            return k
    for k in range(pos - 1, lower - 1, -1):
        if text[k].isspace():
            return k
    return upper


def _align(tokens: list[NumericToken], slots: list[NumericToken]) -> list[int | None]:
    """
    Map each source token to a slot of the translated text, monotonically.

    A token takes the first later slot that resembles it. Otherwise it takes
    the next compatible slot positionally, provided slots are not more
    numerous than the tokens still to place and that slot does not resemble
    a later token. Unassigned tokens map to None.
    """
    assignment: list[int | None] = []
    j = 0
    for i, token in enumerate(tokens):
        candidates = [k for k in range(j, len(slots)) if compatible(token, slots[k])]
        choice = next((k for k in candidates if resembles(token, slots[k])), None)

        if choice is None and candidates:
            remaining = sum(1 for t in tokens[i:] if (t.kind == "code") == (token.kind == "code"))
            first = candidates[0]
            claimed_later = any(resembles(t, slots[first]) for t in tokens[i + 1 :])
            if len(candidates) <= remaining and not claimed_later:
                choice = first

        assignment.append(choice)
        if choice is not None:
            j = choice + 1
    return assignment


def correct_numeric_tokens(source_text: str, tokens: list[NumericToken], translated: str) -> str:
    """
    Force the source tokens back into a translation.

    Slots that render a token (localized, rounded, spelled-out) are replaced
    by the literal token; tokens with no slot are inserted at the position
    proportional to where they sat in the source.
    """
    slots = find_slots(translated)
    assignment = _align(tokens, slots)

    placements: list[_Placement] = []
    for i, token in enumerate(tokens):
        k = assignment[i]
        if k is not None:
            placements.append(_Placement(slots[k].start, slots[k].end, token.text))
            continue

        lower = placements[-1].end if placements else 0
        next_slot = next((assignment[n] for n in range(i + 1, len(tokens)) if assignment[n] is not None), None)
        upper = slots[next_slot].start if next_slot is not None else len(translated)
        ratio = token.start / max(len(source_text), 1)
        pos = min(max(int(round(ratio * len(translated))), lower), upper)
        pos = _snap_to_boundary(translated, pos, lower, upper)
        placements.append(_Placement(pos, pos, token.text))

    pieces: list[str] = []
    cursor = 0
    for p in placements:
        pieces.append(translated[cursor : p.start])
        if p.start == p.end:
            before = "".join(pieces)
            lead = " " if before and not before[-1].isspace() else ""
            trail = " " if p.start < len(translated) and not translated[p.start].isspace() else ""
            pieces.append(f"{lead}{p.text}{trail}")
        else:
            # Keep a replaced slot from fusing with a neighbouring number.
            before = "".join(pieces)
            lead = " " if before[-1:].isdigit() and p.text[:1].isdigit() else ""
            trail = " " if translated[p.end : p.end + 1].isdigit() and p.text[-1:].isdigit() else ""
            pieces.append(f"{lead}{p.text}{trail}")
        cursor = p.end
    pieces.append(translated[cursor:])
    return "".join(pieces)


class PreservingTranslator:
    """
    Translator that enforces numeric fidelity over an untrusted provider.

    Provider failures (errors or timeouts) are retried once within a bounded
    time budget; when the budget is exhausted the original text is returned
    as a degraded outcome instead of raising.
    """

    def __init__(
        self,
        provider: TranslationProviderBase,
        timeout_s: float | None = None,
        max_retries: int | None = None,
        backoff_s: float | None = None,
    ) -> None:
        """
        Initialize the translator.

        Args:
            provider: Translation provider to call.
            timeout_s: Total time budget per utterance (uses config if None).
            max_retries: Retries after the first failed call (uses config if None).
            backoff_s: Base backoff between attempts (uses config if None).
        """
        settings = get_settings()
        self._provider = provider
        self._timeout_s = timeout_s if timeout_s is not None else settings.translation_timeout_s
        self._max_retries = max_retries if max_retries is not None else settings.translation_max_retries
        self._backoff_s = backoff_s if backoff_s is not None else settings.retry_backoff_s

    @property
    def provider(self) -> TranslationProviderBase:
        """Get the underlying translation provider."""
        return self._provider

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        """Translate ``text`` and return text that preserves every numeric token."""
        outcome = await self.translate_with_report(text, source_language, target_language)
        return outcome.text

    async def translate_with_report(
        self,
        text: str,
        source_language: str,
        target_language: str,
    ) -> TranslationOutcome:
        """
        Translate ``text`` and describe how the delivered text was produced.

        Args:
            text: Source utterance.
            source_language: Source language tag.
            target_language: Target language tag.

        Returns:
            TranslationOutcome; never raises for provider failures.
        """
        if same_language(source_language, target_language):
            return TranslationOutcome(
                text=text,
                source_language=source_language,
                target_language=target_language,
                status=DeliveryStatus.PASSTHROUGH,
            )

        tokens = collect_tokens(text)
        token_texts = [t.text for t in tokens]

        provider_text, attempts = await self._call_provider(text, source_language, target_language, token_texts)
        if provider_text is None:
            return TranslationOutcome(
                text=text,
                source_language=source_language,
                target_language=target_language,
                status=DeliveryStatus.DEGRADED,
                tokens=token_texts,
                attempts=attempts,
            )

        if tokens_preserved(tokens, provider_text):
            return TranslationOutcome(
                text=provider_text,
                source_language=source_language,
                target_language=target_language,
                status=DeliveryStatus.TRANSLATED,
                tokens=token_texts,
                provider_text=provider_text,
                attempts=attempts,
            )

        logger.info(
            f"Provider output failed numeric verification "
            f"(missing={missing_tokens(tokens, provider_text)}); correcting"
        )
        corrected = correct_numeric_tokens(text, tokens, provider_text)
        violation = False
        if not tokens_preserved(tokens, corrected):
            violation = True
            logger.error(
                f"Numeric fidelity violation after correction: source={text!r} "
                f"provider={provider_text!r} corrected={corrected!r}"
            )
            corrected = f"{corrected.rstrip()} ({' '.join(token_texts)})"

        return TranslationOutcome(
            text=corrected,
            source_language=source_language,
            target_language=target_language,
            status=DeliveryStatus.TRANSLATED,
            tokens=token_texts,
            provider_text=provider_text,
            corrected=True,
            fidelity_violation=violation,
            attempts=attempts,
        )

    async def _call_provider(
        self,
        text: str,
        source_language: str,
        target_language: str,
        preserve: list[str],
    ) -> tuple[str | None, int]:
        """
        Call the provider with retry, bounded by the translation time budget.

        Returns:
            (translated text or None on failure, number of attempts).
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout_s
        attempts = 0

        while attempts <= self._max_retries:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            attempts += 1
            try:
                return (
                    await asyncio.wait_for(
                        self._provider.translate(text, source_language, target_language, preserve=preserve),
                        timeout=remaining,
                    ),
                    attempts,
                )
            except asyncio.TimeoutError:
                logger.warning(f"Translation timed out (attempt {attempts}, budget {self._timeout_s:.2f}s)")
            except TranslationProviderError as e:
                logger.warning(f"Translation provider error (attempt {attempts}): {e}")
            except Exception as e:
                logger.warning(f"Unexpected translation provider error (attempt {attempts}): {e}")

            if attempts <= self._max_retries:
                backoff = min(self._backoff_s * attempts, max(deadline - loop.time(), 0.0))
                await asyncio.sleep(backoff)

        logger.error(f"Translation unavailable after {attempts} attempt(s); delivering original text")
        return None, attempts
