"""
Polling extractor: drive a sampler and a predicate to a terminal outcome.

States: idle -> sampling -> evaluating -> (sampling again | done).
Attempts are strictly sequential within one extractor. Not-found and timed-out
are ordinary outcomes; only sampler faults and contract violations raise.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger

from prospect.contexts.extraction.predicates import ValidityPredicate
from prospect.contexts.extraction.sampling import (
    ContractViolation,
    Sampler,
    SamplerFault,
    coerce_sample,
)
from prospect.contexts.extraction.verdicts import (
    FOUND,
    NOT_FOUND,
    TIMED_OUT,
    ExtractionAttempt,
    ExtractionOutcome,
    ValidityVerdict,
)


@dataclass(frozen=True)
class ExtractionBudget:
    """Attempt and wall-clock limits for one extraction. Read-only once built."""

    max_attempts: int = 30
    inter_attempt_delay_ms: int = 10_000
    max_wall_clock_ms: int = 300_000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.inter_attempt_delay_ms < 0 or self.max_wall_clock_ms < 0:
            raise ValueError("Budget durations must be non-negative")

    @classmethod
    def from_config(cls, config) -> "ExtractionBudget":
        return cls(
            max_attempts=int(config.max_attempts),
            inter_attempt_delay_ms=int(config.inter_attempt_delay_ms),
            max_wall_clock_ms=int(config.max_wall_clock_ms),
        )


class PollingExtractor:
    """
    Single-use driver for one logical extraction.

    Args:
        sampler: Coroutine function returning the page's current Sample
        predicate: Classifies each reading
        budget: Attempt and wall-clock limits
        label: Name used in log lines (e.g., the person being looked up)
        clock: Monotonic clock in seconds
        sleep: Coroutine function used for the inter-attempt wait
    """

    def __init__(
        self,
        sampler: Sampler,
        predicate: ValidityPredicate,
        budget: ExtractionBudget,
        label: str = "extraction",
        clock: Callable[[], float] = time.monotonic,
        sleep=asyncio.sleep,
    ):
        self.sampler = sampler
        self.predicate = predicate
        self.budget = budget
        self.label = label
        self.clock = clock
        self.sleep = sleep
        self._started = False
        # Progress so far, kept for callers reporting a fault mid-run
        self.attempts_used = 0
        self.elapsed_ms = 0

    def _elapsed_ms(self, start: float) -> int:
        return int((self.clock() - start) * 1000)

    async def _sample_and_evaluate(self, attempt_number: int, start: float) -> ValidityVerdict:
        try:
            reading = await self.sampler()
        except (SamplerFault, ContractViolation):
            self.elapsed_ms = self._elapsed_ms(start)
            raise
        except Exception as e:
            # One failed read is not worth abandoning the run over
            logger.debug(f"[{self.label}] Attempt {attempt_number}: sampler error treated as transient: {e}")
            return ValidityVerdict.transient()

        sample = coerce_sample(reading)
        attempt = ExtractionAttempt(
            attempt_number=attempt_number,
            sampled_value=sample.raw_text,
            elapsed_ms=self._elapsed_ms(start),
        )
        verdict = self.predicate.evaluate(sample.raw_text, sample.busy, sample.terminal_error)
        logger.debug(
            f"[{self.label}] Attempt {attempt.attempt_number} ({attempt.elapsed_ms}ms): "
            f"{verdict.kind} (value={attempt.sampled_value!r}, busy={sample.busy})"
        )
        return verdict

    def _out_of_time(self, elapsed_ms: int) -> bool:
        # Stop before a wait that would end past the deadline
        if elapsed_ms >= self.budget.max_wall_clock_ms:
            return True
        return elapsed_ms + self.budget.inter_attempt_delay_ms > self.budget.max_wall_clock_ms

    async def run(self) -> ExtractionOutcome:
        """
        Poll until the predicate accepts or rejects, or the budget runs out.

        Returns:
            ExtractionOutcome with status found, not_found or timed_out

        Raises:
            SamplerFault: If the sampler reports the page is gone
            ContractViolation: If the sampler returns a malformed reading
            RuntimeError: If this extractor has already been run
        """
        if self._started:
            raise RuntimeError("PollingExtractor is single-use; build a new one per extraction")
        self._started = True

        start = self.clock()
        attempt_number = 1

        while True:
            self.attempts_used = attempt_number
            verdict = await self._sample_and_evaluate(attempt_number, start)
            elapsed_ms = self.elapsed_ms = self._elapsed_ms(start)

            if verdict.is_accepted:
                logger.debug(f"[{self.label}] Found '{verdict.value}' after {attempt_number} attempt(s)")
                return ExtractionOutcome(
                    FOUND, value=verdict.value, attempts_used=attempt_number, elapsed_ms=elapsed_ms
                )

            if verdict.is_rejected:
                logger.info(f"[{self.label}] Not found: page reports '{verdict.reason}'")
                return ExtractionOutcome(
                    NOT_FOUND, attempts_used=attempt_number, elapsed_ms=elapsed_ms, reason=verdict.reason
                )

            if attempt_number >= self.budget.max_attempts or self._out_of_time(elapsed_ms):
                logger.warning(
                    f"[{self.label}] Timed out after {attempt_number} attempt(s) ({elapsed_ms}ms)"
                )
                return ExtractionOutcome(TIMED_OUT, attempts_used=attempt_number, elapsed_ms=elapsed_ms)

            await self.sleep(self.budget.inter_attempt_delay_ms / 1000)
            attempt_number += 1


async def extract(
    sampler: Sampler,
    predicate: ValidityPredicate,
    budget: Optional[ExtractionBudget] = None,
    label: str = "extraction",
    **kwargs,
) -> ExtractionOutcome:
    """Run one extraction with a fresh PollingExtractor."""
    extractor = PollingExtractor(sampler, predicate, budget or ExtractionBudget(), label=label, **kwargs)
    return await extractor.run()
