"""
Batch coordination for many independent extractions.

Items are split into fixed-size chunks. Every item in a chunk is extracted
concurrently and the chunk is awaited in full before a polite pause and the
next chunk. Each concurrent extraction must sample its own page/browser
context; sharing one page between items in a chunk makes readings meaningless.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from loguru import logger
from tqdm import tqdm

from prospect.contexts.extraction.extractor import ExtractionBudget, PollingExtractor
from prospect.contexts.extraction.predicates import ValidityPredicate
from prospect.contexts.extraction.sampling import Sampler, SamplerFault
from prospect.contexts.extraction.verdicts import ExtractionOutcome


@dataclass
class ExtractionSpec:
    """Everything needed to extract one item. release() runs once the item is done."""

    sampler: Sampler
    predicate: ValidityPredicate
    budget: ExtractionBudget
    release: Optional[Callable[[], Awaitable[None]]] = None


SpecFactory = Callable[[Any], Union[ExtractionSpec, tuple, Awaitable[Union[ExtractionSpec, tuple]]]]


@dataclass(frozen=True)
class BatchResult:
    item: Any
    outcome: ExtractionOutcome


@dataclass
class BatchJob:
    """
    Work items plus batching policy.

    results is owned by the caller: the coordinator appends to it chunk by
    chunk, so completed chunks survive an interrupted run.
    """

    items: Sequence[Any]
    batch_size: int = 5
    inter_batch_delay_ms: int = 15_000
    results: List[BatchResult] = field(default_factory=list)

    def __post_init__(self):
        self.items = list(self.items)
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.inter_batch_delay_ms < 0:
            raise ValueError("inter_batch_delay_ms must be non-negative")

    def chunks(self) -> List[list]:
        return [
            self.items[i : i + self.batch_size]
            for i in range(0, len(self.items), self.batch_size)
        ]


def _as_spec(spec) -> ExtractionSpec:
    if isinstance(spec, ExtractionSpec):
        return spec
    if isinstance(spec, tuple) and len(spec) == 3:
        return ExtractionSpec(*spec)
    raise TypeError(
        f"Spec factory must return ExtractionSpec or (sampler, predicate, budget), got {type(spec).__name__}"
    )


class BatchCoordinator:
    """
    Run one PollingExtractor per item, chunk by chunk.

    Args:
        factory: Builds the ExtractionSpec for an item (may be a coroutine function)
        sleep: Coroutine function used for the inter-batch pause
        show_progress: Display a tqdm progress bar
        extractor_kwargs: Extra keyword arguments for each PollingExtractor (clock, sleep)
    """

    def __init__(
        self,
        factory: SpecFactory,
        sleep=asyncio.sleep,
        show_progress: bool = True,
        extractor_kwargs: Optional[dict] = None,
    ):
        self.factory = factory
        self.sleep = sleep
        self.show_progress = show_progress
        self.extractor_kwargs = extractor_kwargs or {}

    async def _build_spec(self, item) -> ExtractionSpec:
        spec = self.factory(item)
        if inspect.isawaitable(spec):
            spec = await spec
        return _as_spec(spec)

    async def _release(self, item, spec: ExtractionSpec):
        if spec.release is None:
            return
        try:
            await spec.release()
        except Exception as e:
            logger.warning(f"[{item}] Failed to release resources: {e}")

    async def _run_item(self, item) -> ExtractionOutcome:
        """Extract one item, converting sampler faults into an error outcome."""
        try:
            spec = await self._build_spec(item)
        except SamplerFault as e:
            logger.error(f"[{item}] Could not prepare extraction: {e}")
            return ExtractionOutcome.error(str(e))

        try:
            extractor = PollingExtractor(
                spec.sampler, spec.predicate, spec.budget, label=str(item), **self.extractor_kwargs
            )
            return await extractor.run()
        except SamplerFault as e:
            logger.error(f"[{item}] Sampler fault on attempt {extractor.attempts_used}: {e}")
            return ExtractionOutcome.error(
                str(e), attempts_used=extractor.attempts_used, elapsed_ms=extractor.elapsed_ms
            )
        finally:
            await self._release(item, spec)

    async def run(self, job: BatchJob) -> List[BatchResult]:
        """
        Extract every item in job, preserving input order in the results.

        Returns:
            One BatchResult per item, in the same order as job.items. The same
            results are also appended to job.results.

        Raises:
            ContractViolation: If any sampler returns a malformed reading.
                Results of chunks completed before it stay in job.results.
        """
        chunks = job.chunks()
        run_results = []
        progress = tqdm(total=len(job.items), disable=not self.show_progress)

        try:
            for chunk_index, chunk in enumerate(chunks):
                logger.info(
                    f"Batch {chunk_index + 1}/{len(chunks)}: {', '.join(str(item) for item in chunk)}"
                )

                outcomes = await asyncio.gather(
                    *(self._run_item(item) for item in chunk), return_exceptions=True
                )

                chunk_results = []
                for item, outcome in zip(chunk, outcomes):
                    if isinstance(outcome, BaseException):
                        # Anything still raised here is a bug, not a scraping failure
                        raise outcome
                    chunk_results.append(BatchResult(item=item, outcome=outcome))
                    logger.info(f"[{item}] {outcome.status}: {outcome.value or outcome.reason or '-'}")

                job.results.extend(chunk_results)
                run_results.extend(chunk_results)
                progress.update(len(chunk))

                # Be polite to the shared external site
                if chunk_index < len(chunks) - 1:
                    await self.sleep(job.inter_batch_delay_ms / 1000)

        except (KeyboardInterrupt, asyncio.CancelledError):
            # Ctrl-C under asyncio.run() arrives here as a cancellation
            logger.warning(f"Interrupted by user - keeping {len(run_results)} completed result(s)")
            raise
        finally:
            progress.close()

        return run_results


async def run_batch(job: BatchJob, factory: SpecFactory, **kwargs) -> List[BatchResult]:
    return await BatchCoordinator(factory, **kwargs).run(job)
