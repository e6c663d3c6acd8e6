"""
Page extraction domain.

Polls rendered pages until a usable value appears (an email address, a job
title, a person's name, a company website), and runs many such extractions
in polite, bounded batches.
"""

from prospect.contexts.extraction.verdicts import (
    ACCEPTED,
    TRANSIENT,
    REJECTED,
    FOUND,
    NOT_FOUND,
    TIMED_OUT,
    ERROR,
    ValidityVerdict,
    ExtractionAttempt,
    ExtractionOutcome,
)
from prospect.contexts.extraction.predicates import ValidityPredicate
from prospect.contexts.extraction.sampling import (
    Sample,
    SelectorSampler,
    ExtractionError,
    SamplerFault,
    ContractViolation,
)
from prospect.contexts.extraction.extractor import (
    ExtractionBudget,
    PollingExtractor,
    extract,
)
from prospect.contexts.extraction.batch import (
    BatchJob,
    BatchResult,
    BatchCoordinator,
    ExtractionSpec,
    run_batch,
)
from prospect.contexts.extraction.harvest import (
    HarvestSettings,
    HarvestResult,
    Harvester,
)
from prospect.contexts.extraction.policies import (
    ExtractionPolicy,
    PolicyConfigError,
    available_policies,
    load_policy,
)
from prospect.contexts.extraction.results import (
    outcomes_to_df,
    found_values,
    summarize,
    export_results,
    export_workflow_results,
)

__all__ = [
    # Verdicts and outcomes
    "ACCEPTED",
    "TRANSIENT",
    "REJECTED",
    "FOUND",
    "NOT_FOUND",
    "TIMED_OUT",
    "ERROR",
    "ValidityVerdict",
    "ExtractionAttempt",
    "ExtractionOutcome",
    # Polling
    "ValidityPredicate",
    "Sample",
    "SelectorSampler",
    "ExtractionBudget",
    "PollingExtractor",
    "extract",
    # Batching
    "BatchJob",
    "BatchResult",
    "BatchCoordinator",
    "ExtractionSpec",
    "run_batch",
    # Harvesting
    "HarvestSettings",
    "HarvestResult",
    "Harvester",
    # Policies
    "ExtractionPolicy",
    "available_policies",
    "load_policy",
    # Results
    "outcomes_to_df",
    "found_values",
    "summarize",
    "export_results",
    "export_workflow_results",
    # Errors
    "ExtractionError",
    "SamplerFault",
    "ContractViolation",
    "PolicyConfigError",
]
