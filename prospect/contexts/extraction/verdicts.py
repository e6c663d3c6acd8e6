"""Verdict and outcome types shared by the extraction context."""

from dataclasses import dataclass
from typing import Optional

# Verdict kinds a predicate can assign to one sampled reading:
# ACCEPTED: the reading is a final, well-formed answer
# TRANSIENT: nothing conclusive yet (page still loading, or no indicator either way)
# REJECTED: the page authoritatively says there is no answer
ACCEPTED = "accepted"
TRANSIENT = "transient"
REJECTED = "rejected"

# Terminal statuses of one extraction run
FOUND = "found"
NOT_FOUND = "not_found"
TIMED_OUT = "timed_out"
ERROR = "error"

OUTCOME_STATUSES = (FOUND, NOT_FOUND, TIMED_OUT, ERROR)


@dataclass(frozen=True)
class ValidityVerdict:
    kind: str
    value: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def accepted(cls, value: str) -> "ValidityVerdict":
        return cls(ACCEPTED, value=value)

    @classmethod
    def transient(cls) -> "ValidityVerdict":
        return cls(TRANSIENT)

    @classmethod
    def rejected(cls, reason: str) -> "ValidityVerdict":
        return cls(REJECTED, reason=reason)

    @property
    def is_accepted(self) -> bool:
        return self.kind == ACCEPTED

    @property
    def is_transient(self) -> bool:
        return self.kind == TRANSIENT

    @property
    def is_rejected(self) -> bool:
        return self.kind == REJECTED


@dataclass(frozen=True)
class ExtractionAttempt:
    """One polling iteration, kept only long enough to be evaluated and logged."""

    attempt_number: int
    sampled_value: Optional[str]
    elapsed_ms: int


@dataclass(frozen=True)
class ExtractionOutcome:
    """
    Terminal result of one extraction run.

    reason carries the matched terminal phrase for NOT_FOUND and the fault
    message for ERROR. It is None for FOUND and TIMED_OUT.
    """

    status: str
    value: Optional[str] = None
    attempts_used: int = 0
    elapsed_ms: int = 0
    reason: Optional[str] = None

    def __post_init__(self):
        if self.status not in OUTCOME_STATUSES:
            raise ValueError(f"Unknown outcome status '{self.status}'")

    @property
    def found(self) -> bool:
        return self.status == FOUND

    @property
    def is_retryable(self) -> bool:
        """A timeout may resolve on a later run; a not-found needs new input first."""
        return self.status in (TIMED_OUT, ERROR)

    @classmethod
    def error(cls, reason: str, attempts_used: int = 0, elapsed_ms: int = 0) -> "ExtractionOutcome":
        return cls(ERROR, attempts_used=attempts_used, elapsed_ms=elapsed_ms, reason=reason)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "value": self.value,
            "attempts_used": self.attempts_used,
            "elapsed_ms": self.elapsed_ms,
            "reason": self.reason,
        }
