"""
Validity predicates for sampled page readings.

A predicate classifies one reading of a page into a ValidityVerdict. It is a
pure function of its three inputs, so it can be exercised without a browser.
"""

from typing import Callable, Iterable, Optional

from prospect.contexts.extraction.verdicts import ValidityVerdict
from prospect.utils.text_processing import contains_any

DEFAULT_TRANSIENT_MARKERS = ("loading", "searching", "processing")


class ValidityPredicate:
    """
    Classify a sampled reading as accepted, transient or rejected.

    Decision order (highest priority first):
    1. A present, well-formed value with no transient marker word is accepted,
       even if the page still looks busy.
    2. A terminal error phrase with no transient marker word is a rejection.
    3. Anything else is transient. Pages without a busy indicator land here
       too, so "nothing conclusive yet" never ends the run early.

    An optional normalize callable rewrites accepted values into their final
    form (e.g., canonical website URLs).
    """

    def __init__(
        self,
        well_formed: Callable[[str], bool],
        transient_markers: Iterable[str] = DEFAULT_TRANSIENT_MARKERS,
        normalize: Optional[Callable[[str], str]] = None,
    ):
        self.well_formed = well_formed
        self.transient_markers = tuple(transient_markers)
        self.normalize = normalize

    def _has_transient_marker(self, text: str) -> bool:
        return contains_any(text, self.transient_markers) is not None

    def evaluate(
        self,
        sampled_value: Optional[str],
        page_still_busy: bool,
        terminal_error_detected: Optional[str],
    ) -> ValidityVerdict:
        if (
            sampled_value
            and self.well_formed(sampled_value)
            and not self._has_transient_marker(sampled_value)
        ):
            final_value = self.normalize(sampled_value) if self.normalize else sampled_value
            return ValidityVerdict.accepted(final_value)

        if terminal_error_detected and not self._has_transient_marker(terminal_error_detected):
            return ValidityVerdict.rejected(terminal_error_detected)

        # Busy or not, an inconclusive reading is worth another look
        return ValidityVerdict.transient()

    __call__ = evaluate
