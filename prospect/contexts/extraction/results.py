"""
Aggregation and export of batch results for downstream reporting.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import List, Union

import pandas as pd

from prospect.contexts.extraction.batch import BatchResult
from prospect.contexts.extraction.verdicts import FOUND, OUTCOME_STATUSES

RESULT_COLUMNS = ["item", "status", "value", "attempts_used", "elapsed_ms", "reason"]


def outcomes_to_df(results: List[BatchResult]) -> pd.DataFrame:
    """One row per item, in batch order."""
    rows = [{"item": result.item, **result.outcome.to_dict()} for result in results]
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def found_values(results: List[BatchResult]) -> list:
    """Accepted values in item order, without duplicates."""
    values = []
    for result in results:
        if result.outcome.status == FOUND and result.outcome.value not in values:
            values.append(result.outcome.value)
    return values


def summarize(results: List[BatchResult]) -> dict:
    """
    Count outcomes by status.

    Returns:
        Dict with one count per status, plus "total" and "success_rate" (0-100)
    """
    counts = {status: 0 for status in OUTCOME_STATUSES}
    for result in results:
        counts[result.outcome.status] += 1

    total = len(results)
    counts["total"] = total
    counts["success_rate"] = round(counts[FOUND] / total * 100, 1) if total else 0.0
    return counts


def export_results(results: List[BatchResult], path: Union[Path, str]) -> Path:
    """
    Write detailed results and the list of found values to a JSON file.

    Items are written with str() so any item type serializes.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    output = {
        "exported_at": datetime.now().isoformat(),
        "detailed_results": [
            {"item": str(result.item), **result.outcome.to_dict()} for result in results
        ],
        "found_values": found_values(results),
        "summary": summarize(results),
    }

    with open(path, "w") as f:
        json.dump(output, f, indent=2)
    return path


def export_workflow_results(
    company: str,
    domain: str,
    names: List[str],
    results: List[BatchResult],
    path: Union[Path, str],
) -> Path:
    """
    Write a people -> email workflow report to a JSON file.

    Holds the harvested names, the email lookup per name and a combined
    name/email/status list.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    output = {
        "company": company,
        "domain": domain,
        "exported_at": datetime.now().isoformat(),
        "names": {"total": len(names), "names": list(names)},
        "detailed_results": [
            {"item": str(result.item), **result.outcome.to_dict()} for result in results
        ],
        "found_values": found_values(results),
        "summary": summarize(results),
        "combined": [
            {"name": str(result.item), "email": result.outcome.value, "status": result.outcome.status}
            for result in results
        ],
    }

    with open(path, "w") as f:
        json.dump(output, f, indent=2)
    return path
