"""
Extraction orchestration: run a policy over a list of items with logging.

Provides functionality to:
- Log execution details to timestamped files
- Open one browser context per item and run the batch coordinator
- Retry unresolved items with the policy's fallback URL templates
- Harvest every name on a company's people page and look up their emails
- Return structured results and optionally export them to JSON
"""

import os
import time
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

from dotenv import load_dotenv
from loguru import logger
from omegaconf.dictconfig import DictConfig

from prospect.contexts.extraction.batch import BatchCoordinator, BatchResult
from prospect.contexts.extraction.browser import BrowserSession
from prospect.contexts.extraction.harvest import HarvestResult
from prospect.contexts.extraction.policies import (
    ExtractionPolicy,
    PolicyConfigError,
    load_policy,
)
from prospect.contexts.extraction.results import (
    export_results,
    export_workflow_results,
    found_values,
    summarize,
)
from prospect.contexts.extraction.sampling import ExtractionError, SamplerFault
from prospect.contexts.extraction.verdicts import FOUND
from prospect.utils.text_processing import clean_domain

load_dotenv()
LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))


def _setup_logger(log_dir: Path = LOGS_PATH, verbose: bool = True) -> Path:
    """
    Configure loguru to write to timestamped log file.

    Args:
        log_dir: Directory for log files (default: LOGS_PATH from environment)
        verbose: Echo INFO and above to the console (WARNING and above otherwise)

    Returns:
        Path to the created log file
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"extraction_{timestamp}.txt"

    logger.remove()  # Remove default stderr handler
    logger.add(log_file, format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}", level="DEBUG")
    logger.add(
        lambda msg: print(msg, end=""),  # Also print to console
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}\n",
        level="INFO" if verbose else "WARNING",
    )

    return log_file


def _prepare_url_params(url_params: Optional[dict]) -> dict:
    params = dict(url_params or {})
    if "domain" in params:
        params["domain"] = clean_domain(params["domain"])
    return params


async def extract_items(
    policy: ExtractionPolicy,
    items: Sequence[Any],
    session: BrowserSession,
    url_params: Optional[dict] = None,
    batch_size: Optional[int] = None,
    show_progress: bool = True,
) -> list[BatchResult]:
    """
    Run policy over items, one pass per URL template.

    The first pass uses the primary template for every item. Each later pass
    retries only the items that are still unresolved, with the next template.

    Returns:
        One BatchResult per item, in input order, holding its latest outcome
    """
    if not policy.url_templates:
        raise PolicyConfigError(f"Policy '{policy.name}' has no url_templates to open")

    params = _prepare_url_params(url_params)
    items = list(items)
    latest = [None] * len(items)
    pending = list(range(len(items)))

    for template_index in range(len(policy.url_templates)):
        if not pending:
            break
        if template_index > 0:
            logger.info(f"Retrying {len(pending)} unresolved item(s) with fallback template #{template_index}")

        async def open_item(item, template_index=template_index):
            url = policy.build_url(item, template_index, **params)
            page, release = await session.open_page(url)
            return policy.spec(page, item=item, release=release)

        job = policy.batch_job([items[i] for i in pending], batch_size=batch_size)
        coordinator = BatchCoordinator(open_item, show_progress=show_progress)
        pass_results = await coordinator.run(job)

        # Results come back in job order, which is the order of pending
        for index, result in zip(pending, pass_results):
            latest[index] = result
        pending = [i for i in pending if latest[i].outcome.status != FOUND]

    return latest


async def run_extraction(
    policy_name: str,
    items: Sequence[Any],
    url_params: Optional[dict] = None,
    batch_size: Optional[int] = None,
    config: Optional[DictConfig] = None,
    output: Optional[Path] = None,
    verbose: bool = True,
    headless: bool = True,
    log_dir: Path = LOGS_PATH,
    session_factory=BrowserSession,
) -> dict[str, Any]:
    """
    Run one policy over items and return results.

    Args:
        policy_name: Policy section in the extraction config (e.g., "email")
        items: Work items (names, card indices, search roles, company names)
        url_params: Extra URL template values (e.g., {"domain": "acme.com"})
        batch_size: Override the policy's batch size
        config: Loaded extraction config (default: CONFIG_PATH/extraction.yaml)
        output: Optional JSON file to export results to
        verbose: Print progress information
        headless: Run the browser without a window
        log_dir: Directory for log files (default: LOGS_PATH)
        session_factory: Callable returning a BrowserSession-like async context manager

    Returns:
        Dict with keys:
            - status: "success" or "failed"
            - found: Accepted values, in item order
            - counts: Outcome counts by status (see results.summarize)
            - time_elapsed: Time in seconds
            - results: List of BatchResult (empty on failure)
            - output: Path of the exported JSON (if requested)
            - error: Error message (if failed)
            - traceback: Full traceback (if failed)
    """
    log_file = _setup_logger(log_dir, verbose=verbose)
    logger.info(f"Logging to: {log_file}")

    start_time = time.time()
    result = {
        "status": "failed",
        "found": [],
        "counts": {},
        "time_elapsed": 0.0,
        "results": [],
        "output": None,
        "error": None,
        "traceback": None,
    }

    try:
        policy = load_policy(policy_name, config)
        logger.info(f"[{policy_name}] Starting on {len(items)} item(s) (batch_size={batch_size or policy.batch_size})")

        async with session_factory(headless=headless) as session:
            batch_results = await extract_items(
                policy, items, session, url_params=url_params, batch_size=batch_size, show_progress=verbose
            )

        counts = summarize(batch_results)
        result.update(
            {
                "status": "success",
                "found": found_values(batch_results),
                "counts": counts,
                "results": batch_results,
            }
        )
        if output is not None:
            result["output"] = export_results(batch_results, output)
            logger.info(f"Results saved to {result['output']}")

        logger.success(
            f"[{policy_name}] Completed: {counts[FOUND]}/{counts['total']} found "
            f"({counts['success_rate']}%, {time.time() - start_time:.1f}s)"
        )

    except Exception as e:
        result["error"] = str(e)
        result["traceback"] = traceback.format_exc()
        logger.error(f"[{policy_name}] Failed: {e}")
        if verbose:
            logger.debug(f"[{policy_name}] Traceback:\n{result['traceback']}")

    result["time_elapsed"] = time.time() - start_time
    return result


async def harvest_values(
    policy: ExtractionPolicy,
    item: Any,
    session: BrowserSession,
    url_params: Optional[dict] = None,
    max_values: Optional[int] = None,
) -> HarvestResult:
    """
    Collect every accepted value from the page the policy opens for item.

    URL templates are tried in order until one yields values.

    Raises:
        PolicyConfigError: If the policy has no url_templates
        SamplerFault: If a page cannot be opened or goes away mid-harvest
    """
    if not policy.url_templates:
        raise PolicyConfigError(f"Policy '{policy.name}' has no url_templates to open")

    params = _prepare_url_params(url_params)
    harvest = None

    for template_index in range(len(policy.url_templates)):
        url = policy.build_url(item, template_index, **params)
        page, release = await session.open_page(url)
        try:
            harvest = await policy.harvester(page, item=item, max_values=max_values).run()
        finally:
            await release()

        if harvest.values:
            break
        logger.info(f"[{policy.name}] Nothing harvested from template #{template_index} ({harvest.stop_reason})")

    return harvest


async def harvest_names(
    policy: ExtractionPolicy,
    company: str,
    session: BrowserSession,
    roles: Sequence[str] = (),
    max_names: Optional[int] = None,
) -> list[str]:
    """
    Harvest distinct people names for a company, one people-page search per role.

    With no roles the unfiltered people page is harvested. A role whose page
    fails to load is skipped.

    Returns:
        Up to max_names (default: the policy's harvest max_values) names,
        in the order they were found
    """
    max_names = max_names or policy.harvest.max_values
    names = []

    for role in roles or [""]:
        remaining = max_names - len(names)
        if remaining <= 0:
            break

        try:
            harvest = await harvest_values(
                policy, role, session, url_params={"company": company}, max_values=max_names
            )
        except SamplerFault as e:
            logger.error(f"[{policy.name}] Skipping role '{role or 'all'}': {e}")
            continue

        new_names = [name for name in harvest.values if name not in names]
        names.extend(new_names[:remaining])
        logger.info(f"[{policy.name}] Role '{role or 'all'}': {len(new_names)} new name(s), {len(names)} total")

    return names


async def run_workflow(
    company: str,
    domain: str,
    roles: Sequence[str] = (),
    max_names: Optional[int] = None,
    config: Optional[DictConfig] = None,
    output: Optional[Path] = None,
    verbose: bool = True,
    headless: bool = True,
    log_dir: Path = LOGS_PATH,
    session_factory=BrowserSession,
    people_policy: str = "people_name",
    email_policy: str = "email",
) -> dict[str, Any]:
    """
    Harvest people at a company, then look up each person's email.

    Args:
        company: Company identifier used in the people page URL (e.g., "acme")
        domain: Company email domain or website (e.g., "acme.com")
        roles: Optional role keywords; each is searched separately
        max_names: Cap on harvested names (default: people policy harvest max_values)
        config: Loaded extraction config (default: CONFIG_PATH/extraction.yaml)
        output: Optional JSON file for the combined report
        verbose: Print progress information
        headless: Run the browser without a window
        log_dir: Directory for log files (default: LOGS_PATH)
        session_factory: Callable returning a BrowserSession-like async context manager
        people_policy: Policy used to harvest names
        email_policy: Policy used to find emails

    Returns:
        Dict with keys:
            - status: "success" or "failed"
            - names: Harvested names
            - found: Emails found, in name order
            - counts: Email outcome counts by status (see results.summarize)
            - time_elapsed: Time in seconds
            - results: List of BatchResult for the email lookups (empty on failure)
            - output: Path of the exported JSON (if requested)
            - error: Error message (if failed)
            - traceback: Full traceback (if failed)
    """
    log_file = _setup_logger(log_dir, verbose=verbose)
    logger.info(f"Logging to: {log_file}")

    start_time = time.time()
    result = {
        "status": "failed",
        "names": [],
        "found": [],
        "counts": {},
        "time_elapsed": 0.0,
        "results": [],
        "output": None,
        "error": None,
        "traceback": None,
    }

    try:
        people = load_policy(people_policy, config)
        emails = load_policy(email_policy, config)
        logger.info(f"[{company}] Starting workflow (domain={domain}, roles={list(roles) or 'all'})")

        async with session_factory(headless=headless) as session:
            names = await harvest_names(people, company, session, roles=roles, max_names=max_names)
            result["names"] = names
            if not names:
                raise ExtractionError(f"No names found for '{company}'")

            logger.info(f"[{company}] Looking up emails for {len(names)} name(s)")
            batch_results = await extract_items(
                emails, names, session, url_params={"domain": domain}, show_progress=verbose
            )

        counts = summarize(batch_results)
        result.update(
            {
                "status": "success",
                "found": found_values(batch_results),
                "counts": counts,
                "results": batch_results,
            }
        )
        if output is not None:
            result["output"] = export_workflow_results(company, domain, names, batch_results, output)
            logger.info(f"Results saved to {result['output']}")

        logger.success(
            f"[{company}] Completed: {counts[FOUND]}/{counts['total']} emails found "
            f"({counts['success_rate']}%, {time.time() - start_time:.1f}s)"
        )

    except Exception as e:
        result["error"] = str(e)
        result["traceback"] = traceback.format_exc()
        logger.error(f"[{company}] Failed: {e}")
        if verbose:
            logger.debug(f"[{company}] Traceback:\n{result['traceback']}")

    result["time_elapsed"] = time.time() - start_time
    return result
