#!/usr/bin/env python3
"""
Command-line interface for running page extractions.

Uses typer for clean CLI with subcommands.
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import typer

# Add project root to path so we can import prospect
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from prospect.contexts.extraction.orchestration import run_extraction, run_workflow
from prospect.contexts.extraction.policies import PolicyConfigError, available_policies, load_extraction_config
from prospect.utils.config_helpers import merge_configs, parse_overrides

app = typer.Typer(
    add_completion=False,
    help="prospect page extraction",
)


def _load_config(config_files: Optional[List[Path]]):
    if config_files:
        return merge_configs(config_files)
    return load_extraction_config()


@app.command("run")
def run_command(
    policy: str = typer.Argument(..., help="Policy to run (e.g., email, people_name, job_card, website)"),
    items: List[str] = typer.Argument(..., help="Work items: names, card indices, search roles or company names"),
    param: Optional[List[str]] = typer.Option(
        None,
        "--param",
        "-P",
        help="URL template value as key=value (e.g., domain=acme.com). Repeatable.",
    ),
    batch_size: Optional[int] = typer.Option(
        None,
        "--batch-size",
        "-b",
        help="Number of items to extract concurrently (default: from policy config)",
        min=1,
    ),
    config_files: Optional[List[Path]] = typer.Option(
        None,
        "--config",
        "-c",
        help="Extraction config file(s); later files override earlier ones",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write detailed results and found values to this JSON file",
    ),
    headed: bool = typer.Option(
        False,
        "--headed",
        help="Show the browser window",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress verbose output (errors still logged)",
    ),
):
    """
    Run one extraction policy over a list of items.

    Examples:

        # Find emails for people at a company
        $ run_extraction.py run email "Jane Doe" "John Smith" -P domain=acme.com

        # Find company websites, saving results
        $ run_extraction.py run website "Acme Corp" "Globex" -o outs/websites.json

        # First listed person per role on a company's people page
        $ run_extraction.py run people_name hr recruiter -P company=acme
    """
    try:
        config = _load_config(config_files)
        url_params = parse_overrides(param or [])
    except (PolicyConfigError, ValueError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    available = available_policies(config)
    if policy not in available:
        typer.secho(f"Error: Unknown policy: {policy}", fg=typer.colors.RED, err=True)
        typer.echo(f"\nAvailable policies: {', '.join(sorted(available))}", err=True)
        typer.echo("\nUse 'list' command to see all available policies", err=True)
        raise typer.Exit(code=1)

    try:
        result = asyncio.run(
            run_extraction(
                policy,
                items,
                url_params=url_params,
                batch_size=batch_size,
                config=config,
                output=output,
                verbose=not quiet,
                headless=not headed,
            )
        )
    except KeyboardInterrupt:
        typer.secho("\n\nInterrupted by user", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)

    if result["status"] == "failed":
        raise typer.Exit(code=1)

    for value in result["found"]:
        typer.echo(value)


@app.command("workflow")
def workflow_command(
    company: str = typer.Argument(..., help="Company identifier as used in its people page URL (e.g., acme)"),
    domain: str = typer.Argument(..., help="Company email domain or website (e.g., acme.com)"),
    role: Optional[List[str]] = typer.Option(
        None,
        "--role",
        "-r",
        help="Only harvest people matching this role keyword. Repeatable.",
    ),
    max_names: Optional[int] = typer.Option(
        None,
        "--max-names",
        "-n",
        help="Maximum number of names to harvest (default: from people_name config)",
        min=1,
    ),
    config_files: Optional[List[Path]] = typer.Option(
        None,
        "--config",
        "-c",
        help="Extraction config file(s); later files override earlier ones",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the combined names/emails report to this JSON file",
    ),
    headed: bool = typer.Option(False, "--headed", help="Show the browser window"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress verbose output (errors still logged)"),
):
    """
    Harvest people at a company, then find an email for each of them.

    Examples:

        # Up to 20 recruiters and HR people at Acme
        $ run_extraction.py workflow acme acme.com -r recruiter -r hr -n 20 -o outs/acme.json
    """
    try:
        config = _load_config(config_files)
    except PolicyConfigError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        result = asyncio.run(
            run_workflow(
                company,
                domain,
                roles=role or [],
                max_names=max_names,
                config=config,
                output=output,
                verbose=not quiet,
                headless=not headed,
            )
        )
    except KeyboardInterrupt:
        typer.secho("\n\nInterrupted by user", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)

    if result["status"] == "failed":
        raise typer.Exit(code=1)

    for value in result["found"]:
        typer.echo(value)


@app.command("list")
def list_command(
    config_files: Optional[List[Path]] = typer.Option(None, "--config", "-c", help="Extraction config file(s)"),
):
    """List all configured policies."""
    available = available_policies(_load_config(config_files))
    typer.secho(f"Available policies ({len(available)}):", fg=typer.colors.BLUE, bold=True)
    for policy in available:
        typer.echo(f"  • {policy}")


if __name__ == "__main__":
    app()
