import asyncio
import json
import sys
from logging import Logger
from pathlib import Path
from typing import Literal

import click
from fastmcp.utilities.logging import configure_logging, get_logger

from ruby_stubs_mcp.clients.errors.stubs import ClientError
from ruby_stubs_mcp.clients.stubs import StubCorpusClient
from ruby_stubs_mcp.linting.report import LintReport, lint_snapshot, select_rules
from ruby_stubs_mcp.linting.rules import RULE_NAMES
from ruby_stubs_mcp.models.version import VersionParseError

logger: Logger = get_logger(name=__name__)


async def lint_versions(
    stubs_client: StubCorpusClient, ruby_version: str | None, all_versions: bool, rules: list[str], disabled: list[str]
) -> list[LintReport]:
    snapshots = await stubs_client.get_snapshots() if all_versions else [await stubs_client.get_snapshot(version=ruby_version)]

    return [lint_snapshot(snapshot, rules=rules, disabled=disabled) for snapshot in snapshots]


@click.command()
@click.option(
    "--stubs-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="The directory containing the rubystubsNN snapshots. Defaults to $RUBY_STUBS_DIR.",
)
@click.option("--ruby-version", type=str, default=None, help="The Ruby version to lint. Defaults to $RUBY_VERSION or the newest snapshot.")
@click.option("--all", "all_versions", is_flag=True, default=False, help="Lint every available Ruby version.")
@click.option("--rule", "rules", type=click.Choice(RULE_NAMES), multiple=True, help="Only run this rule. Can be repeated.")
@click.option("--disable", "disabled", type=click.Choice(RULE_NAMES), multiple=True, help="Skip this rule. Can be repeated.")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text", help="The output format.")
@click.option("--verbose", is_flag=True, default=False, help="Log snapshot loading and parse failures.")
def lint_stubs(
    stubs_dir: Path | None,
    ruby_version: str | None,
    all_versions: bool,
    rules: tuple[str, ...],
    disabled: tuple[str, ...],
    output_format: Literal["text", "json"],
    verbose: bool,
):
    """Check Ruby stub snapshots for consistency problems. Exits with status 1 when any error is found."""

    if all_versions and ruby_version:
        msg = "--all and --ruby-version cannot be used together"
        raise click.UsageError(msg)

    configure_logging(level="DEBUG" if verbose else "WARNING")

    if not select_rules(rules=list(rules), disabled=list(disabled)):
        msg = "Every selected rule is disabled"
        raise click.UsageError(msg)

    try:
        stubs_client: StubCorpusClient = StubCorpusClient(stubs_dir=stubs_dir, logger=logger, log_loads=verbose, log_on_error=verbose)
        reports: list[LintReport] = asyncio.run(
            lint_versions(stubs_client, ruby_version=ruby_version, all_versions=all_versions, rules=list(rules), disabled=list(disabled))
        )
    except (ClientError, VersionParseError) as e:
        raise click.ClickException(str(e)) from e

    if output_format == "json":
        click.echo(json.dumps([report.model_dump(mode="json") for report in reports], indent=2))
    else:
        for report in reports:
            click.echo(report.render())

    if any(report.has_errors for report in reports):
        sys.exit(1)


if __name__ == "__main__":
    lint_stubs()
