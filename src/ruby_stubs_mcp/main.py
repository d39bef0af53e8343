from logging import Logger
from pathlib import Path
from typing import Literal

import click
from fastmcp import FastMCP
from fastmcp.server.middleware.logging import LoggingMiddleware
from fastmcp.utilities.logging import configure_logging, get_logger

from ruby_stubs_mcp.clients.stubs import StubCorpusClient
from ruby_stubs_mcp.models.version import VersionParseError
from ruby_stubs_mcp.servers.stubs import StubServer

logger: Logger = get_logger(name=__name__)


def new_mcp_server(stubs_dir: Path | None = None, ruby_version: str | None = None) -> FastMCP[None]:
    mcp: FastMCP[None] = FastMCP[None](name="Ruby Stubs MCP")

    mcp.add_middleware(middleware=LoggingMiddleware(include_payloads=True, logger=logger))

    stubs_client: StubCorpusClient = StubCorpusClient(stubs_dir=stubs_dir, default_version=ruby_version, logger=logger)

    stub_server: StubServer = StubServer(stubs_client=stubs_client, logger=logger)
    _ = stub_server.register_tools(fastmcp=mcp)

    return mcp


mcp: FastMCP[None] = new_mcp_server()


@click.command()
@click.option(
    "--stubs-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="The directory containing the rubystubsNN snapshots. Defaults to $RUBY_STUBS_DIR.",
)
@click.option(
    "--ruby-version",
    type=str,
    default=None,
    help="The Ruby version to use when a tool call does not name one. Defaults to $RUBY_VERSION or the newest snapshot.",
)
@click.option(
    "--mcp-transport",
    type=click.Choice(["stdio", "streamable-http"]),
    default="stdio",
    help="The transport to run the MCP server on",
)
def run_mcp(stubs_dir: Path | None, ruby_version: str | None, mcp_transport: Literal["stdio", "streamable-http"]):
    configure_logging()

    try:
        server: FastMCP[None] = mcp if stubs_dir is None and ruby_version is None else new_mcp_server(stubs_dir, ruby_version)
    except VersionParseError as e:
        raise click.BadParameter(str(e), param_hint="--ruby-version") from e

    server.run(transport=mcp_transport)


if __name__ == "__main__":
    run_mcp()
