from collections.abc import Sequence
from pathlib import Path
from typing import Any, overload

import pytest
from fastmcp import FastMCP
from fastmcp.client.client import CallToolResult
from fastmcp.server.middleware.logging import LoggingMiddleware
from pydantic import BaseModel

from ruby_stubs_mcp.clients.stubs import StubCorpusClient

FIXTURES_DIR = Path(__file__).parent / "fixtures"
STUBS_DIR = FIXTURES_DIR / "stubs"
BROKEN_STUBS_DIR = FIXTURES_DIR / "broken_stubs"


@pytest.fixture
def stubs_dir() -> Path:
    return STUBS_DIR


@pytest.fixture
def broken_stubs_dir() -> Path:
    return BROKEN_STUBS_DIR


@pytest.fixture
def stubs_client(stubs_dir: Path) -> StubCorpusClient:
    return StubCorpusClient(stubs_dir=stubs_dir, strict=False, default_version="3.3")


@pytest.fixture
def broken_stubs_client(broken_stubs_dir: Path) -> StubCorpusClient:
    return StubCorpusClient(stubs_dir=broken_stubs_dir, strict=False, default_version="3.3", log_on_error=False)


@pytest.fixture
def logging_middleware() -> LoggingMiddleware:
    return LoggingMiddleware(include_payloads=True)


@pytest.fixture
def fastmcp(logging_middleware: LoggingMiddleware) -> FastMCP[Any]:
    return FastMCP(
        name="Ruby Stubs MCP",
        middleware=[logging_middleware],
    )


def handle_exclude_keys(dictionary: dict[str, Any], exclude_keys: list[str] | None = None) -> dict[str, Any]:
    if exclude_keys is None:
        return dictionary
    return {key: value for key, value in dictionary.items() if key not in exclude_keys}


@overload
def dump_for_snapshot(
    basemodel: None,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> None: ...


@overload
def dump_for_snapshot(
    basemodel: BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any]: ...


def dump_for_snapshot(
    basemodel: None | BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any] | None:
    if basemodel is None:
        return None

    return handle_exclude_keys(basemodel.model_dump(mode="json", exclude_none=exclude_none, **dump_kwargs), exclude_keys)


def dump_list_for_snapshot(
    basemodel: None | Sequence[BaseModel],
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> list[dict[str, Any]] | None:
    if basemodel is None:
        return []

    return [dump_for_snapshot(item, exclude_keys, exclude_none, **dump_kwargs) for item in basemodel]


def get_structured_content(call_tool_result: CallToolResult, /) -> dict[str, Any]:
    assert call_tool_result.structured_content is not None
    return call_tool_result.structured_content
