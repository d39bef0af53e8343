import asyncio
from collections.abc import Callable
from logging import Logger, getLogger
from pathlib import Path
from typing import Any

from anyio import open_file
from async_lru import alru_cache

from ruby_stubs_mcp.clients.errors.stubs import SnapshotLoadError, SnapshotNotFoundError, StubsDirectoryMissingError
from ruby_stubs_mcp.models.snapshot import StubFileError, StubSnapshot
from ruby_stubs_mcp.models.stubs import StubFile
from ruby_stubs_mcp.models.version import DIRECTORY_PATTERN, SUPPORTED_RUBY_VERSIONS, MinorVersion
from ruby_stubs_mcp.parsing.errors import StubParseError
from ruby_stubs_mcp.parsing.parser import parse_stub_file
from ruby_stubs_mcp.utilities.settings import get_default_ruby_version, get_stubs_dir, get_strict

STUB_FILE_GLOB = "**/*.rb"

SNAPSHOT_CACHE_SIZE = 32

NOT_UTF8_MESSAGE = "The file is not valid UTF-8"


class StubCorpusClient:
    """Discovers the `rubystubsNN` snapshots of a stubs directory and loads them into symbol tables."""

    stubs_dir: Path
    default_version: MinorVersion | None
    strict: bool
    logger: Logger

    log_loads: bool
    log_on_error: bool

    def __init__(
        self,
        stubs_dir: Path | None = None,
        logger: Logger | None = None,
        strict: bool | None = None,
        default_version: MinorVersion | str | None = None,
        log_loads: bool = True,
        log_on_error: bool = True,
    ):
        self.stubs_dir = stubs_dir or get_stubs_dir()
        self.logger = logger or getLogger(__name__)
        self.strict = get_strict() if strict is None else strict

        if isinstance(default_version, str):
            default_version = MinorVersion.parse(default_version)
        self.default_version = default_version or get_default_ruby_version()

        self.log_loads = log_loads
        self.log_on_error = log_on_error

    def _get_loggers(self) -> tuple[Callable[[str], Any], Callable[[str], Any]]:
        load_logger = self.logger.info if self.log_loads else self.logger.debug
        error_logger = self.logger.exception if self.log_on_error else self.logger.debug
        return load_logger, error_logger

    def available_versions(self) -> list[MinorVersion]:
        """The Ruby versions that have a snapshot directory, oldest first."""

        if not self.stubs_dir.is_dir():
            raise StubsDirectoryMissingError(stubs_dir=self.stubs_dir)

        return sorted(
            MinorVersion.from_directory_name(entry.name)
            for entry in self.stubs_dir.iterdir()
            if entry.is_dir() and DIRECTORY_PATTERN.match(entry.name)
        )

    def resolve_version(self, requested: MinorVersion | str | None = None) -> MinorVersion:
        """The snapshot to use for `requested`: the exact version if available, otherwise the closest lower one.

        Without a requested version the configured default is used, or the newest snapshot when there is none."""

        available: list[MinorVersion] = self.available_versions()

        if isinstance(requested, str):
            requested = MinorVersion.parse(requested)

        if requested is None:
            if self.default_version is None and available:
                return available[-1]
            requested = self.default_version

        if requested is not None and requested not in SUPPORTED_RUBY_VERSIONS:
            self.logger.warning(f"Ruby {requested} is not a version the stubs are generated for")

        closest: MinorVersion | None = requested.find_closest(available) if requested else None

        if closest is None:
            raise SnapshotNotFoundError(
                requested=str(requested) if requested else None,
                available=[str(version) for version in available],
                extra_info={"stubs_dir": str(self.stubs_dir)},
            )

        if closest != requested:
            self.logger.debug(f"No stubs for Ruby {requested}, using Ruby {closest}")

        return closest

    def snapshot_directory(self, version: MinorVersion) -> Path:
        return self.stubs_dir / version.to_directory_name()

    async def get_snapshot(self, version: MinorVersion | str | None = None) -> StubSnapshot:
        """Load (or return the cached) snapshot for the resolved Ruby version."""

        return await self._load_snapshot(self.resolve_version(version))

    async def get_snapshots(self) -> list[StubSnapshot]:
        return [await self._load_snapshot(version) for version in self.available_versions()]

    def clear_cache(self) -> None:
        self._load_snapshot.cache_clear()

    @alru_cache(maxsize=SNAPSHOT_CACHE_SIZE)
    async def _load_snapshot(self, version: MinorVersion) -> StubSnapshot:
        load_logger, _ = self._get_loggers()

        directory: Path = self.snapshot_directory(version)
        paths: list[Path] = sorted(directory.glob(STUB_FILE_GLOB))

        load_logger(f"Loading stubs for Ruby {version} from {directory}")

        results: list[StubFile | StubFileError] = await asyncio.gather(*[self._load_stub_file(version, path) for path in paths])

        files: list[StubFile] = [result for result in results if isinstance(result, StubFile)]
        errors: list[StubFileError] = [result for result in results if isinstance(result, StubFileError)]

        snapshot: StubSnapshot = StubSnapshot.from_files(version=version, directory=directory, files=files, errors=errors)

        load_logger(f"Loaded {len(files)} stub files for Ruby {version} ({len(errors)} failed, {len(snapshot.table)} namespaces)")

        return snapshot

    async def _load_stub_file(self, version: MinorVersion, path: Path) -> StubFile | StubFileError:
        _, error_logger = self._get_loggers()

        async with await open_file(file=path, mode="rb") as file:
            data: bytes = await file.read()

        try:
            text: str = data.decode("utf-8")
        except UnicodeDecodeError as e:
            if self.strict:
                raise SnapshotLoadError(version=str(version), path=path, message=str(e)) from e

            error_logger(f"Skipping stub file {path} that is not valid UTF-8: {e}")

            return StubFileError(path=str(path), line=data[: e.start].count(b"\n") + 1, message=NOT_UTF8_MESSAGE)

        try:
            return parse_stub_file(text, path=str(path), logger=self.logger)
        except StubParseError as e:
            if self.strict:
                raise SnapshotLoadError(version=str(version), path=path, message=str(e)) from e

            error_logger(f"Skipping unparseable stub file {path}: {e}")

            return StubFileError(path=str(path), line=e.line, message=e.reason)
