import os
from logging import Logger
from pathlib import Path

from fastmcp.utilities.logging import get_logger

from ruby_stubs_mcp.models.version import MinorVersion, VersionParseError

logger: Logger = get_logger(name=__name__)

STUBS_DIR_ENV = "RUBY_STUBS_DIR"
RUBY_VERSION_ENV = "RUBY_VERSION"
TRUNCATE_CHARACTERS_ENV = "STUBS_TRUNCATE_CHARACTERS"
STRICT_ENV = "STUBS_STRICT"

DEFAULT_TRUNCATE_CHARACTERS = 4000

WORKING_DIRECTORY_STUBS = Path("vsix") / "stubs"
BUNDLED_STUBS = Path(__file__).resolve().parents[1] / "stubs"

TRUTHY_VALUES = {"1", "true", "yes", "on"}


def get_stubs_dir() -> Path:
    if stubs_dir := os.getenv(STUBS_DIR_ENV):
        return Path(stubs_dir)

    if WORKING_DIRECTORY_STUBS.is_dir():
        return WORKING_DIRECTORY_STUBS

    return BUNDLED_STUBS


def get_default_ruby_version() -> MinorVersion | None:
    """The Ruby version from `RUBY_VERSION`, which version managers often set as `ruby-3.3.0`.

    Values that are not a Ruby version, like `ruby-head` or `jruby-9.4.5.0`, are ignored."""

    if not (ruby_version := os.getenv(RUBY_VERSION_ENV, "").strip()):
        return None

    try:
        return MinorVersion.parse(ruby_version.removeprefix("ruby-"))
    except VersionParseError:
        logger.warning(f"Ignoring {RUBY_VERSION_ENV}={ruby_version!r}, it is not a Ruby version")
        return None


def get_truncate_characters() -> int:
    return int(os.getenv(TRUNCATE_CHARACTERS_ENV, str(DEFAULT_TRUNCATE_CHARACTERS)))


def get_strict() -> bool:
    return os.getenv(STRICT_ENV, "").strip().lower() in TRUTHY_VALUES
