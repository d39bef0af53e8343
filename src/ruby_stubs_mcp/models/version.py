import re
from collections.abc import Iterable
from functools import total_ordering
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

DIRECTORY_PREFIX = "rubystubs"

VERSION_PATTERN = re.compile(r"^(?P<major>\d+)\.(?P<minor>\d+)(?:\.\d+)?(?:[-.][0-9A-Za-z.]+)?$")
DIRECTORY_PATTERN = re.compile(rf"^{DIRECTORY_PREFIX}(?P<major>\d)(?P<minor>\d+)$")


class VersionParseError(ValueError):
    """Raised when a Ruby version string or snapshot tag cannot be parsed."""

    def __init__(self, version: str, reason: str = "Invalid version format"):
        super().__init__(f"{reason}: {version!r}")


@total_ordering
class MinorVersion(BaseModel):
    """A Ruby minor version (e.g. 2.7, 3.3). Patch levels are ignored."""

    model_config = ConfigDict(frozen=True)

    major: int = Field(description="The major version number.", ge=0)
    minor: int = Field(description="The minor version number.", ge=0)

    @classmethod
    def parse(cls, version: str) -> Self:
        """Parse `2.7`, `2.7.6`, `3.3.0-preview1` or a snapshot tag such as `rubystubs27`."""

        version = version.strip()

        if version.startswith(DIRECTORY_PREFIX):
            return cls.from_directory_name(version)

        if not (match := VERSION_PATTERN.match(version)):
            raise VersionParseError(version)

        return cls(major=int(match["major"]), minor=int(match["minor"]))

    @classmethod
    def from_directory_name(cls, directory_name: str) -> Self:
        if not (match := DIRECTORY_PATTERN.match(directory_name)):
            raise VersionParseError(directory_name, reason="Invalid snapshot directory name")

        return cls(major=int(match["major"]), minor=int(match["minor"]))

    def to_directory_name(self) -> str:
        return f"{DIRECTORY_PREFIX}{self.major}{self.minor}"

    def find_closest(self, candidates: Iterable["MinorVersion"]) -> "MinorVersion | None":
        """Return the exact match if available, otherwise the highest candidate lower than this version."""

        candidate_list: list[MinorVersion] = list(candidates)

        if self in candidate_list:
            return self

        lower: list[MinorVersion] = [candidate for candidate in candidate_list if candidate < self]

        return max(lower) if lower else None

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, MinorVersion):
            return NotImplemented
        return (self.major, self.minor) < (other.major, other.minor)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


SUPPORTED_RUBY_VERSIONS: list[MinorVersion] = [
    MinorVersion(major=major, minor=minor)
    for major, minor in [
        (1, 8),
        (1, 9),
        (2, 0),
        (2, 1),
        (2, 2),
        (2, 3),
        (2, 4),
        (2, 5),
        (2, 6),
        (2, 7),
        (3, 0),
        (3, 1),
        (3, 2),
        (3, 3),
        (3, 4),
    ]
]
