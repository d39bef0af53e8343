from typing import Annotated

from fastmcp.tools.tool_transform import ArgTransform
from pydantic import Field

RUBY_VERSION_DESCRIPTION = (
    "The Ruby version to use, e.g. `3.3` or `2.7.6`. If there are no stubs for that version, the closest lower version is used. "
    + "If not provided, the configured default version (or the newest available) is used."
)
RUBY_VERSION = Annotated[str | None, Field(description=RUBY_VERSION_DESCRIPTION)]
RUBY_VERSION_ARG_TRANSFORM = ArgTransform(description=RUBY_VERSION_DESCRIPTION)

NAMESPACE = Annotated[str, "The fully qualified name of the class or module, e.g. `String` or `OpenSSL::SSL::SSLSocket`."]
METHOD = Annotated[str, "The name of the method, e.g. `center`, `[]=` or `new`."]
SINGLETON = Annotated[bool, "Whether to look up a singleton (class-level, `self.`) method instead of an instance method."]
INCLUDE_INHERITED = Annotated[bool, "Whether to include methods inherited from ancestors, not just the ones declared on the namespace."]
PREFIX = Annotated[
    str,
    "The text to complete. Without a namespace this completes class and module names; a prefix starting with `$` completes "
    + "global variables.",
]
COMPLETION_NAMESPACE = Annotated[str | None, "The class or module whose methods (and constants, for singleton completion) to complete."]

KEYWORDS = Annotated[list[str], "The keywords to search for in names and documentation. The search is not case-sensitive."]
REQUIRE_ALL_KEYWORDS = Annotated[bool, "Whether all keywords must be present for a result to appear in the search results."]

LIMIT_DESCRIPTION = "The maximum number of results to return."
LIMIT = Annotated[int, Field(description=LIMIT_DESCRIPTION, ge=1)]

LINT_RULES = Annotated[list[str] | None, "The lint rules to run. If not provided, all rules are run."]
DISABLED_LINT_RULES = Annotated[list[str] | None, "The lint rules to skip."]
