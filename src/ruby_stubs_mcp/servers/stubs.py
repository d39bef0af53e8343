from difflib import get_close_matches
from logging import Logger
from typing import Any

from fastmcp.server import FastMCP
from fastmcp.tools import Tool
from fastmcp.tools.tool_transform import ArgTransform, TransformedTool
from fastmcp.utilities.logging import get_logger

from ruby_stubs_mcp.clients.stubs import STUB_FILE_GLOB, StubCorpusClient
from ruby_stubs_mcp.linting.report import LintReport, lint_snapshot
from ruby_stubs_mcp.linting.rules import RULE_NAMES
from ruby_stubs_mcp.models.index import CompletionItem, MethodMatch, SearchHit, SymbolTable
from ruby_stubs_mcp.models.snapshot import StubSnapshot
from ruby_stubs_mcp.models.stubs import Receiver, StubNamespace, Visibility
from ruby_stubs_mcp.servers.models.stubs import (
    Completions,
    ConstantEntry,
    DocumentationSearchResults,
    MethodEntry,
    MethodInfo,
    MethodLocation,
    MethodLocations,
    NamespaceInfo,
    RubyVersionEntry,
    RubyVersions,
)
from ruby_stubs_mcp.servers.shared.annotations import (
    COMPLETION_NAMESPACE,
    DISABLED_LINT_RULES,
    INCLUDE_INHERITED,
    KEYWORDS,
    LIMIT,
    LINT_RULES,
    METHOD,
    NAMESPACE,
    PREFIX,
    REQUIRE_ALL_KEYWORDS,
    RUBY_VERSION,
    RUBY_VERSION_ARG_TRANSFORM,
    SINGLETON,
)
from ruby_stubs_mcp.servers.shared.errors import MethodNotFoundError, NamespaceNotFoundError
from ruby_stubs_mcp.servers.shared.utility import truncate_documentation
from ruby_stubs_mcp.utilities.settings import get_truncate_characters

DEFAULT_COMPLETION_LIMIT = 50
DEFAULT_FIND_METHODS_LIMIT = 50
DEFAULT_SEARCH_LIMIT = 20
SUGGESTION_COUNT = 3


def description(description: str, /) -> ArgTransform:
    return ArgTransform(description=description)


def suggest(name: str, candidates: list[str]) -> list[str]:
    return get_close_matches(name, candidates, n=SUGGESTION_COUNT)


def receiver_for(singleton: bool) -> Receiver:
    return Receiver.SINGLETON if singleton else Receiver.INSTANCE


class StubServer:
    """Answers lookups against the parsed stubs: namespaces, methods, completion, search and linting."""

    stubs_client: StubCorpusClient
    truncate_characters: int
    logger: Logger

    def __init__(self, stubs_client: StubCorpusClient | None = None, logger: Logger | None = None, truncate_characters: int | None = None):
        self.logger = logger or get_logger(name=__name__)
        self.stubs_client = stubs_client or StubCorpusClient(logger=self.logger)
        self.truncate_characters = get_truncate_characters() if truncate_characters is None else truncate_characters

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        for tool in self.passthrough_tools().values():
            _ = fastmcp.add_tool(tool=tool)

        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.list_ruby_versions))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_namespace))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_method))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.complete))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.find_methods))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.search_documentation))

        return fastmcp

    def passthrough_tools(self) -> dict[str, TransformedTool]:
        rule_names = ", ".join(f"`{name}`" for name in RULE_NAMES)

        lint_stubs_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.lint),
            name="lint_stubs",
            description="Check the stubs of a Ruby version for consistency problems like dangling aliases, undefined superclasses, "
            + "duplicated declarations and parameters the documentation does not mention.",
            transform_args={
                "ruby_version": RUBY_VERSION_ARG_TRANSFORM,
                "rules": description(f"The lint rules to run. If not provided, all rules are run. Available rules: {rule_names}."),
                "disabled": description(f"The lint rules to skip. Available rules: {rule_names}."),
            },
        )

        return {
            "lint_stubs": lint_stubs_tool,
        }

    async def _snapshot(self, ruby_version: str | None) -> StubSnapshot:
        return await self.stubs_client.get_snapshot(version=ruby_version)

    def _truncate(self, documentation: str | None) -> str | None:
        return truncate_documentation(documentation, self.truncate_characters)

    def _require_namespace(self, snapshot: StubSnapshot, name: str) -> StubNamespace:
        if namespace := snapshot.table.get(name):
            return namespace

        raise NamespaceNotFoundError(
            namespace=name,
            ruby_version=str(snapshot.version),
            suggestions=suggest(name, list(snapshot.table.namespaces)),
        )

    async def list_ruby_versions(self) -> RubyVersions:
        """List the Ruby versions that stubs are available for and the version used by default."""

        versions = self.stubs_client.available_versions()

        entries: list[RubyVersionEntry] = [
            RubyVersionEntry(
                version=str(version),
                directory=version.to_directory_name(),
                files=sum(1 for _ in self.stubs_client.snapshot_directory(version).glob(STUB_FILE_GLOB)),
            )
            for version in versions
        ]

        default: str | None = str(self.stubs_client.resolve_version()) if versions else None

        return RubyVersions(default=default, versions=entries)

    async def get_namespace(
        self, name: NAMESPACE, ruby_version: RUBY_VERSION = None, include_inherited: INCLUDE_INHERITED = False
    ) -> NamespaceInfo:
        """Get a class or module: its documentation, superclass, ancestors, constants and method signatures.

        Method documentation is not included, use `get_method` to retrieve it."""

        snapshot = await self._snapshot(ruby_version)
        namespace = self._require_namespace(snapshot, name)
        table: SymbolTable = snapshot.table

        if include_inherited:
            instance_methods = self._inherited_methods(table, namespace, Receiver.INSTANCE)
            singleton_methods = self._inherited_methods(table, namespace, Receiver.SINGLETON)
        else:
            instance_methods = [MethodMatch(owner=namespace.qualified_name, method=method) for method in namespace.instance_methods]
            singleton_methods = [MethodMatch(owner=namespace.qualified_name, method=method) for method in namespace.singleton_methods]

        return NamespaceInfo(
            ruby_version=str(snapshot.version),
            name=namespace.qualified_name,
            kind=namespace.kind.value,
            superclass=table.superclass_of(namespace),
            path=snapshot.relative_path(namespace.path) if namespace.path else None,
            documentation=self._truncate(namespace.documentation),
            includes=list(namespace.includes),
            extends=list(namespace.extends),
            prepends=list(namespace.prepends),
            ancestors=table.ancestors(namespace.qualified_name),
            constants=[ConstantEntry.from_constant(constant, self.truncate_characters) for constant in namespace.constants],
            instance_methods=[MethodEntry.from_method_match(match) for match in sorted(instance_methods, key=lambda m: m.method.name)],
            singleton_methods=[MethodEntry.from_method_match(match) for match in sorted(singleton_methods, key=lambda m: m.method.name)],
        )

    def _inherited_methods(self, table: SymbolTable, namespace: StubNamespace, receiver: Receiver) -> list[MethodMatch]:
        """Available methods, leaving out private methods that ancestors declare."""

        return [
            match
            for match in table.available_methods(namespace.qualified_name, receiver=receiver)
            if match.owner == namespace.qualified_name or match.method.visibility is not Visibility.PRIVATE
        ]

    async def get_method(
        self, namespace: NAMESPACE, method: METHOD, singleton: SINGLETON = False, ruby_version: RUBY_VERSION = None
    ) -> MethodInfo:
        """Get the signature and documentation of a method, following the ancestors of the namespace when
        the namespace does not declare it itself."""

        snapshot = await self._snapshot(ruby_version)
        found = self._require_namespace(snapshot, namespace)
        receiver = receiver_for(singleton)

        if not (match := snapshot.table.resolve_method(found.qualified_name, method, receiver=receiver)):
            candidates: list[str] = [
                name
                for available in snapshot.table.available_methods(found.qualified_name, receiver=receiver)
                for name in [available.method.name, *available.method.aliases]
            ]
            raise MethodNotFoundError(
                namespace=found.qualified_name,
                method=method,
                singleton=singleton,
                ruby_version=str(snapshot.version),
                suggestions=suggest(method, candidates),
            )

        return MethodInfo.from_method_match(
            ruby_version=str(snapshot.version),
            namespace=found.qualified_name,
            match=match,
            truncate_characters=self.truncate_characters,
        )

    async def complete(
        self,
        prefix: PREFIX,
        namespace: COMPLETION_NAMESPACE = None,
        singleton: SINGLETON = False,
        ruby_version: RUBY_VERSION = None,
        limit: LIMIT = DEFAULT_COMPLETION_LIMIT,
    ) -> Completions:
        """Complete a class or module name, a method or constant of a namespace, or a global variable."""

        snapshot = await self._snapshot(ruby_version)
        table: SymbolTable = snapshot.table

        items: list[CompletionItem]

        if prefix.startswith("$"):
            items = table.complete_global_variables(prefix)
        elif namespace:
            found = self._require_namespace(snapshot, namespace)
            items = table.complete_members(found.qualified_name, prefix=prefix, receiver=receiver_for(singleton))
        else:
            items = table.complete_namespaces(prefix)

        return Completions(
            ruby_version=str(snapshot.version),
            items=[item.model_copy(update={"documentation": self._truncate(item.documentation)}) for item in items[:limit]],
            truncated=len(items) > limit,
        )

    async def find_methods(
        self, name: METHOD, ruby_version: RUBY_VERSION = None, limit: LIMIT = DEFAULT_FIND_METHODS_LIMIT
    ) -> MethodLocations:
        """Find every class and module that declares a method with the given name or alias."""

        snapshot = await self._snapshot(ruby_version)
        matches: list[MethodMatch] = snapshot.table.find_methods(name)

        return MethodLocations(
            ruby_version=str(snapshot.version),
            name=name,
            matches=[MethodLocation.from_method_match(match) for match in matches[:limit]],
            truncated=len(matches) > limit,
        )

    async def search_documentation(
        self,
        keywords: KEYWORDS,
        ruby_version: RUBY_VERSION = None,
        require_all: REQUIRE_ALL_KEYWORDS = False,
        limit: LIMIT = DEFAULT_SEARCH_LIMIT,
    ) -> DocumentationSearchResults:
        """Search the names and documentation of classes, modules, methods, constants and global variables.

        Results whose name matches a keyword are listed before results that only match in their documentation."""

        snapshot = await self._snapshot(ruby_version)
        hits: list[SearchHit] = snapshot.table.search(keywords, require_all=require_all)

        return DocumentationSearchResults(
            ruby_version=str(snapshot.version),
            keywords=keywords,
            hits=[hit.model_copy(update={"documentation": self._truncate(hit.documentation)}) for hit in hits[:limit]],
            truncated=len(hits) > limit,
        )

    async def lint(self, ruby_version: RUBY_VERSION = None, rules: LINT_RULES = None, disabled: DISABLED_LINT_RULES = None) -> LintReport:
        snapshot = await self._snapshot(ruby_version)

        self.logger.debug(f"Linting the Ruby {snapshot.version} stubs")

        return lint_snapshot(snapshot, rules=rules, disabled=disabled)
