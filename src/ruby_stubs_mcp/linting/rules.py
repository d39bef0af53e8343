import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import ClassVar, override

from pydantic import BaseModel, ConfigDict, Field

from ruby_stubs_mcp.models.snapshot import StubSnapshot
from ruby_stubs_mcp.models.stubs import StubMethod, StubNamespace
from ruby_stubs_mcp.parsing.parser import UNRECOGNIZED_STATEMENT

BUILTIN_SUPERCLASSES: frozenset[str] = frozenset(
    {
        "ArgumentError",
        "Array",
        "BasicObject",
        "Class",
        "Data",
        "Delegator",
        "EOFError",
        "EncodingError",
        "Exception",
        "FiberError",
        "File",
        "Float",
        "FloatDomainError",
        "FrozenError",
        "Hash",
        "IO",
        "IOError",
        "IndexError",
        "Integer",
        "Interrupt",
        "KeyError",
        "LoadError",
        "LocalJumpError",
        "Module",
        "NameError",
        "NoMethodError",
        "NotImplementedError",
        "Numeric",
        "Object",
        "RangeError",
        "RegexpError",
        "RuntimeError",
        "ScriptError",
        "SecurityError",
        "SignalException",
        "SimpleDelegator",
        "StandardError",
        "StopIteration",
        "String",
        "Struct",
        "SystemCallError",
        "SystemExit",
        "ThreadError",
        "TypeError",
        "ZeroDivisionError",
    }
)

# The `Errno` exception classes are generated at runtime from the platform error numbers
BUILTIN_NAMESPACES: tuple[str, ...] = ("Errno",)


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class LintFinding(BaseModel):
    """A single inconsistency found in a snapshot."""

    model_config = ConfigDict(frozen=True)

    rule: str = Field(description="The name of the rule that produced the finding.")
    severity: Severity
    path: str = Field(description="The stub file, relative to the snapshot directory.")
    line: int
    namespace: str | None = Field(default=None, description="The namespace the finding is about, if any.")
    message: str

    def render(self) -> str:
        return f"{self.path}:{self.line}: {self.severity.value} [{self.rule}] {self.message}"


def snake_case(name: str) -> str:
    """`OpenSSL` -> `open_ssl`, `StringIO` -> `string_io`, `WIN32OLE` -> `win32_ole`."""

    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return name.lower()


def loose_name(name: str) -> str:
    return name.replace("_", "").lower()


class BaseLintRule(BaseModel, ABC):
    """A check over a whole snapshot."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    name: ClassVar[str]
    severity: ClassVar[Severity]
    description: ClassVar[str]

    @abstractmethod
    def check(self, snapshot: StubSnapshot) -> Iterable[LintFinding]: ...

    def finding(self, snapshot: StubSnapshot, path: str, line: int, message: str, namespace: str | None = None) -> LintFinding:
        return LintFinding(
            rule=self.name,
            severity=self.severity,
            path=snapshot.relative_path(path),
            line=line,
            namespace=namespace,
            message=message,
        )


class UndocumentedParameterRule(BaseLintRule):
    name: ClassVar[str] = "undocumented-parameter"
    severity: ClassVar[Severity] = Severity.WARNING
    description: ClassVar[str] = "A documented method whose documentation does not mention one of its parameters."

    @override
    def check(self, snapshot: StubSnapshot) -> Iterable[LintFinding]:
        for stub_file in snapshot.files:
            for namespace in stub_file.namespaces:
                for method in namespace.methods:
                    for parameter in self.undocumented_parameters(method):
                        yield self.finding(
                            snapshot,
                            path=stub_file.path,
                            line=method.line,
                            namespace=namespace.qualified_name,
                            message=f"Documentation of {method.qualified_name(namespace.qualified_name)} "
                            + f"does not mention parameter `{parameter}`",
                        )

    def undocumented_parameters(self, method: StubMethod) -> list[str]:
        if not method.documentation:
            return []

        return [
            parameter.name
            for parameter in method.parameters
            if parameter.is_named and not re.search(rf"(?<!\w){re.escape(parameter.name)}(?!\w)", method.documentation)
        ]


class DanglingAliasRule(BaseLintRule):
    name: ClassVar[str] = "dangling-alias"
    severity: ClassVar[Severity] = Severity.ERROR
    description: ClassVar[str] = "An alias of a method that is not defined in the same namespace."

    @override
    def check(self, snapshot: StubSnapshot) -> Iterable[LintFinding]:
        for stub_file in snapshot.files:
            for namespace in stub_file.namespaces:
                merged: StubNamespace | None = snapshot.table.get(namespace.qualified_name)

                for alias in namespace.aliases:
                    if merged and merged.find_method(alias.old_name, receiver=alias.receiver):
                        continue

                    yield self.finding(
                        snapshot,
                        path=stub_file.path,
                        line=alias.line,
                        namespace=namespace.qualified_name,
                        message=f"`alias {alias.new_name} {alias.old_name}` refers to a method that is not defined in "
                        + f"{namespace.qualified_name}",
                    )


class UnknownSuperclassRule(BaseLintRule):
    name: ClassVar[str] = "unknown-superclass"
    severity: ClassVar[Severity] = Severity.ERROR
    description: ClassVar[str] = "A superclass that is neither a built-in root class nor defined in the snapshot."

    known_superclasses: frozenset[str] = Field(default=BUILTIN_SUPERCLASSES)
    known_namespaces: tuple[str, ...] = Field(default=BUILTIN_NAMESPACES)

    def is_known(self, superclass: str) -> bool:
        superclass = superclass.removeprefix("::")

        if superclass in self.known_superclasses:
            return True

        return any(superclass.startswith(f"{namespace}::") for namespace in self.known_namespaces)

    @override
    def check(self, snapshot: StubSnapshot) -> Iterable[LintFinding]:
        for stub_file in snapshot.files:
            for namespace in stub_file.namespaces:
                if namespace.superclass is None:
                    continue

                if snapshot.table.resolve_constant_path(namespace.superclass, namespace.scope) is not None:
                    continue

                if self.is_known(namespace.superclass):
                    continue

                yield self.finding(
                    snapshot,
                    path=stub_file.path,
                    line=namespace.line,
                    namespace=namespace.qualified_name,
                    message=f"Superclass `{namespace.superclass}` of {namespace.qualified_name} is not defined",
                )


class FileNameMismatchRule(BaseLintRule):
    name: ClassVar[str] = "file-name-mismatch"
    severity: ClassVar[Severity] = Severity.WARNING
    description: ClassVar[str] = "A stub file whose name is not the snake_case name of its primary namespace."

    @override
    def check(self, snapshot: StubSnapshot) -> Iterable[LintFinding]:
        for stub_file in snapshot.files:
            if not (primary := stub_file.primary_namespace):
                continue

            stem: str = Path(stub_file.path).stem

            if loose_name(stem) == loose_name(primary.name):
                continue

            yield self.finding(
                snapshot,
                path=stub_file.path,
                line=primary.line,
                namespace=primary.qualified_name,
                message=f"File name `{stem}.rb` does not match {primary.qualified_name}, expected `{snake_case(primary.name)}.rb`",
            )


class DuplicateNamespaceRule(BaseLintRule):
    name: ClassVar[str] = "duplicate-namespace"
    severity: ClassVar[Severity] = Severity.ERROR
    description: ClassVar[str] = "Two stub files of the same snapshot declare the same top-level namespace."

    @override
    def check(self, snapshot: StubSnapshot) -> Iterable[LintFinding]:
        first_declarations: dict[str, str] = {}

        for stub_file in sorted(snapshot.files, key=lambda stub_file: stub_file.path):
            for namespace in stub_file.namespaces:
                if namespace.implicit or not namespace.is_top_level:
                    continue

                first_path: str = first_declarations.setdefault(namespace.qualified_name, stub_file.path)

                if first_path == stub_file.path:
                    continue

                yield self.finding(
                    snapshot,
                    path=stub_file.path,
                    line=namespace.line,
                    namespace=namespace.qualified_name,
                    message=f"{namespace.qualified_name} is already declared in {snapshot.relative_path(first_path)}",
                )


class DuplicateMemberRule(BaseLintRule):
    name: ClassVar[str] = "duplicate-member"
    severity: ClassVar[Severity] = Severity.ERROR
    description: ClassVar[str] = "A method (per receiver) or constant that is declared twice in one namespace."

    @override
    def check(self, snapshot: StubSnapshot) -> Iterable[LintFinding]:
        for qualified_name, declarations in snapshot.table.declarations.items():
            seen: set[str] = set()

            for namespace in declarations:
                path: str = namespace.path or ""

                for method in namespace.methods:
                    key: str = method.qualified_name(qualified_name)
                    if key in seen:
                        yield self.finding(
                            snapshot, path=path, line=method.line, namespace=qualified_name, message=f"{key} is declared twice"
                        )
                    seen.add(key)

                for constant in namespace.constants:
                    key = f"{qualified_name}::{constant.name}"
                    if key in seen:
                        yield self.finding(
                            snapshot, path=path, line=constant.line, namespace=qualified_name, message=f"{key} is declared twice"
                        )
                    seen.add(key)


class SuperclassConflictRule(BaseLintRule):
    name: ClassVar[str] = "superclass-conflict"
    severity: ClassVar[Severity] = Severity.ERROR
    description: ClassVar[str] = "A reopened class that declares a different superclass."

    @override
    def check(self, snapshot: StubSnapshot) -> Iterable[LintFinding]:
        for conflict in snapshot.table.conflicts:
            yield self.finding(
                snapshot,
                path=conflict.path or "",
                line=conflict.line,
                namespace=conflict.namespace,
                message=f"{conflict.namespace} is reopened with superclass `{conflict.superclass}` "
                + f"but was declared with `{conflict.existing_superclass}`",
            )


class UnrecognizedStatementRule(BaseLintRule):
    name: ClassVar[str] = "unrecognized-statement"
    severity: ClassVar[Severity] = Severity.WARNING
    description: ClassVar[str] = "A line the stub parser skipped because it is not part of the stub convention."

    @override
    def check(self, snapshot: StubSnapshot) -> Iterable[LintFinding]:
        for stub_file in snapshot.files:
            for diagnostic in stub_file.diagnostics:
                if diagnostic.code != UNRECOGNIZED_STATEMENT:
                    continue

                yield self.finding(snapshot, path=stub_file.path, line=diagnostic.line, message=diagnostic.message)


class ParseErrorRule(BaseLintRule):
    name: ClassVar[str] = "parse-error"
    severity: ClassVar[Severity] = Severity.ERROR
    description: ClassVar[str] = "A stub file that could not be parsed."

    @override
    def check(self, snapshot: StubSnapshot) -> Iterable[LintFinding]:
        for error in snapshot.errors:
            yield self.finding(snapshot, path=error.path, line=error.line, message=error.message)


ALL_RULES: list[BaseLintRule] = [
    UndocumentedParameterRule(),
    DanglingAliasRule(),
    UnknownSuperclassRule(),
    FileNameMismatchRule(),
    DuplicateNamespaceRule(),
    DuplicateMemberRule(),
    SuperclassConflictRule(),
    UnrecognizedStatementRule(),
    ParseErrorRule(),
]

RULE_NAMES: list[str] = [rule.name for rule in ALL_RULES]
