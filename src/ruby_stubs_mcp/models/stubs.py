from enum import Enum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

PLACEHOLDER_VALUE = "_"


class ParameterKind(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    REST = "rest"
    KEYWORD_REQUIRED = "keyword_required"
    KEYWORD_OPTIONAL = "keyword_optional"
    KEYWORD_REST = "keyword_rest"
    BLOCK = "block"
    FORWARD = "forward"


class Receiver(str, Enum):
    INSTANCE = "instance"
    SINGLETON = "singleton"


class Visibility(str, Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"


class NamespaceKind(str, Enum):
    CLASS = "class"
    MODULE = "module"


class BaseStubModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class StubParameter(BaseStubModel):
    """A parameter of a stubbed method."""

    name: str = Field(description="The name of the parameter. Empty for anonymous splats and blocks.")
    kind: ParameterKind = Field(description="The kind of the parameter.")
    default: str | None = Field(default=None, description="The default value expression, if any.")

    def render(self) -> str:
        match self.kind:
            case ParameterKind.REQUIRED:
                return self.name
            case ParameterKind.OPTIONAL:
                return f"{self.name} = {self.default}"
            case ParameterKind.REST:
                return f"*{self.name}"
            case ParameterKind.KEYWORD_REQUIRED:
                return f"{self.name}:"
            case ParameterKind.KEYWORD_OPTIONAL:
                return f"{self.name}: {self.default}"
            case ParameterKind.KEYWORD_REST:
                return f"**{self.name}"
            case ParameterKind.BLOCK:
                return f"&{self.name}"
            case ParameterKind.FORWARD:
                return "..."

    @property
    def is_named(self) -> bool:
        return bool(self.name) and self.kind is not ParameterKind.FORWARD


class StubMethod(BaseStubModel):
    """A method declaration and its documentation."""

    name: str = Field(description="The name of the method.")
    receiver: Receiver = Field(default=Receiver.INSTANCE, description="Whether the method is an instance or a singleton method.")
    visibility: Visibility = Field(default=Visibility.PUBLIC, description="The visibility of the method.")
    parameters: list[StubParameter] = Field(default_factory=list, description="The ordered parameters of the method.")
    documentation: str | None = Field(default=None, description="The documentation comment above the method.")
    aliases: list[str] = Field(default_factory=list, description="Other names declared for this method with `alias`.")
    line: int = Field(default=0, description="The line the method is declared on.")

    @property
    def is_singleton(self) -> bool:
        return self.receiver is Receiver.SINGLETON

    def render_parameters(self) -> str:
        return ", ".join(parameter.render() for parameter in self.parameters)

    def signature(self) -> str:
        prefix = "self." if self.is_singleton else ""
        if not self.parameters:
            return f"{prefix}{self.name}"
        return f"{prefix}{self.name}({self.render_parameters()})"

    def qualified_name(self, owner: str) -> str:
        separator = "." if self.is_singleton else "#"
        return f"{owner}{separator}{self.name}"

    def answers_to(self, name: str) -> bool:
        return self.name == name or name in self.aliases

    def with_alias(self, alias: str) -> Self:
        return self.model_copy(update={"aliases": [*self.aliases, alias]})

    def with_visibility(self, visibility: Visibility) -> Self:
        return self.model_copy(update={"visibility": visibility})


class StubConstant(BaseStubModel):
    """A constant declaration. Stub values are usually the placeholder `_`."""

    name: str = Field(description="The name of the constant.")
    value: str = Field(default=PLACEHOLDER_VALUE, description="The value expression as written in the stub.")
    documentation: str | None = Field(default=None, description="The documentation comment above the constant.")
    line: int = Field(default=0, description="The line the constant is declared on.")

    @property
    def is_placeholder(self) -> bool:
        return self.value == PLACEHOLDER_VALUE


class StubAlias(BaseStubModel):
    """An `alias new old` statement as declared."""

    new_name: str
    old_name: str
    receiver: Receiver = Receiver.INSTANCE
    line: int = 0


def apply_aliases(methods: list[StubMethod], aliases: list[StubAlias]) -> list[StubMethod]:
    """Record each alias on the first method with the same receiver that answers to its old name."""

    methods = list(methods)

    for alias in aliases:
        for index, method in enumerate(methods):
            if method.receiver is alias.receiver and method.answers_to(alias.old_name):
                if alias.new_name not in method.aliases:
                    methods[index] = method.with_alias(alias.new_name)
                break

    return methods


class GlobalVariable(BaseStubModel):
    """A global variable such as `$stdout`."""

    name: str = Field(description="The name of the global variable, including the leading `$`.")
    value: str = Field(default=PLACEHOLDER_VALUE, description="The value expression as written in the stub.")
    documentation: str | None = Field(default=None, description="The documentation comment above the global variable.")
    alias_of: str | None = Field(default=None, description="The global variable this one aliases, if any.")
    line: int = 0


class StubNamespace(BaseStubModel):
    """A class or module declaration with its members."""

    kind: NamespaceKind = Field(description="Whether this is a class or a module.")
    name: str = Field(description="The last segment of the name, e.g. `SSLError`.")
    qualified_name: str = Field(description="The fully qualified name, e.g. `OpenSSL::SSL::SSLError`.")
    superclass: str | None = Field(default=None, description="The superclass as written in the stub, if any.")
    includes: list[str] = Field(default_factory=list, description="The modules included, in order of inclusion.")
    extends: list[str] = Field(default_factory=list, description="The modules extended, in order.")
    prepends: list[str] = Field(default_factory=list, description="The modules prepended, in order.")
    constants: list[StubConstant] = Field(default_factory=list)
    methods: list[StubMethod] = Field(default_factory=list)
    aliases: list[StubAlias] = Field(default_factory=list)
    documentation: str | None = Field(default=None, description="The documentation comment above the declaration.")
    path: str | None = Field(default=None, description="The stub file the namespace was declared in.")
    line: int = 0
    implicit: bool = Field(default=False, description="Whether the namespace was implied by definitions outside any class or module.")

    @property
    def is_class(self) -> bool:
        return self.kind is NamespaceKind.CLASS

    @property
    def is_top_level(self) -> bool:
        return "::" not in self.qualified_name

    @property
    def scope(self) -> str | None:
        """The qualified name of the enclosing namespace, if any."""
        if self.is_top_level:
            return None
        return self.qualified_name.rsplit("::", 1)[0]

    @property
    def instance_methods(self) -> list[StubMethod]:
        return [method for method in self.methods if not method.is_singleton]

    @property
    def singleton_methods(self) -> list[StubMethod]:
        return [method for method in self.methods if method.is_singleton]

    def find_method(self, name: str, receiver: Receiver = Receiver.INSTANCE) -> StubMethod | None:
        for method in self.methods:
            if method.receiver is receiver and method.answers_to(name):
                return method
        return None

    def find_constant(self, name: str) -> StubConstant | None:
        for constant in self.constants:
            if constant.name == name:
                return constant
        return None


class ParseDiagnostic(BaseStubModel):
    """A non-fatal finding produced while parsing a stub file."""

    code: str
    message: str
    line: int


class StubFile(BaseStubModel):
    """The parsed contents of a single stub file."""

    path: str = Field(description="The path of the stub file.")
    namespaces: list[StubNamespace] = Field(default_factory=list, description="Namespaces in declaration order, outer before inner.")
    global_variables: list[GlobalVariable] = Field(default_factory=list)
    diagnostics: list[ParseDiagnostic] = Field(default_factory=list)

    @property
    def primary_namespace(self) -> StubNamespace | None:
        """The first top-level namespace of the file, or its first namespace when all are nested."""
        declared: list[StubNamespace] = [namespace for namespace in self.namespaces if not namespace.implicit]

        for namespace in declared:
            if namespace.is_top_level:
                return namespace

        return declared[0] if declared else None
