import re
from logging import Logger, getLogger

from pydantic import BaseModel, Field

from ruby_stubs_mcp.models.stubs import (
    GlobalVariable,
    NamespaceKind,
    ParseDiagnostic,
    Receiver,
    StubAlias,
    StubConstant,
    StubFile,
    StubMethod,
    StubNamespace,
    Visibility,
    apply_aliases,
)
from ruby_stubs_mcp.parsing.errors import StubParseError, UnbalancedParametersError
from ruby_stubs_mcp.parsing.parameters import parse_parameters

UNRECOGNIZED_STATEMENT = "unrecognized-statement"

TOP_LEVEL_NAMESPACE = "Object"

CONSTANT_NAME = r"[A-Z]\w*"
NAMESPACE_PATH = rf"(?:::)?{CONSTANT_NAME}(?:::{CONSTANT_NAME})*"
OPERATOR_NAMES = r"\[\]=?|<=>|===?|=~|!=|!~|!|\+@|-@|~@?|\*\*|<<|>>|<=|>=|[-+*/%&|^<>`~]"
METHOD_NAME = rf"(?:{OPERATOR_NAMES}|[A-Za-z_]\w*[?!=]?)"

MAGIC_COMMENT_PATTERN = re.compile(
    r"^#\s*(?:-\*-.*-\*-|(?:frozen_string_literal|encoding|coding|warn_indent|warn_past_scope|shareable_constant_value)\s*:)",
    re.IGNORECASE,
)
END_PATTERN = re.compile(r"^end(?:\s+#.*)?$")
SINGLETON_CLASS_PATTERN = re.compile(r"^class\s*<<\s*self$")
CLASS_PATTERN = re.compile(rf"^class\s+(?P<name>{NAMESPACE_PATH})(?:\s*<\s*(?P<superclass>[^\s;]+))?(?P<inline_end>\s*;\s*end)?$")
MODULE_PATTERN = re.compile(rf"^module\s+(?P<name>{NAMESPACE_PATH})(?P<inline_end>\s*;\s*end)?$")
DEF_START_PATTERN = re.compile(r"^def\b")
DEF_PATTERN = re.compile(
    rf"^def\s+(?:(?P<singleton>self)\.)?(?P<name>{METHOD_NAME})"
    + r"(?:\s*\((?P<parameters>.*)\)\s*(?:;\s*)?|\s*;\s*|\s+)end$"
)
VISIBILITY_PATTERN = re.compile(r"^(?P<visibility>private|protected|public)(?:\s+(?P<arguments>.+))?$")
MODULE_FUNCTION_PATTERN = re.compile(r"^module_function(?:\s+(?P<arguments>.+))?$")
ALIAS_PATTERN = re.compile(r"^alias\s+(?P<new_name>\S+)\s+(?P<old_name>\S+)$")
MIXIN_PATTERN = re.compile(r"^(?P<kind>include|extend|prepend)\s+(?P<modules>.+)$")
GLOBAL_VARIABLE_PATTERN = re.compile(r"^(?P<name>\$\S+)\s+=\s+(?P<value>.+)$")
CONSTANT_PATTERN = re.compile(rf"^(?P<name>{CONSTANT_NAME})\s*=\s*(?P<value>.+)$")


def strip_comment(line: str) -> str:
    """Remove the `#` marker and a single following space, keeping any further indentation."""

    text: str = line.lstrip()[1:]

    return text[1:] if text.startswith(" ") else text


def join_documentation(lines: list[str]) -> str | None:
    documentation: str = "\n".join(line.rstrip() for line in lines).strip("\n")

    return documentation or None


class NamespaceBuilder(BaseModel):
    """The mutable state of a namespace while its file is being parsed."""

    kind: NamespaceKind
    name: str
    qualified_name: str
    superclass: str | None = None
    documentation: str | None = None
    path: str | None = None
    line: int = 0
    implicit: bool = False

    includes: list[str] = Field(default_factory=list)
    extends: list[str] = Field(default_factory=list)
    prepends: list[str] = Field(default_factory=list)
    constants: list[StubConstant] = Field(default_factory=list)
    methods: list[StubMethod] = Field(default_factory=list)
    aliases: list[StubAlias] = Field(default_factory=list)

    def set_visibility(self, name: str, receiver: Receiver, visibility: Visibility) -> bool:
        for index, method in enumerate(self.methods):
            if method.receiver is receiver and method.answers_to(name):
                self.methods[index] = method.with_visibility(visibility)
                return True
        return False

    def make_module_function(self, name: str) -> bool:
        """Turn an instance method into a private instance method plus a public singleton copy."""

        for index, method in enumerate(self.methods):
            if method.receiver is Receiver.INSTANCE and method.answers_to(name):
                self.methods[index] = method.with_visibility(Visibility.PRIVATE)
                self.methods.append(method.model_copy(update={"receiver": Receiver.SINGLETON, "visibility": Visibility.PUBLIC}))
                return True
        return False

    def build(self) -> StubNamespace:
        methods: list[StubMethod] = apply_aliases(self.methods, self.aliases)

        return StubNamespace(
            kind=self.kind,
            name=self.name,
            qualified_name=self.qualified_name,
            superclass=self.superclass,
            includes=list(self.includes),
            extends=list(self.extends),
            prepends=list(self.prepends),
            constants=list(self.constants),
            methods=methods,
            aliases=list(self.aliases),
            documentation=self.documentation,
            path=self.path,
            line=self.line,
            implicit=self.implicit,
        )


class ParserScope(BaseModel):
    """An open `class`, `module` or `class << self` body."""

    namespace: NamespaceBuilder
    receiver: Receiver = Receiver.INSTANCE
    visibility: Visibility = Visibility.PUBLIC
    module_function: bool = False
    line: int = 0


class StubParser:
    """Parses the text of a single stub file into a `StubFile`.

    A parser instance is used for exactly one file."""

    path: str
    logger: Logger

    def __init__(self, path: str = "<string>", logger: Logger | None = None):
        self.path = path
        self.logger = logger or getLogger(__name__)

        self.namespaces: list[NamespaceBuilder] = []
        self.scopes: list[ParserScope] = []
        self.top_level_scope: ParserScope | None = None
        self.global_variables: list[GlobalVariable] = []
        self.diagnostics: list[ParseDiagnostic] = []
        self.pending_documentation: list[str] = []

    def parse(self, text: str) -> StubFile:
        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            statement: str = raw_line.strip()

            if not statement:
                self.pending_documentation = []
                continue

            if statement.startswith("#"):
                if line_number <= 2 and MAGIC_COMMENT_PATTERN.match(statement):
                    continue
                self.pending_documentation.append(strip_comment(raw_line))
                continue

            documentation: str | None = join_documentation(self.pending_documentation)
            self.pending_documentation = []

            self._parse_statement(statement=statement, line=line_number, documentation=documentation)

        if self.scopes:
            scope: ParserScope = self.scopes[-1]
            raise StubParseError(
                "Scope was not closed before the end of the file",
                path=self.path,
                line=scope.line,
                extra_info={"namespace": scope.namespace.qualified_name},
            )

        stub_file = StubFile(
            path=self.path,
            namespaces=[namespace.build() for namespace in self.namespaces],
            global_variables=list(self.global_variables),
            diagnostics=list(self.diagnostics),
        )

        self.logger.debug(
            f"Parsed {self.path}: {len(stub_file.namespaces)} namespaces, "
            + f"{len(stub_file.global_variables)} global variables, {len(stub_file.diagnostics)} diagnostics"
        )

        return stub_file

    def _parse_statement(self, statement: str, line: int, documentation: str | None) -> None:
        if END_PATTERN.match(statement):
            self._close_scope(line=line)
            return

        if SINGLETON_CLASS_PATTERN.match(statement):
            self._open_singleton_class(line=line)
            return

        if match := CLASS_PATTERN.match(statement):
            self._open_namespace(
                NamespaceKind.CLASS, name=match["name"], superclass=match["superclass"], line=line, documentation=documentation
            )
            if match["inline_end"]:
                self._close_scope(line=line)
            return

        if match := MODULE_PATTERN.match(statement):
            self._open_namespace(NamespaceKind.MODULE, name=match["name"], superclass=None, line=line, documentation=documentation)
            if match["inline_end"]:
                self._close_scope(line=line)
            return

        if DEF_START_PATTERN.match(statement):
            self._add_method(statement=statement, line=line, documentation=documentation)
            return

        if match := VISIBILITY_PATTERN.match(statement):
            self._change_visibility(Visibility(match["visibility"]), arguments=match["arguments"], line=line, documentation=documentation)
            return

        if match := MODULE_FUNCTION_PATTERN.match(statement):
            self._module_function(arguments=match["arguments"], line=line)
            return

        if match := ALIAS_PATTERN.match(statement):
            self._add_alias(new_name=match["new_name"], old_name=match["old_name"], line=line, documentation=documentation)
            return

        if match := MIXIN_PATTERN.match(statement):
            self._add_mixin(kind=match["kind"], modules=match["modules"])
            return

        if match := GLOBAL_VARIABLE_PATTERN.match(statement):
            self.global_variables.append(
                GlobalVariable(name=match["name"], value=match["value"].strip(), documentation=documentation, line=line)
            )
            return

        if match := CONSTANT_PATTERN.match(statement):
            self._current_scope().namespace.constants.append(
                StubConstant(name=match["name"], value=match["value"].strip(), documentation=documentation, line=line)
            )
            return

        self.diagnostics.append(ParseDiagnostic(code=UNRECOGNIZED_STATEMENT, message=f"Unrecognized statement: {statement}", line=line))

    def _current_scope(self) -> ParserScope:
        if self.scopes:
            return self.scopes[-1]

        if self.top_level_scope is None:
            namespace = NamespaceBuilder(
                kind=NamespaceKind.CLASS,
                name=TOP_LEVEL_NAMESPACE,
                qualified_name=TOP_LEVEL_NAMESPACE,
                path=self.path,
                implicit=True,
            )
            self.namespaces.append(namespace)
            # Definitions outside of any namespace are private methods of Object
            self.top_level_scope = ParserScope(namespace=namespace, visibility=Visibility.PRIVATE)

        return self.top_level_scope

    def _open_namespace(self, kind: NamespaceKind, name: str, superclass: str | None, line: int, documentation: str | None) -> None:
        if name.startswith("::"):
            qualified_name = name[2:]
        elif self.scopes:
            qualified_name = f"{self.scopes[-1].namespace.qualified_name}::{name}"
        else:
            qualified_name = name

        namespace = NamespaceBuilder(
            kind=kind,
            name=qualified_name.rsplit("::", 1)[-1],
            qualified_name=qualified_name,
            superclass=superclass,
            documentation=documentation,
            path=self.path,
            line=line,
        )

        self.namespaces.append(namespace)
        self.scopes.append(ParserScope(namespace=namespace, line=line))

    def _open_singleton_class(self, line: int) -> None:
        namespace: NamespaceBuilder = self._current_scope().namespace

        self.scopes.append(ParserScope(namespace=namespace, receiver=Receiver.SINGLETON, line=line))

    def _close_scope(self, line: int) -> None:
        if not self.scopes:
            raise StubParseError("Unexpected `end` with no open scope", path=self.path, line=line)

        _ = self.scopes.pop()

    def _add_method(self, statement: str, line: int, documentation: str | None, visibility: Visibility | None = None) -> None:
        if not (match := DEF_PATTERN.match(statement)):
            raise StubParseError("Malformed method definition", path=self.path, line=line, extra_info={"statement": statement})

        try:
            parameters = parse_parameters(match["parameters"])
        except UnbalancedParametersError as e:
            raise StubParseError("Invalid parameter list", path=self.path, line=line, extra_info={"parameters": match["parameters"]}) from e

        scope: ParserScope = self._current_scope()

        if match["singleton"] and scope.receiver is Receiver.INSTANCE:
            # A bare `private` in a class body does not apply to `def self.` methods
            receiver = Receiver.SINGLETON
            visibility = visibility or Visibility.PUBLIC
        else:
            receiver = scope.receiver
            visibility = visibility or scope.visibility

        method = StubMethod(
            name=match["name"],
            receiver=receiver,
            visibility=visibility,
            parameters=parameters,
            documentation=documentation,
            line=line,
        )

        if scope.module_function and receiver is Receiver.INSTANCE:
            scope.namespace.methods.append(method.with_visibility(Visibility.PRIVATE))
            scope.namespace.methods.append(method.model_copy(update={"receiver": Receiver.SINGLETON, "visibility": Visibility.PUBLIC}))
            return

        scope.namespace.methods.append(method)

    def _change_visibility(self, visibility: Visibility, arguments: str | None, line: int, documentation: str | None) -> None:
        scope: ParserScope = self._current_scope()

        if arguments is None:
            scope.visibility = visibility
            scope.module_function = False
            return

        if DEF_START_PATTERN.match(arguments):
            self._add_method(statement=arguments, line=line, documentation=documentation, visibility=visibility)
            return

        for argument in arguments.split(","):
            name: str = argument.strip().lstrip(":").strip("'\"")
            if not scope.namespace.set_visibility(name=name, receiver=scope.receiver, visibility=visibility):
                self.logger.debug(f"{self.path}:{line}: cannot make undeclared method {name} {visibility.value}")

    def _module_function(self, arguments: str | None, line: int) -> None:
        scope: ParserScope = self._current_scope()

        if arguments is None:
            scope.module_function = True
            return

        for argument in arguments.split(","):
            name: str = argument.strip().lstrip(":").strip("'\"")
            if not scope.namespace.make_module_function(name):
                self.logger.debug(f"{self.path}:{line}: cannot make undeclared method {name} a module function")

    def _add_alias(self, new_name: str, old_name: str, line: int, documentation: str | None) -> None:
        if new_name.startswith("$") and old_name.startswith("$"):
            self.global_variables.append(GlobalVariable(name=new_name, alias_of=old_name, documentation=documentation, line=line))
            return

        scope: ParserScope = self._current_scope()

        scope.namespace.aliases.append(
            StubAlias(new_name=new_name.lstrip(":"), old_name=old_name.lstrip(":"), receiver=scope.receiver, line=line)
        )

    def _add_mixin(self, kind: str, modules: str) -> None:
        scope: ParserScope = self._current_scope()
        namespace: NamespaceBuilder = scope.namespace

        names: list[str] = [name.strip() for name in modules.split(",") if name.strip()]
        names = [namespace.qualified_name if name == "self" else name for name in names]

        if kind == "prepend":
            namespace.prepends.extend(names)
        elif kind == "extend" or scope.receiver is Receiver.SINGLETON:
            # `include` inside `class << self` extends the namespace
            namespace.extends.extend(names)
        else:
            namespace.includes.extend(names)


def parse_stub_file(text: str, path: str = "<string>", logger: Logger | None = None) -> StubFile:
    """Parse the text of a stub file. Raises `StubParseError` when the file is malformed."""

    return StubParser(path=path, logger=logger).parse(text)
