from collections.abc import Iterable
from typing import Literal, Self

from pydantic import BaseModel, ConfigDict, Field

from ruby_stubs_mcp.models.stubs import (
    GlobalVariable,
    Receiver,
    StubAlias,
    StubFile,
    StubMethod,
    StubNamespace,
    Visibility,
    apply_aliases,
)

ROOT_CLASS = "BasicObject"
DEFAULT_SUPERCLASS = "Object"
CLASS_CLASS = "Class"
MODULE_CLASS = "Module"

CompletionKind = Literal["class", "module", "method", "constant", "global_variable"]
SearchHitKind = Literal["class", "module", "method", "constant", "global_variable"]


class BaseIndexModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class MergeConflict(BaseIndexModel):
    """A reopened class that declares a different superclass than its first declaration."""

    namespace: str = Field(description="The qualified name of the reopened class.")
    superclass: str = Field(description="The superclass the reopening declares.")
    existing_superclass: str = Field(description="The superclass that was declared first and is kept.")
    path: str | None = Field(default=None, description="The stub file of the conflicting declaration.")
    line: int = 0


class LookupEntry(BaseIndexModel):
    """A step in a method lookup chain: look for `receiver` methods declared on `namespace`."""

    namespace: str
    receiver: Receiver

    def __str__(self) -> str:
        return f"#<Class:{self.namespace}>" if self.receiver is Receiver.SINGLETON else self.namespace


class MethodMatch(BaseIndexModel):
    owner: str = Field(description="The qualified name of the namespace that declares the method.")
    method: StubMethod


class CompletionItem(BaseIndexModel):
    name: str = Field(description="The text to complete.")
    kind: CompletionKind
    detail: str | None = Field(default=None, description="The signature, superclass or value of the item.")
    owner: str | None = Field(default=None, description="The namespace that declares the item, if any.")
    documentation: str | None = None


class SearchHit(BaseIndexModel):
    kind: SearchHitKind
    qualified_name: str = Field(description="The qualified name of the symbol, e.g. `String#center` or `File::SEPARATOR`.")
    name_match: bool = Field(description="Whether a keyword matched the name of the symbol rather than only its documentation.")
    matched_keywords: list[str]
    documentation: str | None = None


class SymbolTableStats(BaseIndexModel):
    classes: int
    modules: int
    methods: int
    constants: int
    global_variables: int


def append_unique[T](items: list[T], item: T) -> None:
    if item not in items:
        items.append(item)


class SymbolTable:
    """All namespaces and global variables of one snapshot, keyed by qualified name.

    Namespaces that are declared more than once are merged: members are appended in declaration
    order, the first documentation wins and the first declared superclass wins."""

    def __init__(self):
        self.namespaces: dict[str, StubNamespace] = {}
        self.declarations: dict[str, list[StubNamespace]] = {}
        self.global_variables: dict[str, GlobalVariable] = {}
        self.conflicts: list[MergeConflict] = []

    @classmethod
    def from_files(cls, files: Iterable[StubFile]) -> Self:
        table = cls()

        for stub_file in files:
            table.add_file(stub_file)

        return table

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __len__(self) -> int:
        return len(self.namespaces)

    def add_file(self, stub_file: StubFile) -> None:
        for namespace in stub_file.namespaces:
            self.add_namespace(namespace)

        for global_variable in stub_file.global_variables:
            if global_variable.name not in self.global_variables:
                self.global_variables[global_variable.name] = global_variable

    def add_namespace(self, namespace: StubNamespace) -> None:
        self.declarations.setdefault(namespace.qualified_name, []).append(namespace)

        if not (existing := self.namespaces.get(namespace.qualified_name)):
            self.namespaces[namespace.qualified_name] = namespace
            return

        self.namespaces[namespace.qualified_name] = self._merge(existing, namespace)

    def _merge(self, existing: StubNamespace, namespace: StubNamespace) -> StubNamespace:
        superclass: str | None = existing.superclass or namespace.superclass

        if existing.superclass and namespace.superclass and existing.superclass != namespace.superclass:
            self.conflicts.append(
                MergeConflict(
                    namespace=namespace.qualified_name,
                    superclass=namespace.superclass,
                    existing_superclass=existing.superclass,
                    path=namespace.path,
                    line=namespace.line,
                )
            )

        includes: list[str] = list(existing.includes)
        extends: list[str] = list(existing.extends)
        prepends: list[str] = list(existing.prepends)

        for name in namespace.includes:
            append_unique(includes, name)
        for name in namespace.extends:
            append_unique(extends, name)
        for name in namespace.prepends:
            append_unique(prepends, name)

        aliases: list[StubAlias] = [*existing.aliases, *namespace.aliases]

        update: dict[str, object] = {
            "superclass": superclass,
            "includes": includes,
            "extends": extends,
            "prepends": prepends,
            "constants": [*existing.constants, *namespace.constants],
            "methods": apply_aliases([*existing.methods, *namespace.methods], aliases),
            "aliases": aliases,
            "documentation": existing.documentation or namespace.documentation,
        }

        if existing.implicit and not namespace.implicit:
            update.update({"kind": namespace.kind, "path": namespace.path, "line": namespace.line, "implicit": False})

        return existing.model_copy(update=update)

    # Lookup

    def get(self, name: str) -> StubNamespace | None:
        return self.namespaces.get(name.removeprefix("::"))

    def resolve_constant_path(self, name: str, scope: str | None = None) -> str | None:
        """Resolve a namespace reference written inside `scope` the way Ruby resolves it lexically.

        `Error` inside `OpenSSL::Cipher` tries `OpenSSL::Cipher::Error`, `OpenSSL::Error` and then `Error`."""

        if name.startswith("::"):
            return name[2:] if name[2:] in self.namespaces else None

        parts: list[str] = scope.removeprefix("::").split("::") if scope else []

        for depth in range(len(parts), -1, -1):
            candidate: str = "::".join([*parts[:depth], name])
            if candidate in self.namespaces:
                return candidate

        return None

    def superclass_of(self, namespace: StubNamespace) -> str | None:
        """The qualified superclass of a class, falling back to the name as written when it is not in the table."""

        if not namespace.is_class or namespace.qualified_name == ROOT_CLASS:
            return None

        if namespace.superclass is None:
            return ROOT_CLASS if namespace.qualified_name == DEFAULT_SUPERCLASS else DEFAULT_SUPERCLASS

        return self.resolve_constant_path(namespace.superclass, namespace.scope) or namespace.superclass

    def _resolve_mixin(self, namespace: StubNamespace, name: str) -> str:
        return self.resolve_constant_path(name, namespace.qualified_name) or name

    def ancestors(self, name: str) -> list[str]:
        """The instance method lookup order: prepended modules, the namespace itself, included modules
        (most recent first) and then the superclass chain."""

        result: list[str] = []
        self._collect_ancestors(name.removeprefix("::"), result=result, visiting=set())
        return result

    def _collect_ancestors(self, name: str, result: list[str], visiting: set[str]) -> None:
        if name in visiting:
            return
        visiting.add(name)

        if not (namespace := self.namespaces.get(name)):
            append_unique(result, name)
            return

        for prepended in reversed(namespace.prepends):
            self._collect_ancestors(self._resolve_mixin(namespace, prepended), result=result, visiting=visiting)

        append_unique(result, namespace.qualified_name)

        for included in reversed(namespace.includes):
            self._collect_ancestors(self._resolve_mixin(namespace, included), result=result, visiting=visiting)

        if superclass := self.superclass_of(namespace):
            self._collect_ancestors(superclass, result=result, visiting=visiting)

    def singleton_ancestors(self, name: str) -> list[LookupEntry]:
        """The lookup order for methods called on the class or module object itself."""

        name = name.removeprefix("::")
        result: list[LookupEntry] = []

        namespace: StubNamespace | None = self.namespaces.get(name)
        current: StubNamespace | None = namespace
        current_name: str | None = name
        visited: set[str] = set()

        while current_name is not None and current_name not in visited:
            visited.add(current_name)
            append_unique(result, LookupEntry(namespace=current_name, receiver=Receiver.SINGLETON))

            if current is None:
                break

            for extended in reversed(current.extends):
                for ancestor in self.ancestors(self._resolve_mixin(current, extended)):
                    append_unique(result, LookupEntry(namespace=ancestor, receiver=Receiver.INSTANCE))

            current_name = self.superclass_of(current)
            current = self.namespaces.get(current_name) if current_name else None

        metaclass: str = CLASS_CLASS if namespace is None or namespace.is_class else MODULE_CLASS

        for ancestor in self.ancestors(metaclass):
            append_unique(result, LookupEntry(namespace=ancestor, receiver=Receiver.INSTANCE))

        return result

    def lookup_chain(self, name: str, receiver: Receiver = Receiver.INSTANCE) -> list[LookupEntry]:
        if receiver is Receiver.SINGLETON:
            return self.singleton_ancestors(name)

        return [LookupEntry(namespace=ancestor, receiver=Receiver.INSTANCE) for ancestor in self.ancestors(name)]

    def resolve_method(self, namespace: str, method: str, receiver: Receiver = Receiver.INSTANCE) -> MethodMatch | None:
        """Find the first declaration of `method` along the lookup chain of `namespace`. Aliases match too."""

        for entry in self.lookup_chain(namespace, receiver=receiver):
            if not (owner := self.namespaces.get(entry.namespace)):
                continue
            if found := owner.find_method(method, receiver=entry.receiver):
                return MethodMatch(owner=owner.qualified_name, method=found)

        return None

    def find_methods(self, name: str) -> list[MethodMatch]:
        """Every namespace that declares a method (instance or singleton) called `name`."""

        return [
            MethodMatch(owner=qualified_name, method=method)
            for qualified_name, namespace in sorted(self.namespaces.items())
            for method in namespace.methods
            if method.answers_to(name)
        ]

    def available_methods(self, namespace: str, receiver: Receiver = Receiver.INSTANCE) -> list[MethodMatch]:
        """Every method callable on `namespace` (declared or inherited), sorted by name. The nearest declaration wins."""

        methods: dict[str, MethodMatch] = {}

        for entry in self.lookup_chain(namespace, receiver=receiver):
            if not (owner := self.namespaces.get(entry.namespace)):
                continue

            for method in owner.methods:
                if method.receiver is entry.receiver and method.name not in methods:
                    methods[method.name] = MethodMatch(owner=owner.qualified_name, method=method)

        return [methods[name] for name in sorted(methods)]

    # Completion

    def complete_namespaces(self, prefix: str) -> list[CompletionItem]:
        prefix = prefix.removeprefix("::")

        return [
            CompletionItem(
                name=qualified_name,
                kind="class" if namespace.is_class else "module",
                detail=self.superclass_of(namespace),
                documentation=namespace.documentation,
            )
            for qualified_name, namespace in sorted(self.namespaces.items())
            if qualified_name.startswith(prefix)
        ]

    def complete_members(
        self, namespace: str, prefix: str = "", receiver: Receiver = Receiver.INSTANCE, include_private: bool = False
    ) -> list[CompletionItem]:
        """Methods (and, for singleton completion, constants) available on `namespace` whose name starts with `prefix`.

        When several ancestors declare the same name the nearest one wins."""

        items: dict[str, CompletionItem] = {}

        for match in self.available_methods(namespace, receiver=receiver):
            method: StubMethod = match.method

            if method.visibility is Visibility.PRIVATE and not include_private:
                continue

            for name in [method.name, *method.aliases]:
                if name.startswith(prefix) and name not in items:
                    items[name] = CompletionItem(
                        name=name,
                        kind="method",
                        detail=method.signature(),
                        owner=match.owner,
                        documentation=method.documentation,
                    )

        if receiver is Receiver.SINGLETON:
            for ancestor in self.ancestors(namespace):
                if not (owner := self.namespaces.get(ancestor)):
                    continue

                for constant in owner.constants:
                    if constant.name.startswith(prefix) and constant.name not in items:
                        items[constant.name] = CompletionItem(
                            name=constant.name,
                            kind="constant",
                            detail=constant.value,
                            owner=owner.qualified_name,
                            documentation=constant.documentation,
                        )

        return sorted(items.values(), key=lambda item: item.name)

    def complete_global_variables(self, prefix: str = "$") -> list[CompletionItem]:
        if not prefix.startswith("$"):
            prefix = "$" + prefix

        return [
            CompletionItem(
                name=name,
                kind="global_variable",
                detail=global_variable.alias_of or global_variable.value,
                documentation=global_variable.documentation,
            )
            for name, global_variable in sorted(self.global_variables.items())
            if name.startswith(prefix)
        ]

    # Search

    def search(self, keywords: Iterable[str], require_all: bool = False) -> list[SearchHit]:
        """Case-insensitive search of names and documentation. Name hits rank before documentation hits."""

        lowered: list[str] = sorted({keyword.lower() for keyword in keywords if keyword.strip()})

        if not lowered:
            return []

        hits: list[SearchHit] = []

        def consider(kind: SearchHitKind, qualified_name: str, documentation: str | None) -> None:
            name_keywords: set[str] = {keyword for keyword in lowered if keyword in qualified_name.lower()}
            documentation_keywords: set[str] = {keyword for keyword in lowered if documentation and keyword in documentation.lower()}
            matched: set[str] = name_keywords | documentation_keywords

            if not matched or (require_all and len(matched) < len(lowered)):
                return

            hits.append(
                SearchHit(
                    kind=kind,
                    qualified_name=qualified_name,
                    name_match=bool(name_keywords),
                    matched_keywords=sorted(matched),
                    documentation=documentation,
                )
            )

        for qualified_name, namespace in self.namespaces.items():
            consider("class" if namespace.is_class else "module", qualified_name, namespace.documentation)

            for method in namespace.methods:
                consider("method", method.qualified_name(qualified_name), method.documentation)

            for constant in namespace.constants:
                consider("constant", f"{qualified_name}::{constant.name}", constant.documentation)

        for name, global_variable in self.global_variables.items():
            consider("global_variable", name, global_variable.documentation)

        return sorted(hits, key=lambda hit: (not hit.name_match, -len(hit.matched_keywords), hit.qualified_name))

    def stats(self) -> SymbolTableStats:
        namespaces: list[StubNamespace] = list(self.namespaces.values())

        return SymbolTableStats(
            classes=sum(1 for namespace in namespaces if namespace.is_class),
            modules=sum(1 for namespace in namespaces if not namespace.is_class),
            methods=sum(len(namespace.methods) for namespace in namespaces),
            constants=sum(len(namespace.constants) for namespace in namespaces),
            global_variables=len(self.global_variables),
        )
