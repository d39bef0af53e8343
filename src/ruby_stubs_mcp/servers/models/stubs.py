from typing import Self

from pydantic import BaseModel, Field

from ruby_stubs_mcp.models.index import CompletionItem, MethodMatch, SearchHit
from ruby_stubs_mcp.models.stubs import StubConstant, StubParameter
from ruby_stubs_mcp.servers.shared.utility import truncate_documentation


class RubyVersionEntry(BaseModel):
    version: str = Field(description="The Ruby minor version, e.g. `3.3`.")
    directory: str = Field(description="The snapshot directory name, e.g. `rubystubs33`.")
    files: int = Field(description="The number of stub files in the snapshot.")


class RubyVersions(BaseModel):
    default: str | None = Field(description="The version used when a tool is called without a Ruby version.")
    versions: list[RubyVersionEntry]


class ConstantEntry(BaseModel):
    name: str
    value: str
    documentation: str | None = None

    @classmethod
    def from_constant(cls, constant: StubConstant, truncate_characters: int) -> Self:
        return cls(
            name=constant.name,
            value=constant.value,
            documentation=truncate_documentation(constant.documentation, truncate_characters),
        )


class MethodEntry(BaseModel):
    """A method as listed on a namespace, without its documentation."""

    name: str
    signature: str
    owner: str = Field(description="The namespace that declares the method.")
    visibility: str
    aliases: list[str] = Field(default_factory=list)

    @classmethod
    def from_method_match(cls, match: MethodMatch) -> Self:
        return cls(
            name=match.method.name,
            signature=match.method.signature(),
            owner=match.owner,
            visibility=match.method.visibility.value,
            aliases=list(match.method.aliases),
        )


class NamespaceInfo(BaseModel):
    ruby_version: str
    name: str = Field(description="The fully qualified name of the class or module.")
    kind: str = Field(description="`class` or `module`.")
    superclass: str | None = None
    path: str | None = Field(default=None, description="The stub file the namespace is first declared in.")
    documentation: str | None = None
    includes: list[str] = Field(default_factory=list)
    extends: list[str] = Field(default_factory=list)
    prepends: list[str] = Field(default_factory=list)
    ancestors: list[str] = Field(default_factory=list, description="The instance method lookup order.")
    constants: list[ConstantEntry] = Field(default_factory=list)
    instance_methods: list[MethodEntry] = Field(default_factory=list)
    singleton_methods: list[MethodEntry] = Field(default_factory=list)


class MethodInfo(BaseModel):
    ruby_version: str
    namespace: str = Field(description="The namespace the method was looked up on.")
    owner: str = Field(description="The namespace that declares the method, which may be an ancestor of the namespace.")
    name: str
    qualified_name: str = Field(description="`Owner#name` for instance methods, `Owner.name` for singleton methods.")
    signature: str
    receiver: str
    visibility: str
    parameters: list[StubParameter] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)
    documentation: str | None = None

    @classmethod
    def from_method_match(cls, ruby_version: str, namespace: str, match: MethodMatch, truncate_characters: int) -> Self:
        return cls(
            ruby_version=ruby_version,
            namespace=namespace,
            owner=match.owner,
            name=match.method.name,
            qualified_name=match.method.qualified_name(match.owner),
            signature=match.method.signature(),
            receiver=match.method.receiver.value,
            visibility=match.method.visibility.value,
            parameters=list(match.method.parameters),
            aliases=list(match.method.aliases),
            documentation=truncate_documentation(match.method.documentation, truncate_characters),
        )


class Completions(BaseModel):
    ruby_version: str
    items: list[CompletionItem] = Field(default_factory=list)
    truncated: bool = Field(default=False, description="Whether there were more items than the limit.")


class MethodLocation(BaseModel):
    owner: str
    qualified_name: str
    signature: str
    visibility: str

    @classmethod
    def from_method_match(cls, match: MethodMatch) -> Self:
        return cls(
            owner=match.owner,
            qualified_name=match.method.qualified_name(match.owner),
            signature=match.method.signature(),
            visibility=match.method.visibility.value,
        )


class MethodLocations(BaseModel):
    ruby_version: str
    name: str
    matches: list[MethodLocation] = Field(default_factory=list)
    truncated: bool = False


class DocumentationSearchResults(BaseModel):
    ruby_version: str
    keywords: list[str]
    hits: list[SearchHit] = Field(default_factory=list)
    truncated: bool = False
