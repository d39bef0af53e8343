from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from ruby_stubs_mcp.models.index import SymbolTable
from ruby_stubs_mcp.models.stubs import StubFile
from ruby_stubs_mcp.models.version import MinorVersion


class StubFileError(BaseModel):
    """A stub file in a snapshot that could not be parsed."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="The path of the stub file.")
    line: int = Field(description="The line the parser stopped at.")
    message: str


class StubSnapshot(BaseModel):
    """The parsed stubs of one `rubystubsNN` directory."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    version: MinorVersion
    directory: Path
    files: list[StubFile] = Field(default_factory=list)
    errors: list[StubFileError] = Field(default_factory=list)
    table: SymbolTable = Field(default_factory=SymbolTable)

    @classmethod
    def from_files(cls, version: MinorVersion, directory: Path, files: list[StubFile], errors: list[StubFileError]) -> "StubSnapshot":
        return cls(version=version, directory=directory, files=files, errors=errors, table=SymbolTable.from_files(files))

    def relative_path(self, path: str) -> str:
        """The path of a stub file relative to the snapshot directory, when it lies inside it."""

        file_path = Path(path)

        if file_path.is_relative_to(self.directory):
            return file_path.relative_to(self.directory).as_posix()

        return path
