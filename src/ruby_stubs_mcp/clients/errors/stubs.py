from pathlib import Path

ExtraInfoType = dict[str, str | None]


class ClientError(Exception):
    """An error from the Ruby stubs client."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class StubsDirectoryMissingError(ClientError):
    """The stubs directory does not exist."""

    def __init__(self, stubs_dir: Path):
        super().__init__(message="The stubs directory does not exist.", extra_info={"stubs_dir": str(stubs_dir)})


class SnapshotNotFoundError(ClientError):
    """No snapshot matches the requested Ruby version."""

    def __init__(self, requested: str | None, available: list[str], extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(
            message="No stub snapshot matches the requested Ruby version.",
            extra_info={"requested": requested, "available": ", ".join(available) or "none", **extra_info},
        )


class SnapshotLoadError(ClientError):
    """A stub file of a snapshot could not be loaded."""

    def __init__(self, version: str, path: Path, message: str | None = None):
        super().__init__(message="A stub file could not be loaded.", extra_info={"version": version, "path": str(path), "message": message})
