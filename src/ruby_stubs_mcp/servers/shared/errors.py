ExtraInfoType = dict[str, str | None]


class ServerError(Exception):
    """A request error from the Ruby stubs server."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class NamespaceNotFoundError(ServerError):
    """A class or module that is not part of the snapshot."""

    def __init__(self, namespace: str, ruby_version: str, suggestions: list[str] | None = None):
        super().__init__(
            message=f"{namespace} is not a class or module in the Ruby {ruby_version} stubs.",
            extra_info={"did you mean": ", ".join(suggestions) if suggestions else None},
        )


class MethodNotFoundError(ServerError):
    """A method that is neither declared nor inherited by a namespace."""

    def __init__(self, namespace: str, method: str, singleton: bool, ruby_version: str, suggestions: list[str] | None = None):
        qualified_name = f"{namespace}.{method}" if singleton else f"{namespace}#{method}"
        super().__init__(
            message=f"{qualified_name} is not defined in the Ruby {ruby_version} stubs.",
            extra_info={"did you mean": ", ".join(suggestions) if suggestions else None},
        )
