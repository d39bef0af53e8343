ExtraInfoType = dict[str, str | None]


class StubParseError(Exception):
    """A stub file could not be parsed."""

    path: str
    line: int
    reason: str

    def __init__(self, reason: str, path: str, line: int, extra_info: ExtraInfoType | None = None):
        self.path = path
        self.line = line
        self.reason = reason

        extra_info = {"path": path, "line": str(line), **(extra_info or {})}

        msg = reason + " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class UnbalancedParametersError(ValueError):
    """A parameter list has unbalanced brackets or quotes."""

    def __init__(self, parameters: str, reason: str):
        super().__init__(f"{reason}: {parameters!r}")
