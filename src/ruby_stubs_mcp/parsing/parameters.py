import re

from ruby_stubs_mcp.models.stubs import ParameterKind, StubParameter
from ruby_stubs_mcp.parsing.errors import UnbalancedParametersError

OPENING_BRACKETS = {"(": ")", "[": "]", "{": "}"}
CLOSING_BRACKETS = {")": "(", "]": "[", "}": "{"}
QUOTES = {"'", '"'}

IDENTIFIER = r"[A-Za-z_]\w*"

KEYWORD_PATTERN = re.compile(rf"^(?P<name>{IDENTIFIER}):(?:\s*(?P<default>.+))?$")
OPTIONAL_PATTERN = re.compile(rf"^(?P<name>{IDENTIFIER})\s*=\s*(?P<default>.+)$")
SPECIAL_GLOBAL_PATTERN = re.compile(r"[^\w\s]")


def split_parameters(parameters: str) -> list[str]:
    """Split a parameter list on commas that are not nested inside brackets or string literals."""

    parts: list[str] = []
    current: list[str] = []
    brackets: list[str] = []
    quote: str | None = None
    escaped: bool = False
    index: int = 0

    while index < len(parameters):
        character: str = parameters[index]
        index += 1

        if quote is not None:
            current.append(character)
            if escaped:
                escaped = False
            elif character == "\\":
                escaped = True
            elif character == quote:
                quote = None
            continue

        if character == "$" and index < len(parameters) and SPECIAL_GLOBAL_PATTERN.match(parameters[index]):
            # Special globals such as `$,` or `$"` are a single token
            current.append(character + parameters[index])
            index += 1
            continue

        if character in QUOTES:
            quote = character
        elif character in OPENING_BRACKETS:
            brackets.append(character)
        elif character in CLOSING_BRACKETS:
            if not brackets or brackets[-1] != CLOSING_BRACKETS[character]:
                raise UnbalancedParametersError(parameters, reason=f"Unexpected {character!r}")
            brackets.pop()
        elif character == "," and not brackets:
            parts.append("".join(current).strip())
            current = []
            continue

        current.append(character)

    if quote is not None:
        raise UnbalancedParametersError(parameters, reason="Unterminated string literal")

    if brackets:
        raise UnbalancedParametersError(parameters, reason=f"Unclosed {brackets[-1]!r}")

    last: str = "".join(current).strip()

    if last or parts:
        parts.append(last)

    if any(not part for part in parts):
        raise UnbalancedParametersError(parameters, reason="Empty parameter")

    return parts


def parse_parameter(parameter: str) -> StubParameter:
    """Classify a single parameter from a `def` line."""

    parameter = parameter.strip()

    if parameter == "...":
        return StubParameter(name="", kind=ParameterKind.FORWARD)

    if parameter.startswith("&"):
        return StubParameter(name=parameter[1:].strip(), kind=ParameterKind.BLOCK)

    if parameter.startswith("**"):
        return StubParameter(name=parameter[2:].strip(), kind=ParameterKind.KEYWORD_REST)

    if parameter.startswith("*"):
        return StubParameter(name=parameter[1:].strip(), kind=ParameterKind.REST)

    if match := KEYWORD_PATTERN.match(parameter):
        if match["default"] is None:
            return StubParameter(name=match["name"], kind=ParameterKind.KEYWORD_REQUIRED)
        return StubParameter(name=match["name"], kind=ParameterKind.KEYWORD_OPTIONAL, default=match["default"].strip())

    if match := OPTIONAL_PATTERN.match(parameter):
        return StubParameter(name=match["name"], kind=ParameterKind.OPTIONAL, default=match["default"].strip())

    # Destructured parameters such as `(a, b)` are kept verbatim
    return StubParameter(name=parameter, kind=ParameterKind.REQUIRED)


def parse_parameters(parameters: str | None) -> list[StubParameter]:
    if parameters is None or not parameters.strip():
        return []

    return [parse_parameter(parameter) for parameter in split_parameters(parameters)]
