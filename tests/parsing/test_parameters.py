import pytest
from inline_snapshot import snapshot

from ruby_stubs_mcp.models.stubs import ParameterKind, StubParameter
from ruby_stubs_mcp.parsing.errors import UnbalancedParametersError
from ruby_stubs_mcp.parsing.parameters import parse_parameter, parse_parameters, split_parameters
from tests.conftest import dump_list_for_snapshot


def test_split_parameters():
    assert split_parameters("a, b = 1, *rest") == ["a", "b = 1", "*rest"]


def test_split_parameters_ignores_nested_commas():
    assert split_parameters("string = 'Mon,1 Jan -4712 00:00:00+00:00', options = {a: 1, b: 2}, pair = [1, 2]") == snapshot(
        ["string = 'Mon,1 Jan -4712 00:00:00+00:00'", "options = {a: 1, b: 2}", "pair = [1, 2]"]
    )


def test_split_parameters_handles_escaped_quotes():
    assert split_parameters(r"sep = '\'', limit = 0") == [r"sep = '\''", "limit = 0"]


@pytest.mark.parametrize(
    ("parameters", "expected"),
    [
        ("separator = $,", ["separator = $,"]),
        ("sep = $/, limit = 0", ["sep = $/", "limit = 0"]),
        ('x = $"', ['x = $"']),
        ("x = $', y = $(", ["x = $'", "y = $("]),
        ("out = $stdout, err = $stderr", ["out = $stdout", "err = $stderr"]),
    ],
)
def test_split_parameters_special_globals(parameters: str, expected: list[str]):
    assert split_parameters(parameters) == expected


def test_parse_parameters_special_global_default():
    assert parse_parameters("separator = $,") == [StubParameter(name="separator", kind=ParameterKind.OPTIONAL, default="$,")]


def test_split_parameters_empty():
    assert split_parameters("") == []
    assert split_parameters("   ") == []


@pytest.mark.parametrize(
    "parameters",
    [
        "a, (b",
        "a, b)",
        "a = 'unterminated",
        "a, , b",
        "a,",
        "[a}",
    ],
)
def test_split_parameters_unbalanced(parameters: str):
    with pytest.raises(UnbalancedParametersError):
        split_parameters(parameters)


@pytest.mark.parametrize(
    ("parameter", "expected"),
    [
        ("str", StubParameter(name="str", kind=ParameterKind.REQUIRED)),
        ("limit = 0", StubParameter(name="limit", kind=ParameterKind.OPTIONAL, default="0")),
        ("padstr=' '", StubParameter(name="padstr", kind=ParameterKind.OPTIONAL, default="' '")),
        ("*args", StubParameter(name="args", kind=ParameterKind.REST)),
        ("*", StubParameter(name="", kind=ParameterKind.REST)),
        ("exception:", StubParameter(name="exception", kind=ParameterKind.KEYWORD_REQUIRED)),
        ("exception: true", StubParameter(name="exception", kind=ParameterKind.KEYWORD_OPTIONAL, default="true")),
        ("chomp:false", StubParameter(name="chomp", kind=ParameterKind.KEYWORD_OPTIONAL, default="false")),
        ("**opts", StubParameter(name="opts", kind=ParameterKind.KEYWORD_REST)),
        ("**", StubParameter(name="", kind=ParameterKind.KEYWORD_REST)),
        ("&block", StubParameter(name="block", kind=ParameterKind.BLOCK)),
        ("&", StubParameter(name="", kind=ParameterKind.BLOCK)),
        ("...", StubParameter(name="", kind=ParameterKind.FORWARD)),
        ("(key, value)", StubParameter(name="(key, value)", kind=ParameterKind.REQUIRED)),
    ],
)
def test_parse_parameter(parameter: str, expected: StubParameter):
    assert parse_parameter(parameter) == expected


def test_parse_parameters():
    parameters = parse_parameters("arg, base = 0, *rest, exception: true, **opts, &block")

    assert dump_list_for_snapshot(parameters) == snapshot(
        [
            {"name": "arg", "kind": "required"},
            {"name": "base", "kind": "optional", "default": "0"},
            {"name": "rest", "kind": "rest"},
            {"name": "exception", "kind": "keyword_optional", "default": "true"},
            {"name": "opts", "kind": "keyword_rest"},
            {"name": "block", "kind": "block"},
        ]
    )

    assert ", ".join(parameter.render() for parameter in parameters) == "arg, base = 0, *rest, exception: true, **opts, &block"


def test_parse_parameters_without_list():
    assert parse_parameters(None) == []
    assert parse_parameters("") == []
