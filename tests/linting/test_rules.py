from pathlib import Path
from textwrap import dedent

import pytest
from inline_snapshot import snapshot

from ruby_stubs_mcp.linting.rules import (
    ALL_RULES,
    RULE_NAMES,
    DanglingAliasRule,
    FileNameMismatchRule,
    LintFinding,
    Severity,
    UndocumentedParameterRule,
    UnknownSuperclassRule,
    loose_name,
    snake_case,
)
from ruby_stubs_mcp.models.snapshot import StubFileError, StubSnapshot
from ruby_stubs_mcp.models.stubs import StubFile
from ruby_stubs_mcp.models.version import MinorVersion
from ruby_stubs_mcp.parsing.parser import parse_stub_file
from tests.conftest import dump_list_for_snapshot

SNAPSHOT_DIR = Path("/stubs/rubystubs33")


def stub_file(name: str, text: str) -> StubFile:
    return parse_stub_file(dedent(text).strip("\n"), path=str(SNAPSHOT_DIR / name))


def new_snapshot(*files: StubFile, errors: list[StubFileError] | None = None) -> StubSnapshot:
    return StubSnapshot.from_files(version=MinorVersion(major=3, minor=3), directory=SNAPSHOT_DIR, files=list(files), errors=errors or [])


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("String", "string"),
        ("BasicObject", "basic_object"),
        ("OpenSSL", "open_ssl"),
        ("StringIO", "string_io"),
        ("WIN32OLE", "win32_ole"),
        ("SSLSocket", "ssl_socket"),
    ],
)
def test_snake_case(name: str, expected: str):
    assert snake_case(name) == expected


def test_loose_name():
    assert loose_name("open_ssl") == loose_name("OpenSSL")
    assert loose_name("openssl") == loose_name("OpenSSL")
    assert loose_name("strio") != loose_name("StringIO")


def test_rule_names_are_unique():
    assert len(set(RULE_NAMES)) == len(ALL_RULES)
    assert RULE_NAMES == snapshot(
        [
            "undocumented-parameter",
            "dangling-alias",
            "unknown-superclass",
            "file-name-mismatch",
            "duplicate-namespace",
            "duplicate-member",
            "superclass-conflict",
            "unrecognized-statement",
            "parse-error",
        ]
    )


def test_finding_render():
    finding = LintFinding(rule="dangling-alias", severity=Severity.ERROR, path="date.rb", line=11, message="Broken alias")

    assert finding.render() == "date.rb:11: error [dangling-alias] Broken alias"


def test_undocumented_parameter():
    snapshot_with_methods = new_snapshot(
        stub_file(
            "array.rb",
            """
            class Array
              # Returns the element at +index+.
              def at(index); end

              # Returns the first element, or the first +n+ elements.
              def first(n = nil, &block); end

              # Joins the elements into a string.
              def join(separator = nil); end

              def undocumented(anything); end

              # Iterates over the elements.
              def each(*, **, &); end

              # Forwards everything.
              def forward(...); end
            end
            """,
        )
    )

    findings = list(UndocumentedParameterRule().check(snapshot_with_methods))

    assert [finding.render() for finding in findings] == snapshot(
        [
            "array.rb:6: warning [undocumented-parameter] Documentation of Array#first does not mention parameter `block`",
            "array.rb:9: warning [undocumented-parameter] Documentation of Array#join does not mention parameter `separator`",
        ]
    )


def test_undocumented_parameter_matches_whole_words():
    method = stub_file(
        "integer.rb",
        """
        class Integer
          # Returns the digits, using +base+ as the radix.
          def digits(bas, base = 10); end
        end
        """,
    ).namespaces[0].methods[0]

    assert UndocumentedParameterRule().undocumented_parameters(method) == ["bas"]


def test_dangling_alias_uses_reopened_namespaces():
    findings = list(
        DanglingAliasRule().check(
            new_snapshot(
                stub_file(
                    "string.rb",
                    """
                    class String
                      def length; end
                    end
                    """,
                ),
                stub_file(
                    "string_aliases.rb",
                    """
                    class String
                      alias size length
                      alias bytesize missing

                      class << self
                        alias make length
                      end
                    end
                    """,
                ),
            )
        )
    )

    assert [(finding.line, finding.message) for finding in findings] == snapshot(
        [
            (3, "`alias bytesize missing` refers to a method that is not defined in String"),
            (6, "`alias make length` refers to a method that is not defined in String"),
        ]
    )


def test_unknown_superclass():
    stubs = new_snapshot(
        stub_file(
            "open_ssl.rb",
            """
            module OpenSSL
              class OpenSSLError < StandardError; end

              module SSL
                class SSLError < OpenSSLError; end
                class SSLSocket < Socket; end
              end
            end
            """,
        )
    )

    assert [finding.message for finding in UnknownSuperclassRule().check(stubs)] == [
        "Superclass `Socket` of OpenSSL::SSL::SSLSocket is not defined"
    ]
    assert list(UnknownSuperclassRule(known_superclasses=frozenset({"StandardError", "Socket"})).check(stubs)) == []
    assert len(list(UnknownSuperclassRule(known_superclasses=frozenset()).check(stubs))) == 2


def test_file_name_mismatch():
    stubs = new_snapshot(
        stub_file("open_ssl.rb", "module OpenSSL; end"),
        stub_file("openssl.rb", "module OpenSSL; end"),
        stub_file("string_io.rb", "class StringIO; end"),
        stub_file("strio.rb", "class StringIO; end"),
        stub_file("global_variables.rb", "$stdout = _"),
        stub_file("kernel_functions.rb", "def p(obj); end"),
        stub_file("ssl.rb", "module OpenSSL::SSL; end"),
    )

    assert dump_list_for_snapshot(list(FileNameMismatchRule().check(stubs))) == snapshot(
        [
            {
                "rule": "file-name-mismatch",
                "severity": "warning",
                "path": "strio.rb",
                "line": 1,
                "namespace": "StringIO",
                "message": "File name `strio.rb` does not match StringIO, expected `string_io.rb`",
            }
        ]
    )


def test_finding_paths_outside_the_snapshot_are_kept():
    stubs = new_snapshot(parse_stub_file("class Foo < Bar; end", path="/elsewhere/foo.rb"))

    assert [finding.path for finding in UnknownSuperclassRule().check(stubs)] == ["/elsewhere/foo.rb"]


def test_unknown_superclass_allows_errno_classes():
    stubs = new_snapshot(
        stub_file(
            "io.rb",
            """
            class IO
              class EAGAINWaitReadable < Errno::EAGAIN; end
              class EINPROGRESSWaitWritable < ::Errno::EINPROGRESS; end
              class Broken < Errnos::EAGAIN; end
            end
            """,
        )
    )

    assert [finding.message for finding in UnknownSuperclassRule().check(stubs)] == [
        "Superclass `Errnos::EAGAIN` of IO::Broken is not defined"
    ]
    assert len(list(UnknownSuperclassRule(known_namespaces=()).check(stubs))) == 3
