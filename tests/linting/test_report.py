import pytest
from inline_snapshot import snapshot

from ruby_stubs_mcp.clients.stubs import StubCorpusClient
from ruby_stubs_mcp.linting.report import UnknownLintRuleError, lint_snapshot, select_rules
from tests.conftest import dump_list_for_snapshot


def test_select_rules():
    assert [rule.name for rule in select_rules(rules=["parse-error", "dangling-alias"])] == ["dangling-alias", "parse-error"]
    assert "undocumented-parameter" not in [rule.name for rule in select_rules(disabled=["undocumented-parameter"])]
    assert len(select_rules()) == 9
    assert select_rules(rules=["parse-error"], disabled=["parse-error"]) == []


def test_select_unknown_rule():
    with pytest.raises(UnknownLintRuleError, match="Unknown lint rule: 'no-such-rule'"):
        select_rules(rules=["no-such-rule"])

    with pytest.raises(UnknownLintRuleError):
        select_rules(disabled=["no-such-rule"])


async def test_clean_snapshots_have_no_findings(stubs_client: StubCorpusClient):
    for stub_snapshot in await stubs_client.get_snapshots():
        report = lint_snapshot(stub_snapshot)

        assert report.findings == []
        assert not report.has_errors


async def test_lint_broken_snapshot(broken_stubs_client: StubCorpusClient):
    report = lint_snapshot(await broken_stubs_client.get_snapshot())

    assert dump_list_for_snapshot(report.findings, exclude_keys=["namespace"]) == snapshot(
        [
            {
                "rule": "parse-error",
                "severity": "error",
                "path": "broken.rb",
                "line": 2,
                "message": "Scope was not closed before the end of the file",
            },
            {
                "rule": "undocumented-parameter",
                "severity": "warning",
                "path": "date.rb",
                "line": 6,
                "message": "Documentation of Date.parse does not mention parameter `comp`",
            },
            {
                "rule": "dangling-alias",
                "severity": "error",
                "path": "date.rb",
                "line": 11,
                "message": "`alias mon month` refers to a method that is not defined in Date",
            },
            {
                "rule": "duplicate-member",
                "severity": "error",
                "path": "date.rb",
                "line": 14,
                "message": "Date#mday is declared twice",
            },
            {
                "rule": "unrecognized-statement",
                "severity": "warning",
                "path": "date.rb",
                "line": 16,
                "message": "Unrecognized statement: attr_reader :start",
            },
            {
                "rule": "duplicate-namespace",
                "severity": "error",
                "path": "date_time.rb",
                "line": 2,
                "message": "DateTime is already declared in date.rb",
            },
            {
                "rule": "superclass-conflict",
                "severity": "error",
                "path": "date_time.rb",
                "line": 2,
                "message": "DateTime is reopened with superclass `Object` but was declared with `Date`",
            },
            {
                "rule": "file-name-mismatch",
                "severity": "warning",
                "path": "time_stuff.rb",
                "line": 2,
                "message": "File name `time_stuff.rb` does not match Time, expected `time.rb`",
            },
            {
                "rule": "unknown-superclass",
                "severity": "error",
                "path": "time_stuff.rb",
                "line": 2,
                "message": "Superclass `Chronology` of Time is not defined",
            },
        ]
    )

    assert report.version == "3.3"
    assert report.files == 4
    assert report.errors == 6
    assert report.warnings == 3
    assert report.has_errors
    assert report.counts == snapshot(
        {
            "dangling-alias": 1,
            "duplicate-member": 1,
            "duplicate-namespace": 1,
            "file-name-mismatch": 1,
            "parse-error": 1,
            "superclass-conflict": 1,
            "undocumented-parameter": 1,
            "unknown-superclass": 1,
            "unrecognized-statement": 1,
        }
    )

    assert report.render().splitlines()[-1] == "Ruby 3.3: 4 files, 6 errors, 3 warnings"


async def test_lint_selected_rules(broken_stubs_client: StubCorpusClient):
    stub_snapshot = await broken_stubs_client.get_snapshot()

    warnings_only = lint_snapshot(stub_snapshot, rules=["undocumented-parameter", "file-name-mismatch", "unrecognized-statement"])
    assert warnings_only.warnings == 3
    assert not warnings_only.has_errors

    without_parse_errors = lint_snapshot(stub_snapshot, disabled=["parse-error"])
    assert without_parse_errors.errors == 5
    assert "parse-error" not in without_parse_errors.counts
