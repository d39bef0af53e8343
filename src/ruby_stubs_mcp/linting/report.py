from collections import Counter
from collections.abc import Iterable

from pydantic import BaseModel, Field

from ruby_stubs_mcp.linting.rules import ALL_RULES, RULE_NAMES, BaseLintRule, LintFinding, Severity
from ruby_stubs_mcp.models.snapshot import StubSnapshot


class UnknownLintRuleError(ValueError):
    """A lint rule was selected or disabled by a name that does not exist."""

    def __init__(self, rule: str):
        super().__init__(f"Unknown lint rule: {rule!r}. Available rules: {', '.join(RULE_NAMES)}")


class LintReport(BaseModel):
    """The findings of linting one snapshot."""

    version: str = Field(description="The Ruby version of the snapshot.")
    files: int = Field(description="The number of stub files that were checked.")
    findings: list[LintFinding] = Field(default_factory=list, description="The findings, sorted by path and line.")
    counts: dict[str, int] = Field(default_factory=dict, description="The number of findings per rule.")
    errors: int = 0
    warnings: int = 0
    has_errors: bool = False

    @classmethod
    def from_findings(cls, snapshot: StubSnapshot, findings: Iterable[LintFinding]) -> "LintReport":
        sorted_findings: list[LintFinding] = sorted(findings, key=lambda finding: (finding.path, finding.line, finding.rule))
        severities: Counter[Severity] = Counter(finding.severity for finding in sorted_findings)

        return cls(
            version=str(snapshot.version),
            files=len(snapshot.files) + len(snapshot.errors),
            findings=sorted_findings,
            counts=dict(sorted(Counter(finding.rule for finding in sorted_findings).items())),
            errors=severities[Severity.ERROR],
            warnings=severities[Severity.WARNING],
            has_errors=severities[Severity.ERROR] > 0,
        )

    def render(self) -> str:
        lines: list[str] = [finding.render() for finding in self.findings]

        lines.append(f"Ruby {self.version}: {self.files} files, {self.errors} errors, {self.warnings} warnings")

        return "\n".join(lines)


def select_rules(rules: Iterable[str] | None = None, disabled: Iterable[str] | None = None) -> list[BaseLintRule]:
    """The rules named in `rules` (all rules when not provided), minus the ones named in `disabled`."""

    selected: set[str] = set(rules) if rules else set(RULE_NAMES)
    excluded: set[str] = set(disabled or [])

    for name in selected | excluded:
        if name not in RULE_NAMES:
            raise UnknownLintRuleError(name)

    return [rule for rule in ALL_RULES if rule.name in selected and rule.name not in excluded]


def lint_snapshot(snapshot: StubSnapshot, rules: Iterable[str] | None = None, disabled: Iterable[str] | None = None) -> LintReport:
    findings: list[LintFinding] = [finding for rule in select_rules(rules=rules, disabled=disabled) for finding in rule.check(snapshot)]

    return LintReport.from_findings(snapshot=snapshot, findings=findings)
