from dataclasses import dataclass, field
from typing import Any, Optional

import pandas as pd


@dataclass
class Finding:
    """Outcome of one check on one table; ``violating_count == 0`` means it passed."""

    table: str
    check: str
    violating_count: int
    sample_keys: list = field(default_factory=list)
    violations: Optional[pd.DataFrame] = field(default=None, repr=False, compare=False)

    @property
    def passed(self) -> bool:
        return self.violating_count == 0

    def to_record(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "check": self.check,
            "violating_count": self.violating_count,
            "sample_keys": list(self.sample_keys),
        }


@dataclass
class ValidationReport:
    findings: list[Finding] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(finding.passed for finding in self.findings)

    @property
    def failures(self) -> list[Finding]:
        return [finding for finding in self.findings if not finding.passed]

    def extend(self, findings: list[Finding]) -> None:
        self.findings.extend(findings)

    def to_records(self) -> list[dict[str, Any]]:
        return [finding.to_record() for finding in self.findings]


def sample_keys(values: pd.Series, sample_size: int) -> list:
    """First ``sample_size`` distinct keys, as plain Python values (nulls as None)."""
    samples = []
    for value in values.drop_duplicates().head(sample_size):
        if pd.isna(value):
            samples.append(None)
        elif hasattr(value, "item"):
            samples.append(value.item())
        else:
            samples.append(value)
    return samples
