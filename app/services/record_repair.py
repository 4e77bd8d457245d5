from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace

from app.services.tabular import CaseRecord


@dataclass(frozen=True)
class RepairRule:
    state: str
    fips: int
    county: str | None = None

    def matches(self, record: CaseRecord) -> bool:
        if record.fips is not None or record.state != self.state:
            return False
        return self.county is None or record.county == self.county


# First match wins; keep the order stable when adding rules.
REPAIR_RULES: tuple[RepairRule, ...] = (
    RepairRule(county="New York City", state="New York", fips=36999),
    RepairRule(state="Rhode Island", fips=44000),
    RepairRule(county="Joplin", state="Missouri", fips=2937592),
    RepairRule(county="Kansas City", state="Missouri", fips=2938000),
)


def repair_record(record: CaseRecord, rules: Iterable[RepairRule] = REPAIR_RULES) -> CaseRecord:
    for rule in rules:
        if rule.matches(record):
            return replace(record, fips=rule.fips)
    return record


def repair_records(records: Iterable[CaseRecord], rules: Iterable[RepairRule] = REPAIR_RULES) -> list[CaseRecord]:
    rule_list = tuple(rules)
    return [repair_record(record, rule_list) for record in records]
