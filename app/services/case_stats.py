from __future__ import annotations

import statistics
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from app.services.tabular import CaseRecord

T = TypeVar("T")

PERCENTILE_STEPS = 10


@dataclass(frozen=True)
class StatSummary:
    max: int | None
    mean: float | None
    mode: int | None
    percentiles: list[float] = field(default_factory=list)
    total: int = 0


@dataclass(frozen=True)
class Page:
    items: list[Any]
    start_index: int
    last_index: int
    total_count: int


def group_by_region(records: Iterable[CaseRecord]) -> dict[int, list[CaseRecord]]:
    """Group records by fips, keeping input order. Records without fips are dropped."""
    grouped: dict[int, list[CaseRecord]] = defaultdict(list)
    for record in records:
        if record.fips is None:
            continue
        grouped[record.fips].append(record)
    return dict(grouped)


def latest_by_region(grouped: Mapping[int, Sequence[CaseRecord]]) -> dict[int, CaseRecord]:
    return {fips: observations[-1] for fips, observations in grouped.items() if observations}


def _as_count(value: Any) -> int:
    if value is None or value == "":
        return 0
    return int(value)


def mode_of(values: Sequence[int]) -> int | None:
    if not values:
        return None
    # Ties resolve to the smallest value so the result does not depend on input order.
    return min(statistics.multimode(values))


def percentiles_of(values: Sequence[int], steps: int = PERCENTILE_STEPS) -> list[float]:
    """10th..90th percentiles with linear interpolation at ``(n - 1) * p``."""
    if not values:
        return []
    if len(values) == 1:
        return [float(values[0])] * (steps - 1)
    return [float(value) for value in statistics.quantiles(values, n=steps, method="inclusive")]


def summarize(values: Sequence[int]) -> StatSummary:
    if not values:
        return StatSummary(max=None, mean=None, mode=None, percentiles=[], total=0)
    return StatSummary(
        max=max(values),
        mean=statistics.fmean(values),
        mode=mode_of(values),
        percentiles=percentiles_of(values),
        total=sum(values),
    )


def summarize_latest(latest: Mapping[int, CaseRecord]) -> tuple[StatSummary, StatSummary]:
    cases = [_as_count(getattr(record, "cases", None)) for record in latest.values()]
    deaths = [_as_count(getattr(record, "deaths", None)) for record in latest.values()]
    return summarize(cases), summarize(deaths)


def paginate(
    rows: Sequence[T],
    page_size: int | None = None,
    start_index: int = 0,
    reverse: bool = False,
) -> Page:
    total = len(rows)
    size = total if page_size is None else page_size
    start = max(0, start_index)

    if reverse:
        last = max(0, total - start)
        start = max(0, last - size)
    else:
        last = min(total, start + size)
        start = min(start, total)

    return Page(items=list(rows[start:last]), start_index=start, last_index=last, total_count=total)


def region_coverage(
    grouped: Mapping[int, Sequence[CaseRecord]],
    region_ids: Iterable[int],
    unidentified_records: int = 0,
) -> dict[str, int]:
    """Join case regions against boundary regions by identifier."""
    case_ids = set(grouped)
    boundary_ids = set(region_ids)
    return {
        "reporting_regions": len(case_ids & boundary_ids),
        "non_reporting_regions": len(boundary_ids - case_ids),
        "unmatched_case_regions": len(case_ids - boundary_ids),
        "unidentified_records": unidentified_records,
    }
