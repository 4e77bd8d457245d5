from __future__ import annotations

import zlib
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from app.models.schemas import (
    CasePageOut,
    CaseRowOut,
    CountyStatsOut,
    PageMetaOut,
    RegionCoverageOut,
    StatSummaryOut,
    TotalsOut,
    TotalsRowOut,
)
from app.services.case_stats import Page, StatSummary
from app.services.tabular import CaseRecord, TotalsRecord

GZIP_WBITS = 16 + zlib.MAX_WBITS


def gzip_stream(chunks: Iterable[bytes], level: int = 6) -> Iterator[bytes]:
    """Compress ``chunks`` into one gzip member, yielding output as it is produced.

    Nothing is read from ``chunks`` until the consumer asks for the next
    compressed block, so a slow client slows the upstream read instead of
    filling memory.
    """
    compressor = zlib.compressobj(level, zlib.DEFLATED, GZIP_WBITS)
    for chunk in chunks:
        if not chunk:
            continue
        compressed = compressor.compress(chunk)
        if compressed:
            yield compressed
    tail = compressor.flush()
    if tail:
        yield tail


def case_row(record: CaseRecord) -> CaseRowOut:
    return CaseRowOut(
        date=record.date,
        county=record.county,
        state=record.state,
        fips=record.fips,
        cases=record.cases,
        deaths=record.deaths,
    )


def case_page(page: Page) -> CasePageOut:
    return CasePageOut(
        data=[case_row(record) for record in page.items],
        meta=PageMetaOut(
            start_index=page.start_index,
            last_index=page.last_index,
            total_count=page.total_count,
        ),
    )


def totals(records: Sequence[TotalsRecord]) -> TotalsOut:
    return TotalsOut(
        data=[TotalsRowOut(date=record.date, cases=record.cases, deaths=record.deaths) for record in records]
    )


def stat_summary(summary: StatSummary) -> StatSummaryOut:
    return StatSummaryOut(
        max=summary.max,
        mean=summary.mean,
        mode=summary.mode,
        percentiles=list(summary.percentiles),
        total=summary.total,
    )


def county_stats(
    *,
    population: Any,
    cases: StatSummary,
    deaths: StatSummary,
    coverage: Mapping[str, int] | None,
) -> CountyStatsOut:
    return CountyStatsOut(
        population=population,
        cases=stat_summary(cases),
        deaths=stat_summary(deaths),
        coverage=RegionCoverageOut(**coverage) if coverage is not None else None,
    )
