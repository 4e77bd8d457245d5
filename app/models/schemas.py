from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CaseRowOut(BaseModel):
    date: date
    county: str
    state: str
    fips: int | None = None
    cases: int = 0
    deaths: int = 0


class PageMetaOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_index: int = Field(alias="startIndex")
    last_index: int = Field(alias="lastIndex")
    total_count: int = Field(alias="totalCount")


class CasePageOut(BaseModel):
    data: list[CaseRowOut] = Field(default_factory=list)
    meta: PageMetaOut


class StatSummaryOut(BaseModel):
    max: int | None = None
    mean: float | None = None
    mode: int | None = None
    percentiles: list[float] = Field(default_factory=list)
    total: int = 0


class RegionCoverageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reporting_regions: int = Field(default=0, alias="reportingRegions")
    non_reporting_regions: int = Field(default=0, alias="nonReportingRegions")
    unmatched_case_regions: int = Field(default=0, alias="unmatchedCaseRegions")
    unidentified_records: int = Field(default=0, alias="unidentifiedRecords")


class CountyStatsOut(BaseModel):
    population: Any = None
    cases: StatSummaryOut
    deaths: StatSummaryOut
    coverage: RegionCoverageOut | None = None


class TotalsRowOut(BaseModel):
    date: date
    cases: int = 0
    deaths: int = 0


class TotalsOut(BaseModel):
    data: list[TotalsRowOut] = Field(default_factory=list)


class CacheStatsOut(BaseModel):
    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    failures: int = 0
    entries: int = 0
    in_flight: int = 0


class ErrorOut(BaseModel):
    detail: str
    code: str
