from __future__ import annotations

import csv
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date

from app.services.errors import DecodeError

CASE_COLUMNS = ("date", "county", "state", "fips", "cases", "deaths")
TOTALS_COLUMNS = ("date", "cases", "deaths")


@dataclass(frozen=True)
class CaseRecord:
    date: date
    county: str
    state: str
    fips: int | None
    cases: int = 0
    deaths: int = 0


@dataclass(frozen=True)
class TotalsRecord:
    date: date
    cases: int = 0
    deaths: int = 0


def _parse_date(value: str | None, line_no: int) -> date:
    try:
        return date.fromisoformat((value or "").strip())
    except ValueError as exc:
        raise DecodeError(f"invalid date {value!r} on line {line_no}") from exc


def _parse_count(value: str | None, column: str, line_no: int) -> int:
    text = (value or "").strip()
    if not text:
        return 0
    try:
        count = int(text)
    except ValueError:
        count = _parse_integral_float(text, column, line_no)
    if count < 0:
        raise DecodeError(f"negative {column} {value!r} on line {line_no}")
    return count


def _parse_integral_float(text: str, column: str, line_no: int) -> int:
    # "12.0" is accepted; fractions, inf and nan are not
    try:
        number = float(text)
    except ValueError as exc:
        raise DecodeError(f"invalid {column} {text!r} on line {line_no}") from exc
    if not number.is_integer():
        raise DecodeError(f"non-integral {column} {text!r} on line {line_no}")
    return int(number)


def _parse_fips(value: str | None, line_no: int) -> int | None:
    text = (value or "").strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError as exc:
        raise DecodeError(f"invalid fips {value!r} on line {line_no}") from exc


def _dict_rows(lines: Iterable[str], required: tuple[str, ...]) -> Iterator[tuple[int, dict[str, str]]]:
    reader = csv.DictReader(lines)
    header = reader.fieldnames or []
    missing = [column for column in required if column not in header]
    if missing:
        raise DecodeError(f"csv header is missing columns: {', '.join(missing)}")
    for row in reader:
        if None in row:
            raise DecodeError(f"unexpected extra fields on line {reader.line_num}")
        yield reader.line_num, row


def decode_case_rows(lines: Iterable[str]) -> Iterator[CaseRecord]:
    """Decode NYT county rows lazily, one record per CSV line."""
    for line_no, row in _dict_rows(lines, CASE_COLUMNS):
        yield CaseRecord(
            date=_parse_date(row.get("date"), line_no),
            county=(row.get("county") or "").strip(),
            state=(row.get("state") or "").strip(),
            fips=_parse_fips(row.get("fips"), line_no),
            cases=_parse_count(row.get("cases"), "cases", line_no),
            deaths=_parse_count(row.get("deaths"), "deaths", line_no),
        )


def decode_totals_rows(lines: Iterable[str]) -> Iterator[TotalsRecord]:
    for line_no, row in _dict_rows(lines, TOTALS_COLUMNS):
        yield TotalsRecord(
            date=_parse_date(row.get("date"), line_no),
            cases=_parse_count(row.get("cases"), "cases", line_no),
            deaths=_parse_count(row.get("deaths"), "deaths", line_no),
        )
