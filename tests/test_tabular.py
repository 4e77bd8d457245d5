from datetime import date

import pytest

from app.services.errors import DecodeError
from app.services.tabular import CaseRecord, decode_case_rows, decode_totals_rows

COUNTIES_CSV = """date,county,state,fips,cases,deaths
2020-03-01,Jackson,Missouri,29095,1,0
2020-03-01,Joplin,Missouri,,4,
2020-03-02,New York City,New York,,10,1
"""


def test_decode_case_rows_parses_fields():
    records = list(decode_case_rows(COUNTIES_CSV.splitlines()))

    assert records[0] == CaseRecord(
        date=date(2020, 3, 1), county="Jackson", state="Missouri", fips=29095, cases=1, deaths=0
    )
    assert records[1].fips is None
    assert records[1].deaths == 0
    assert records[2].county == "New York City"


def test_decode_case_rows_is_lazy():
    def lines():
        yield "date,county,state,fips,cases,deaths"
        yield "2020-03-01,Jackson,Missouri,29095,1,0"
        raise AssertionError("read past the first record")

    rows = decode_case_rows(lines())
    assert next(rows).fips == 29095


def test_decode_case_rows_rejects_missing_columns():
    with pytest.raises(DecodeError, match="fips"):
        list(decode_case_rows(["date,county,state,cases,deaths", "2020-03-01,A,B,1,0"]))


@pytest.mark.parametrize(
    "line",
    [
        "not-a-date,Jackson,Missouri,29095,1,0",
        "2020-03-01,Jackson,Missouri,abc,1,0",
        "2020-03-01,Jackson,Missouri,29095,many,0",
        "2020-03-01,Jackson,Missouri,29095,-3,0",
        "2020-03-01,Jackson,Missouri,29095,1,0,extra",
        "2020-03-01,Jackson,Missouri,29095,1e400,0",
        "2020-03-01,Jackson,Missouri,29095,inf,0",
        "2020-03-01,Jackson,Missouri,29095,nan,0",
        "2020-03-01,Jackson,Missouri,29095,2.9,0",
    ],
)
def test_decode_case_rows_rejects_schema_drift(line):
    with pytest.raises(DecodeError):
        list(decode_case_rows(["date,county,state,fips,cases,deaths", line]))


def test_decode_totals_rows():
    records = list(decode_totals_rows(["date,cases,deaths", "2020-01-21,1,0", "2020-01-22,1,"]))
    assert [record.cases for record in records] == [1, 1]
    assert records[1].deaths == 0
    assert records[0].date == date(2020, 1, 21)


def test_decode_case_rows_accepts_integral_floats():
    records = list(decode_case_rows(["date,county,state,fips,cases,deaths", "2020-03-01,Jackson,Missouri,29095,12.0,1"]))
    assert records[0].cases == 12
    assert records[0].deaths == 1
