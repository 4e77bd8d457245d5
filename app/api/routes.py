from datetime import datetime, timezone
import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.background import BackgroundTask

from app.api.dependencies import get_case_data_service
from app.models.geo import FeatureCollection
from app.models.schemas import CacheStatsOut, CasePageOut, CountyStatsOut, TotalsOut
from app.services import projection
from app.services.case_stats import paginate

router = APIRouter(prefix="/api", tags=["api"])
logger = logging.getLogger(__name__)

API_VERSION = "version 0.1.0"


@router.get("/", response_class=PlainTextResponse)
def get_version():
    return API_VERSION


@router.get("/alive", response_class=PlainTextResponse)
def get_alive():
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("/us-counties", response_model=FeatureCollection, response_model_exclude_none=True)
def get_us_counties(
    resolution: Literal["500k", "5m", "20m"] = Query(default="500k"),
    service=Depends(get_case_data_service),
):
    return service.counties_cities_hybrid(resolution)


@router.get("/us-county-centroids", response_model=FeatureCollection, response_model_exclude_none=True)
def get_us_county_centroids(service=Depends(get_case_data_service)):
    return service.county_centroids()


@router.get("/us-cases-by-county", response_model=CasePageOut)
def get_us_cases_by_county(
    page_size: int | None = Query(default=None, alias="pageSize", ge=1),
    start_index: int = Query(default=0, alias="startIndex", ge=0),
    reverse: bool = Query(default=False),
    service=Depends(get_case_data_service),
):
    records = service.cases_by_county()
    page = paginate(records, page_size=page_size, start_index=start_index, reverse=reverse)
    logger.debug(
        "cases_page start=%s last=%s total=%s reverse=%s",
        page.start_index,
        page.last_index,
        page.total_count,
        reverse,
    )
    return projection.case_page(page)


@router.get("/us-cases-by-county.csv.gz")
def get_us_cases_by_county_csv(service=Depends(get_case_data_service)):
    chunks = service.open_cases_csv_gzip()
    return StreamingResponse(
        chunks,
        media_type="text/csv",
        background=BackgroundTask(chunks.close),
        headers={
            "Content-Encoding": "gzip",
            "Content-Disposition": 'attachment; filename="us-counties.csv"',
        },
    )


@router.get("/us-county-stats", response_model=CountyStatsOut)
def get_us_county_stats(service=Depends(get_case_data_service)):
    return service.county_stats()


@router.get("/us-totals", response_model=TotalsOut)
def get_us_totals(service=Depends(get_case_data_service)):
    return projection.totals(service.us_totals())


@router.get("/country-codes")
def get_country_codes(service=Depends(get_case_data_service)):
    return service.country_codes()


@router.get("/cache/stats", response_model=CacheStatsOut)
def get_cache_stats(service=Depends(get_case_data_service)):
    return CacheStatsOut(**service.cache_stats())
