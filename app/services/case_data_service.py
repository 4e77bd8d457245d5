from __future__ import annotations

import logging
from collections.abc import Generator, Iterator
from typing import Any

from pydantic import ValidationError

from app.config import Settings
from app.models.geo import FeatureCollection, RegionFeature
from app.models.schemas import CountyStatsOut
from app.services import projection
from app.services.case_stats import group_by_region, latest_by_region, region_coverage, summarize_latest
from app.services.centroids import derive_centroids
from app.services.errors import DecodeError, UpstreamFetchError
from app.services.geometry_joiner import join_regions
from app.services.local_resources import load_population, load_supplementary_features
from app.services.record_repair import repair_records
from app.services.remote_source import RemoteSourceClient
from app.services.single_flight_cache import NO_EXPIRY, SingleFlightCache, TtlPolicy
from app.services.tabular import CaseRecord, TotalsRecord, decode_case_rows, decode_totals_rows

logger = logging.getLogger(__name__)

RESOLUTIONS = ("500k", "5m", "20m")
DEFAULT_RESOLUTION = "500k"
CENTROID_RESOLUTION = "20m"


def _check_resolution(resolution: str) -> str:
    if resolution not in RESOLUTIONS:
        raise ValueError(f"unsupported resolution {resolution!r}; expected one of {', '.join(RESOLUTIONS)}")
    return resolution


def _closing_stream(first: bytes, chunks: Iterator[bytes], upstream: Generator[bytes, None, None]) -> Iterator[bytes]:
    try:
        yield first
        yield from chunks
    finally:
        upstream.close()


class CaseDataService:
    """Fetches, repairs, joins and caches every dataset the dashboard reads.

    One instance per process. Cached values are shared between requests and
    must be treated as read-only.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        cache: SingleFlightCache | None = None,
        client: RemoteSourceClient | None = None,
    ):
        self.settings = settings
        self.cache = cache or SingleFlightCache(cache_empty_results=settings.cache_empty_results)
        self.client = client or RemoteSourceClient(
            timeout_sec=settings.upstream_timeout_sec,
            chunk_size=settings.upstream_chunk_size,
        )
        self._case_ttl = TtlPolicy.fixed(settings.case_cache_ttl_sec)

    # case data

    def cases_by_county(self) -> list[CaseRecord]:
        return self.cache.get_or_compute("us_cases_by_county", self._case_ttl, self._load_cases_by_county)

    def _load_cases_by_county(self) -> list[CaseRecord]:
        url = self.settings.us_counties_csv_url
        with self.client.open_lines(url) as lines:
            records = repair_records(decode_case_rows(lines))
        unresolved = sum(1 for record in records if record.fips is None)
        logger.info("cases_by_county_loaded rows=%s unresolved_fips=%s", len(records), unresolved)
        return records

    def us_totals(self) -> list[TotalsRecord]:
        return self.cache.get_or_compute("us_totals", self._case_ttl, self._load_us_totals)

    def _load_us_totals(self) -> list[TotalsRecord]:
        with self.client.open_lines(self.settings.us_totals_csv_url) as lines:
            records = list(decode_totals_rows(lines))
        logger.info("us_totals_loaded rows=%s", len(records))
        return records

    def county_stats(self) -> CountyStatsOut:
        """Stats derived from the currently cached case records.

        The stats entry remembers which records it was built from and is
        rebuilt as soon as the case entry is reloaded. Stats built without
        boundary coverage are served once and then dropped so the next
        request retries the join.
        """
        records = self.cases_by_county()
        source, stats = self.cache.get_or_compute(
            "us_county_stats", NO_EXPIRY, lambda: (records, self._build_county_stats(records))
        )
        if source is not records:
            self.cache.invalidate("us_county_stats")
            source, stats = self.cache.get_or_compute(
                "us_county_stats", NO_EXPIRY, lambda: (records, self._build_county_stats(records))
            )
        if stats.coverage is None and source is records:
            self.cache.invalidate("us_county_stats")
        return stats

    def _build_county_stats(self, records: list[CaseRecord]) -> CountyStatsOut:
        grouped = group_by_region(records)
        cases, deaths = summarize_latest(latest_by_region(grouped))
        coverage = self._region_coverage(grouped, records)
        return projection.county_stats(
            population=self.population(),
            cases=cases,
            deaths=deaths,
            coverage=coverage,
        )

    def _region_coverage(self, grouped: dict[int, list[CaseRecord]], records: list[CaseRecord]) -> dict[str, int] | None:
        try:
            regions = self.counties_cities_hybrid(CENTROID_RESOLUTION)
        except (UpstreamFetchError, DecodeError) as exc:
            logger.warning("county_stats_coverage_unavailable reason=%s", exc)
            return None
        region_ids = [feature.identifier for feature in regions.features if feature.identifier is not None]
        unidentified = sum(1 for record in records if record.fips is None)
        coverage = region_coverage(grouped, region_ids, unidentified_records=unidentified)
        logger.info(
            "county_stats_built regions=%s reporting=%s non_reporting=%s unmatched=%s",
            len(grouped),
            coverage["reporting_regions"],
            coverage["non_reporting_regions"],
            coverage["unmatched_case_regions"],
        )
        return coverage

    def open_cases_csv_gzip(self) -> Iterator[bytes]:
        """Start streaming the raw county CSV as gzip.

        The first compressed block is produced eagerly so connection failures
        surface before a response status is sent. Closing the returned
        generator closes the upstream connection.
        """
        upstream = self.client.iter_bytes(self.settings.us_counties_csv_url)
        chunks = projection.gzip_stream(upstream)
        first = next(chunks)
        return _closing_stream(first, chunks, upstream)

    # geometry

    def counties_geojson(self, resolution: str = DEFAULT_RESOLUTION) -> FeatureCollection:
        resolution = _check_resolution(resolution)
        return self.cache.get_or_compute(
            f"us_counties_geojson_{resolution}",
            NO_EXPIRY,
            lambda: self._load_counties_geojson(resolution),
        )

    def _load_counties_geojson(self, resolution: str) -> FeatureCollection:
        url = self.settings.us_counties_geojson_url_template.format(resolution=resolution)
        payload = self.client.fetch_json(url)
        try:
            collection = FeatureCollection.model_validate(payload)
        except ValidationError as exc:
            raise DecodeError(f"county boundaries are not a FeatureCollection: {url}") from exc
        logger.info("counties_geojson_loaded resolution=%s features=%s", resolution, len(collection))
        return collection

    def counties_cities_hybrid(self, resolution: str = DEFAULT_RESOLUTION) -> FeatureCollection:
        resolution = _check_resolution(resolution)
        return self.cache.get_or_compute(
            f"us_counties_cities_hybrid_{resolution}",
            NO_EXPIRY,
            lambda: join_regions(self.counties_geojson(resolution), self.supplementary_features()),
        )

    def county_centroids(self) -> FeatureCollection:
        return self.cache.get_or_compute(
            "us_county_centroids",
            NO_EXPIRY,
            lambda: derive_centroids(self.counties_cities_hybrid(CENTROID_RESOLUTION)),
        )

    # local and reference data

    def population(self) -> Any:
        return self.cache.get_or_compute(
            "population",
            NO_EXPIRY,
            lambda: load_population(self.settings.population_path),
        )

    def supplementary_features(self) -> list[RegionFeature]:
        return self.cache.get_or_compute(
            "supplementary_features",
            NO_EXPIRY,
            lambda: load_supplementary_features(self.settings.supplementary_features_path),
        )

    def country_codes(self) -> Any:
        return self.cache.get_or_compute(
            "country_codes",
            NO_EXPIRY,
            lambda: self.client.fetch_json(self.settings.country_codes_url),
        )

    def cache_stats(self) -> dict[str, int]:
        return self.cache.stats()

    def close(self) -> None:
        self.cache.close()
        self.client.close()
