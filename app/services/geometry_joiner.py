from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from app.models.geo import (
    FeatureCollection,
    MultiPolygonGeometry,
    PolygonGeometry,
    RegionFeature,
    RegionProperties,
)
from app.services.errors import GeometryError

logger = logging.getLogger(__name__)

GEO_ID_DELIMITER = "US"

NYC_BOROUGH_IDS = frozenset({36005, 36047, 36061, 36081, 36085})
# County code 999 is unused by the census, so synthetic ids live there.
MERGED_CITY_ID = 36999


def derive_feature_id(geo_id: str | None) -> int:
    """``"0500000US29097"`` -> ``29097``."""
    parts = (geo_id or "").split(GEO_ID_DELIMITER, 1)
    if len(parts) != 2:
        raise GeometryError(f"GEO_ID has no {GEO_ID_DELIMITER!r} delimiter: {geo_id!r}")
    try:
        return int(parts[1])
    except ValueError as exc:
        raise GeometryError(f"GEO_ID suffix is not numeric: {geo_id!r}") from exc


def ring_count(feature: RegionFeature) -> int:
    geometry = feature.geometry
    if isinstance(geometry, PolygonGeometry):
        return len(geometry.coordinates)
    if isinstance(geometry, MultiPolygonGeometry):
        return sum(len(polygon) for polygon in geometry.coordinates)
    return 0


def _with_feature_id(feature: RegionFeature, feature_id: int) -> RegionFeature:
    properties = feature.properties.model_copy(update={"feature_id": feature_id})
    return feature.model_copy(update={"properties": properties})


def tag_feature(feature: RegionFeature) -> RegionFeature:
    try:
        feature_id = derive_feature_id(feature.properties.geo_id)
    except GeometryError as exc:
        logger.warning("feature_id_underivable name=%s error=%s", feature.properties.name, exc)
        return feature
    return _with_feature_id(feature, feature_id)


def _identify_supplementary(feature: RegionFeature) -> RegionFeature:
    if feature.identifier is not None:
        return feature
    if feature.properties.geo_id:
        return tag_feature(feature)
    geoid = feature.properties.extra_value("GEOID")
    try:
        return _with_feature_id(feature, int(geoid))
    except (TypeError, ValueError):
        logger.warning("supplementary_feature_unidentified name=%s", feature.properties.name)
        return feature


def merge_features(
    features: Iterable[RegionFeature],
    member_ids: frozenset[int] = NYC_BOROUGH_IDS,
    *,
    feature_id: int = MERGED_CITY_ID,
    name: str = "New York City",
) -> RegionFeature:
    """Concatenate the polygons of every member feature into one MultiPolygon."""
    coordinates: list = []
    for feature in features:
        if feature.identifier not in member_ids:
            continue
        geometry = feature.geometry
        if isinstance(geometry, MultiPolygonGeometry):
            coordinates.extend(geometry.coordinates)
        elif isinstance(geometry, PolygonGeometry):
            coordinates.append(geometry.coordinates)
        else:
            logger.warning("merge_member_skipped feature_id=%s geometry=%s", feature.identifier, geometry)

    state = str(feature_id)[:2]
    return RegionFeature(
        properties=RegionProperties(
            geo_id=f"0500000{GEO_ID_DELIMITER}{feature_id}",
            feature_id=feature_id,
            state=state,
            county=str(feature_id)[2:],
            name=name,
            lsad="City",
            census_area="N/A",
        ),
        geometry=MultiPolygonGeometry(coordinates=coordinates),
    )


def join_regions(
    collection: FeatureCollection,
    supplementary: Sequence[RegionFeature] = (),
) -> FeatureCollection:
    """Tag, merge and extend a county collection. ``collection`` is left untouched."""
    features = [tag_feature(feature) for feature in collection.features]
    source_ids = {feature.identifier for feature in features if feature.identifier is not None}

    if MERGED_CITY_ID in source_ids:
        logger.error("merged_city_id_collision feature_id=%s", MERGED_CITY_ID)
    else:
        merged = merge_features(features)
        logger.info("merged_city_built feature_id=%s rings=%s", MERGED_CITY_ID, ring_count(merged))
        features.append(merged)

    features.extend(_identify_supplementary(feature) for feature in supplementary)
    return FeatureCollection(features=features)
