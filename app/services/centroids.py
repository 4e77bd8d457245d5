from __future__ import annotations

import logging

from shapely.errors import GEOSException
from shapely.geometry import shape

from app.models.geo import (
    FeatureCollection,
    MultiPolygonGeometry,
    PointGeometry,
    PolygonGeometry,
    RegionFeature,
)
from app.services.errors import GeometryError

logger = logging.getLogger(__name__)


def center_of_mass(geometry: PolygonGeometry | MultiPolygonGeometry) -> PointGeometry:
    try:
        polygon = shape(geometry.model_dump())
        centroid = polygon.centroid
    except (GEOSException, ValueError, TypeError, IndexError) as exc:
        raise GeometryError(f"malformed {geometry.type}: {exc}") from exc
    if centroid.is_empty:
        raise GeometryError(f"degenerate {geometry.type} has no center of mass")
    return PointGeometry(coordinates=[centroid.x, centroid.y])


def derive_centroid(feature: RegionFeature) -> RegionFeature | None:
    geometry = feature.geometry
    if not isinstance(geometry, (PolygonGeometry, MultiPolygonGeometry)):
        logger.info(
            "centroid_skipped_unsupported feature_id=%s geometry=%s",
            feature.identifier,
            getattr(geometry, "type", None),
        )
        return None
    try:
        point = center_of_mass(geometry)
    except GeometryError as exc:
        logger.warning(
            "centroid_skipped_invalid feature_id=%s name=%s error=%s",
            feature.identifier,
            feature.properties.name,
            exc,
        )
        return None
    return feature.model_copy(update={"geometry": point, "id": feature.identifier})


def derive_centroids(collection: FeatureCollection) -> FeatureCollection:
    centroids = []
    for feature in collection.features:
        centroid = derive_centroid(feature)
        if centroid is not None:
            centroids.append(centroid)
    skipped = len(collection.features) - len(centroids)
    logger.info("centroids_derived count=%s skipped=%s", len(centroids), skipped)
    return FeatureCollection(features=centroids)
