import pytest
from shapely.geometry import Point, shape

from app.models.geo import FeatureCollection, MultiPolygonGeometry, PolygonGeometry
from app.services.centroids import center_of_mass, derive_centroids
from app.services.errors import GeometryError


def _feature(feature_id: int, geometry: dict | None) -> dict:
    return {
        "type": "Feature",
        "properties": {"GEO_ID": f"0500000US{feature_id}", "FEATURE_ID": feature_id, "NAME": f"r{feature_id}"},
        "geometry": geometry,
    }


SQUARE = [[[0, 0], [2, 0], [2, 2], [0, 2], [0, 0]]]
L_SHAPE = [[[0, 0], [4, 0], [4, 1], [1, 1], [1, 4], [0, 4], [0, 0]]]
FAR_SQUARE = [[[10, 10], [12, 10], [12, 12], [10, 12], [10, 10]]]


def test_polygon_center_of_mass():
    point = center_of_mass(PolygonGeometry(coordinates=SQUARE))
    assert point.type == "Point"
    assert point.coordinates == pytest.approx([1.0, 1.0])


def test_multipolygon_center_of_mass_weights_all_parts():
    point = center_of_mass(MultiPolygonGeometry(coordinates=[SQUARE, FAR_SQUARE]))
    assert point.coordinates == pytest.approx([6.0, 6.0])


def test_malformed_ring_raises_geometry_error():
    with pytest.raises(GeometryError):
        center_of_mass(PolygonGeometry(coordinates=[[[0, 0], [1, 1]]]))


def test_empty_polygon_raises_geometry_error():
    with pytest.raises(GeometryError):
        center_of_mass(PolygonGeometry(coordinates=[]))


def test_derive_centroids_skips_bad_and_unsupported_features():
    collection = FeatureCollection.model_validate(
        {
            "type": "FeatureCollection",
            "features": [
                _feature(1, {"type": "Polygon", "coordinates": SQUARE}),
                _feature(2, {"type": "MultiPolygon", "coordinates": [L_SHAPE, FAR_SQUARE]}),
                _feature(3, {"type": "Polygon", "coordinates": [[[0, 0], [1, 1]]]}),
                _feature(4, {"type": "LineString", "coordinates": [[0, 0], [1, 1]]}),
                _feature(5, {"type": "Point", "coordinates": [3, 3]}),
                _feature(6, None),
            ],
        }
    )

    centroids = derive_centroids(collection)

    assert [feature.id for feature in centroids.features] == [1, 2]
    assert len(centroids.features) <= len(collection.features)
    assert all(feature.geometry.type == "Point" for feature in centroids.features)
    assert centroids.features[0].properties.name == "r1"


def test_centroids_lie_within_convex_hull_of_source():
    sources = [
        _feature(1, {"type": "Polygon", "coordinates": L_SHAPE}),
        _feature(2, {"type": "MultiPolygon", "coordinates": [L_SHAPE, FAR_SQUARE]}),
        _feature(3, {"type": "Polygon", "coordinates": FAR_SQUARE}),
    ]
    collection = FeatureCollection.model_validate({"type": "FeatureCollection", "features": sources})

    centroids = derive_centroids(collection)

    for source, centroid in zip(sources, centroids.features):
        hull = shape(source["geometry"]).convex_hull
        assert hull.covers(Point(centroid.geometry.coordinates))


def test_source_features_are_not_modified():
    collection = FeatureCollection.model_validate(
        {"type": "FeatureCollection", "features": [_feature(1, {"type": "Polygon", "coordinates": SQUARE})]}
    )
    derive_centroids(collection)
    assert collection.features[0].geometry.type == "Polygon"
    assert collection.features[0].id is None
