from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

Position = list[float]

SUPPORTED_GEOMETRY_TYPES = ("Polygon", "MultiPolygon", "Point")


class PolygonGeometry(BaseModel):
    type: Literal["Polygon"] = "Polygon"
    coordinates: list[list[Position]]


class MultiPolygonGeometry(BaseModel):
    type: Literal["MultiPolygon"] = "MultiPolygon"
    coordinates: list[list[list[Position]]]


class PointGeometry(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: Position


class OtherGeometry(BaseModel):
    """Any geometry type the pipeline does not interpret; passed through untouched."""

    model_config = ConfigDict(extra="allow")

    type: str


def _geometry_tag(value: Any) -> str:
    geometry_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return geometry_type if geometry_type in SUPPORTED_GEOMETRY_TYPES else "other"


Geometry = Annotated[
    Union[
        Annotated[PolygonGeometry, Tag("Polygon")],
        Annotated[MultiPolygonGeometry, Tag("MultiPolygon")],
        Annotated[PointGeometry, Tag("Point")],
        Annotated[OtherGeometry, Tag("other")],
    ],
    Discriminator(_geometry_tag),
]


class RegionProperties(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    geo_id: str | None = Field(default=None, alias="GEO_ID")
    feature_id: int | None = Field(default=None, alias="FEATURE_ID")
    state: str | None = Field(default=None, alias="STATE")
    county: str | None = Field(default=None, alias="COUNTY")
    name: str | None = Field(default=None, alias="NAME")
    lsad: str | None = Field(default=None, alias="LSAD")
    census_area: float | str | None = Field(default=None, alias="CENSUSAREA")

    def extra_value(self, key: str) -> Any:
        return (self.model_extra or {}).get(key)


class RegionFeature(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["Feature"] = "Feature"
    id: int | str | None = None
    properties: RegionProperties = Field(default_factory=RegionProperties)
    geometry: Geometry | None = None

    @property
    def identifier(self) -> int | None:
        return self.properties.feature_id


class FeatureCollection(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: list[RegionFeature] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.features)
