"""
Value types exchanged with callers of the covering engines.
"""
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.geocover.config import POLE_LATITUDE_THRESHOLD
from src.geocover.geo import (
    METERS_PER_KM,
    METERS_PER_MILE,
    haversine_m,
    meters_to_lat_degrees,
    meters_to_lon_degrees,
    normalize_lon,
)


class GeoPoint(BaseModel):
    """Geographic coordinate in degrees."""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lon: float = Field(..., ge=-180, le=180, allow_inf_nan=False)

    def distance_to(self, other: "GeoPoint") -> float:
        """Haversine distance to another point in meters."""
        return haversine_m(self.lat, self.lon, other.lat, other.lon)

    def distance_to_km(self, other: "GeoPoint") -> float:
        return self.distance_to(other) / METERS_PER_KM

    def distance_to_miles(self, other: "GeoPoint") -> float:
        return self.distance_to(other) / METERS_PER_MILE

    def is_near_pole(self, threshold: float = POLE_LATITUDE_THRESHOLD) -> bool:
        return abs(self.lat) >= threshold

    def __str__(self) -> str:
        return f"({self.lat:.6f}, {self.lon:.6f})"


class GeoBoundingBox(BaseModel):
    """
    Rectangular area between a southwest and a northeast corner.

    A southwest longitude greater than the northeast longitude describes a box
    that crosses the 180th meridian.
    """
    model_config = ConfigDict(frozen=True)

    southwest: GeoPoint
    northeast: GeoPoint

    @model_validator(mode="after")
    def _check_corners(self) -> "GeoBoundingBox":
        if self.southwest.lat >= self.northeast.lat:
            raise ValueError("southwest latitude must be strictly south of northeast latitude")
        if self.southwest.lon == self.northeast.lon:
            raise ValueError("southwest and northeast longitudes must differ")
        return self

    @property
    def crosses_antimeridian(self) -> bool:
        return self.southwest.lon > self.northeast.lon

    @property
    def width_degrees(self) -> float:
        width = self.northeast.lon - self.southwest.lon
        if self.crosses_antimeridian:
            width += 360.0
        return width

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(
            lat=(self.southwest.lat + self.northeast.lat) / 2.0,
            lon=normalize_lon(self.southwest.lon + self.width_degrees / 2.0),
        )

    def contains(self, point: GeoPoint) -> bool:
        """Check whether a point lies inside the box (edges inclusive)."""
        if not self.southwest.lat <= point.lat <= self.northeast.lat:
            return False
        if self.crosses_antimeridian:
            return point.lon >= self.southwest.lon or point.lon <= self.northeast.lon
        return self.southwest.lon <= point.lon <= self.northeast.lon

    def expanded(self, meters: float) -> "GeoBoundingBox":
        """
        Grow the box by a distance on every side.

        Latitudes are clamped to the poles. Longitude growth is computed at the
        corner latitude farthest from the equator; once the box would wrap the
        whole globe it spans [-180, 180].
        """
        dlat = meters_to_lat_degrees(meters)
        south = max(-90.0, self.southwest.lat - dlat)
        north = min(90.0, self.northeast.lat + dlat)

        widest_lat = max(abs(south), abs(north))
        dlon = meters_to_lon_degrees(meters, widest_lat)
        if self.width_degrees + 2 * dlon >= 360.0:
            west, east = -180.0, 180.0
        else:
            west = normalize_lon(self.southwest.lon - dlon)
            east = normalize_lon(self.northeast.lon + dlon)

        return GeoBoundingBox(
            southwest=GeoPoint(lat=south, lon=west),
            northeast=GeoPoint(lat=north, lon=east),
        )

    @classmethod
    def from_center_and_distance(cls, center: GeoPoint, distance_m: float) -> "GeoBoundingBox":
        """
        Approximate box holding every point within a distance of the center.

        Args:
            center: Center of the box
            distance_m: Distance from the center to each edge in meters

        Returns:
            Bounding box with latitudes clamped to the poles; it crosses the
            antimeridian when the distance reaches past 180 degrees
        """
        dlat = meters_to_lat_degrees(distance_m)
        dlon = meters_to_lon_degrees(distance_m, center.lat)
        if 2 * dlon >= 360.0:
            west, east = -180.0, 180.0
        else:
            west = normalize_lon(center.lon - dlon)
            east = normalize_lon(center.lon + dlon)

        return cls(
            southwest=GeoPoint(lat=max(-90.0, center.lat - dlat), lon=west),
            northeast=GeoPoint(lat=min(90.0, center.lat + dlat), lon=east),
        )

    @classmethod
    def from_center_and_distance_km(cls, center: GeoPoint, distance_km: float) -> "GeoBoundingBox":
        return cls.from_center_and_distance(center, distance_km * METERS_PER_KM)

    @classmethod
    def from_center_and_distance_miles(cls, center: GeoPoint, distance_miles: float) -> "GeoBoundingBox":
        return cls.from_center_and_distance(center, distance_miles * METERS_PER_MILE)

    def __str__(self) -> str:
        return f"SW: {self.southwest}, NE: {self.northeast}"


class CircleArea(BaseModel):
    """Search area around a center point."""
    model_config = ConfigDict(frozen=True)

    center: GeoPoint
    radius_m: float = Field(..., ge=0, allow_inf_nan=False, description="Radius in meters")


class BoxArea(BaseModel):
    """Search area bounded by a rectangle."""
    model_config = ConfigDict(frozen=True)

    box: GeoBoundingBox

    @property
    def center(self) -> GeoPoint:
        return self.box.center


SearchArea = Union[CircleArea, BoxArea]


class CoveredCell(BaseModel):
    """One cell of a covering and its center's distance from the search center."""
    model_config = ConfigDict(frozen=True)

    cell_id: str
    distance_m: float = Field(..., ge=0)


class CoveringResult(BaseModel):
    """Cells covering a search area, nearest first."""
    model_config = ConfigDict(frozen=True)

    engine: str
    precision: int
    cells: tuple[CoveredCell, ...] = ()
    truncated: bool = Field(default=False, description="True when the cap dropped cells")
    rings: int = Field(default=0, ge=0, description="Number of rings expanded")

    @property
    def cell_ids(self) -> list[str]:
        return [cell.cell_id for cell in self.cells]

    def __len__(self) -> int:
        return len(self.cells)
