"""
Quadrilateral cell codec and neighbor resolver backed by the S2 geometry library.

Cells are s2sphere CellIds at levels 0 (one cell per cube face) to 30. The
external token is the S2 token (hex with trailing zeros stripped).
"""
import math
import re
from typing import Optional, Union

import s2sphere
from shapely.geometry import Polygon

from src.geocover.errors import InvalidInputError
from src.geocover.geo import EARTH_RADIUS_M, normalize_lon
from src.geocover.models import GeoBoundingBox, GeoPoint

MIN_PRECISION = 0
MAX_PRECISION = 30

# S2 metric derivatives (radians at level 0, halved per level)
AVG_EDGE_DERIV = 1.459213746386106062
AVG_DIAG_DERIV = 2.060422738998471683
# Area at level 0 is a sixth of the sphere, quartered per level
AVG_AREA_DERIV = 4.0 * math.pi / 6.0

_TOKEN_PATTERN = re.compile(r"^[0-9a-f]{1,16}$")

CellLike = Union[s2sphere.CellId, str, int]


def check_precision(precision: int) -> int:
    """Reject levels outside the quadrilateral grid's range."""
    if isinstance(precision, bool) or not isinstance(precision, int):
        raise InvalidInputError(f"precision must be an integer, got {precision!r}")
    if not MIN_PRECISION <= precision <= MAX_PRECISION:
        raise InvalidInputError(
            f"quadrilateral precision must be between {MIN_PRECISION} and {MAX_PRECISION}, got {precision}"
        )
    return precision


def parse_cell(value: CellLike) -> s2sphere.CellId:
    """
    Build a cell from its token, its 64-bit id or an existing CellId.

    Raises:
        InvalidInputError: If the value does not name a valid cell
    """
    if isinstance(value, s2sphere.CellId):
        cell = value
    elif isinstance(value, str):
        token = value.strip().lower()
        if not _TOKEN_PATTERN.match(token):
            raise InvalidInputError(f"malformed quadrilateral cell token {value!r}")
        cell = s2sphere.CellId.from_token(token)
    elif isinstance(value, int) and not isinstance(value, bool):
        if not 0 < value < 1 << 64:
            raise InvalidInputError(f"invalid quadrilateral cell id {value!r}")
        cell = s2sphere.CellId(value)
    else:
        raise InvalidInputError(f"cannot interpret {value!r} as a quadrilateral cell")

    if not cell.is_valid():
        raise InvalidInputError(f"invalid quadrilateral cell {value!r}")
    return cell


def is_valid_cell(value: CellLike) -> bool:
    try:
        parse_cell(value)
    except InvalidInputError:
        return False
    return True


def encode(point: GeoPoint, precision: int) -> s2sphere.CellId:
    """
    Find the cell containing a point.

    Args:
        point: Location to index
        precision: Level, 0 (coarsest) to 30 (finest)

    Returns:
        Cell at the requested level
    """
    check_precision(precision)
    leaf = s2sphere.CellId.from_lat_lng(s2sphere.LatLng.from_degrees(point.lat, point.lon))
    return leaf.parent(precision)


def decode(cell: CellLike) -> GeoPoint:
    """Center of a cell in degrees."""
    center = parse_cell(cell).to_lat_lng()
    return GeoPoint(lat=center.lat().degrees, lon=normalize_lon(center.lng().degrees))


def _vertices(cell: s2sphere.CellId) -> list[tuple[float, float]]:
    """Corner (lon, lat) pairs, longitudes unwrapped around the cell center."""
    center = decode(cell)
    outline = s2sphere.Cell(cell)
    ring = []
    for k in range(4):
        vertex = s2sphere.LatLng.from_point(outline.get_vertex(k))
        lon = vertex.lng().degrees
        while lon - center.lon > 180.0:
            lon -= 360.0
        while lon - center.lon < -180.0:
            lon += 360.0
        ring.append((lon, vertex.lat().degrees))
    return ring


def decode_bounds(cell: CellLike) -> Polygon:
    """Outline of a cell as a polygon of (lon, lat) corners."""
    return Polygon(_vertices(parse_cell(cell)))


def cell_bounds(cell: CellLike) -> GeoBoundingBox:
    """Latitude/longitude box through a cell's corners."""
    cell = parse_cell(cell)
    ring = _vertices(cell)
    lons = [lon for lon, _ in ring]
    lats = [lat for _, lat in ring]
    south, north = min(lats), max(lats)

    if max(lons) - min(lons) >= 180.0:
        # face cells around a pole
        if decode(cell).lat > 0:
            north = 90.0
        else:
            south = -90.0
        west, east = -180.0, 180.0
    else:
        west, east = normalize_lon(min(lons)), normalize_lon(max(lons))

    return GeoBoundingBox(
        southwest=GeoPoint(lat=south, lon=west),
        northeast=GeoPoint(lat=north, lon=east),
    )


def neighbors(cell: CellLike) -> list[s2sphere.CellId]:
    """The four cells sharing an edge with a cell."""
    return list(parse_cell(cell).get_edge_neighbors())


def parent(cell: CellLike, precision: Optional[int] = None) -> s2sphere.CellId:
    """Ancestor of a cell at a coarser level (one level up by default)."""
    cell = parse_cell(cell)
    level = cell.level()
    if precision is None:
        precision = level - 1
    check_precision(precision)
    if precision > level:
        raise InvalidInputError(f"parent precision {precision} is finer than cell precision {level}")
    return cell.parent(precision)


def children(cell: CellLike) -> list[s2sphere.CellId]:
    """The four cells one level finer."""
    cell = parse_cell(cell)
    check_precision(cell.level() + 1)

    result = []
    child = cell.child_begin()
    end = cell.child_end()
    while child != end:
        result.append(child)
        child = child.next()
    return result


def cell_size_m(precision: int) -> float:
    """Average cell diagonal in meters."""
    check_precision(precision)
    return AVG_DIAG_DERIV * math.ldexp(1.0, -precision) * EARTH_RADIUS_M


def cell_edge_m(precision: int) -> float:
    check_precision(precision)
    return AVG_EDGE_DERIV * math.ldexp(1.0, -precision) * EARTH_RADIUS_M


def cell_area_m2(precision: int) -> float:
    check_precision(precision)
    return AVG_AREA_DERIV * math.ldexp(1.0, -2 * precision) * EARTH_RADIUS_M ** 2


class QuadEngine:
    """Quadrilateral grid behind the covering search."""
    name = "quad"

    def check_precision(self, precision: int) -> int:
        return check_precision(precision)

    def encode(self, point: GeoPoint, precision: int) -> s2sphere.CellId:
        return encode(point, precision)

    def decode(self, cell: s2sphere.CellId) -> GeoPoint:
        return decode(cell)

    def neighbors(self, cell: s2sphere.CellId) -> list[s2sphere.CellId]:
        return neighbors(cell)

    def cell_size_m(self, precision: int) -> float:
        return cell_size_m(precision)

    def cell_area_m2(self, precision: int) -> float:
        return cell_area_m2(precision)

    def to_token(self, cell: s2sphere.CellId) -> str:
        return cell.to_token()

    def parse(self, token: CellLike) -> s2sphere.CellId:
        return parse_cell(token)
