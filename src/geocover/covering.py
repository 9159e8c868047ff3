"""
Ring-expansion cell covering.

The search starts at the cell holding the search center and grows outward one
ring of neighbors at a time, keeping every cell whose center passes the area's
intersection test. It is written once against a small engine protocol so the
hexagonal and quadrilateral grids share it.
"""
import heapq
import logging
import math
import time
from typing import Hashable, Iterable, Optional, Protocol, Union

from src.geocover import metrics
from src.geocover.config import (
    DEFAULT_ENGINE,
    DEFAULT_MAX_CELLS,
    MAX_CELLS_CEILING,
    POLE_LATITUDE_THRESHOLD,
)
from src.geocover.errors import CoveringCancelledError, InvalidInputError
from src.geocover.geo import meters_to_lat_degrees, meters_to_lon_degrees
from src.geocover.hexgrid import HexEngine
from src.geocover.models import (
    BoxArea,
    CircleArea,
    CoveredCell,
    CoveringResult,
    GeoBoundingBox,
    GeoPoint,
    SearchArea,
)
from src.geocover.quadgrid import QuadEngine

logger = logging.getLogger(__name__)


class CellEngine(Protocol):
    """What the covering search needs from a grid."""
    name: str

    def check_precision(self, precision: int) -> int: ...

    def encode(self, point: GeoPoint, precision: int) -> Hashable: ...

    def decode(self, cell: Hashable) -> GeoPoint: ...

    def neighbors(self, cell: Hashable) -> Iterable[Hashable]: ...

    def cell_size_m(self, precision: int) -> float: ...

    def cell_area_m2(self, precision: int) -> float: ...

    def to_token(self, cell: Hashable) -> str: ...


class CancellationSignal(Protocol):
    def is_set(self) -> bool: ...


class CircleTest:
    """Accepts cells whose center is within the radius grown by one cell size."""

    def __init__(self, center: GeoPoint, radius_m: float, inflation_m: float):
        self.center = center
        self.limit_m = radius_m + inflation_m

    def includes(self, point: GeoPoint) -> bool:
        return self.center.distance_to(point) <= self.limit_m


class BoxTest:
    """
    Accepts cells whose center is inside the box grown by one cell size.

    Longitudes are compared both as given and shifted by a full turn, which
    covers boxes crossing the 180th meridian and growth past it. Candidates
    at or beyond the pole threshold are only compared by latitude, since
    every longitude is close to the pole there.
    """

    def __init__(
        self,
        box: GeoBoundingBox,
        inflation_m: float,
        pole_threshold: float = POLE_LATITUDE_THRESHOLD,
    ):
        self.box = box
        self.pole_threshold = pole_threshold

        dlat = meters_to_lat_degrees(inflation_m)
        self.south = box.southwest.lat - dlat
        self.north = box.northeast.lat + dlat

        widest_lat = min(max(abs(self.south), abs(self.north)), pole_threshold)
        dlon = meters_to_lon_degrees(inflation_m, widest_lat)
        self.west = box.southwest.lon - dlon
        self.east = box.southwest.lon + box.width_degrees + dlon
        self.all_longitudes = self.east - self.west >= 360.0

        if max(abs(self.south), abs(self.north)) >= pole_threshold:
            logger.warning("Bounding box %s reaches the pole threshold of %.1f degrees", box, pole_threshold)

    def includes(self, point: GeoPoint) -> bool:
        if not self.south <= point.lat <= self.north:
            return False
        if self.all_longitudes or abs(point.lat) >= self.pole_threshold:
            return True
        return any(self.west <= lon <= self.east for lon in (point.lon, point.lon + 360.0, point.lon - 360.0))


IntersectionTest = Union[CircleTest, BoxTest]


class RingCoveringSearch:
    """
    Breadth-first expansion over a grid's adjacency.

    Each ring visits the unseen neighbors of the previous ring's accepted
    cells. The search ends when a ring accepts nothing. Once the cap is
    reached, rings keep being expanded only while they still accept a cell
    nearer than the current cap-th nearest plus one cell size, so that the
    truncated result is exactly the nearest cells.
    """

    def __init__(
        self,
        engine: CellEngine,
        test: IntersectionTest,
        max_cells: int,
        cancel: Optional[CancellationSignal] = None,
    ):
        self.engine = engine
        self.test = test
        self.max_cells = max_cells
        self.cancel = cancel

    def _check_cancelled(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise CoveringCancelledError("covering search cancelled")

    def run(self, center: GeoPoint, precision: int) -> CoveringResult:
        """
        Cover the area around a center.

        Args:
            center: Point the distances are measured from
            precision: Grid precision of the cells

        Returns:
            Up to max_cells cells, nearest first
        """
        engine = self.engine
        cell_size = engine.cell_size_m(precision)

        start = engine.encode(center, precision)
        # accepted cells and their distance, in encounter order
        found = {start: center.distance_to(engine.decode(start))}
        seen = {start}
        frontier = [start]
        rings = 0

        while frontier:
            self._check_cancelled()

            next_frontier = []
            ring_nearest = math.inf
            for cell in frontier:
                for candidate in engine.neighbors(cell):
                    if candidate in seen:
                        continue
                    seen.add(candidate)

                    point = engine.decode(candidate)
                    if not self.test.includes(point):
                        continue

                    distance = center.distance_to(point)
                    found[candidate] = distance
                    next_frontier.append(candidate)
                    ring_nearest = min(ring_nearest, distance)

            if not next_frontier:
                break
            rings += 1
            frontier = next_frontier

            if len(found) >= self.max_cells:
                cap_distance = heapq.nsmallest(self.max_cells, found.values())[-1]
                if ring_nearest > cap_distance + cell_size:
                    break

        nearest = heapq.nsmallest(self.max_cells, found.items(), key=lambda item: item[1])
        return CoveringResult(
            engine=engine.name,
            precision=precision,
            cells=tuple(CoveredCell(cell_id=engine.to_token(cell), distance_m=distance) for cell, distance in nearest),
            truncated=len(found) > self.max_cells,
            rings=rings,
        )


ENGINES = {
    HexEngine.name: HexEngine(),
    QuadEngine.name: QuadEngine(),
}


def get_engine(name: Optional[str] = None) -> CellEngine:
    """Look up a grid engine by name ("hex" or "quad")."""
    key = name or DEFAULT_ENGINE
    try:
        return ENGINES[key]
    except KeyError:
        raise InvalidInputError(f"unknown engine {key!r}, expected one of {sorted(ENGINES)}") from None


def check_max_cells(max_cells: Optional[int]) -> int:
    """Apply the default cap and reject caps that are not positive or exceed the ceiling."""
    if max_cells is None:
        return DEFAULT_MAX_CELLS
    if isinstance(max_cells, bool) or not isinstance(max_cells, int):
        raise InvalidInputError(f"max_cells must be an integer, got {max_cells!r}")
    if max_cells <= 0:
        raise InvalidInputError(f"max_cells must be positive, got {max_cells}")
    if max_cells > MAX_CELLS_CEILING:
        raise InvalidInputError(f"max_cells must not exceed {MAX_CELLS_CEILING}, got {max_cells}")
    return max_cells


def cell_covering(
    area: SearchArea,
    precision: int,
    max_cells: Optional[int] = None,
    engine: Optional[str] = None,
    cancel: Optional[CancellationSignal] = None,
) -> CoveringResult:
    """
    Cells covering a search area, ordered by distance from its center.

    Args:
        area: CircleArea or BoxArea to cover
        precision: Grid precision (hex 0-15, quad 0-30)
        max_cells: Result cap, DEFAULT_MAX_CELLS when omitted
        engine: "hex" or "quad", DEFAULT_ENGINE when omitted
        cancel: Optional signal (e.g. threading.Event) checked once per ring

    Returns:
        CoveringResult with at most max_cells cells, nearest first

    Raises:
        InvalidInputError: On an unknown engine, bad precision or bad cap
        CoveringCancelledError: If the cancel signal was set during the search
    """
    grid = get_engine(engine)
    grid.check_precision(precision)
    max_cells = check_max_cells(max_cells)
    inflation = grid.cell_size_m(precision)

    if isinstance(area, CircleArea):
        kind = "circle"
        center = area.center
        test = CircleTest(center, area.radius_m, inflation)
    elif isinstance(area, BoxArea):
        kind = "box"
        center = area.center
        test = BoxTest(area.box, inflation)
    else:
        raise InvalidInputError(f"unsupported search area {type(area).__name__}")

    start_time = time.time()
    try:
        result = RingCoveringSearch(grid, test, max_cells, cancel).run(center, precision)
    except CoveringCancelledError:
        metrics.covering_requests_total.labels(engine=grid.name, area=kind, status="cancelled").inc()
        raise

    metrics.covering_requests_total.labels(engine=grid.name, area=kind, status="success").inc()
    metrics.covering_duration_seconds.labels(engine=grid.name).observe(time.time() - start_time)
    metrics.covering_cells_returned.labels(engine=grid.name).observe(len(result))
    if result.truncated:
        metrics.covering_truncated_total.labels(engine=grid.name).inc()
        logger.info("Covering of %s area capped at %d cells (precision %d)", kind, max_cells, precision)

    logger.debug(
        "Covered %s area with %d %s cells over %d rings",
        kind, len(result), grid.name, result.rings,
    )
    return result


def circle_covering(
    center: GeoPoint,
    radius_m: float,
    precision: int,
    max_cells: Optional[int] = None,
    engine: Optional[str] = None,
    cancel: Optional[CancellationSignal] = None,
) -> CoveringResult:
    return cell_covering(CircleArea(center=center, radius_m=radius_m), precision, max_cells, engine, cancel)


def box_covering(
    box: GeoBoundingBox,
    precision: int,
    max_cells: Optional[int] = None,
    engine: Optional[str] = None,
    cancel: Optional[CancellationSignal] = None,
) -> CoveringResult:
    return cell_covering(BoxArea(box=box), precision, max_cells, engine, cancel)
