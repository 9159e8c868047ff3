"""
Adaptive precision selection.

Each engine keeps a short ladder of precisions (fine, medium, coarse). A query
radius is mapped to the finest rung whose covering is expected to fit the cell
cap, so wide searches fall back to coarser cells instead of being truncated.
"""
import math
from enum import Enum
from typing import Optional

from src.geocover.config import HEX_PRECISION_LADDER, QUAD_PRECISION_LADDER
from src.geocover.covering import check_max_cells, get_engine
from src.geocover.errors import InvalidInputError
from src.geocover.geo import EARTH_RADIUS_M
from src.geocover.models import GeoBoundingBox


class PrecisionTier(str, Enum):
    FINE = "fine"
    MEDIUM = "medium"
    COARSE = "coarse"


_LADDERS = {
    "hex": HEX_PRECISION_LADDER,
    "quad": QUAD_PRECISION_LADDER,
}


def ladder_for(engine: Optional[str] = None) -> dict[PrecisionTier, int]:
    """
    Precision ladder of an engine.

    Args:
        engine: Engine name, the configured default when omitted

    Returns:
        Mapping of tier to precision, finest first
    """
    grid = get_engine(engine)
    rungs = _LADDERS[grid.name]
    if len(rungs) != len(PrecisionTier):
        raise InvalidInputError(f"{grid.name} precision ladder needs 3 entries, got {rungs}")
    for rung in rungs:
        grid.check_precision(rung)
    if not rungs[0] > rungs[1] > rungs[2]:
        raise InvalidInputError(f"{grid.name} precision ladder must run from fine to coarse, got {rungs}")
    return dict(zip(PrecisionTier, rungs))


def estimate_cell_count(radius_m: float, precision: int, engine: Optional[str] = None) -> int:
    """
    Expected number of cells covering a circle.

    The covered area is the disc grown by one cell size (the inflation the
    covering search applies) divided by the average cell area.
    """
    if radius_m < 0 or not math.isfinite(radius_m):
        raise InvalidInputError(f"radius must be a non-negative number of meters, got {radius_m}")
    grid = get_engine(engine)
    grid.check_precision(precision)
    reach = radius_m + grid.cell_size_m(precision)
    return max(1, math.ceil(math.pi * reach * reach / grid.cell_area_m2(precision)))


def estimate_box_cell_count(box: GeoBoundingBox, precision: int, engine: Optional[str] = None) -> int:
    """
    Expected number of cells covering a bounding box.

    Args:
        box: Box to cover, possibly crossing the antimeridian
        precision: Grid precision
        engine: Engine name, the configured default when omitted

    Returns:
        Spherical area of the box grown by one cell size over the average cell area
    """
    grid = get_engine(engine)
    grid.check_precision(precision)
    grown = box.expanded(grid.cell_size_m(precision))
    band = math.sin(math.radians(grown.northeast.lat)) - math.sin(math.radians(grown.southwest.lat))
    area = EARTH_RADIUS_M ** 2 * math.radians(grown.width_degrees) * band
    return max(1, math.ceil(area / grid.cell_area_m2(precision)))


def select_precision(radius_m: float, max_cells: Optional[int] = None, engine: Optional[str] = None) -> int:
    """
    Finest ladder precision whose covering of a radius fits the cap.

    Args:
        radius_m: Search radius in meters
        max_cells: Cell cap, the configured default when omitted
        engine: Engine name, the configured default when omitted

    Returns:
        A precision from the engine's ladder; the coarsest one when none fits
    """
    max_cells = check_max_cells(max_cells)
    ladder = ladder_for(engine)
    for tier in (PrecisionTier.FINE, PrecisionTier.MEDIUM):
        if estimate_cell_count(radius_m, ladder[tier], engine) <= max_cells:
            return ladder[tier]
    return ladder[PrecisionTier.COARSE]
