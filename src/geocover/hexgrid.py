"""
Hexagonal cell index codec and neighbor resolver.

A cell index is a 64-bit integer: mode (bits 59-62, always 1 for cells),
resolution (bits 52-55), base cell (bits 45-51) and fifteen 3-bit digits,
digit r at bit offset (15 - r) * 3. Digits past the cell's resolution are 7.
The external token is the index in lowercase hexadecimal.

Resolution 0 has 122 base cells, 12 of them pentagons. Below a pentagon the
K-axis child of the center path is missing, which forces extra rotations when
encoding and when stepping to a neighbor.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Union

from shapely.geometry import Polygon

from src.geocover import coordijk as ijk_ops
from src.geocover.coordijk import (
    CENTER_DIGIT,
    I_AXES_DIGIT,
    IK_AXES_DIGIT,
    INVALID_DIGIT,
    J_AXES_DIGIT,
    JK_AXES_DIGIT,
    IJ_AXES_DIGIT,
    K_AXES_DIGIT,
    rotate_digit_ccw,
    rotate_digit_cw,
)
from src.geocover.errors import GridDefectError, InvalidInputError
from src.geocover.faceijk import (
    FaceIJK,
    Overage,
    adjust_overage_class_ii,
    face_ijk_to_boundary,
    face_ijk_to_geo,
    geo_to_face_ijk,
    is_class_iii,
)
from src.geocover.geo import METERS_PER_KM, normalize_lon
from src.geocover.h3_tables import (
    AVG_EDGE_KM,
    BASE_CELL_NEIGHBOR_60CCW_ROTS,
    BASE_CELL_NEIGHBORS,
    BASE_CELLS,
    FACE_IJK_BASE_CELLS,
    INVALID_BASE_CELL,
    MAX_FACE_COORD,
    MAX_RES,
    NEW_ADJUSTMENT_II,
    NEW_ADJUSTMENT_III,
    NEW_DIGIT_II,
    NEW_DIGIT_III,
    NUM_BASE_CELLS,
    POLAR_PENTAGONS,
    BaseCell,
    CellShape,
    is_cw_offset,
    is_pentagon_base_cell,
)
from src.geocover.models import GeoBoundingBox, GeoPoint
from src.geocover import metrics

logger = logging.getLogger(__name__)

MIN_PRECISION = 0
MAX_PRECISION = MAX_RES

# Neighbor directions in the order they are visited
DIRECTIONS = (
    K_AXES_DIGIT,
    J_AXES_DIGIT,
    JK_AXES_DIGIT,
    I_AXES_DIGIT,
    IK_AXES_DIGIT,
    IJ_AXES_DIGIT,
)

_MODE_OFFSET = 59
_RESERVED_OFFSET = 56
_RES_OFFSET = 52
_BC_OFFSET = 45
_HIGH_BIT_OFFSET = 63
_CELL_MODE = 1
# All digits 7, everything else zero
_INDEX_INIT = 0x00001FFFFFFFFFFF

# Adjacent base cells whose neighbor is a polar pentagon keep their orientation
_POLAR_ORIENTED_NEIGHBORS = frozenset({8, 118})


@dataclass(frozen=True, order=True)
class HexCell:
    """
    One hexagonal grid cell.

    Cells compare and sort by their integer index. The base cell record, with
    its hexagon or pentagon tag, is resolved once when the cell is created.
    """
    index: int
    base: BaseCell = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        number = _get_base_cell(self.index)
        if number >= NUM_BASE_CELLS:
            raise InvalidInputError(f"base cell {number} does not exist")
        object.__setattr__(self, "base", BASE_CELLS[number])

    @property
    def resolution(self) -> int:
        return _get_resolution(self.index)

    @property
    def base_cell(self) -> int:
        return _get_base_cell(self.index)

    @property
    def digits(self) -> tuple[int, ...]:
        return tuple(_get_digit(self.index, r) for r in range(1, self.resolution + 1))

    @property
    def kind(self) -> CellShape:
        """Shape of the cell itself: only the center path below a pentagon base cell is a pentagon."""
        if self.base.kind is CellShape.PENTAGON and _leading_nonzero_digit(self.index) == CENTER_DIGIT:
            return CellShape.PENTAGON
        return CellShape.HEXAGON

    @property
    def token(self) -> str:
        return f"{self.index:x}"

    def __str__(self) -> str:
        return self.token


CellLike = Union[HexCell, str, int]


# Index bit access

def _get_resolution(h: int) -> int:
    return (h >> _RES_OFFSET) & 0xF


def _set_resolution(h: int, res: int) -> int:
    return (h & ~(0xF << _RES_OFFSET)) | (res << _RES_OFFSET)


def _get_base_cell(h: int) -> int:
    return (h >> _BC_OFFSET) & 0x7F


def _set_base_cell(h: int, number: int) -> int:
    return (h & ~(0x7F << _BC_OFFSET)) | (number << _BC_OFFSET)


def _get_digit(h: int, r: int) -> int:
    return (h >> ((MAX_RES - r) * 3)) & 0x7


def _set_digit(h: int, r: int, digit: int) -> int:
    offset = (MAX_RES - r) * 3
    return (h & ~(0x7 << offset)) | (digit << offset)


def _leading_nonzero_digit(h: int) -> int:
    for r in range(1, _get_resolution(h) + 1):
        digit = _get_digit(h, r)
        if digit:
            return digit
    return CENTER_DIGIT


def _rotate60ccw(h: int) -> int:
    for r in range(1, _get_resolution(h) + 1):
        h = _set_digit(h, r, rotate_digit_ccw(_get_digit(h, r)))
    return h


def _rotate60cw(h: int) -> int:
    for r in range(1, _get_resolution(h) + 1):
        h = _set_digit(h, r, rotate_digit_cw(_get_digit(h, r)))
    return h


def _rotate_pent60ccw(h: int) -> int:
    """Rotate counter-clockwise, stepping over the missing K-axis subsequence."""
    found_first_nonzero = False
    for r in range(1, _get_resolution(h) + 1):
        h = _set_digit(h, r, rotate_digit_ccw(_get_digit(h, r)))
        if not found_first_nonzero and _get_digit(h, r) != CENTER_DIGIT:
            found_first_nonzero = True
            if _leading_nonzero_digit(h) == K_AXES_DIGIT:
                h = _rotate60ccw(h)
    return h


# One rotation per base cell shape
_CCW_ROTATORS = {
    CellShape.HEXAGON: _rotate60ccw,
    CellShape.PENTAGON: _rotate_pent60ccw,
}


# Validation and parsing

def check_precision(precision: int) -> int:
    """Reject precisions outside the hexagonal grid's range."""
    if isinstance(precision, bool) or not isinstance(precision, int):
        raise InvalidInputError(f"precision must be an integer, got {precision!r}")
    if not MIN_PRECISION <= precision <= MAX_PRECISION:
        raise InvalidInputError(
            f"hexagonal precision must be between {MIN_PRECISION} and {MAX_PRECISION}, got {precision}"
        )
    return precision


def is_valid_index(h: int) -> bool:
    """Check every structural rule of a cell index."""
    if h < 0 or h >> 64:
        return False
    if (h >> _HIGH_BIT_OFFSET) & 1:
        return False
    if (h >> _MODE_OFFSET) & 0xF != _CELL_MODE:
        return False
    if (h >> _RESERVED_OFFSET) & 0x7:
        return False
    if _get_base_cell(h) >= NUM_BASE_CELLS:
        return False

    res = _get_resolution(h)
    for r in range(1, res + 1):
        if _get_digit(h, r) == INVALID_DIGIT:
            return False
    for r in range(res + 1, MAX_RES + 1):
        if _get_digit(h, r) != INVALID_DIGIT:
            return False

    if is_pentagon_base_cell(_get_base_cell(h)) and _leading_nonzero_digit(h) == K_AXES_DIGIT:
        return False
    return True


def is_valid_cell(value: CellLike) -> bool:
    try:
        parse_cell(value)
    except InvalidInputError:
        return False
    return True


def parse_cell(value: CellLike) -> HexCell:
    """
    Build a cell from its token, its integer index or an existing cell.

    Args:
        value: Hex token (e.g. "8928308280fffff"), integer index or HexCell

    Returns:
        The validated cell

    Raises:
        InvalidInputError: If the value is not a well-formed cell index
    """
    if isinstance(value, HexCell):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if not text or len(text) > 16:
            raise InvalidInputError(f"malformed hexagonal cell token {value!r}")
        try:
            h = int(text, 16)
        except ValueError:
            raise InvalidInputError(f"malformed hexagonal cell token {value!r}") from None
    elif isinstance(value, int) and not isinstance(value, bool):
        h = value
    else:
        raise InvalidInputError(f"cannot interpret {value!r} as a hexagonal cell")

    if not is_valid_index(h):
        raise InvalidInputError(f"invalid hexagonal cell index {value!r}")
    return HexCell(h)


def cell_to_token(cell: CellLike) -> str:
    return parse_cell(cell).token


def is_pentagon(cell: CellLike) -> bool:
    return parse_cell(cell).kind is CellShape.PENTAGON


# Encoding

def _face_ijk_to_index(fijk: FaceIJK, res: int) -> int:
    h = _set_resolution(_INDEX_INIT | (_CELL_MODE << _MODE_OFFSET), res)
    face, coord = fijk

    if res == 0:
        if max(coord) > MAX_FACE_COORD:
            raise GridDefectError(f"resolution 0 coordinate {coord} lies off face {face}")
        i, j, k = coord
        return _set_base_cell(h, FACE_IJK_BASE_CELLS[face][i][j][k][0])

    # build the index from finest resolution up, walking the coordinate
    # back to the resolution 0 cell
    for r in range(res - 1, -1, -1):
        last = coord
        if is_class_iii(r + 1):
            coord = ijk_ops.up_ap7(coord)
            last_center = ijk_ops.down_ap7(coord)
        else:
            coord = ijk_ops.up_ap7r(coord)
            last_center = ijk_ops.down_ap7r(coord)
        diff = ijk_ops.normalize(ijk_ops.sub(last, last_center))
        h = _set_digit(h, r + 1, ijk_ops.unit_to_digit(diff))

    if max(coord) > MAX_FACE_COORD:
        raise GridDefectError(f"resolution 0 coordinate {coord} lies off face {face}")

    i, j, k = coord
    number, ccw_rotations = FACE_IJK_BASE_CELLS[face][i][j][k]
    h = _set_base_cell(h, number)
    base = BASE_CELLS[number]

    if base.kind is CellShape.PENTAGON and _leading_nonzero_digit(h) == K_AXES_DIGIT:
        # rotate out of the missing K-axis subsequence, direction depends on the face
        h = _rotate60cw(h) if is_cw_offset(number, face) else _rotate60ccw(h)

    rotate = _CCW_ROTATORS[base.kind]
    for _ in range(ccw_rotations):
        h = rotate(h)
    return h


def encode(point: GeoPoint, precision: int) -> HexCell:
    """
    Find the cell containing a point.

    Args:
        point: Location to index
        precision: Resolution, 0 (coarsest) to 15 (finest)

    Returns:
        Cell at the requested resolution
    """
    check_precision(precision)
    fijk = geo_to_face_ijk(math.radians(point.lat), math.radians(point.lon), precision)
    return HexCell(_face_ijk_to_index(fijk, precision))


# Decoding

def _to_face_ijk(h: int) -> FaceIJK:
    """Face and IJK coordinate of a cell center on the face that contains it."""
    number = _get_base_cell(h)
    base = BASE_CELLS[number]
    pentagon = base.kind is CellShape.PENTAGON
    res = _get_resolution(h)

    # the IK leading digit of a pentagon is stored rotated past the missing K axis
    if pentagon and _leading_nonzero_digit(h) == IK_AXES_DIGIT:
        h = _rotate60cw(h)

    coord = base.home
    for r in range(1, res + 1):
        coord = ijk_ops.down_ap7(coord) if is_class_iii(r) else ijk_ops.down_ap7r(coord)
        coord = ijk_ops.neighbor(coord, _get_digit(h, r))
    fijk = FaceIJK(base.face, coord)

    # a hexagon centered on its face cannot leave that face
    if not pentagon and (res == 0 or base.home == (0, 0, 0)):
        return fijk

    original = fijk
    adj_res = res
    if is_class_iii(res):
        # overage is checked on the Class II grid below
        fijk = FaceIJK(fijk.face, ijk_ops.down_ap7r(fijk.coord))
        adj_res += 1

    pent_leading_4 = pentagon and _leading_nonzero_digit(h) == I_AXES_DIGIT
    overage, fijk = adjust_overage_class_ii(fijk, adj_res, pent_leading_4)
    if overage != Overage.NO_OVERAGE:
        # pentagons may need to cross more than one face
        if pentagon:
            while overage != Overage.NO_OVERAGE:
                overage, fijk = adjust_overage_class_ii(fijk, adj_res)
        if adj_res != res:
            fijk = FaceIJK(fijk.face, ijk_ops.up_ap7r(fijk.coord))
    elif adj_res != res:
        fijk = original
    return fijk


def decode(cell: CellLike) -> GeoPoint:
    """
    Center of a cell.

    Args:
        cell: Cell, token or integer index

    Returns:
        Cell center in degrees
    """
    cell = parse_cell(cell)
    lat, lng = face_ijk_to_geo(_to_face_ijk(cell.index), cell.resolution)
    return GeoPoint(lat=math.degrees(lat), lon=math.degrees(lng))


def _boundary_degrees(cell: HexCell) -> list[tuple[float, float]]:
    """Boundary as (lon, lat) pairs, longitudes unwrapped around the cell center."""
    center = decode(cell)
    vertices = face_ijk_to_boundary(
        _to_face_ijk(cell.index), cell.resolution, cell.kind is CellShape.PENTAGON
    )
    ring = []
    for lat, lng in vertices:
        lon = math.degrees(lng)
        while lon - center.lon > 180.0:
            lon -= 360.0
        while lon - center.lon < -180.0:
            lon += 360.0
        ring.append((lon, math.degrees(lat)))
    return ring


def decode_bounds(cell: CellLike) -> Polygon:
    """
    Outline of a cell as a polygon of (lon, lat) vertices.

    Longitudes are kept continuous around the cell center, so a cell that
    straddles the 180th meridian has some longitudes beyond +/-180.
    """
    return Polygon(_boundary_degrees(parse_cell(cell)))


def cell_bounds(cell: CellLike) -> GeoBoundingBox:
    """Smallest latitude/longitude box around a cell's outline."""
    cell = parse_cell(cell)
    ring = _boundary_degrees(cell)
    lons = [lon for lon, _ in ring]
    lats = [lat for _, lat in ring]
    south, north = min(lats), max(lats)

    if max(lons) - min(lons) >= 180.0:
        # the outline circles a pole
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


# Hierarchy

def parent(cell: CellLike, precision: Optional[int] = None) -> HexCell:
    """Ancestor of a cell at a coarser resolution (one level up by default)."""
    cell = parse_cell(cell)
    res = cell.resolution
    if precision is None:
        precision = res - 1
    check_precision(precision)
    if precision > res:
        raise InvalidInputError(f"parent precision {precision} is finer than cell precision {res}")

    h = _set_resolution(cell.index, precision)
    for r in range(precision + 1, res + 1):
        h = _set_digit(h, r, INVALID_DIGIT)
    return HexCell(h)


def children(cell: CellLike) -> list[HexCell]:
    """Cells one resolution finer: seven, or six below a pentagon."""
    cell = parse_cell(cell)
    res = cell.resolution + 1
    check_precision(res)

    h = _set_resolution(cell.index, res)
    result = []
    for digit in range(CENTER_DIGIT, INVALID_DIGIT):
        if digit == K_AXES_DIGIT and cell.kind is CellShape.PENTAGON:
            continue
        result.append(HexCell(_set_digit(h, res, digit)))
    return result


# Neighbors

def neighbor_rotations(cell: CellLike, direction: int, rotations: int = 0) -> tuple[Optional[HexCell], int]:
    """
    Cell adjacent to a cell in one IJK direction.

    The digits are rewritten from finest to coarsest until a level absorbs the
    move; if the move reaches resolution 0 the base cell adjacency table picks
    the new base cell and the digits are rotated into its frame.

    Args:
        cell: Origin cell
        direction: Digit direction, 1 (K) to 6 (IJ)
        rotations: Counter-clockwise rotations already applied to the direction

    Returns:
        The neighbor (None when the origin is a pentagon and the direction is
        its missing K axis) and the updated rotation count
    """
    origin = parse_cell(cell)
    if isinstance(direction, bool) or not isinstance(direction, int) or not CENTER_DIGIT <= direction < INVALID_DIGIT:
        raise InvalidInputError(f"direction must be between 0 and 6, got {direction!r}")

    rotations %= 6
    for _ in range(rotations):
        direction = rotate_digit_ccw(direction)

    if direction == K_AXES_DIGIT and origin.kind is CellShape.PENTAGON:
        return None, rotations

    current = origin.index
    new_rotations = 0
    old_base_cell = _get_base_cell(current)
    old_leading_digit = _leading_nonzero_digit(current)

    r = _get_resolution(current) - 1
    while True:
        if r == -1:
            new_base_cell = BASE_CELL_NEIGHBORS[old_base_cell][direction]
            new_rotations = BASE_CELL_NEIGHBOR_60CCW_ROTS[old_base_cell][direction]
            if new_base_cell == INVALID_BASE_CELL:
                # the deleted K edge of a pentagon borders its IK neighbor
                new_base_cell = BASE_CELL_NEIGHBORS[old_base_cell][IK_AXES_DIGIT]
                new_rotations = BASE_CELL_NEIGHBOR_60CCW_ROTS[old_base_cell][IK_AXES_DIGIT]
                current = _rotate60ccw(current)
                rotations += 1
            current = _set_base_cell(current, new_base_cell)
            break

        old_digit = _get_digit(current, r + 1)
        if old_digit == INVALID_DIGIT:
            raise GridDefectError(f"digit {r + 1} of {origin.token} is unset")
        if is_class_iii(r + 1):
            current = _set_digit(current, r + 1, NEW_DIGIT_II[old_digit][direction])
            next_direction = NEW_ADJUSTMENT_II[old_digit][direction]
        else:
            current = _set_digit(current, r + 1, NEW_DIGIT_III[old_digit][direction])
            next_direction = NEW_ADJUSTMENT_III[old_digit][direction]

        if next_direction == CENTER_DIGIT:
            break
        direction = next_direction
        r -= 1

    new_base_cell = _get_base_cell(current)
    if is_pentagon_base_cell(new_base_cell):
        already_adjusted_k_subsequence = False

        # force rotation out of the missing K-axis subsequence
        if _leading_nonzero_digit(current) == K_AXES_DIGIT:
            if old_base_cell != new_base_cell:
                # entered the pentagon across a base cell edge
                if is_cw_offset(new_base_cell, BASE_CELLS[old_base_cell].face):
                    current = _rotate60cw(current)
                else:
                    current = _rotate60ccw(current)
                already_adjusted_k_subsequence = True
            elif old_leading_digit == CENTER_DIGIT:
                return None, rotations
            elif old_leading_digit == JK_AXES_DIGIT:
                current = _rotate60ccw(current)
                rotations += 1
            elif old_leading_digit == IK_AXES_DIGIT:
                current = _rotate60cw(current)
                rotations += 5
            else:
                raise GridDefectError(
                    f"stepping {direction} from {origin.token} entered the missing pentagon subsequence"
                )

        for _ in range(new_rotations):
            current = _rotate_pent60ccw(current)

        # account for the differing orientation of the base cells
        if old_base_cell != new_base_cell:
            if new_base_cell in POLAR_PENTAGONS:
                if (old_base_cell not in _POLAR_ORIENTED_NEIGHBORS
                        and _leading_nonzero_digit(current) != JK_AXES_DIGIT):
                    rotations += 1
            elif _leading_nonzero_digit(current) == IK_AXES_DIGIT and not already_adjusted_k_subsequence:
                rotations += 1
    else:
        for _ in range(new_rotations):
            current = _rotate60ccw(current)

    rotations = (rotations + new_rotations) % 6

    if not is_valid_index(current):
        raise GridDefectError(f"neighbor of {origin.token} in direction {direction} is malformed")
    return HexCell(current), rotations


def neighbors(cell: CellLike) -> list[HexCell]:
    """
    All cells sharing an edge with a cell: six, or five around a pentagon.

    Directions that have no neighbor are skipped; near pentagons two directions
    can reach the same cell, which is returned once.
    """
    origin = parse_cell(cell)
    found = []
    for direction in DIRECTIONS:
        adjacent, _ = neighbor_rotations(origin, direction)
        if adjacent is None:
            metrics.pentagon_direction_skips_total.inc()
            logger.debug("Pentagon %s has no neighbor in direction %d", origin.token, direction)
            continue
        if adjacent != origin and adjacent not in found:
            found.append(adjacent)
    return found


def cell_size_m(precision: int) -> float:
    """Typical cell diameter (twice the average edge length) in meters."""
    check_precision(precision)
    return 2.0 * AVG_EDGE_KM[precision] * METERS_PER_KM


def cell_area_m2(precision: int) -> float:
    """Average area of a regular hexagon with the resolution's average edge."""
    edge = AVG_EDGE_KM[check_precision(precision)] * METERS_PER_KM
    return 1.5 * math.sqrt(3.0) * edge * edge


class HexEngine:
    """Hexagonal grid behind the covering search."""
    name = "hex"

    def check_precision(self, precision: int) -> int:
        return check_precision(precision)

    def encode(self, point: GeoPoint, precision: int) -> HexCell:
        return encode(point, precision)

    def decode(self, cell: HexCell) -> GeoPoint:
        return decode(cell)

    def neighbors(self, cell: HexCell) -> list[HexCell]:
        return neighbors(cell)

    def cell_size_m(self, precision: int) -> float:
        return cell_size_m(precision)

    def cell_area_m2(self, precision: int) -> float:
        return cell_area_m2(precision)

    def to_token(self, cell: HexCell) -> str:
        return cell.token

    def parse(self, token: CellLike) -> HexCell:
        return parse_cell(token)
