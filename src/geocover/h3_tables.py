"""
Fixed lookup data for the aperture-7 icosahedral hexagonal grid.

The 20 icosahedron faces, the 122 resolution-0 base cells and the digit
transition tables are read-only tuples. The larger tables (face/IJK to base
cell, base cell adjacency, digit transitions) are derived once at import time
from the small hand-maintained ones and checked for consistency; a failed
check raises GridDefectError so a damaged table can never reach a caller.
"""
from enum import Enum
from typing import NamedTuple

from src.geocover.coordijk import (
    CENTER_DIGIT,
    K_AXES_DIGIT,
    NUM_DIGITS,
    UNIT_VECS,
    add,
    down_ap7,
    down_ap7r,
    normalize,
    rotate60ccw,
    rotate_digit_ccw,
    scale,
    sub,
    unit_to_digit,
    up_ap7,
    up_ap7r,
)
from src.geocover.errors import GridDefectError

NUM_ICOSA_FACES = 20
NUM_BASE_CELLS = 122
NUM_PENTAGONS = 12
MAX_RES = 15
INVALID_BASE_CELL = 127

# Scaling of a resolution 0 cell on the gnomonic face plane
RES0_U_GNOMONIC = 0.38196601125010500003
# Rotation between Class II and Class III resolution axes, asin(sqrt(3 / 28))
M_AP7_ROT_RADS = 0.333473172251832115336090755351601070065900389
M_SQRT7 = 2.6457513110645905905016157536392604257102
EPSILON = 0.0000000000000001

# Face neighbor quadrants
CENTER = 0
IJ = 1
KI = 2
JK = 3

# Largest IJK component inside a face at resolution 0
MAX_FACE_COORD = 2

# Average hexagon edge length in km, indexed by resolution
AVG_EDGE_KM = (
    1281.256011, 483.0568391, 182.5129565, 68.97922179, 26.07175968,
    9.854090990, 3.724532667, 1.406475763, 0.531414010, 0.200786148,
    0.075863783, 0.028663897, 0.010830188, 0.004092010, 0.001546100,
    0.000584169,
)


class CellShape(Enum):
    HEXAGON = "hexagon"
    PENTAGON = "pentagon"


class FaceOrientation(NamedTuple):
    """Where a face's quadrant lands on a neighboring face."""
    face: int
    translate: tuple[int, int, int]
    ccw_rot60: int


class BaseCell(NamedTuple):
    face: int
    home: tuple[int, int, int]
    kind: CellShape
    cw_offset_faces: tuple[int, ...] = ()


# Face centers as (lat, lng) in radians
FACE_CENTER_GEO = (
    (0.803582649718989942, 1.248397419617396099),
    (1.307747883455638156, 2.536945009877921159),
    (1.054751253523952054, -1.347517358900396623),
    (0.600191595538186799, -0.450603909469755746),
    (0.491715428198773866, 0.401988202911306943),
    (0.172745327415618701, 1.678146885280433686),
    (0.605929321571350690, 2.953923329812411617),
    (0.427370518328979641, -1.888876200336285401),
    (-0.079066118549212831, -0.733429513380867741),
    (-0.230961644455383637, 0.506495587332349035),
    (0.079066118549212831, 2.408163140208925497),
    (0.230961644455383637, -2.635097066257444203),
    (-0.172745327415618701, -1.463445768309359553),
    (-0.605929321571350690, -0.187669323777381622),
    (-0.427370518328979641, 1.252716453253507838),
    (-0.600191595538186799, 2.690988744120037492),
    (-0.491715428198773866, -2.739604450678486295),
    (-0.803582649718989942, -1.893195233972397139),
    (-1.307747883455638156, -0.604647643711872080),
    (-1.054751253523952054, 1.794075294689396615),
)

# Azimuth in radians from each face center to its Class II i-axis
FACE_AXES_AZ_RADS_CII = (
    5.619958268523939882,
    5.760339081714187279,
    0.780213654393430055,
    0.430469363979999913,
    6.130269123335111400,
    2.692877706530642877,
    2.982963003477243874,
    3.532912002790141181,
    3.494305004259568154,
    3.003214169499538391,
    5.930472956509811562,
    0.138378484090254847,
    0.448714947059150361,
    0.158629650112549365,
    5.891865957979238535,
    2.711123289609793325,
    3.294508837434268316,
    3.804819692245439833,
    3.664438879055192436,
    2.361378999196363184,
)


def _orientations(face, ij, ki, jk, translates, rotations):
    center = FaceOrientation(face, (0, 0, 0), 0)
    return (center,) + tuple(
        FaceOrientation(neighbor, translate, rot)
        for neighbor, translate, rot in zip((ij, ki, jk), translates, rotations)
    )


_NORTH_CAP = (((2, 0, 2), (2, 2, 0), (0, 2, 2)), (1, 5, 3))
_EQUATORIAL = (((2, 2, 0), (2, 0, 2), (0, 2, 2)), (3, 3, 3))
_SOUTH_CAP = (((2, 0, 2), (2, 2, 0), (0, 2, 2)), (1, 5, 3))

# For each face: center, IJ, KI and JK quadrant neighbors
FACE_NEIGHBORS = (
    _orientations(0, 4, 1, 5, *_NORTH_CAP),
    _orientations(1, 0, 2, 6, *_NORTH_CAP),
    _orientations(2, 1, 3, 7, *_NORTH_CAP),
    _orientations(3, 2, 4, 8, *_NORTH_CAP),
    _orientations(4, 3, 0, 9, *_NORTH_CAP),
    _orientations(5, 10, 14, 0, *_EQUATORIAL),
    _orientations(6, 11, 10, 1, *_EQUATORIAL),
    _orientations(7, 12, 11, 2, *_EQUATORIAL),
    _orientations(8, 13, 12, 3, *_EQUATORIAL),
    _orientations(9, 14, 13, 4, *_EQUATORIAL),
    _orientations(10, 5, 6, 15, *_EQUATORIAL),
    _orientations(11, 6, 7, 16, *_EQUATORIAL),
    _orientations(12, 7, 8, 17, *_EQUATORIAL),
    _orientations(13, 8, 9, 18, *_EQUATORIAL),
    _orientations(14, 9, 5, 19, *_EQUATORIAL),
    _orientations(15, 16, 19, 10, *_SOUTH_CAP),
    _orientations(16, 17, 15, 11, *_SOUTH_CAP),
    _orientations(17, 18, 16, 12, *_SOUTH_CAP),
    _orientations(18, 19, 17, 13, *_SOUTH_CAP),
    _orientations(19, 15, 18, 14, *_SOUTH_CAP),
)


def _hexagon(face, i, j, k):
    return BaseCell(face, (i, j, k), CellShape.HEXAGON)


def _pentagon(face, *cw_offset_faces):
    return BaseCell(face, (2, 0, 0), CellShape.PENTAGON, tuple(cw_offset_faces))


# Home face and IJK coordinate of every base cell, ordered by base cell number
BASE_CELLS = (
    _hexagon(1, 1, 0, 0), _hexagon(2, 1, 1, 0), _hexagon(1, 0, 0, 0), _hexagon(2, 1, 0, 0),
    _pentagon(0), _hexagon(1, 1, 1, 0), _hexagon(1, 0, 0, 1), _hexagon(2, 0, 0, 0),
    _hexagon(0, 1, 0, 0), _hexagon(2, 0, 1, 0), _hexagon(1, 0, 1, 0), _hexagon(1, 0, 1, 1),
    _hexagon(3, 1, 0, 0), _hexagon(3, 1, 1, 0), _pentagon(11, 2, 6), _hexagon(4, 1, 0, 0),
    _hexagon(0, 0, 0, 0), _hexagon(6, 0, 1, 0), _hexagon(0, 0, 0, 1), _hexagon(2, 0, 1, 1),
    _hexagon(7, 0, 0, 1), _hexagon(2, 0, 0, 1), _hexagon(0, 1, 1, 0), _hexagon(6, 0, 0, 1),
    _pentagon(10, 1, 5), _hexagon(6, 0, 0, 0), _hexagon(3, 0, 0, 0), _hexagon(11, 1, 0, 0),
    _hexagon(4, 1, 1, 0), _hexagon(3, 0, 1, 0), _hexagon(0, 0, 1, 1), _hexagon(4, 0, 0, 0),
    _hexagon(5, 0, 1, 0), _hexagon(0, 0, 1, 0), _hexagon(7, 0, 1, 0), _hexagon(11, 1, 1, 0),
    _hexagon(7, 0, 0, 0), _hexagon(10, 1, 0, 0), _pentagon(12, 3, 7), _hexagon(6, 1, 0, 1),
    _hexagon(7, 1, 0, 1), _hexagon(4, 0, 0, 1), _hexagon(3, 0, 0, 1), _hexagon(3, 0, 1, 1),
    _hexagon(4, 0, 1, 0), _hexagon(6, 1, 0, 0), _hexagon(11, 0, 0, 0), _hexagon(8, 0, 0, 1),
    _hexagon(5, 0, 0, 1), _pentagon(14, 0, 9), _hexagon(5, 0, 0, 0), _hexagon(12, 1, 0, 0),
    _hexagon(10, 1, 1, 0), _hexagon(4, 0, 1, 1), _hexagon(12, 1, 1, 0), _hexagon(7, 1, 0, 0),
    _hexagon(11, 0, 1, 0), _hexagon(10, 0, 0, 0), _pentagon(13, 4, 8), _hexagon(10, 0, 0, 1),
    _hexagon(11, 0, 0, 1), _hexagon(9, 0, 1, 0), _hexagon(8, 0, 1, 0), _pentagon(6, 11, 15),
    _hexagon(8, 0, 0, 0), _hexagon(9, 0, 0, 1), _hexagon(14, 1, 0, 0), _hexagon(5, 1, 0, 1),
    _hexagon(16, 0, 1, 1), _hexagon(8, 1, 0, 1), _hexagon(5, 1, 0, 0), _hexagon(12, 0, 0, 0),
    _pentagon(7, 12, 16), _hexagon(12, 0, 1, 0), _hexagon(10, 0, 1, 0), _hexagon(9, 0, 0, 0),
    _hexagon(13, 1, 0, 0), _hexagon(16, 0, 0, 1), _hexagon(15, 0, 1, 1), _hexagon(15, 0, 1, 0),
    _hexagon(16, 0, 1, 0), _hexagon(14, 1, 1, 0), _hexagon(13, 1, 1, 0), _pentagon(5, 10, 19),
    _hexagon(8, 1, 0, 0), _hexagon(14, 0, 0, 0), _hexagon(9, 1, 0, 1), _hexagon(14, 0, 0, 1),
    _hexagon(17, 0, 0, 1), _hexagon(12, 0, 0, 1), _hexagon(16, 0, 0, 0), _hexagon(17, 0, 1, 1),
    _hexagon(15, 0, 0, 1), _hexagon(16, 1, 0, 1), _hexagon(9, 1, 0, 0), _hexagon(15, 0, 0, 0),
    _hexagon(13, 0, 0, 0), _pentagon(8, 13, 17), _hexagon(13, 0, 1, 0), _hexagon(17, 1, 0, 1),
    _hexagon(19, 0, 1, 0), _hexagon(14, 0, 1, 0), _hexagon(19, 0, 1, 1), _hexagon(17, 0, 1, 0),
    _hexagon(13, 0, 0, 1), _hexagon(17, 0, 0, 0), _hexagon(16, 1, 0, 0), _pentagon(9, 14, 18),
    _hexagon(15, 1, 0, 1), _hexagon(15, 1, 0, 0), _hexagon(18, 0, 1, 1), _hexagon(18, 0, 0, 1),
    _hexagon(19, 0, 0, 1), _hexagon(17, 1, 0, 0), _hexagon(19, 0, 0, 0), _hexagon(18, 0, 1, 0),
    _hexagon(18, 1, 0, 1), _pentagon(19), _hexagon(19, 1, 0, 0), _hexagon(18, 0, 0, 0),
    _hexagon(19, 1, 0, 1), _hexagon(18, 1, 0, 0),
)

# Pentagon base cells sitting on each face's i, j and k vertices, with the
# counter-clockwise rotation from that face into the pentagon's home frame
_FACE_VERTICES = ((2, 0, 0), (0, 2, 0), (0, 0, 2))
PENTAGON_VERTEX_CELLS = (
    ((4, 0), (49, 1), (24, 0)),
    ((4, 1), (24, 1), (14, 0)),
    ((4, 2), (14, 1), (38, 0)),
    ((4, 3), (38, 1), (58, 0)),
    ((4, 4), (58, 1), (49, 0)),
    ((83, 0), (24, 3), (49, 3)),
    ((63, 0), (14, 3), (24, 3)),
    ((72, 0), (38, 3), (14, 3)),
    ((97, 0), (58, 3), (38, 3)),
    ((107, 0), (49, 3), (58, 3)),
    ((24, 0), (83, 3), (63, 3)),
    ((14, 0), (63, 3), (72, 3)),
    ((38, 0), (72, 3), (97, 3)),
    ((58, 0), (97, 3), (107, 3)),
    ((49, 0), (107, 3), (83, 3)),
    ((117, 4), (63, 1), (83, 0)),
    ((117, 3), (72, 1), (63, 0)),
    ((117, 2), (97, 1), (72, 0)),
    ((117, 1), (107, 1), (97, 0)),
    ((117, 0), (83, 1), (107, 0)),
)

POLAR_PENTAGONS = frozenset({4, 117})


def _locate_base_cell(face, ijk, homes):
    """Base cell and rotation for a resolution 0 coordinate on a face."""
    if (face, ijk) in homes:
        return homes[(face, ijk)], 0
    if ijk in _FACE_VERTICES:
        return PENTAGON_VERTEX_CELLS[face][_FACE_VERTICES.index(ijk)]

    # beyond a face edge: carry the coordinate into the adjacent face
    if ijk[2] == 0:
        quadrant = IJ
    elif ijk[1] == 0:
        quadrant = KI
    else:
        quadrant = JK
    orient = FACE_NEIGHBORS[face][quadrant]
    moved = ijk
    for _ in range(orient.ccw_rot60):
        moved = rotate60ccw(moved)
    moved = normalize(add(moved, orient.translate))
    if (orient.face, moved) not in homes:
        raise GridDefectError(f"no base cell at face {face} {ijk}")
    return homes[(orient.face, moved)], orient.ccw_rot60


def _derive_face_ijk_base_cells():
    homes = {(cell.face, cell.home): number for number, cell in enumerate(BASE_CELLS)}
    return tuple(
        tuple(
            tuple(
                tuple(_locate_base_cell(face, normalize((i, j, k)), homes) for k in range(3))
                for j in range(3)
            )
            for i in range(3)
        )
        for face in range(NUM_ICOSA_FACES)
    )


# FACE_IJK_BASE_CELLS[face][i][j][k] -> (base cell, ccw rotations into its home frame)
FACE_IJK_BASE_CELLS = _derive_face_ijk_base_cells()


def _opposite(digit):
    return unit_to_digit(scale(UNIT_VECS[digit], -1))


def _derive_base_cell_neighbors():
    neighbors = [[INVALID_BASE_CELL] * NUM_DIGITS for _ in range(NUM_BASE_CELLS)]
    rotations = [[-1] * NUM_DIGITS for _ in range(NUM_BASE_CELLS)]

    for number, cell in enumerate(BASE_CELLS):
        if cell.kind is CellShape.PENTAGON:
            neighbors[number][CENTER_DIGIT] = number
            rotations[number][CENTER_DIGIT] = 0
            continue
        for digit in range(NUM_DIGITS):
            i, j, k = add(cell.home, UNIT_VECS[digit])
            neighbors[number][digit], rotations[number][digit] = FACE_IJK_BASE_CELLS[cell.face][i][j][k]

    # Pentagon rows are the inverse of the hexagon rows pointing at them. The
    # pentagon frame has no k axis, so a rotation landing on it skips ahead.
    for number, cell in enumerate(BASE_CELLS):
        if cell.kind is CellShape.PENTAGON:
            continue
        for digit in range(1, NUM_DIGITS):
            target = neighbors[number][digit]
            if BASE_CELLS[target].kind is not CellShape.PENTAGON:
                continue
            rot = rotations[number][digit]
            back = _opposite(digit)
            skips = 0
            for _ in range(rot):
                back = rotate_digit_ccw(back)
                if back == K_AXES_DIGIT:
                    back = rotate_digit_ccw(back)
                    skips += 1
            if neighbors[target][back] != INVALID_BASE_CELL:
                raise GridDefectError(f"pentagon base cell {target} reached twice from direction {back}")
            neighbors[target][back] = number
            rotations[target][back] = (6 - rot - skips) % 6

    for number, cell in enumerate(BASE_CELLS):
        if cell.kind is not CellShape.PENTAGON:
            continue
        missing = [
            digit for digit in range(NUM_DIGITS)
            if digit != K_AXES_DIGIT and neighbors[number][digit] == INVALID_BASE_CELL
        ]
        if missing or neighbors[number][K_AXES_DIGIT] != INVALID_BASE_CELL:
            raise GridDefectError(f"pentagon base cell {number} has inconsistent adjacency")

    return tuple(map(tuple, neighbors)), tuple(map(tuple, rotations))


# BASE_CELL_NEIGHBORS[base cell][direction] and the ccw rotation into the neighbor's frame
BASE_CELL_NEIGHBORS, BASE_CELL_NEIGHBOR_60CCW_ROTS = _derive_base_cell_neighbors()


def _derive_digit_transitions(up, down):
    """
    Digit replacement and carry for a step from a child digit in a direction.

    The child at `old` moved one unit in `direction` lands on a new child digit
    of a parent that is offset from the old parent by the carry direction.
    """
    digits = []
    carries = []
    for old in range(NUM_DIGITS):
        digit_row = []
        carry_row = []
        for direction in range(NUM_DIGITS):
            moved = add(UNIT_VECS[old], UNIT_VECS[direction])
            parent = up(moved)
            digit_row.append(unit_to_digit(sub(moved, down(parent))))
            carry_row.append(unit_to_digit(parent))
        digits.append(tuple(digit_row))
        carries.append(tuple(carry_row))
    return tuple(digits), tuple(carries)


# Used at Class III resolutions (children placed counter-clockwise)
NEW_DIGIT_II, NEW_ADJUSTMENT_II = _derive_digit_transitions(up_ap7, down_ap7)
# Used at Class II resolutions (children placed clockwise)
NEW_DIGIT_III, NEW_ADJUSTMENT_III = _derive_digit_transitions(up_ap7r, down_ap7r)

# Face extent and translation unit at Class II resolutions (one past MAX_RES for
# Class III substrate grids); odd entries are unused
MAX_DIM_BY_CII_RES = tuple(2 * 7 ** (res // 2) if res % 2 == 0 else -1 for res in range(MAX_RES + 2))
UNIT_SCALE_BY_CII_RES = tuple(7 ** (res // 2) if res % 2 == 0 else -1 for res in range(MAX_RES + 2))


def is_pentagon_base_cell(number: int) -> bool:
    return BASE_CELLS[number].kind is CellShape.PENTAGON


def is_cw_offset(number: int, face: int) -> bool:
    """Whether a pentagon base cell is rotated clockwise when seen from a face."""
    return face in BASE_CELLS[number].cw_offset_faces
