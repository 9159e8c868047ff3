"""
Integer cube coordinates (i, j, k) on a hexagonal grid, and the aperture-7
and aperture-3 operations that move them between resolutions.

Coordinates are plain 3-tuples kept in canonical form: every component is
non-negative and at least one component is zero. Any two representations of
the same lattice point differ by a multiple of (1, 1, 1).
"""
import math

# Index digits: the unit direction from a parent's center child to a child
CENTER_DIGIT = 0
K_AXES_DIGIT = 1
J_AXES_DIGIT = 2
JK_AXES_DIGIT = 3
I_AXES_DIGIT = 4
IK_AXES_DIGIT = 5
IJ_AXES_DIGIT = 6
INVALID_DIGIT = 7
NUM_DIGITS = 7

# Unit vector for each digit, indexed by digit value
UNIT_VECS = (
    (0, 0, 0),
    (0, 0, 1),
    (0, 1, 0),
    (0, 1, 1),
    (1, 0, 0),
    (1, 0, 1),
    (1, 1, 0),
)

M_SQRT3_2 = 0.8660254037844386467637231707529361834714
M_SIN60 = M_SQRT3_2

_ROTATE60_CCW = (0, 5, 3, 1, 6, 4, 2, 7)
_ROTATE60_CW = (0, 3, 6, 2, 5, 1, 4, 7)


def lround(x: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if x >= 0:
        return int(math.floor(x + 0.5))
    return -int(math.floor(-x + 0.5))


def normalize(c: tuple[int, int, int]) -> tuple[int, int, int]:
    """Bring a coordinate into canonical form."""
    i, j, k = c
    if i < 0:
        j -= i
        k -= i
        i = 0
    if j < 0:
        i -= j
        k -= j
        j = 0
    if k < 0:
        i -= k
        j -= k
        k = 0

    low = min(i, j, k)
    if low > 0:
        i -= low
        j -= low
        k -= low
    return (i, j, k)


def add(a: tuple[int, int, int], b: tuple[int, int, int]) -> tuple[int, int, int]:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def sub(a: tuple[int, int, int], b: tuple[int, int, int]) -> tuple[int, int, int]:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def scale(c: tuple[int, int, int], factor: int) -> tuple[int, int, int]:
    return (c[0] * factor, c[1] * factor, c[2] * factor)


def neighbor(c: tuple[int, int, int], digit: int) -> tuple[int, int, int]:
    """Step one cell in the direction of a digit."""
    if CENTER_DIGIT < digit < NUM_DIGITS:
        return normalize(add(c, UNIT_VECS[digit]))
    return c


def unit_to_digit(c: tuple[int, int, int]) -> int:
    """Digit whose unit vector equals the coordinate, or INVALID_DIGIT."""
    c = normalize(c)
    for digit, unit in enumerate(UNIT_VECS):
        if c == unit:
            return digit
    return INVALID_DIGIT


def rotate60ccw(c: tuple[int, int, int]) -> tuple[int, int, int]:
    i, j, k = c
    # i -> (1, 1, 0), j -> (0, 1, 1), k -> (1, 0, 1)
    return normalize((i + k, i + j, j + k))


def rotate60cw(c: tuple[int, int, int]) -> tuple[int, int, int]:
    i, j, k = c
    # i -> (1, 0, 1), j -> (1, 1, 0), k -> (0, 1, 1)
    return normalize((i + j, j + k, i + k))


def rotate_digit_ccw(digit: int) -> int:
    return _ROTATE60_CCW[digit]


def rotate_digit_cw(digit: int) -> int:
    return _ROTATE60_CW[digit]


def _combine(c, i_vec, j_vec, k_vec) -> tuple[int, int, int]:
    i, j, k = c
    return normalize((
        i * i_vec[0] + j * j_vec[0] + k * k_vec[0],
        i * i_vec[1] + j * j_vec[1] + k * k_vec[1],
        i * i_vec[2] + j * j_vec[2] + k * k_vec[2],
    ))


def up_ap7(c: tuple[int, int, int]) -> tuple[int, int, int]:
    """Parent coordinate one counter-clockwise aperture-7 resolution up."""
    i = c[0] - c[2]
    j = c[1] - c[2]
    return normalize((lround((3 * i - j) / 7.0), lround((i + 2 * j) / 7.0), 0))


def up_ap7r(c: tuple[int, int, int]) -> tuple[int, int, int]:
    """Parent coordinate one clockwise aperture-7 resolution up."""
    i = c[0] - c[2]
    j = c[1] - c[2]
    return normalize((lround((2 * i + j) / 7.0), lround((3 * j - i) / 7.0), 0))


def down_ap7(c: tuple[int, int, int]) -> tuple[int, int, int]:
    """Center child coordinate one counter-clockwise aperture-7 resolution down."""
    return _combine(c, (3, 0, 1), (1, 3, 0), (0, 1, 3))


def down_ap7r(c: tuple[int, int, int]) -> tuple[int, int, int]:
    """Center child coordinate one clockwise aperture-7 resolution down."""
    return _combine(c, (3, 1, 0), (0, 3, 1), (1, 0, 3))


def down_ap3(c: tuple[int, int, int]) -> tuple[int, int, int]:
    return _combine(c, (2, 0, 1), (1, 2, 0), (0, 1, 2))


def down_ap3r(c: tuple[int, int, int]) -> tuple[int, int, int]:
    return _combine(c, (2, 1, 0), (0, 2, 1), (1, 0, 2))


def to_hex2d(c: tuple[int, int, int]) -> tuple[float, float]:
    """Center of the cell in the planar hex coordinate system."""
    i = c[0] - c[2]
    j = c[1] - c[2]
    return (i - 0.5 * j, j * M_SQRT3_2)


def from_hex2d(x: float, y: float) -> tuple[int, int, int]:
    """Coordinate of the cell containing a planar hex point."""
    a1 = abs(x)
    a2 = abs(y)

    # first do a reverse conversion
    x2 = a2 / M_SIN60
    x1 = a1 + x2 / 2.0

    # check if we have the center of a hex
    m1 = int(x1)
    m2 = int(x2)

    # otherwise round correctly
    r1 = x1 - m1
    r2 = x2 - m2

    if r1 < 0.5:
        if r1 < 1.0 / 3.0:
            i = m1
            j = m2 if r2 < (1.0 + r1) / 2.0 else m2 + 1
        else:
            j = m2 if r2 < (1.0 - r1) else m2 + 1
            i = m1 + 1 if (1.0 - r1) <= r2 < (2.0 * r1) else m1
    else:
        if r1 < 2.0 / 3.0:
            j = m2 if r2 < (1.0 - r1) else m2 + 1
            i = m1 if (2.0 * r1 - 1.0) < r2 < (1.0 - r1) else m1 + 1
        else:
            i = m1 + 1
            j = m2 if r2 < (r1 / 2.0) else m2 + 1

    # fold across the axes if necessary
    if x < 0.0:
        if j % 2 == 0:
            axis_i = j // 2
            i = i - 2 * (i - axis_i)
        else:
            axis_i = (j + 1) // 2
            i = i - (2 * (i - axis_i) + 1)

    if y < 0.0:
        i = i - (2 * j + 1) // 2
        j = -j

    return normalize((i, j, 0))
