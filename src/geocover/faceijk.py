"""
Projection between geographic coordinates and face-centered IJK coordinates.

Each icosahedron face carries its own gnomonic plane. A cell's address on a
face is a FaceIJK; cells near a face edge may have a coordinate that overflows
onto a neighboring face, which the overage adjustment resolves.
"""
import math
from enum import IntEnum
from typing import NamedTuple

from src.geocover import coordijk as ijk_ops
from src.geocover.h3_tables import (
    EPSILON,
    FACE_AXES_AZ_RADS_CII,
    FACE_CENTER_GEO,
    FACE_NEIGHBORS,
    IJ,
    JK,
    KI,
    M_AP7_ROT_RADS,
    M_SQRT7,
    MAX_DIM_BY_CII_RES,
    NUM_ICOSA_FACES,
    RES0_U_GNOMONIC,
    UNIT_SCALE_BY_CII_RES,
)

TWO_PI = 2.0 * math.pi


class FaceIJK(NamedTuple):
    face: int
    coord: tuple[int, int, int]


class Overage(IntEnum):
    NO_OVERAGE = 0
    FACE_EDGE = 1
    NEW_FACE = 2


def _to_vec3(lat: float, lng: float) -> tuple[float, float, float]:
    r = math.cos(lat)
    return (math.cos(lng) * r, math.sin(lng) * r, math.sin(lat))


_FACE_CENTER_POINTS = tuple(_to_vec3(lat, lng) for lat, lng in FACE_CENTER_GEO)

# Vertex offsets of a cell on the aperture-3 substrate grid
_VERTS_CII = ((2, 1, 0), (1, 2, 0), (0, 2, 1), (0, 1, 2), (1, 0, 2), (2, 0, 1))
_VERTS_CIII = ((5, 4, 0), (1, 5, 0), (0, 5, 4), (0, 1, 5), (4, 0, 5), (5, 0, 1))


def is_class_iii(res: int) -> bool:
    return res % 2 == 1


def pos_angle_rads(rads: float) -> float:
    """Normalize an angle into [0, 2pi)."""
    tmp = rads + TWO_PI if rads < 0.0 else rads
    if tmp >= TWO_PI:
        tmp -= TWO_PI
    return tmp


def constrain_lng(lng: float) -> float:
    while lng > math.pi:
        lng -= TWO_PI
    while lng < -math.pi:
        lng += TWO_PI
    return lng


def azimuth_rads(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Azimuth from the first point to the second."""
    return math.atan2(
        math.cos(lat2) * math.sin(lng2 - lng1),
        math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(lng2 - lng1),
    )


def az_distance_rads(lat1: float, lng1: float, az: float, distance: float) -> tuple[float, float]:
    """Point reached by travelling a great-circle distance along an azimuth."""
    if distance < EPSILON:
        return lat1, lng1

    az = pos_angle_rads(az)

    # check for due north/south azimuth
    if az < EPSILON or abs(az - math.pi) < EPSILON:
        lat2 = lat1 + distance if az < EPSILON else lat1 - distance
        if abs(lat2 - math.pi / 2) < EPSILON:
            return math.pi / 2, 0.0
        if abs(lat2 + math.pi / 2) < EPSILON:
            return -math.pi / 2, 0.0
        return lat2, constrain_lng(lng1)

    sinlat = math.sin(lat1) * math.cos(distance) + math.cos(lat1) * math.sin(distance) * math.cos(az)
    sinlat = max(-1.0, min(1.0, sinlat))
    lat2 = math.asin(sinlat)
    if abs(lat2 - math.pi / 2) < EPSILON:
        return math.pi / 2, 0.0
    if abs(lat2 + math.pi / 2) < EPSILON:
        return -math.pi / 2, 0.0

    inv_cos_lat2 = 1.0 / math.cos(lat2)
    sinlng = math.sin(az) * math.sin(distance) * inv_cos_lat2
    coslng = (math.cos(distance) - math.sin(lat1) * math.sin(lat2)) / math.cos(lat1) * inv_cos_lat2
    sinlng = max(-1.0, min(1.0, sinlng))
    coslng = max(-1.0, min(1.0, coslng))
    return lat2, constrain_lng(lng1 + math.atan2(sinlng, coslng))


def closest_face(lat: float, lng: float) -> tuple[int, float]:
    """Face whose center is nearest, with the squared chord distance to it."""
    point = _to_vec3(lat, lng)
    face = 0
    sqd = 5.0
    for candidate in range(NUM_ICOSA_FACES):
        center = _FACE_CENTER_POINTS[candidate]
        dist = (
            (center[0] - point[0]) ** 2
            + (center[1] - point[1]) ** 2
            + (center[2] - point[2]) ** 2
        )
        if dist < sqd:
            face = candidate
            sqd = dist
    return face, sqd


def geo_to_hex2d(lat: float, lng: float, res: int) -> tuple[int, tuple[float, float]]:
    """Face and planar hex coordinate of a point at a resolution."""
    face, sqd = closest_face(lat, lng)

    # cos(r) = 1 - 2 * sin^2(r/2) = 1 - 2 * (sqd / 4) = 1 - sqd/2
    r = math.acos(max(-1.0, min(1.0, 1.0 - sqd / 2.0)))
    if r < EPSILON:
        return face, (0.0, 0.0)

    center_lat, center_lng = FACE_CENTER_GEO[face]
    theta = pos_angle_rads(
        FACE_AXES_AZ_RADS_CII[face] - pos_angle_rads(azimuth_rads(center_lat, center_lng, lat, lng))
    )
    if is_class_iii(res):
        theta = pos_angle_rads(theta - M_AP7_ROT_RADS)

    # gnomonic scaling of r, then scale for the resolution
    r = math.tan(r) / RES0_U_GNOMONIC
    r *= M_SQRT7 ** res
    return face, (r * math.cos(theta), r * math.sin(theta))


def hex2d_to_geo(x: float, y: float, face: int, res: int, substrate: bool = False) -> tuple[float, float]:
    """Point on the sphere for a planar hex coordinate on a face."""
    r = math.hypot(x, y)
    if r < EPSILON:
        return FACE_CENTER_GEO[face]

    theta = math.atan2(y, x)

    r /= M_SQRT7 ** res
    if substrate:
        r /= 3.0
        if is_class_iii(res):
            r /= M_SQRT7

    r = math.atan(r * RES0_U_GNOMONIC)

    # Class III substrate grids are already aligned with Class II axes
    if not substrate and is_class_iii(res):
        theta = pos_angle_rads(theta + M_AP7_ROT_RADS)

    theta = pos_angle_rads(FACE_AXES_AZ_RADS_CII[face] - theta)
    center_lat, center_lng = FACE_CENTER_GEO[face]
    return az_distance_rads(center_lat, center_lng, theta, r)


def geo_to_face_ijk(lat: float, lng: float, res: int) -> FaceIJK:
    face, (x, y) = geo_to_hex2d(lat, lng, res)
    return FaceIJK(face, ijk_ops.from_hex2d(x, y))


def face_ijk_to_geo(fijk: FaceIJK, res: int) -> tuple[float, float]:
    x, y = ijk_ops.to_hex2d(fijk.coord)
    return hex2d_to_geo(x, y, fijk.face, res)


def adjust_overage_class_ii(
    fijk: FaceIJK, res: int, pent_leading_4: bool = False, substrate: bool = False
) -> tuple[Overage, FaceIJK]:
    """
    Move a Class II coordinate that has run past its face onto the right face.

    Args:
        fijk: Coordinate to adjust
        res: Class II resolution of the coordinate
        pent_leading_4: The cell is a pentagon descendant whose leading digit is 4
        substrate: The coordinate is on the aperture-3 vertex substrate grid

    Returns:
        The overage classification and the adjusted coordinate
    """
    face, coord = fijk
    max_dim = MAX_DIM_BY_CII_RES[res]
    if substrate:
        max_dim *= 3

    total = sum(coord)
    if substrate and total == max_dim:
        return Overage.FACE_EDGE, fijk
    if total <= max_dim:
        return Overage.NO_OVERAGE, fijk

    i, j, k = coord
    if k > 0:
        if j > 0:
            orient = FACE_NEIGHBORS[face][JK]
        else:
            orient = FACE_NEIGHBORS[face][KI]
            # adjust for the pentagonal missing sequence
            if pent_leading_4:
                origin = (max_dim, 0, 0)
                coord = ijk_ops.add(ijk_ops.rotate60cw(ijk_ops.sub(coord, origin)), origin)
    else:
        orient = FACE_NEIGHBORS[face][IJ]

    for _ in range(orient.ccw_rot60):
        coord = ijk_ops.rotate60ccw(coord)

    unit_scale = UNIT_SCALE_BY_CII_RES[res]
    if substrate:
        unit_scale *= 3
    coord = ijk_ops.normalize(ijk_ops.add(coord, ijk_ops.scale(orient.translate, unit_scale)))

    # overage points on pentagon boundaries can end up on edges
    if substrate and sum(coord) == max_dim:
        return Overage.FACE_EDGE, FaceIJK(orient.face, coord)
    return Overage.NEW_FACE, FaceIJK(orient.face, coord)


def _substrate_verts(fijk: FaceIJK, res: int, offsets) -> tuple[list[FaceIJK], int]:
    """Vertex coordinates of a cell on the substrate grid and the substrate resolution."""
    # aperture 3 down twice gives the aperture-9 vertex grid, clockwise in total
    coord = ijk_ops.down_ap3r(ijk_ops.down_ap3(fijk.coord))
    if is_class_iii(res):
        coord = ijk_ops.down_ap7r(coord)
        res += 1
    verts = [FaceIJK(fijk.face, ijk_ops.normalize(ijk_ops.add(coord, offset))) for offset in offsets]
    return verts, res


def face_ijk_to_boundary(fijk: FaceIJK, res: int, pentagon: bool) -> list[tuple[float, float]]:
    """
    Boundary vertices of a cell as (lat, lng) radians, counter-clockwise.

    Class III cells whose edges cross a face edge are returned with their
    topological vertices only.
    """
    if pentagon:
        verts, adj_res = _substrate_verts(fijk, res, _VERTS_CIII[:5] if is_class_iii(res) else _VERTS_CII[:5])
    else:
        verts, adj_res = _substrate_verts(fijk, res, _VERTS_CIII if is_class_iii(res) else _VERTS_CII)

    boundary = []
    for vert in verts:
        overage, vert = adjust_overage_class_ii(vert, adj_res, substrate=True)
        if pentagon:
            while overage == Overage.NEW_FACE:
                overage, vert = adjust_overage_class_ii(vert, adj_res, substrate=True)
        x, y = ijk_ops.to_hex2d(vert.coord)
        boundary.append(hex2d_to_geo(x, y, vert.face, adj_res, substrate=True))
    return boundary
