"""
Unit tests for the quadrilateral (S2) cell engine.
"""
import pytest
import s2sphere
from shapely.geometry import Point

from src.geocover.errors import InvalidInputError
from src.geocover.models import GeoPoint
from src.geocover.quadgrid import (
    QuadEngine,
    cell_bounds,
    cell_edge_m,
    cell_size_m,
    children,
    decode,
    decode_bounds,
    encode,
    is_valid_cell,
    neighbors,
    parent,
    parse_cell,
)

SF = GeoPoint(lat=37.7749, lon=-122.4194)


@pytest.mark.unit
class TestQuadCodec:
    """Test suite for quadrilateral encoding and decoding."""

    def test_encode_contains_point(self):
        """Test that the encoded cell holds the point's leaf cell."""
        leaf = s2sphere.CellId.from_lat_lng(s2sphere.LatLng.from_degrees(SF.lat, SF.lon))
        for level in (0, 5, 13, 20, 30):
            cell = encode(SF, level)
            assert cell.level() == level
            assert cell.contains(leaf)

    def test_decode_near_point(self):
        """Test that a point is within one cell size of its cell center."""
        for level in (4, 10, 16, 24):
            assert SF.distance_to(decode(encode(SF, level))) <= cell_size_m(level)

    def test_token_round_trip(self):
        """Test that tokens parse back to the same cell."""
        cell = encode(SF, 13)
        token = cell.to_token()

        assert parse_cell(token) == cell
        assert parse_cell(token.upper()) == cell
        assert parse_cell(cell.id()) == cell
        assert parse_cell(cell) is cell

    @pytest.mark.parametrize("token", ["", "xyz", "0", "12345678901234567", "X"])
    def test_parse_rejects_malformed(self, token):
        """Test that malformed tokens raise InvalidInputError."""
        with pytest.raises(InvalidInputError):
            parse_cell(token)
        assert is_valid_cell(token) is False

    def test_parse_rejects_out_of_range_ids(self):
        """Test that ids outside 64 bits are rejected."""
        with pytest.raises(InvalidInputError):
            parse_cell(0)
        with pytest.raises(InvalidInputError):
            parse_cell(1 << 64)

    @pytest.mark.parametrize("level", [-1, 31])
    def test_precision_out_of_range(self, level):
        """Test that levels outside 0-30 are rejected with the bounds in the message."""
        with pytest.raises(InvalidInputError) as exc_info:
            encode(SF, level)

        assert "30" in str(exc_info.value)

    def test_decode_bounds(self):
        """Test that a cell outline has four corners around its center."""
        cell = encode(SF, 12)
        polygon = decode_bounds(cell)
        center = decode(cell)

        assert len(polygon.exterior.coords) - 1 == 4
        assert polygon.contains(Point(center.lon, center.lat))

    def test_cell_bounds(self):
        """Test that the box of a cell holds its center."""
        cell = encode(SF, 12)
        box = cell_bounds(cell)

        assert box.contains(decode(cell))
        assert not box.crosses_antimeridian

    def test_sizes_shrink_by_half_per_level(self):
        """Test that cell metrics halve with every level."""
        assert cell_size_m(11) == pytest.approx(cell_size_m(10) / 2)
        assert cell_edge_m(11) == pytest.approx(cell_edge_m(10) / 2)
        assert cell_edge_m(10) < cell_size_m(10)


@pytest.mark.unit
class TestQuadNeighbors:
    """Test suite for quadrilateral adjacency and hierarchy."""

    def test_four_edge_neighbors(self):
        """Test that every cell has four distinct neighbors at its level."""
        cell = encode(SF, 13)
        found = neighbors(cell)

        assert len(set(found)) == 4
        assert all(adjacent.level() == 13 for adjacent in found)
        for adjacent in found:
            assert cell in neighbors(adjacent)

    def test_neighbors_across_face_edge(self):
        """Test adjacency for a cell on a cube face edge."""
        cell = encode(GeoPoint(lat=0.0, lon=45.0), 8)

        assert len(set(neighbors(cell))) == 4

    def test_parent_and_children(self):
        """Test parent and child levels."""
        cell = encode(SF, 13)
        kids = children(cell)

        assert parent(cell) == encode(SF, 12)
        assert parent(cell, 5) == encode(SF, 5)
        assert len(kids) == 4
        assert all(parent(kid) == cell for kid in kids)
        assert encode(SF, 14) in kids

    def test_hierarchy_limits(self):
        """Test that there is no parent above level 0 and no child below 30."""
        with pytest.raises(InvalidInputError):
            parent(encode(SF, 0))
        with pytest.raises(InvalidInputError):
            children(encode(SF, 30))
        with pytest.raises(InvalidInputError):
            parent(encode(SF, 4), 6)

    def test_engine_adapter(self):
        """Test the covering engine facade."""
        engine = QuadEngine()
        cell = engine.encode(SF, 13)

        assert engine.name == "quad"
        assert engine.parse(engine.to_token(cell)) == cell
        assert engine.decode(cell) == decode(cell)
        assert engine.cell_area_m2(13) > 0
