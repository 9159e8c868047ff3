"""
Unit tests for the ring-expansion covering search.
"""
import logging
import threading

import h3
import pytest
from prometheus_client import REGISTRY

from src.geocover.covering import (
    BoxTest,
    CircleTest,
    box_covering,
    cell_covering,
    check_max_cells,
    circle_covering,
    get_engine,
)
from src.geocover.errors import CoveringCancelledError, InvalidInputError
from src.geocover.hexgrid import cell_size_m, encode
from src.geocover.models import BoxArea, CircleArea, GeoBoundingBox, GeoPoint
from src.geocover.quadgrid import cell_size_m as quad_cell_size_m
from src.geocover.quadgrid import encode as quad_encode
from src.geocover.quadgrid import decode as quad_decode

SF = GeoPoint(lat=37.7749, lon=-122.4194)


def _distances(result):
    return [cell.distance_m for cell in result.cells]


def _sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def _cell_lons(result):
    for token in result.cell_ids:
        yield h3.cell_to_latlng(token)[1]


@pytest.mark.unit
class TestCircleCovering:
    """Test suite for circle coverings on the hexagonal grid."""

    def test_capped_covering(self):
        """Test that a wide search is cut to the cap, nearest first."""
        result = circle_covering(SF, 30000, 9, max_cells=100)

        assert len(result) == 100
        assert result.truncated is True
        assert result.engine == "hex"
        assert result.precision == 9
        assert _distances(result) == sorted(_distances(result))
        assert len(set(result.cell_ids)) == 100
        assert encode(SF, 9).token in result.cell_ids
        assert result.cells[0].distance_m <= cell_size_m(9)
        assert all(distance <= 30000 + cell_size_m(9) for distance in _distances(result))

    def test_default_cap(self):
        """Test that the cap defaults to 100 cells."""
        result = circle_covering(SF, 30000, 9)

        assert len(result) == 100

    def test_full_covering_size(self):
        """Test the size of an uncapped covering at a medium resolution."""
        result = circle_covering(SF, 30000, 7, max_cells=1000)

        assert 600 <= len(result) <= 800
        assert result.truncated is False
        assert result.rings > 5

    def test_covering_is_complete(self):
        """Test that every cell whose center is inside the circle is returned."""
        radius = 3000
        result = circle_covering(SF, radius, 8, max_cells=1000)
        origin = h3.latlng_to_cell(SF.lat, SF.lon, 8)

        inside = set()
        for token in h3.grid_disk(origin, 8):
            lat, lon = h3.cell_to_latlng(token)
            if SF.distance_to(GeoPoint(lat=lat, lon=lon)) <= radius:
                inside.add(token)

        assert len(inside) > 1
        assert inside <= set(result.cell_ids)

    def test_covering_is_sound(self):
        """Test that no returned cell lies beyond the radius plus one cell size."""
        result = circle_covering(SF, 5000, 9, max_cells=1000)

        assert max(_distances(result)) <= 5000 + cell_size_m(9)

    def test_cap_keeps_nearest_cells(self):
        """Test that a capped covering is the head of the uncapped one."""
        full = circle_covering(SF, 3000, 9, max_cells=1000)
        capped = circle_covering(SF, 3000, 9, max_cells=50)

        assert full.truncated is False
        assert capped.truncated is True
        assert capped.cell_ids == full.cell_ids[:50]

    def test_count_scales_with_area(self):
        """Test that doubling the radius roughly quadruples the covering."""
        small = circle_covering(SF, 3000, 8, max_cells=1000)
        large = circle_covering(SF, 6000, 8, max_cells=1000)

        assert 2 <= len(large) / len(small) <= 6

    def test_zero_radius(self):
        """Test that a point search returns the cell holding the point."""
        result = circle_covering(SF, 0, 9)

        assert encode(SF, 9).token in result.cell_ids
        assert len(result) <= 19

    def test_covering_across_antimeridian(self):
        """Test a circle centered on the 180th meridian."""
        center = GeoPoint(lat=-16.5, lon=180.0)
        result = circle_covering(center, 50000, 5, max_cells=1000)
        lons = list(_cell_lons(result))

        assert any(lon > 179 for lon in lons)
        assert any(lon < -179 for lon in lons)

    def test_covering_near_pentagon(self):
        """Test a covering around a pentagon center."""
        lat, lon = h3.cell_to_latlng(h3.get_pentagons(6)[0])
        center = GeoPoint(lat=lat, lon=lon)
        result = circle_covering(center, 20000, 6, max_cells=1000)

        assert len(set(result.cell_ids)) == len(result)
        assert h3.get_pentagons(6)[0] in result.cell_ids
        assert len(result) > 20


@pytest.mark.unit
class TestBoxCovering:
    """Test suite for bounding box coverings."""

    def test_box_covering_is_sound(self):
        """Test that every cell center lies in the box grown by one cell size."""
        box = GeoBoundingBox(
            southwest=GeoPoint(lat=SF.lat - 0.03, lon=SF.lon - 0.03),
            northeast=GeoPoint(lat=SF.lat + 0.03, lon=SF.lon + 0.03),
        )
        result = box_covering(box, 9, max_cells=1000)
        grown = box.expanded(cell_size_m(9))

        assert result.truncated is False
        for token in result.cell_ids:
            lat, lon = h3.cell_to_latlng(token)
            assert grown.contains(GeoPoint(lat=lat, lon=lon))

    def test_box_covering_reaches_corners(self):
        """Test that the cells holding the box corners are included."""
        box = GeoBoundingBox(
            southwest=GeoPoint(lat=SF.lat - 0.03, lon=SF.lon - 0.03),
            northeast=GeoPoint(lat=SF.lat + 0.03, lon=SF.lon + 0.03),
        )
        result = box_covering(box, 9, max_cells=1000)

        assert encode(box.southwest, 9).token in result.cell_ids
        assert encode(box.northeast, 9).token in result.cell_ids
        assert encode(box.center, 9).token in result.cell_ids

    def test_box_across_antimeridian(self):
        """Test a box that crosses the 180th meridian."""
        box = GeoBoundingBox(
            southwest=GeoPoint(lat=-10, lon=179),
            northeast=GeoPoint(lat=-5, lon=-179),
        )
        result = box_covering(box, 3)
        lons = list(_cell_lons(result))

        assert any(lon > 179 for lon in lons)
        assert any(lon < -179 for lon in lons)
        assert all(abs(lon) >= 177 for lon in lons)

    def test_box_near_pole(self, caplog):
        """Test that a polar box falls back to latitude-only checks."""
        box = GeoBoundingBox(
            southwest=GeoPoint(lat=86, lon=-180),
            northeast=GeoPoint(lat=89, lon=180),
        )
        with caplog.at_level(logging.WARNING):
            result = box_covering(box, 2)

        assert len(result) > 0
        assert result.truncated is False
        assert encode(GeoPoint(lat=90, lon=0), 2).token in result.cell_ids
        assert all(h3.cell_to_latlng(token)[0] >= 82 for token in result.cell_ids)
        assert "pole" in caplog.text

    def test_box_from_center_across_antimeridian(self):
        """Test that a box built around a point near 180 degrees reaches the far side."""
        center = GeoPoint(lat=-17.0, lon=179.9)
        box = GeoBoundingBox.from_center_and_distance(center, 50000)
        result = box_covering(box, 6, max_cells=1000)

        assert result.truncated is False
        assert encode(GeoPoint(lat=-17.0, lon=-179.8), 6).token in result.cell_ids
        assert encode(center, 6).token in result.cell_ids

    def test_box_area_through_cell_covering(self):
        """Test the generic entry point with a BoxArea."""
        box = GeoBoundingBox.from_center_and_distance(SF, 1000)
        result = cell_covering(BoxArea(box=box), 9)

        assert result.cells[0].distance_m <= cell_size_m(9)
        assert encode(SF, 9).token in result.cell_ids


@pytest.mark.unit
class TestIntersectionTests:
    """Test suite for the circle and box inclusion checks."""

    def test_circle_test_inflation(self):
        """Test that the circle test accepts points within radius plus inflation."""
        test = CircleTest(SF, 1000, 500)

        assert test.includes(SF)
        assert test.includes(GeoPoint(lat=SF.lat + 0.013, lon=SF.lon))
        assert not test.includes(GeoPoint(lat=SF.lat + 0.02, lon=SF.lon))

    def test_box_test_wraps_longitude(self):
        """Test that the box test handles a box crossing the antimeridian."""
        box = GeoBoundingBox(
            southwest=GeoPoint(lat=-10, lon=179),
            northeast=GeoPoint(lat=-5, lon=-179),
        )
        test = BoxTest(box, 0)

        assert test.includes(GeoPoint(lat=-7, lon=179.5))
        assert test.includes(GeoPoint(lat=-7, lon=-179.5))
        assert not test.includes(GeoPoint(lat=-7, lon=0))
        assert not test.includes(GeoPoint(lat=-12, lon=180))

    def test_box_test_pole_fallback(self):
        """Test that candidates above the threshold are checked by latitude only."""
        box = GeoBoundingBox(
            southwest=GeoPoint(lat=80, lon=10),
            northeast=GeoPoint(lat=86, lon=20),
        )
        test = BoxTest(box, 0, pole_threshold=85)

        assert test.includes(GeoPoint(lat=85.5, lon=-100))
        assert not test.includes(GeoPoint(lat=82, lon=-100))
        assert test.includes(GeoPoint(lat=82, lon=15))


@pytest.mark.unit
class TestCoveringInputs:
    """Test suite for argument validation."""

    @pytest.mark.parametrize("max_cells", [0, -5, 1001, 2.5, True])
    def test_invalid_max_cells(self, max_cells):
        """Test that non-positive, oversized and non-integer caps are rejected."""
        with pytest.raises(InvalidInputError):
            circle_covering(SF, 1000, 9, max_cells=max_cells)

    def test_check_max_cells_default(self):
        """Test the default cap."""
        assert check_max_cells(None) == 100
        assert check_max_cells(1000) == 1000

    @pytest.mark.parametrize("precision", [-1, 16])
    def test_invalid_precision(self, precision):
        """Test that hexagonal precision outside 0-15 is rejected."""
        with pytest.raises(InvalidInputError):
            circle_covering(SF, 1000, precision)

    def test_invalid_quad_precision(self):
        """Test that quadrilateral levels above 30 are rejected."""
        with pytest.raises(InvalidInputError):
            circle_covering(SF, 1000, 31, engine="quad")

    def test_unknown_engine(self):
        """Test that an unknown engine name is rejected."""
        with pytest.raises(InvalidInputError) as exc_info:
            circle_covering(SF, 1000, 9, engine="geohash")

        assert "geohash" in str(exc_info.value)
        assert get_engine("quad").name == "quad"
        assert get_engine().name == "hex"

    def test_engines_expose_covering_interface(self):
        """Test that each registered engine answers the calls the search makes."""
        for name in ("hex", "quad"):
            grid = get_engine(name)
            cell = grid.encode(SF, 10)

            assert grid.name == name
            assert grid.check_precision(10) == 10
            assert grid.cell_size_m(10) > 0
            assert grid.cell_area_m2(10) > 0
            assert grid.decode(cell).distance_to(SF) <= grid.cell_size_m(10)
            assert len(grid.neighbors(cell)) in (4, 6)
            assert grid.parse(grid.to_token(cell)) == cell
            assert not hasattr(grid, "min_precision")
            with pytest.raises(InvalidInputError):
                grid.check_precision(31)

    def test_unsupported_area(self):
        """Test that only circles and boxes can be covered."""
        with pytest.raises(InvalidInputError):
            cell_covering(SF, 9)


@pytest.mark.unit
class TestCancellation:
    """Test suite for cooperative cancellation."""

    def test_cancelled_before_start(self):
        """Test that a set signal stops the search."""
        cancel = threading.Event()
        cancel.set()
        labels = {"engine": "hex", "area": "circle", "status": "cancelled"}
        before = _sample("covering_requests_total", labels)

        with pytest.raises(CoveringCancelledError):
            circle_covering(SF, 30000, 9, cancel=cancel)

        assert _sample("covering_requests_total", labels) == before + 1

    def test_unset_signal_does_not_interfere(self):
        """Test that an unset signal lets the search finish."""
        cancel = threading.Event()
        result = cell_covering(CircleArea(center=SF, radius_m=2000), 9, cancel=cancel)

        assert len(result) > 0


@pytest.mark.unit
class TestQuadCovering:
    """Test suite for coverings on the quadrilateral grid."""

    def test_quad_circle_covering(self):
        """Test a circle covering of quadrilateral cells."""
        result = circle_covering(SF, 10000, 13, max_cells=1000, engine="quad")

        assert result.engine == "quad"
        assert result.truncated is False
        assert len(result) > 100
        assert quad_encode(SF, 13).to_token() in result.cell_ids
        assert _distances(result) == sorted(_distances(result))
        assert max(_distances(result)) <= 10000 + quad_cell_size_m(13)

    def test_quad_covering_capped(self):
        """Test that the cap applies to quadrilateral coverings."""
        result = circle_covering(SF, 10000, 13, max_cells=25, engine="quad")

        assert len(result) == 25
        assert result.truncated is True


@pytest.mark.unit
class TestCoveringMetrics:
    """Test suite for covering metrics."""

    def test_success_counter(self):
        """Test that completed coverings are counted."""
        labels = {"engine": "hex", "area": "circle", "status": "success"}
        before = _sample("covering_requests_total", labels)

        circle_covering(SF, 1000, 9)

        assert _sample("covering_requests_total", labels) == before + 1

    def test_truncated_counter(self):
        """Test that capped coverings are counted."""
        before = _sample("covering_truncated_total", {"engine": "hex"})

        circle_covering(SF, 30000, 9, max_cells=10)

        assert _sample("covering_truncated_total", {"engine": "hex"}) == before + 1


@pytest.mark.unit
class TestQuadBoxCovering:
    """Test suite for bounding box coverings on the quadrilateral grid."""

    def test_quad_box_covering_is_sound(self):
        """Test that every cell center lies in the box grown by one cell size."""
        box = GeoBoundingBox(
            southwest=GeoPoint(lat=SF.lat - 0.03, lon=SF.lon - 0.03),
            northeast=GeoPoint(lat=SF.lat + 0.03, lon=SF.lon + 0.03),
        )
        result = box_covering(box, 14, max_cells=1000, engine="quad")
        grown = box.expanded(quad_cell_size_m(14))

        assert result.engine == "quad"
        assert result.truncated is False
        assert quad_encode(box.center, 14).to_token() in result.cell_ids
        for token in result.cell_ids:
            assert grown.contains(quad_decode(token))

    def test_quad_box_across_antimeridian(self):
        """Test a quadrilateral covering of a box crossing the 180th meridian."""
        box = GeoBoundingBox(
            southwest=GeoPoint(lat=-10, lon=179),
            northeast=GeoPoint(lat=-5, lon=-179),
        )
        result = box_covering(box, 8, max_cells=1000, engine="quad")
        lons = [quad_decode(token).lon for token in result.cell_ids]

        assert result.truncated is False
        assert any(lon > 179 for lon in lons)
        assert any(lon < -179 for lon in lons)
        assert all(abs(lon) >= 178 for lon in lons)

    def test_quad_box_near_pole(self):
        """Test that a polar box on the quadrilateral grid uses the latitude-only check."""
        box = GeoBoundingBox(
            southwest=GeoPoint(lat=86, lon=-180),
            northeast=GeoPoint(lat=89, lon=180),
        )
        result = box_covering(box, 6, max_cells=1000, engine="quad")
        lats = [quad_decode(token).lat for token in result.cell_ids]

        assert result.truncated is False
        assert quad_encode(GeoPoint(lat=90, lon=0), 6).to_token() in result.cell_ids
        assert all(lat >= 84 for lat in lats)
        assert len(result) > 4
