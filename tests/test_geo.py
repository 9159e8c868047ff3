"""
Unit tests for great-circle helpers.
"""
import pytest

from src.geocover.geo import (
    haversine_m,
    meters_to_lat_degrees,
    meters_to_lon_degrees,
    normalize_lon,
)


@pytest.mark.unit
class TestGeoHelpers:
    """Test suite for distance and degree conversions."""

    def test_haversine_known_distance(self):
        """Test San Francisco to Los Angeles."""
        distance = haversine_m(37.7749, -122.4194, 34.0522, -118.2437)

        assert distance == pytest.approx(559_000, rel=0.01)

    def test_haversine_across_antimeridian(self):
        """Test that points either side of 180 degrees are close."""
        assert haversine_m(0, 179.9, 0, -179.9) == pytest.approx(22_239, rel=0.01)

    def test_normalize_lon(self):
        """Test longitude wrapping."""
        assert normalize_lon(190) == -170
        assert normalize_lon(-190) == 170
        assert normalize_lon(180) == 180
        assert normalize_lon(540) == 180

    def test_meters_to_degrees(self):
        """Test degree conversions at the equator and at 60 degrees."""
        assert meters_to_lat_degrees(111320) == pytest.approx(1.0)
        assert meters_to_lon_degrees(111320, 0) == pytest.approx(1.0)
        assert meters_to_lon_degrees(111320, 60) == pytest.approx(2.0)

    def test_meters_to_lon_degrees_at_pole(self):
        """Test that the conversion saturates at a full turn."""
        assert meters_to_lon_degrees(1000, 90) == 360.0
        assert meters_to_lon_degrees(10_000_000, 89.9) == 360.0
