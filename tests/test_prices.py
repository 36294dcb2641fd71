"""
Unit tests for daily price map helpers.
"""
import pytest

from rgp_advisor.core.prices import load_price_map, price_map_from_series


class TestPriceMapFromSeries:
    """Test conversion of [timestamp_ms, price] points."""

    def test_dates_in_utc(self):
        prices = [[1735689600000, 4.1], [1735776000000, 4.3]]
        assert price_map_from_series(prices) == {"2025-01-01": 4.1, "2025-01-02": 4.3}

    def test_last_point_of_day_wins(self):
        prices = [[1735689600000, 4.1], [1735693200000, 4.2]]
        assert price_map_from_series(prices) == {"2025-01-01": 4.2}

    def test_malformed_point(self):
        with pytest.raises(ValueError, match="timestamp_ms, price"):
            price_map_from_series([[1735689600000]])

    def test_non_finite_point(self):
        with pytest.raises(ValueError, match="finite"):
            price_map_from_series([[1735689600000, float("nan")]])


class TestLoadPriceMap:
    """Test accepted price payload shapes."""

    def test_plain_mapping(self):
        assert load_price_map({"2025-01-01": "4.5"}) == {"2025-01-01": 4.5}

    def test_market_chart_payload(self):
        payload = {"prices": [[1735689600000, 4.1]], "market_caps": [], "total_volumes": []}
        assert load_price_map(payload) == {"2025-01-01": 4.1}

    def test_rejects_other_shapes(self):
        with pytest.raises(ValueError, match="Price payload"):
            load_price_map([[1735689600000, 4.1]])
