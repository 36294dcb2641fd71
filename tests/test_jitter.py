"""
Tests for boundary-aware jitter selection.
"""
import random

import pytest

from rgp_advisor.core.jitter import SystemRandomSource, choose_jitter


class TestChooseJitter:
    """Test the draw range for each clamp state."""

    def test_no_guard_rails_uses_full_range(self, scripted_rng):
        rng = scripted_rng([4])
        assert choose_jitter(600.0, None, None, 5, 7, rng) == 4
        assert rng.calls == [(-5, 7)]

    def test_single_missing_bound_uses_full_range(self, scripted_rng):
        rng = scripted_rng()
        choose_jitter(600.0, 300.0, None, 5, 7, rng)
        assert rng.calls == [(-5, 7)]

    def test_at_min_clamp_only_non_negative(self, scripted_rng):
        """Verify jitter cannot push a floored proposal further down."""
        rng = scripted_rng()
        choose_jitter(300.0, 300.0, 700.0, 5, 7, rng)
        assert rng.calls == [(0, 7)]

    def test_at_max_clamp_only_non_positive(self, scripted_rng):
        """Verify jitter cannot push a capped proposal further up."""
        rng = scripted_rng()
        choose_jitter(700.0, 300.0, 700.0, 5, 7, rng)
        assert rng.calls == [(-5, 0)]

    def test_inside_band_near_max(self, scripted_rng):
        """Verify the upper end is narrowed to the room left below the max."""
        rng = scripted_rng()
        choose_jitter(698.5, 300.0, 700.0, 5, 7, rng)
        assert rng.calls == [(-5, 1)]

    def test_inside_band_near_min(self, scripted_rng):
        """Verify the lower end is narrowed to the room left above the min."""
        rng = scripted_rng()
        choose_jitter(301.2, 300.0, 700.0, 5, 7, rng)
        assert rng.calls == [(-1, 7)]

    def test_inside_band_with_plenty_of_room(self, scripted_rng):
        rng = scripted_rng([-5])
        assert choose_jitter(600.0, 300.0, 700.0, 5, 5, rng) == -5
        assert rng.calls == [(-5, 5)]

    def test_empty_range_returns_zero_without_drawing(self, scripted_rng):
        """Verify a degenerate range yields zero instead of failing."""
        rng = scripted_rng()
        assert choose_jitter(50.0, 100.0, 200.0, 5, 5, rng) == 0
        assert rng.calls == []

    def test_zero_base_range(self, scripted_rng):
        rng = scripted_rng()
        assert choose_jitter(600.0, 300.0, 700.0, 0, 0, rng) == 0
        assert rng.calls == [(0, 0)]


class TestJitterStaysInBand:
    """Property checks with a real random source."""

    @pytest.mark.parametrize("seed", range(5))
    def test_never_leaves_band(self, seed):
        """Verify clamped value plus jitter always stays within the band."""
        values = random.Random(seed)
        rng = SystemRandomSource(seed)
        for _ in range(500):
            clamp_min = values.uniform(1, 1000)
            clamp_max = clamp_min + values.uniform(20, 500)
            r_clamped = values.choice([
                clamp_min,
                clamp_max,
                values.uniform(clamp_min, clamp_max),
            ])
            drawn = choose_jitter(r_clamped, clamp_min, clamp_max, 10, 10, rng)
            assert clamp_min <= r_clamped + drawn <= clamp_max
            assert -10 <= drawn <= 10

    def test_no_rails_within_base_range(self):
        rng = SystemRandomSource(1)
        draws = {choose_jitter(500.0, None, None, 3, 2, rng) for _ in range(300)}
        assert draws == {-3, -2, -1, 0, 1, 2}


class TestSystemRandomSource:
    """Test the default random source."""

    def test_seeded_is_reproducible(self):
        first, second = SystemRandomSource(42), SystemRandomSource(42)
        assert [first.next_int(0, 1000) for _ in range(10)] == [second.next_int(0, 1000) for _ in range(10)]

    def test_inclusive_bounds(self):
        rng = SystemRandomSource(7)
        assert {rng.next_int(0, 1) for _ in range(200)} == {0, 1}
