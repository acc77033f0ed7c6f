"""
Tests for color key assignment.
"""
import pytest

from relay_service.relay.colors import (
    GOLDEN_RATIO_CONJUGATE,
    NEUTRAL_COLOR,
    color_for,
    hue_for,
)


class TestNeutralColor:
    """Tests for the 'no ticket' color."""

    def test_none_maps_to_neutral(self):
        color = color_for(None)

        assert color == NEUTRAL_COLOR
        assert color.neutral is True
        assert color.css == "#6b7280"

    def test_neutral_regardless_of_call_order(self):
        color_for(1)
        first = color_for(None)
        color_for(2)
        assert color_for(None) == first == NEUTRAL_COLOR

    def test_ticket_zero_is_not_neutral(self):
        assert color_for(0).neutral is False


class TestTicketColors:
    """Tests for colors of present correlation ids."""

    @pytest.mark.parametrize("ticket_id", [0, 1, 42, 7096, 123456789])
    def test_hue_formula(self, ticket_id):
        expected = (ticket_id * GOLDEN_RATIO_CONJUGATE * 360) % 360
        assert color_for(ticket_id).hue == pytest.approx(expected)

    def test_same_id_same_color(self):
        assert color_for(42) == color_for(42)
        assert color_for(42).css == color_for(42).css

    def test_consecutive_ids_step_by_golden_angle(self):
        step = (GOLDEN_RATIO_CONJUGATE * 360) % 360
        for ticket_id in range(100, 110):
            delta = (hue_for(ticket_id + 1) - hue_for(ticket_id)) % 360
            assert delta == pytest.approx(step, abs=1e-6)

    def test_consecutive_ids_are_far_apart(self):
        for ticket_id in range(1, 50):
            delta = abs(hue_for(ticket_id + 1) - hue_for(ticket_id)) % 360
            assert min(delta, 360 - delta) > 100

    @pytest.mark.parametrize("ticket_id", range(0, 40))
    def test_saturation_and_lightness_bands(self, ticket_id):
        color = color_for(ticket_id)

        assert 65 <= color.saturation <= 85
        assert 45 <= color.lightness <= 60
        assert 0 <= color.hue < 360

    def test_negative_ids_stay_in_range(self):
        color = color_for(-13)

        assert 0 <= color.hue < 360
        assert 65 <= color.saturation <= 85
        assert 45 <= color.lightness <= 60

    def test_css_string(self):
        color = color_for(42)
        assert color.css == f"hsl({color.hue:.2f}, {color.saturation}%, {color.lightness}%)"

    def test_memoized_value_matches_formula(self):
        # Populate the cache, then compare against a freshly computed hue
        cached = color_for(987654)
        assert cached.hue == pytest.approx(hue_for(987654))
        assert cached.saturation == 65 + 987654 % 20
        assert cached.lightness == 45 + 987654 % 15
