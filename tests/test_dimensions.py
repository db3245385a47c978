"""Unit tests for pixel geometry."""

import pytest

from rendition_delivery.dimensions import CropDimension, CropStringError, Dimension, ratio, round_half_up


class TestRoundHalfUp:
    """Tests for round_half_up()."""

    def test_halves_round_up(self):
        """Test that .5 rounds up, unlike round()."""
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(461.92) == 462

    def test_ratio_derived_height(self):
        """Test the height derived from width 101 and ratio 3."""
        assert round_half_up(101 / 3.0) == 34
        assert round_half_up(100 / 2.0) == 50


class TestDimension:
    """Tests for Dimension."""

    def test_known(self):
        """Test that only positive sides make a dimension known."""
        assert Dimension(200, 100).is_known is True
        assert Dimension(0, 100).is_known is False
        assert Dimension(200, 0).is_known is False

    def test_ratio(self):
        """Test ratio and zero-height handling."""
        assert Dimension(1600, 900).ratio == pytest.approx(16 / 9)
        assert Dimension(100, 0).ratio == 0.0
        assert ratio(10, 0) == 0.0

    def test_str(self):
        """Test string form."""
        assert str(Dimension(1200, 800)) == "1200x800"


class TestCropDimension:
    """Tests for CropDimension."""

    def test_edges(self):
        """Test right/bottom edges and string forms."""
        crop = CropDimension(left=15, top=5, width=20, height=10)

        assert crop.right == 35
        assert crop.bottom == 15
        assert crop.crop_string == "15,5,35,15"
        assert crop.crop_string_width_height == "15,5,20,10"
        assert crop.is_automatic is False

    def test_empty(self):
        """Test that zero-area crops are empty."""
        assert CropDimension(0, 0, 0, 10).is_empty is True
        assert CropDimension(0, 0, 10, 0).is_empty is True
        assert CropDimension(0, 0, 10, 10).is_empty is False

    def test_from_crop_string(self):
        """Test parsing left,top,right,bottom."""
        crop = CropDimension.from_crop_string("15,5,35,15")

        assert crop == CropDimension(left=15, top=5, width=20, height=10)

    def test_from_crop_string_automatic(self):
        """Test that the automatic flag is carried over."""
        assert CropDimension.from_crop_string("0,0,10,10", is_automatic=True).is_automatic is True

    @pytest.mark.parametrize("crop_string", ["", "abc", "1,2,3", "1,2,3,4,5", "10,0,5,10", "0,10,10,10", "-1,0,5,5"])
    def test_from_crop_string_invalid(self, crop_string):
        """Test that malformed, negative and zero-area strings are rejected."""
        with pytest.raises(CropStringError):
            CropDimension.from_crop_string(crop_string)

    def test_crop_string_error_is_value_error(self):
        """Test that callers can catch ValueError."""
        with pytest.raises(ValueError):
            CropDimension.from_crop_string("x")

    def test_from_rect(self):
        """Test parsing left,top,width,height."""
        crop = CropDimension.from_rect("1028, 0, 806, 604")

        assert crop.crop_string_width_height == "1028,0,806,604"
        assert crop.right == 1834

    def test_from_rect_invalid(self):
        """Test that zero-area rectangles are rejected."""
        with pytest.raises(CropStringError):
            CropDimension.from_rect("0,0,0,10")
