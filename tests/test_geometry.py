"""Tests for hex grid helpers."""

import pytest

from mmai_bridge.data.constants import BF_SIZE
from mmai_bridge.env import geometry
from mmai_bridge.env.geometry import ATTACKER, DEFENDER, Direction, bhex


class TestIds:

    def test_corners(self):
        assert geometry.hex_id(bhex(1, 0)) == 0
        assert geometry.hex_id(bhex(15, 0)) == 14
        assert geometry.hex_id(bhex(1, 1)) == 15
        assert geometry.hex_id(bhex(15, 10)) == BF_SIZE - 1

    def test_bhex_of_inverts_hex_id(self):
        for hid in range(BF_SIZE):
            assert geometry.hex_id(geometry.bhex_of(hid)) == hid

    @pytest.mark.parametrize("x", [0, 16])
    def test_side_columns_unavailable(self, x):
        bh = bhex(x, 3)
        assert geometry.is_valid(bh)
        assert not geometry.is_available(bh)
        with pytest.raises(ValueError):
            geometry.hex_id(bh)

    def test_out_of_grid(self):
        assert bhex(17, 0) == geometry.INVALID_HEX
        assert bhex(3, 11) == geometry.INVALID_HEX

    def test_names_are_one_based(self):
        assert geometry.hex_name(0) == "(1,1)"
        assert geometry.hex_name(BF_SIZE - 1) == "(15,11)"


class TestNeighbours:

    def test_odd_row(self):
        got = {geometry.xy(n) for n in geometry.neighbours(bhex(5, 5))}
        assert got == {(4, 4), (5, 4), (6, 5), (5, 6), (4, 6), (4, 5)}

    def test_even_row(self):
        got = {geometry.xy(n) for n in geometry.neighbours(bhex(5, 4))}
        assert got == {(5, 3), (6, 3), (6, 4), (6, 5), (5, 5), (4, 4)}

    def test_adjacency_is_symmetric(self):
        for hid in range(BF_SIZE):
            bh = geometry.bhex_of(hid)
            for n in geometry.neighbours(bh):
                assert geometry.are_adjacent(n, bh)

    def test_top_row_has_no_upper_neighbours(self):
        bh = bhex(5, 0)
        assert geometry.neighbour(bh, Direction.TOP_LEFT) == geometry.INVALID_HEX
        assert geometry.neighbour(bh, Direction.TOP_RIGHT) == geometry.INVALID_HEX

    def test_distance(self):
        for n in geometry.neighbours(bhex(7, 6)):
            assert geometry.distance(bhex(7, 6), n) == 1
        assert geometry.distance(bhex(1, 0), bhex(15, 0)) == 14
        assert geometry.distance(bhex(5, 4), bhex(5, 6)) == 2
        assert geometry.distance(bhex(8, 8), bhex(8, 8)) == 0


class TestTwoHexUnits:

    def test_back_hex_faces_away_from_enemy(self):
        assert geometry.xy(geometry.back_hex(bhex(5, 5), ATTACKER)) == (4, 5)
        assert geometry.xy(geometry.back_hex(bhex(5, 5), DEFENDER)) == (6, 5)

    def test_covered_hexes(self):
        assert geometry.covered_hexes(bhex(5, 5), ATTACKER, False) == [bhex(5, 5)]
        assert geometry.covered_hexes(bhex(5, 5), ATTACKER, True) == [bhex(5, 5), bhex(4, 5)]

    def test_surrounding_single(self):
        assert len(geometry.surrounding_hexes(bhex(5, 5), ATTACKER, False)) == 6

    def test_surrounding_double(self):
        got = {geometry.xy(h) for h in geometry.surrounding_hexes(bhex(5, 5), ATTACKER, True)}
        assert got == {(4, 4), (5, 4), (6, 5), (5, 6), (4, 6), (3, 4), (3, 6), (3, 5)}

    def test_surrounding_skips_side_columns(self):
        got = geometry.surrounding_hexes(bhex(1, 4), DEFENDER, False)
        assert all(geometry.is_available(h) for h in got)
        assert len(got) == 5
