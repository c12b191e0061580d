# This file is part of the TileLoop project.
# Copyright (C) 2025 TileLoop contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import pytest

from tileloop.exception import TileOutOfRange
from tileloop.grid import (
    TileCoord,
    check_tile,
    clamp_zoom,
    format_bbox,
    lonlat_to_tile,
    tile_bbox,
    tiles_for_bbox,
)


class TestTileCoord(object):
    def test_valid(self):
        assert TileCoord(0, 0, 0).is_valid()
        assert TileCoord(3, 7, 7).is_valid()

    def test_invalid(self):
        assert not TileCoord(3, 8, 0).is_valid()
        assert not TileCoord(3, 0, -1).is_valid()
        assert not TileCoord(-1, 0, 0).is_valid()

    def test_str(self):
        assert str(TileCoord(5, 16, 10)) == '5/16/10'


class TestCheckTile(object):
    def test_ok(self):
        assert check_tile((3, 1, 2), max_zoom=7) == TileCoord(3, 1, 2)

    def test_outside_grid(self):
        with pytest.raises(TileOutOfRange):
            check_tile((3, 8, 2))

    def test_above_max_zoom(self):
        with pytest.raises(TileOutOfRange):
            check_tile((8, 0, 0), max_zoom=7)

    def test_below_min_zoom(self):
        with pytest.raises(TileOutOfRange):
            check_tile((1, 0, 0), min_zoom=2)


class TestTilesForBBox(object):
    def test_world(self):
        tiles = tiles_for_bbox((-180, -85, 180, 85), 2)
        assert len(tiles) == 16
        assert tiles[0] == TileCoord(2, 0, 0)
        assert tiles[-1] == TileCoord(2, 3, 3)

    def test_small_bbox(self):
        # single tile around Kansas City
        assert tiles_for_bbox((-94.6, 39.0, -94.5, 39.1), 4) == [TileCoord(4, 3, 6)]

    def test_row_order(self):
        tiles = tiles_for_bbox((-10, -10, 10, 10), 1)
        assert tiles == [TileCoord(1, 0, 0), TileCoord(1, 1, 0),
                         TileCoord(1, 0, 1), TileCoord(1, 1, 1)]

    def test_invalid_bbox(self):
        with pytest.raises(ValueError):
            tiles_for_bbox((10, 0, -10, 5), 3)

    def test_lonlat_clamped(self):
        assert lonlat_to_tile(180, -90, 3) == (7, 7)


class TestBBox(object):
    def test_tile_bbox(self):
        assert format_bbox(tile_bbox((1, 0, 0))) == (
            '-20037508.342789,0.000000,0.000000,20037508.342789')

    def test_clamp_zoom(self):
        assert clamp_zoom(9, 7) == 7
        assert clamp_zoom(5, 7) == 5
        assert clamp_zoom(1, 7, min_zoom=2) == 2
