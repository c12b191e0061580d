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

"""
Web mercator tile grid (XYZ scheme, origin top-left).
"""
import math
from collections import namedtuple

from tileloop.exception import TileOutOfRange

MERC_HALF_WORLD = 20037508.342789244
MAX_LATITUDE = 85.0511287798066


class TileCoord(namedtuple('TileCoord', 'z x y')):
    """
    Tile address in the power-of-two grid. Only valid for ``0 <= x, y < 2**z``.
    """
    __slots__ = ()

    def is_valid(self):
        if self.z < 0:
            return False
        size = 1 << self.z
        return 0 <= self.x < size and 0 <= self.y < size

    def __str__(self):
        return '%d/%d/%d' % (self.z, self.x, self.y)


def check_tile(coord, max_zoom=None, min_zoom=0):
    """
    Raise `TileOutOfRange` if `coord` is outside the grid or the zoom range.
    """
    coord = TileCoord(*coord)
    if not coord.is_valid():
        raise TileOutOfRange('tile %s outside of grid' % (coord, ))
    if coord.z < min_zoom or (max_zoom is not None and coord.z > max_zoom):
        raise TileOutOfRange('tile %s outside of zoom range %d-%s' % (coord, min_zoom, max_zoom))
    return coord


def clamp_zoom(zoom, max_zoom, min_zoom=0):
    return max(min_zoom, min(int(zoom), max_zoom))


def lonlat_to_tile(lon, lat, zoom):
    """
    Return the (x, y) of the tile containing `lon`/`lat` at `zoom`.

    >>> lonlat_to_tile(0, 0, 1)
    (1, 1)
    >>> lonlat_to_tile(-180, 85, 2)
    (0, 0)
    """
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    size = 1 << zoom
    x = int((lon + 180.0) / 360.0 * size)
    lat_rad = math.radians(lat)
    y = int((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * size)
    return min(max(x, 0), size - 1), min(max(y, 0), size - 1)


def tiles_for_bbox(bbox, zoom):
    """
    Return all tiles at `zoom` covering the lon/lat `bbox`
    (minx, miny, maxx, maxy), row by row from the north-west.

    >>> [str(t) for t in tiles_for_bbox((-180, -85, 180, 85), 1)]
    ['1/0/0', '1/1/0', '1/0/1', '1/1/1']
    """
    minx, miny, maxx, maxy = bbox
    if minx > maxx or miny > maxy:
        raise ValueError('invalid bbox %r' % (bbox, ))
    x0, y0 = lonlat_to_tile(minx, maxy, zoom)
    x1, y1 = lonlat_to_tile(maxx, miny, zoom)
    return [TileCoord(zoom, x, y)
            for y in range(y0, y1 + 1)
            for x in range(x0, x1 + 1)]


def tile_bbox(coord):
    """
    Return the EPSG:3857 bbox of the tile.

    >>> ['%.1f' % v for v in tile_bbox((0, 0, 0))]
    ['-20037508.3', '-20037508.3', '20037508.3', '20037508.3']
    """
    z, x, y = coord
    tile_size = 2 * MERC_HALF_WORLD / (1 << z)
    minx = -MERC_HALF_WORLD + x * tile_size
    maxy = MERC_HALF_WORLD - y * tile_size
    return minx, maxy - tile_size, minx + tile_size, maxy


def format_bbox(bbox):
    return ','.join('%.6f' % v for v in bbox)
