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

# Built-in defaults for all configuration sections. A tileloop.yaml only
# needs to contain the values it changes.

debug_mode = False

globals = dict(
    # base URL of an edge proxy, e.g. https://tiles.example.org
    proxy_url = None,
    user_agent = 'TileLoop (+https://github.com/tileloop/tileloop)',
    client_timeout = 10,
)

proxy = dict(
    allowed_origins = [],
    collapse_requests = False,
    default_ttl = 300,
)

cache = dict(
    # edge tier
    type = 'memory',
    directory = './cache_data/edge',
    max_entries = 10000,
    # local tier
    local_file = './cache_data/local.sqlite',
    local_max_age = 24 * 60 * 60,
    sqlite_timeout = 30,
)

timeline = dict(
    # provider with the highest update frequency drives the frame instants
    provider = None,
    history = 120,
    refresh_interval = 300,
)

prefetch = dict(
    # fraction of a provider's per-minute budget a job may use
    budget_margin = 0.8,
    inter_batch_delay = 0.1,
)

playback = dict(
    interval = 0.4,
    scrub_debounce = 0.15,
    layers = ['rainviewer'],
)

providers = dict(
    rainviewer = dict(
        origin = 'https://tilecache.rainviewer.com',
        url_template = '/v2/radar/{time}/256/{z}/{x}/{y}/2/1_1.png',
        cadence = 10,
        quantization = 'floor',
        time_format = 'epoch',
        max_zoom = 7,
        max_in_flight = 15,
        max_per_minute = 600,
        publish_tolerance = 30,
        publish_delay = 10,
        forecast_steps = 3,
        cache_ttl = 300,
    ),
    iem = dict(
        origin = 'https://mesonet.agron.iastate.edu',
        url_template = '/cache/tile.py/1.0.0/ridge::USCOMP-N0Q-{time}/{z}/{x}/{y}.png',
        latest_template = '/cache/tile.py/1.0.0/nexrad-n0q-900913/{z}/{x}/{y}.png',
        cadence = 5,
        quantization = 'floor',
        time_format = 'compact',
        max_zoom = 12,
        max_in_flight = 10,
        max_per_minute = 300,
        publish_tolerance = 20,
        publish_delay = 5,
        cache_ttl = 300,
    ),
    gibs_goes = dict(
        origin = 'https://gibs.earthdata.nasa.gov',
        url_template = ('/wmts/epsg3857/best/GOES-East_ABI_Band13_Clean_Infrared/default/{time}'
                        '/GoogleMapsCompatible_Level6/{z}/{y}/{x}.png'),
        cadence = 10,
        quantization = 'floor',
        time_format = 'iso8601',
        max_zoom = 6,
        max_in_flight = 10,
        max_per_minute = 300,
        publish_tolerance = 20,
        publish_delay = 20,
        cache_ttl = 600,
    ),
    gibs_modis = dict(
        origin = 'https://gibs.earthdata.nasa.gov',
        url_template = ('/wmts/epsg3857/best/MODIS_Terra_CorrectedReflectance_TrueColor/default/{time}'
                        '/GoogleMapsCompatible_Level9/{z}/{y}/{x}.jpg'),
        cadence = 1440,
        quantization = 'date',
        time_format = 'date',
        max_zoom = 9,
        max_in_flight = 10,
        max_per_minute = 300,
        publish_tolerance = 0,
        publish_delay = 1440,
        cache_ttl = 3600,
    ),
    nowcoast = dict(
        origin = 'https://nowcoast.noaa.gov',
        kind = 'wms',
        url_template = ('/geoserver/satellite/wms?SERVICE=WMS&VERSION=1.3.0&REQUEST=GetMap'
                        '&LAYERS=goes_visible_imagery&CRS=EPSG:3857&BBOX={bbox}&WIDTH=256&HEIGHT=256'
                        '&FORMAT=image/png&TRANSPARENT=true&TIME={time}'),
        latest_template = ('/geoserver/satellite/wms?SERVICE=WMS&VERSION=1.3.0&REQUEST=GetMap'
                           '&LAYERS=goes_visible_imagery&CRS=EPSG:3857&BBOX={bbox}&WIDTH=256&HEIGHT=256'
                           '&FORMAT=image/png&TRANSPARENT=true'),
        cadence = 10,
        quantization = 'floor',
        time_format = 'iso8601',
        max_zoom = 10,
        max_in_flight = 6,
        max_per_minute = 120,
        publish_tolerance = 20,
        publish_delay = 20,
        cache_ttl = 600,
    ),
    # one image per scan of a GOES ABI sector from the NOAA STAR CDN
    star_goes = dict(
        origin = 'https://cdn.star.nesdis.noaa.gov',
        kind = 'image',
        url_template = '{sector_path}/{band}/{time}_{satellite}-ABI-{sector}-{band}-{resolution}.jpg',
        latest_template = '{sector_path}/{band}/latest.jpg',
        params = dict(
            satellite = 'GOES19',
            sector = 'ne',
            band = 'GEOCOLOR',
            resolution = '1200x1200',
        ),
        cadence = 5,
        # scans of the regional sectors start one minute after the full cadence
        time_offset = 1,
        quantization = 'floor',
        time_format = 'julian',
        max_zoom = 0,
        max_in_flight = 4,
        max_per_minute = 60,
        publish_tolerance = 10,
        publish_delay = 15,
        cache_ttl = 600,
    ),
    eox = dict(
        origin = 'https://tiles.maps.eox.at',
        url_template = '/wmts/1.0.0/s2cloudless-2024_3857/default/g/{z}/{y}/{x}.jpg',
        quantization = 'none',
        time_format = 'none',
        max_zoom = 14,
        max_in_flight = 10,
        max_per_minute = 600,
        cache_ttl = 86400,
    ),
)

provider_defaults = dict(
    kind = 'xyz',
    latest_template = None,
    cadence = 0,
    quantization = 'none',
    time_format = 'none',
    min_zoom = 0,
    max_zoom = 18,
    max_in_flight = 6,
    max_per_minute = 120,
    publish_tolerance = 0,
    publish_delay = 0,
    forecast_steps = 0,
    cache_ttl = None,
    time_offset = 0,
    params = {},
)
