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
Provider registry: one descriptor per upstream imagery provider.
"""
from tileloop.exception import ConfigurationError, UnknownProviderError
from tileloop.util.times import floor_date, floor_minutes, timestamp_formatters

import logging
log = logging.getLogger('tileloop.config')

QUANTIZATION_RULES = ('floor', 'date', 'none')
PROVIDER_KINDS = ('xyz', 'wms', 'image')
RESERVED_PARAMS = ('z', 'x', 'y', 'time', 'bbox')

# GOES ABI sectors stored directly below the instrument, all other sectors
# are below SECTOR/
GOES_DIRECT_SECTORS = ('FD', 'CONUS')


def goes_sector_path(satellite, sector):
    """
    Path of a GOES ABI sector on the NOAA STAR CDN.

    >>> goes_sector_path('GOES19', 'CONUS')
    '/GOES19/ABI/CONUS'
    >>> goes_sector_path('GOES19', 'ne')
    '/GOES19/ABI/SECTOR/ne'
    """
    if sector in GOES_DIRECT_SECTORS:
        return '/%s/ABI/%s' % (satellite, sector)
    return '/%s/ABI/SECTOR/%s' % (satellite, sector)


class ProviderDescriptor(object):
    """
    Static description of an upstream provider.

    :param cadence: native update interval in minutes
    :param kind: ``xyz`` tiles, ``wms`` GetMap requests per tile or ``image``
        for providers that publish one fixed image per instant (e.g. a
        satellite sector)
    :param quantization: ``floor`` (round down to `cadence` minutes),
        ``date`` (round down to midnight UTC) or ``none``
    :param time_format: encoding of the upstream timestamp, one of
        ``iso8601``, ``compact``, ``julian``, ``date``, ``epoch`` or ``none``
    :param time_offset: minutes the `floor` boundaries are shifted from the
        full `cadence`
    :param params: static values for additional template placeholders.
        With ``satellite`` and ``sector`` set, ``{sector_path}`` expands to
        the GOES sector path.
    :param publish_tolerance: minutes an instant may lie in the future before
        it is considered not yet published
    :param publish_delay: minutes between an instant and the moment the
        upstream typically has it, used to compute the latest timestamp
    """
    def __init__(self, id, origin, url_template, kind='xyz', latest_template=None,
                 cadence=0, quantization='none', time_format='none',
                 min_zoom=0, max_zoom=18, max_in_flight=6, max_per_minute=120,
                 publish_tolerance=0, publish_delay=0, forecast_steps=0,
                 cache_ttl=None, time_offset=0, params=None):
        self.id = id
        self.origin = origin.rstrip('/')
        self.url_template = url_template
        self.kind = kind
        self.latest_template = latest_template
        self.cadence = cadence
        self.quantization = quantization
        self.time_format = time_format
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.max_in_flight = max_in_flight
        self.max_per_minute = max_per_minute
        self.publish_tolerance = publish_tolerance
        self.publish_delay = publish_delay
        self.forecast_steps = forecast_steps
        self.cache_ttl = cache_ttl
        self.time_offset = time_offset
        self.params = dict(params or {})
        self._check()

    def _check(self):
        if self.quantization not in QUANTIZATION_RULES:
            raise ConfigurationError('%s: unknown quantization %r' % (self.id, self.quantization))
        if self.kind not in PROVIDER_KINDS:
            raise ConfigurationError('%s: unknown provider kind %r' % (self.id, self.kind))
        if self.time_format != 'none' and self.time_format not in timestamp_formatters:
            raise ConfigurationError('%s: unknown time_format %r' % (self.id, self.time_format))
        if self.quantization == 'floor' and not self.cadence:
            raise ConfigurationError('%s: floor quantization requires a cadence' % (self.id, ))
        if self.time_format != 'none' and '{time}' not in self.url_template:
            raise ConfigurationError('%s: url_template has no {time} placeholder' % (self.id, ))
        if self.kind == 'wms' and '{bbox}' not in self.url_template:
            raise ConfigurationError('%s: wms url_template has no {bbox} placeholder' % (self.id, ))
        if self.max_in_flight < 1 or self.max_per_minute < 1:
            raise ConfigurationError('%s: request budget must be positive' % (self.id, ))
        reserved = sorted(set(self.params) & set(RESERVED_PARAMS))
        if reserved:
            raise ConfigurationError('%s: reserved template params %s' % (self.id, ', '.join(reserved)))
        params = self.template_params(z=0, x=0, y=0, time='', bbox='')
        for name in ('url_template', 'latest_template'):
            template = getattr(self, name)
            if not template:
                continue
            try:
                template.format(**params)
            except (KeyError, IndexError, ValueError) as ex:
                raise ConfigurationError('%s: invalid %s: %r' % (self.id, name, ex))

    @property
    def is_timed(self):
        return self.time_format != 'none'

    @property
    def is_image(self):
        return self.kind == 'image'

    def template_params(self, **kw):
        params = dict(self.params)
        if 'satellite' in params and 'sector' in params:
            params.setdefault('sector_path', goes_sector_path(params['satellite'], params['sector']))
        params.update(kw)
        return params

    def quantize(self, instant):
        """
        Round `instant` down to the native update boundary.
        """
        if self.quantization == 'floor':
            offset = int(self.time_offset * 60)
            return floor_minutes(instant - offset, self.cadence) + offset
        if self.quantization == 'date':
            return floor_date(instant)
        return int(instant)

    def format_time(self, instant):
        return timestamp_formatters[self.time_format](instant)

    def __repr__(self):
        return '<ProviderDescriptor %s %s>' % (self.id, self.origin)


class ProviderRegistry(object):
    def __init__(self, providers=()):
        self._providers = {}
        for provider in providers:
            self.add(provider)

    @classmethod
    def from_config(cls, providers_conf, provider_defaults):
        registry = cls()
        for provider_id, conf in sorted(providers_conf.items()):
            if conf is None:
                # disabled by configuration
                continue
            options = dict(provider_defaults)
            options.update(conf)
            registry.add(ProviderDescriptor(provider_id, **options))
        return registry

    def add(self, provider):
        if provider.id in self._providers:
            log.warning('provider %s configured twice, replacing', provider.id)
        self._providers[provider.id] = provider

    def get(self, provider_id):
        try:
            return self._providers[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id, self.ids())

    def ids(self):
        return sorted(self._providers)

    def fastest(self, provider_ids=None):
        """
        Return the timed provider with the shortest cadence.
        """
        candidates = [self.get(pid) for pid in (provider_ids or self.ids())]
        candidates = [p for p in candidates if p.is_timed and p.cadence]
        if not candidates:
            return None
        return min(candidates, key=lambda p: (p.cadence, p.id))

    def __contains__(self, provider_id):
        return provider_id in self._providers

    def __iter__(self):
        return iter(self._providers[pid] for pid in self.ids())

    def __len__(self):
        return len(self._providers)
