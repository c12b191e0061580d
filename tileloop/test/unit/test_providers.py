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

from tileloop.config import defaults
from tileloop.exception import ConfigurationError, UnknownProviderError
from tileloop.providers import ProviderDescriptor, ProviderRegistry, goes_sector_path

NOW = 1717930800  # 2024-06-09T11:00:00Z


def provider(**kw):
    options = dict(id='test', origin='https://tiles.example.org/',
                   url_template='/{time}/{z}/{x}/{y}.png', cadence=10,
                   quantization='floor', time_format='compact')
    options.update(kw)
    return ProviderDescriptor(**options)


class TestProviderDescriptor(object):
    def test_origin_stripped(self):
        assert provider().origin == 'https://tiles.example.org'

    def test_unknown_quantization(self):
        with pytest.raises(ConfigurationError):
            provider(quantization='round')

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError):
            provider(kind='wmts')

    def test_unknown_time_format(self):
        with pytest.raises(ConfigurationError):
            provider(time_format='unix')

    def test_floor_without_cadence(self):
        with pytest.raises(ConfigurationError):
            provider(cadence=0)

    def test_missing_time_placeholder(self):
        with pytest.raises(ConfigurationError):
            provider(url_template='/{z}/{x}/{y}.png')

    def test_wms_without_bbox(self):
        with pytest.raises(ConfigurationError):
            provider(kind='wms', url_template='/wms?TIME={time}')

    def test_invalid_budget(self):
        with pytest.raises(ConfigurationError):
            provider(max_per_minute=0)
        with pytest.raises(ConfigurationError):
            provider(max_in_flight=0)

    def test_untimed(self):
        p = provider(url_template='/{z}/{x}/{y}.png', time_format='none', quantization='none',
                     cadence=0)
        assert not p.is_timed
        assert p.quantize(NOW + 17) == NOW + 17

    def test_quantize_floor(self):
        p = provider(cadence=5)
        assert p.quantize(NOW + 299) == NOW
        assert p.quantize(NOW - 1) == NOW - 300

    def test_quantize_date(self):
        p = provider(quantization='date', time_format='date', cadence=1440)
        assert p.quantize(NOW) == 1717891200
        assert p.format_time(p.quantize(NOW)) == '2024-06-09'

    def test_quantize_floor_offset(self):
        p = provider(cadence=5, time_offset=1)
        assert p.quantize(NOW) == NOW - 240
        assert p.quantize(NOW + 60) == NOW + 60
        assert p.quantize(NOW + 359) == NOW + 60

    def test_template_params(self):
        p = provider(url_template='/{sector_path}/{band}/{time}.jpg', kind='image',
                     params=dict(satellite='GOES19', sector='CONUS', band='Band13'))
        assert p.template_params(time='x') == dict(
            satellite='GOES19', sector='CONUS', band='Band13',
            sector_path='/GOES19/ABI/CONUS', time='x')

    def test_unknown_placeholder(self):
        with pytest.raises(ConfigurationError):
            provider(url_template='/{band}/{time}/{z}/{x}/{y}.png')
        with pytest.raises(ConfigurationError):
            provider(latest_template='/{band}/latest.jpg')

    def test_reserved_params(self):
        with pytest.raises(ConfigurationError):
            provider(params=dict(time='now'))


class TestGoesSectorPath(object):
    def test_direct(self):
        assert goes_sector_path('GOES19', 'FD') == '/GOES19/ABI/FD'
        assert goes_sector_path('GOES18', 'CONUS') == '/GOES18/ABI/CONUS'

    def test_regional(self):
        assert goes_sector_path('GOES19', 'car') == '/GOES19/ABI/SECTOR/car'


class TestProviderRegistry(object):
    def test_builtin_providers(self, registry):
        assert registry.ids() == ['eox', 'gibs_goes', 'gibs_modis', 'iem', 'nowcoast', 'rainviewer',
                                  'star_goes']
        assert len(registry) == 7
        assert 'iem' in registry
        assert [p.id for p in registry] == registry.ids()

    def test_defaults_applied(self, registry):
        eox = registry.get('eox')
        assert eox.min_zoom == 0
        assert eox.forecast_steps == 0
        assert eox.kind == 'xyz'
        assert registry.get('nowcoast').kind == 'wms'
        assert registry.get('star_goes').is_image
        assert eox.params == {}

    def test_unknown(self, registry):
        with pytest.raises(UnknownProviderError) as exc_info:
            registry.get('foo')
        assert exc_info.value.provider_id == 'foo'
        assert 'iem' in exc_info.value.known

    def test_disabled_provider(self):
        providers = dict(defaults.providers)
        providers['eox'] = None
        registry = ProviderRegistry.from_config(providers, defaults.provider_defaults)
        assert 'eox' not in registry

    def test_add(self):
        registry = ProviderRegistry()
        registry.add(provider())
        assert registry.ids() == ['test']
        registry.add(provider(max_zoom=3))
        assert registry.get('test').max_zoom == 3

    def test_fastest(self, registry):
        assert registry.fastest().id == 'iem'
        assert registry.fastest(['rainviewer', 'gibs_modis']).id == 'rainviewer'
        assert registry.fastest(['gibs_goes', 'rainviewer']).id == 'gibs_goes'
        assert registry.fastest(['eox']) is None
