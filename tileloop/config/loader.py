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
Configuration loading and system initializing.
"""
import os

from tileloop.cache.file import FileResponseCache
from tileloop.cache.local import LocalTileCache
from tileloop.cache.memory import MemoryResponseCache
from tileloop.client.http import HTTPClient
from tileloop.config.config import _to_options_map, abspath, load_default_config
from tileloop.config.validator import validate
from tileloop.exception import ConfigurationError
from tileloop.prefetch.scheduler import PrefetchBudget
from tileloop.providers import ProviderRegistry
from tileloop.reconcile import TimestampReconciler
from tileloop.service.cors import parse_origins
from tileloop.service.proxy import ProxyService
from tileloop.timeline import build_timeline
from tileloop.urls import TileURLBuilder
from tileloop.util.py import cached_property, memoize
from tileloop.util.yaml import load_yaml_file, YAMLError

import logging
log = logging.getLogger('tileloop.config')

ALLOWED_ORIGINS_ENV = 'TILELOOP_ALLOWED_ORIGINS'


def load_configuration(conf_file=None, environ=None):
    """
    Load `conf_file` on top of the built-in defaults and return a
    `TileLoopConfiguration`. Without `conf_file` only the defaults are used.

    :raises ConfigurationError: for unreadable files and for every
        configuration that does not validate
    """
    if environ is None:
        environ = os.environ

    if conf_file is None:
        conf_base_dir = os.getcwd()
        conf_dict = {}
    else:
        conf_base_dir = os.path.abspath(os.path.dirname(conf_file))
        try:
            conf_dict = load_configuration_file([os.path.basename(conf_file)], conf_base_dir)
        except YAMLError as ex:
            raise ConfigurationError(ex)
        except IOError as ex:
            raise ConfigurationError('unable to read configuration: %s' % ex)

    config_files = conf_dict.pop('__config_files__', {})
    conf_dict = merge_dict(conf_dict, load_default_config())

    if environ.get(ALLOWED_ORIGINS_ENV) is not None:
        conf_dict['proxy']['allowed_origins'] = environ[ALLOWED_ORIGINS_ENV]

    errors = validate(conf_dict)
    for error in errors:
        log.warning(error)
    if errors:
        raise ConfigurationError('invalid configuration')

    conf = TileLoopConfiguration(conf_dict, conf_base_dir=conf_base_dir)
    conf.config_files = config_files
    if not len(conf.registry):
        log.warning('no providers configured')
    return conf


def load_configuration_file(files, working_dir):
    """
    Return configuration dict from imported files
    """
    # record all config files with timestamp for reloading
    conf_dict = {'__config_files__': {}}
    for conf_file in files:
        conf_file = os.path.normpath(os.path.join(working_dir, conf_file))
        log.info('reading: %s' % conf_file)
        current_dict = load_yaml_file(conf_file)
        conf_dict['__config_files__'][os.path.abspath(conf_file)] = os.path.getmtime(conf_file)
        if 'base' in current_dict:
            current_working_dir = os.path.dirname(conf_file)
            base_files = current_dict.pop('base')
            if isinstance(base_files, str):
                base_files = [base_files]
            imported_dict = load_configuration_file(base_files, current_working_dir)
            current_dict = merge_dict(current_dict, imported_dict)
        conf_dict = merge_dict(conf_dict, current_dict)

    return conf_dict


def merge_dict(conf, base):
    """
    Return `base` dict with values from `conf` merged in.

    >>> merge_dict({'proxy': {'default_ttl': 60}}, {'proxy': {'default_ttl': 300, 'collapse_requests': False}})
    {'proxy': {'default_ttl': 60, 'collapse_requests': False}}
    """
    for k, v in conf.items():
        if k not in base:
            base[k] = v
        elif k == 'providers' and isinstance(v, dict) and isinstance(base[k], dict):
            base[k] = merge_providers(v, base[k])
        elif isinstance(base[k], dict):
            if v is not None:
                base[k] = merge_dict(v, base[k])
        else:
            base[k] = v
    return base


def merge_providers(conf, base):
    """
    Merge provider definitions. A ``null`` provider removes the
    built-in provider of that name.

    >>> merge_providers({'a': None, 'b': {'max_zoom': 5}}, {'a': {}, 'b': {'max_zoom': 7, 'cadence': 10}})
    {'a': None, 'b': {'max_zoom': 5, 'cadence': 10}}
    """
    for provider_id, provider_conf in conf.items():
        if provider_conf is None or not isinstance(base.get(provider_id), dict):
            base[provider_id] = provider_conf
        else:
            base[provider_id] = merge_dict(provider_conf, base[provider_id])
    return base


class TileLoopConfiguration(object):
    """
    Validated configuration with factories for all runtime components.
    Components are created once per configuration.
    """
    def __init__(self, conf, conf_base_dir=None):
        if conf_base_dir is None:
            conf_base_dir = os.getcwd()
        self.conf_base_dir = conf_base_dir
        self.configuration = _to_options_map(conf)
        self.debug_mode = bool(self.configuration.get('debug_mode'))
        self.config_files = {}

        self.globals = self.configuration.globals
        self.proxy = self.configuration.proxy
        self.cache = self.configuration.cache
        self.timeline = self.configuration.timeline
        self.prefetch = self.configuration.prefetch
        self.playback = self.configuration.playback

    @cached_property
    def registry(self):
        try:
            return ProviderRegistry.from_config(
                self.configuration.providers, self.configuration.provider_defaults)
        except TypeError as ex:
            raise ConfigurationError('invalid provider configuration: %s' % ex)

    @property
    def allowed_origins(self):
        return parse_origins(self.proxy.allowed_origins)

    def abspath(self, path):
        return abspath(path, self.conf_base_dir)

    @memoize
    def http_client(self):
        return HTTPClient(timeout=self.globals.client_timeout,
                          user_agent=self.globals.user_agent)

    @memoize
    def edge_cache(self):
        cache_type = self.cache.type
        if cache_type == 'memory':
            return MemoryResponseCache(max_entries=self.cache.max_entries)
        if cache_type == 'file':
            return FileResponseCache(self.abspath(self.cache.directory))
        raise ConfigurationError('unknown edge cache type: %s' % (cache_type, ))

    @memoize
    def local_cache(self):
        return LocalTileCache(
            self.abspath(self.cache.local_file),
            http_client=self.http_client(),
            max_age=self.cache.local_max_age,
            timeout=self.cache.sqlite_timeout,
        )

    @memoize
    def proxy_service(self):
        return ProxyService(
            self.registry,
            self.edge_cache(),
            self.http_client(),
            allowed_origins=self.allowed_origins,
            default_ttl=self.proxy.default_ttl,
            collapse_requests=self.proxy.collapse_requests,
        )

    @memoize
    def reconciler(self):
        return TimestampReconciler(self.registry)

    @memoize
    def url_builder(self):
        return TileURLBuilder(self.registry, self.reconciler(),
                              proxy_url=self.globals.proxy_url)

    def timeline_provider(self, layers=None):
        """
        Return the provider that drives the frame instants: the configured
        ``timeline.provider`` or the timed provider with the shortest cadence
        among `layers`.
        """
        provider_id = self.timeline.provider
        if provider_id:
            return self.registry.get(provider_id)
        provider = None
        if layers:
            provider = self.registry.fastest(
                [pid for pid in layers if pid in self.registry])
        if provider is None:
            provider = self.registry.fastest()
        return provider

    def build_timeline(self, layers=None, now=None):
        return build_timeline(
            self.timeline_provider(layers),
            now=now,
            history=self.timeline.history,
            refresh_interval=self.timeline.refresh_interval,
        )

    def prefetch_budget(self, provider_id):
        return PrefetchBudget.for_provider(
            self.registry.get(provider_id),
            margin=self.prefetch.budget_margin,
            inter_batch_delay=self.prefetch.inter_batch_delay,
        )
