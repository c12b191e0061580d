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
Build upstream tile URLs from provider templates.
"""
from tileloop.exception import TileOutOfRange
from tileloop.grid import check_tile, format_bbox, tile_bbox
from tileloop.reconcile import LATEST, UNAVAILABLE

import logging
log = logging.getLogger('tileloop.urls')


class TileURLBuilder(object):
    """
    Pure URL construction. The same input always gives the same URL, both
    cache tiers key on it.

    :param proxy_url: optional edge proxy base URL. Built URLs are routed
        through ``{proxy_url}/{provider_id}/...`` when set.
    """
    def __init__(self, registry, reconciler=None, proxy_url=None):
        self.registry = registry
        self.reconciler = reconciler
        self.proxy_url = proxy_url.rstrip('/') if proxy_url else None

    def build(self, provider_id, timestamp, coord, now=None):
        """
        Return the URL for `coord` at the resolved `timestamp` (an
        `UpstreamTimestamp` or `LATEST`).

        :raises TileOutOfRange: for tiles outside the grid or above the
            provider's maximum zoom
        """
        provider = self.registry.get(provider_id)
        coord = check_tile(coord, max_zoom=provider.max_zoom, min_zoom=provider.min_zoom)
        if timestamp is UNAVAILABLE:
            raise ValueError('cannot build URL for an unavailable timestamp')

        template = provider.url_template
        time_text = ''
        if provider.is_timed:
            if timestamp is LATEST:
                if provider.latest_template:
                    template = provider.latest_template
                else:
                    time_text = self._latest_text(provider_id, now)
            else:
                time_text = timestamp.text

        params = provider.template_params(z=coord.z, x=coord.x, y=coord.y, time=time_text)
        if '{bbox}' in template:
            params['bbox'] = format_bbox(tile_bbox(coord))
        return self.route(provider, provider.origin + template.format(**params))

    def _latest_text(self, provider_id, now):
        if self.reconciler is None:
            raise ValueError('%s: LATEST needs a reconciler' % (provider_id, ))
        return self.reconciler.latest(provider_id, now=now).text

    def route(self, provider, url):
        """
        Rewrite an upstream `url` of `provider` to go through the edge proxy.
        """
        if not self.proxy_url:
            return url
        if not url.startswith(provider.origin):
            return url
        return '%s/%s%s' % (self.proxy_url, provider.id, url[len(provider.origin):])

    def proxied_url(self, url):
        """
        Rewrite any upstream `url` of a registered provider to go through
        the edge proxy. URLs of unknown origins are returned unchanged.
        """
        for provider in self.registry:
            if url.startswith(provider.origin + '/'):
                return self.route(provider, url)
        return url

    def frame_urls(self, provider_id, instant, coords, now=None):
        """
        Return ``(coord, url)`` for all `coords` of one frame. Unpublished
        instants fall back to `LATEST`, tiles above the provider's zoom range
        are skipped.
        """
        timestamp = self.reconciler.resolve_or_latest(provider_id, instant, now=now)
        result = []
        for coord in coords:
            try:
                result.append((coord, self.build(provider_id, timestamp, coord, now=now)))
            except TileOutOfRange as ex:
                log.debug('skipping tile: %s', ex)
        return result
