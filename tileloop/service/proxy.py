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
Edge cache proxy for upstream tile providers.
"""
import json
import re

from tileloop.cache.base import CachedResponse
from tileloop.exception import NetworkError
from tileloop.response import Response
from tileloop.service.cors import cors_headers
from tileloop.util.lock import DummyLock, KeyedLocks

import logging
log = logging.getLogger('tileloop.proxy')

path_re = re.compile(r'^/([^/]+)(/.*)?$')


class ProxyService(object):
    """
    Stateless request handler between clients and upstream origins.

    Successful upstream responses are stored in `cache` with the provider's
    lifetime, everything else is passed through and never stored.

    :param registry: `ProviderRegistry`
    :param cache: a `ResponseCacheBase`
    :param http_client: `HTTPClient` for upstream requests
    :param collapse_requests: serialize concurrent misses for the same URL,
        so that only the first one goes upstream
    """
    def __init__(self, registry, cache, http_client, allowed_origins=(),
                 default_ttl=300, collapse_requests=False):
        self.registry = registry
        self.cache = cache
        self.http_client = http_client
        self.allowed_origins = list(allowed_origins)
        self.default_ttl = default_ttl
        self.inflight = KeyedLocks() if collapse_requests else None

    def handle(self, req):
        if req.method == 'OPTIONS':
            resp = Response(b'', status=204)
        elif req.method not in ('GET', 'HEAD'):
            resp = Response('method not allowed', status=405)
            resp.headers['Allow'] = 'GET, HEAD, OPTIONS'
        elif req.path in ('', '/', '/health'):
            resp = self.health()
        else:
            resp = self.proxy(req)
        resp.headers.update(cors_headers(req.origin, self.allowed_origins))
        return resp

    def health(self):
        doc = {'status': 'ok', 'upstreams': self.registry.ids()}
        return Response(json.dumps(doc), mimetype='application/json')

    def upstream_url(self, provider, upstream_path, query_string):
        url = provider.origin + upstream_path
        if query_string:
            url += '?' + query_string
        return url

    def proxy(self, req):
        match = path_re.match(req.path)
        if not match:
            return Response('Invalid path', status=400)
        provider_id, upstream_path = match.group(1), match.group(2) or ''
        if provider_id not in self.registry:
            return Response('Unknown provider: %s. Valid: %s' % (
                provider_id, ', '.join(self.registry.ids())), status=400)

        provider = self.registry.get(provider_id)
        url = self.upstream_url(provider, upstream_path, req.query_string)
        ttl = provider.cache_ttl if provider.cache_ttl is not None else self.default_ttl

        entry = self.cache.load(url)
        if entry is not None:
            return self._cached_response(entry, 'HIT', ttl)

        lock = self.inflight.lock(url) if self.inflight is not None else DummyLock()
        with lock:
            if self.inflight is not None:
                # another request may have stored it while we waited
                entry = self.cache.load(url)
                if entry is not None:
                    return self._cached_response(entry, 'HIT', ttl)
            return self._fetch(req, url, ttl)

    def _fetch(self, req, url, ttl):
        try:
            upstream = self.http_client.request(url, headers={
                'Accept': req.header('Accept') or 'image/*'})
        except NetworkError as ex:
            log.warning('fetch error for %s: %s', url, ex)
            return Response('Fetch error: %s' % (ex, ), status=502)

        if not upstream.ok:
            log.info('upstream error %d for %s, not cached', upstream.status, url)
            resp = Response(upstream.body, status=upstream.status,
                            content_type=upstream.headers.get('Content-Type'))
            return resp

        entry = CachedResponse(upstream.body, upstream.content_type, ttl,
                               stored_at=self.cache.clock())
        self.cache.store(url, entry)
        return self._cached_response(entry, 'MISS', ttl)

    def _cached_response(self, entry, cache_status, ttl):
        resp = Response(entry.body, content_type=entry.content_type)
        resp.cache_headers(max_age=ttl)
        resp.headers['X-Cache'] = cache_status
        return resp
