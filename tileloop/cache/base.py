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
Edge tier response caches, keyed by the fully resolved upstream URL.
"""
import hashlib
import time
from abc import ABC, abstractmethod


class CacheBackendError(Exception):
    pass


def cache_key(url):
    """
    Stable storage key for `url`.

    >>> cache_key('https://example.org/1/2/3.png')
    '67b2960aba275f7994beb26e1fbd65c1'
    """
    return hashlib.new('md5', url.encode('utf-8'), usedforsecurity=False).hexdigest()


class CachedResponse(object):
    """
    A stored upstream response. Only successful responses are ever stored.
    """
    def __init__(self, body, content_type, ttl, stored_at=None, status=200):
        self.body = body
        self.content_type = content_type
        self.ttl = ttl
        self.stored_at = time.time() if stored_at is None else stored_at
        self.status = status

    def is_expired(self, now=None):
        if now is None:
            now = time.time()
        return now >= self.stored_at + self.ttl

    @property
    def size(self):
        return len(self.body)

    def __repr__(self):
        return '<CachedResponse %s %d bytes ttl=%d>' % (self.content_type, self.size, self.ttl)


class ResponseCacheBase(ABC):
    """
    Base implementation of an edge response cache.
    """
    def __init__(self, clock=time.time):
        self.clock = clock

    def load(self, url):
        """
        Return the `CachedResponse` for `url` or ``None``. Expired entries
        are removed and never returned.
        """
        entry = self._load(url)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            self.remove(url)
            return None
        return entry

    def store(self, url, entry):
        if not (200 <= entry.status < 300):
            raise CacheBackendError('refusing to cache status %d for %s' % (entry.status, url))
        if entry.ttl <= 0:
            return False
        return self._store(url, entry)

    @abstractmethod
    def _load(self, url):
        pass

    @abstractmethod
    def _store(self, url, entry):
        pass

    @abstractmethod
    def remove(self, url):
        pass

    def cleanup(self):
        pass
