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

import json
import os
import time

from tileloop.cache.base import CachedResponse, ResponseCacheBase, cache_key
from tileloop.util.fs import ensure_directory, remove_file, write_atomic

import logging
log = logging.getLogger('tileloop.cache.file')


class FileResponseCache(ResponseCacheBase):
    """
    Response cache in a directory, shared by all processes on one host.

    Each entry is a single file: one JSON header line followed by the raw
    body. Files are written atomically.
    """
    def __init__(self, cache_dir, clock=time.time):
        ResponseCacheBase.__init__(self, clock=clock)
        self.cache_dir = cache_dir

    def location(self, url):
        """
        >>> c = FileResponseCache('/tmp/edge')
        >>> c.location('https://example.org/1/2/3.png').replace('\\\\', '/')
        '/tmp/edge/67/b2/67b2960aba275f7994beb26e1fbd65c1'
        """
        key = cache_key(url)
        return os.path.join(self.cache_dir, key[:2], key[2:4], key)

    def _load(self, url):
        location = self.location(url)
        try:
            with open(location, 'rb') as f:
                header = json.loads(f.readline().decode('utf-8'))
                body = f.read()
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as ex:
            log.warning('unable to read cache entry %s: %s', location, ex)
            return None
        if header.get('url') != url:
            # md5 collision or foreign file
            return None
        return CachedResponse(body, header['content_type'], header['ttl'],
                              stored_at=header['stored_at'], status=header['status'])

    def _store(self, url, entry):
        location = self.location(url)
        header = dict(url=url, content_type=entry.content_type, ttl=entry.ttl,
                      stored_at=entry.stored_at, status=entry.status)
        data = json.dumps(header).encode('utf-8') + b'\n' + entry.body
        try:
            ensure_directory(location)
            write_atomic(location, data)
        except OSError as ex:
            log.warning('unable to store cache entry %s: %s', location, ex)
            return False
        return True

    def remove(self, url):
        remove_file(self.location(url))
