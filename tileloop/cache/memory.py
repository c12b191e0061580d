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

import threading
import time
from collections import OrderedDict

from tileloop.cache.base import ResponseCacheBase

import logging
log = logging.getLogger('tileloop.cache.memory')


class MemoryResponseCache(ResponseCacheBase):
    """
    Per-process response cache with LRU eviction.
    """
    def __init__(self, max_entries=10000, clock=time.time):
        ResponseCacheBase.__init__(self, clock=clock)
        self.max_entries = max_entries
        self._entries = OrderedDict()
        self._lock = threading.Lock()

    def _load(self, url):
        with self._lock:
            entry = self._entries.get(url)
            if entry is not None:
                self._entries.move_to_end(url)
            return entry

    def _store(self, url, entry):
        with self._lock:
            self._entries[url] = entry
            self._entries.move_to_end(url)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                log.debug('evicted %s', evicted)
        return True

    def remove(self, url):
        with self._lock:
            self._entries.pop(url, None)

    def cleanup(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        return len(self._entries)
