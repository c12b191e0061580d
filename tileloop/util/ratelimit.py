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
from collections import deque


class SlidingWindowLimiter(object):
    """
    Allows at most `max_requests` calls to `acquire` within any `window`
    seconds. `acquire` blocks (via `sleep`) until a slot is free.
    """
    def __init__(self, max_requests, window=60.0, clock=time.monotonic, sleep=time.sleep):
        if max_requests < 1:
            raise ValueError('max_requests must be positive')
        self.max_requests = max_requests
        self.window = window
        self.clock = clock
        self.sleep = sleep
        self._dispatched = deque()
        self._lock = threading.Lock()

    def acquire(self):
        """
        Wait for a free slot and record the dispatch. Returns the dispatch
        time.
        """
        while True:
            with self._lock:
                now = self.clock()
                while self._dispatched and self._dispatched[0] <= now - self.window:
                    self._dispatched.popleft()
                if len(self._dispatched) < self.max_requests:
                    self._dispatched.append(now)
                    return now
                wait_for = self._dispatched[0] + self.window - now
            self.sleep(max(wait_for, 0.001))

    @property
    def in_window(self):
        with self._lock:
            return len(self._dispatched)
