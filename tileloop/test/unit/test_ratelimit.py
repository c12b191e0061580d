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

from tileloop.util.ratelimit import SlidingWindowLimiter


def max_in_window(times, window):
    return max(len([t for t in times if start <= t < start + window]) for start in times)


class TestSlidingWindowLimiter(object):
    def test_within_budget(self, clock):
        limiter = SlidingWindowLimiter(5, 60, clock=clock, sleep=clock.sleep)
        times = [limiter.acquire() for _ in range(5)]
        assert times == [clock.now] * 5
        assert clock.sleeps == []
        assert limiter.in_window == 5

    def test_blocks_until_window_moves(self, clock):
        start = clock.now
        limiter = SlidingWindowLimiter(5, 60, clock=clock, sleep=clock.sleep)
        times = [limiter.acquire() for _ in range(12)]
        assert times[:5] == [start] * 5
        assert times[5] == pytest.approx(start + 60, abs=0.01)
        assert times[10] == pytest.approx(start + 120, abs=0.01)
        assert max_in_window(times, 60) <= 5

    def test_spread_out_requests(self, clock):
        limiter = SlidingWindowLimiter(3, 60, clock=clock, sleep=clock.sleep)
        times = []
        for _ in range(10):
            times.append(limiter.acquire())
            clock.advance(7)
        assert max_in_window(times, 60) <= 3

    def test_invalid(self):
        with pytest.raises(ValueError):
            SlidingWindowLimiter(0)
