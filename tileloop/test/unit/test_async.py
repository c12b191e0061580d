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

from tileloop.util.async_ import ThreadPool


class TestThreadPool(object):
    def test_concurrent(self):
        def func(x):
            time.sleep(0.05)
            return x * 2
        start = time.time()
        with ThreadPool(10) as pool:
            results = list(pool.imap_unordered(func, range(20)))
        duration = time.time() - start
        assert duration < 0.5, "took %s" % duration
        assert sorted(r.result for r in results) == list(range(0, 40, 2))
        assert all(r.ok for r in results)

    def test_exceptions_are_results(self):
        def func(x):
            if x % 2:
                raise ValueError(x)
            return x
        with ThreadPool(4) as pool:
            results = list(pool.imap_unordered(func, range(10)))
        assert len(results) == 10
        failed = sorted(r.arg for r in results if not r.ok)
        assert failed == [1, 3, 5, 7, 9]
        assert all(isinstance(r.exception, ValueError) for r in results if not r.ok)

    def test_single_worker_in_order(self):
        threads = set()

        def func(x):
            threads.add(threading.current_thread())
            return x
        pool = ThreadPool(1)
        results = list(pool.imap_unordered(func, range(5)))
        assert [r.result for r in results] == [0, 1, 2, 3, 4]
        assert threads == {threading.current_thread()}

    def test_empty(self):
        with ThreadPool(4) as pool:
            assert list(pool.imap_unordered(lambda x: x, [])) == []

    def test_reuse(self):
        with ThreadPool(3) as pool:
            assert len(list(pool.imap_unordered(lambda x: x, range(5)))) == 5
            assert len(list(pool.imap_unordered(lambda x: x, range(7)))) == 7
