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
Thread pool for concurrent upstream requests.
"""
import queue
import sys
import threading

import logging
log_system = logging.getLogger('tileloop.system')


class AsyncResult(object):
    def __init__(self, arg, result=None, exception=None):
        self.arg = arg
        self.result = result
        self.exception = exception

    @property
    def ok(self):
        return self.exception is None

    def __repr__(self):
        return "<AsyncResult arg='%s' result='%s' exception='%s'>" % (
            self.arg, self.result, self.exception)


class ThreadWorker(threading.Thread):
    def __init__(self, task_queue, result_queue):
        threading.Thread.__init__(self)
        self.daemon = True
        self.task_queue = task_queue
        self.result_queue = result_queue

    def run(self):
        while True:
            task = self.task_queue.get()
            if task is None:
                self.task_queue.task_done()
                break
            func, arg = task
            try:
                result = AsyncResult(arg, result=func(arg))
            except Exception:
                result = AsyncResult(arg, exception=sys.exc_info()[1])
            self.result_queue.put(result)
            self.task_queue.task_done()


class ThreadPool(object):
    """
    Fixed number of worker threads. Exceptions of the called function are
    returned as part of the `AsyncResult`, they never stop the pool.
    """
    def __init__(self, size=4):
        self.pool_size = max(1, size)
        self.task_queue = queue.Queue()
        self.result_queue = queue.Queue()
        self.pool = None

    def __enter__(self):
        return self

    def __exit__(self, _exc_type, _exc_value, _traceback):
        self.shutdown()

    def imap_unordered(self, func, args):
        """
        Call `func` for each item of `args` and yield an `AsyncResult` as
        soon as each call settled.
        """
        args = list(args)
        if not args:
            return
        if self.pool_size < 2:
            for arg in args:
                try:
                    yield AsyncResult(arg, result=func(arg))
                except Exception:
                    yield AsyncResult(arg, exception=sys.exc_info()[1])
            return

        if self.pool is None:
            self.pool = self._init_pool()
        for arg in args:
            self.task_queue.put((func, arg))
        for _ in range(len(args)):
            yield self.result_queue.get()

    def shutdown(self):
        """
        Send shutdown sentinel to all worker threads.
        """
        if self.pool is None:
            return
        for _ in self.pool:
            self.task_queue.put(None)
        self.pool = None

    def _init_pool(self):
        pool = []
        for _ in range(self.pool_size):
            t = ThreadWorker(self.task_queue, self.result_queue)
            t.start()
            pool.append(t)
        log_system.debug('started %d workers', len(pool))
        return pool
