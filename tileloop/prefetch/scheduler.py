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
Budget-constrained prefetching of frame x tile sets.
"""
import math
import threading
import time
from collections import namedtuple

from tileloop.util.async_ import ThreadPool
from tileloop.util.backoff import exp_backoff
from tileloop.util.ratelimit import SlidingWindowLimiter

import logging
log = logging.getLogger('tileloop.prefetch')


class PrefetchItem(namedtuple('PrefetchItem', 'frame coord')):
    __slots__ = ()


class Progress(namedtuple('Progress', 'completed total failed')):
    """
    `completed` counts every settled item, failed or not.
    """
    __slots__ = ()

    @property
    def fraction(self):
        if not self.total:
            return 1.0
        return self.completed / self.total

    @property
    def percent(self):
        return self.fraction * 100

    @property
    def is_complete(self):
        return self.completed >= self.total

    def __str__(self):
        return '%6.2f%% (%d/%d, %d failed)' % (self.percent, self.completed, self.total, self.failed)


class PrefetchBudget(object):
    """
    Request budget of one job.

    The batch size is limited by the provider's maximum in-flight requests
    and the delay between batches is stretched so that
    ``batches_per_minute * batch_size`` stays within `margin` of the
    per-minute budget. A sliding window limiter enforces `max_per_minute`
    for every dispatched request.
    """
    def __init__(self, max_in_flight, max_per_minute, margin=0.8, inter_batch_delay=0.1):
        self.max_per_minute = max_per_minute
        self.per_minute = max(1, int(math.floor(max_per_minute * margin)))
        self.batch_size = max(1, min(max_in_flight, self.per_minute))
        self.inter_batch_delay = max(inter_batch_delay, 60.0 * self.batch_size / self.per_minute)

    @classmethod
    def for_provider(cls, provider, margin=0.8, inter_batch_delay=0.1):
        return cls(provider.max_in_flight, provider.max_per_minute,
                   margin=margin, inter_batch_delay=inter_batch_delay)

    def __repr__(self):
        return '<PrefetchBudget batch_size=%d delay=%.2fs max_per_minute=%d>' % (
            self.batch_size, self.inter_batch_delay, self.max_per_minute)


def plan_items(frames, coords, current=None):
    """
    Return the cross product of `frames` and `coords`. All tiles of the
    `current` frame (default: the newest frame) come first, followed by
    the remaining frames from newest to oldest.
    """
    frames = list(frames)
    coords = list(coords)
    if not frames or not coords:
        return []
    ordered = sorted(frames, key=lambda f: f.instant, reverse=True)
    if current is None:
        current = ordered[0]
    ordered = [current] + [f for f in ordered if f != current]
    return [PrefetchItem(frame, coord) for frame in ordered for coord in coords]


def batches(items, size):
    for i in range(0, len(items), size):
        yield items[i:i + size]


class PrefetchJob(object):
    """
    One planned sweep over a frame x tile set.

    `fetch` is called with each `PrefetchItem`; an exception marks the item
    as failed. Failures never stop the job.

    Exceptions listed in `retry_on` are retried up to `retries` times with
    exponential backoff. Each retry waits for a slot of the rate limiter,
    like the first attempt, and is recorded in `dispatched`.

    A job is superseded with `supersede`: batches already dispatched settle
    normally, but no further batches are started.
    """
    def __init__(self, frames, coords, fetch, budget, current=None, name=None,
                 on_progress=None, clock=time.monotonic, sleep=time.sleep,
                 retry_on=(), retries=0):
        self.items = plan_items(frames, coords, current=current)
        self.fetch = fetch
        self.budget = budget
        self.name = name or 'prefetch'
        self.on_progress = on_progress
        self.clock = clock
        self.sleep = sleep
        self.retry_on = tuple(retry_on)
        self.retries = retries
        self.limiter = SlidingWindowLimiter(budget.per_minute, 60.0, clock=clock, sleep=sleep)
        self.progress = Progress(0, len(self.items), 0)
        self.dispatched = []
        self.done = threading.Event()
        self._superseded = threading.Event()
        self._lock = threading.Lock()
        self._last_log = None

    @property
    def total(self):
        return len(self.items)

    @property
    def superseded(self):
        return self._superseded.is_set()

    def supersede(self):
        if not self.done.is_set():
            log.info('%s: superseded at %s', self.name, self.progress)
        self._superseded.set()

    def _acquire(self, item):
        self.dispatched.append((self.limiter.acquire(), item))

    def _fetch_item(self, item):
        if not self.retry_on or not self.retries:
            return self.fetch(item)
        attempts = [0]

        def attempt():
            if attempts[0]:
                self._acquire(item)
            attempts[0] += 1
            return self.fetch(item)
        return exp_backoff(attempt, max_repeat=self.retries, exceptions=self.retry_on,
                           sleep=self.sleep)

    def _settled(self, result):
        with self._lock:
            failed = self.progress.failed
            if not result.ok:
                failed += 1
                log.warning('%s: failed to fetch %s %s: %s', self.name,
                            result.arg.frame, result.arg.coord, result.exception)
            self.progress = Progress(self.progress.completed + 1, self.total, failed)
            progress = self.progress
        self._log_progress(progress)
        if self.on_progress is not None:
            self.on_progress(self, progress)
        return progress

    def _log_progress(self, progress):
        now = self.clock()
        if progress.is_complete or self._last_log is None or now - self._last_log >= 1.0:
            self._last_log = now
            log.info('%s: %s', self.name, progress)

    def iter_progress(self):
        """
        Run the job and yield the `Progress` after each settled item.
        """
        try:
            if not self.items:
                yield self.progress
                return
            log.info('%s: %d tiles with %r', self.name, self.total, self.budget)
            with ThreadPool(self.budget.batch_size) as pool:
                for i, batch in enumerate(batches(self.items, self.budget.batch_size)):
                    if self.superseded:
                        break
                    if i > 0:
                        self.sleep(self.budget.inter_batch_delay)
                        if self.superseded:
                            break
                    for result in pool.imap_unordered(self._fetch_item, self._dispatch(batch)):
                        yield self._settled(result)
        finally:
            self.done.set()

    def _dispatch(self, batch):
        for item in batch:
            self._acquire(item)
            yield item

    def run(self):
        """
        Run the job to completion (or until superseded) and return the final
        `Progress`.
        """
        for _ in self.iter_progress():
            pass
        return self.progress

    def wait(self, timeout=None):
        return self.done.wait(timeout)

    def __repr__(self):
        return '<PrefetchJob %s %s>' % (self.name, self.progress)


class PrefetchScheduler(object):
    """
    Runs prefetch jobs in background threads. Submitting a new job for a
    name supersedes the running job of the same name.
    """
    def __init__(self, clock=time.monotonic, sleep=time.sleep):
        self.clock = clock
        self.sleep = sleep
        self.jobs = {}
        self._lock = threading.Lock()

    def submit(self, name, frames, coords, fetch, budget, current=None, on_progress=None,
               background=True, retry_on=(), retries=0):
        job = PrefetchJob(frames, coords, fetch, budget, current=current, name=name,
                          on_progress=on_progress, clock=self.clock, sleep=self.sleep,
                          retry_on=retry_on, retries=retries)
        with self._lock:
            old = self.jobs.get(name)
            if old is not None:
                old.supersede()
            self.jobs[name] = job
        if background:
            t = threading.Thread(target=job.run, name='tileloop-%s' % (name, ))
            t.daemon = True
            t.start()
        else:
            job.run()
        return job

    def supersede_all(self):
        with self._lock:
            for job in self.jobs.values():
                job.supersede()
            self.jobs = {}

    def wait(self, timeout=None):
        """
        Wait for all current jobs. Returns ``True`` if all jobs are done.
        """
        with self._lock:
            jobs = list(self.jobs.values())
        return all(job.wait(timeout) for job in jobs)
