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

import time

import logging
log = logging.getLogger('tileloop.client')


class BackoffError(Exception):
    pass


def exp_backoff(func, args=(), kw={}, max_repeat=5, start_backoff_sec=1,
                exceptions=(Exception,), max_backoff=60, sleep=time.sleep):
    """
    Call `func` and retry with exponential backoff if it raises one of
    `exceptions`. A ``retry_after`` attribute on the exception (see
    `RateLimitExceeded`) takes precedence over the computed delay.

    :raises BackoffError: after `max_repeat` failed retries
    """
    n = 0
    while True:
        try:
            return func(*args, **kw)
        except exceptions as ex:
            if n >= max_repeat:
                log.error('giving up after %d retries: %s', n, ex)
                raise BackoffError(str(ex))
            wait_for = getattr(ex, 'retry_after', None)
            if wait_for is None:
                wait_for = start_backoff_sec * 2**n
            wait_for = min(wait_for, max_backoff)
            log.warning('an error occurred, retry in %.1f seconds: %r. retries left: %d',
                        wait_for, ex, max_repeat - n)
            sleep(wait_for)
            n += 1
