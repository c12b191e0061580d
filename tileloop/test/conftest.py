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

import pytest

from tileloop.test.image import create_tmp_image


class FakeClock(object):
    """
    Manually advanced clock. Calling `sleep` advances the time instead of
    blocking.
    """
    def __init__(self, now=1717930800.0):
        self.now = now
        self.sleeps = []
        self._lock = threading.Lock()

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        with self._lock:
            self.sleeps.append(seconds)
            if seconds > 0:
                self.now += seconds

    def advance(self, seconds):
        with self._lock:
            self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="session")
def tile_png():
    return create_tmp_image((256, 256), format='png')


@pytest.fixture
def registry():
    from tileloop.config import defaults
    from tileloop.providers import ProviderRegistry
    return ProviderRegistry.from_config(defaults.providers, defaults.provider_defaults)
