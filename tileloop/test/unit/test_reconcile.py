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

from tileloop.exception import NotYetPublished, UnknownProviderError
from tileloop.reconcile import (
    LATEST,
    UNAVAILABLE,
    TimestampReconciler,
    UpstreamTimestamp,
)

NOW = 1717930800  # 2024-06-09T11:00:00Z


@pytest.fixture
def reconciler(registry):
    return TimestampReconciler(registry, clock=lambda: NOW)


class TestResolve(object):
    def test_compact(self, reconciler):
        assert reconciler.resolve('iem', NOW - 180) == UpstreamTimestamp(NOW - 300, '202406091055')

    def test_epoch(self, reconciler):
        assert reconciler.resolve('rainviewer', NOW - 180) == UpstreamTimestamp(NOW - 600, '1717930200')

    def test_iso8601(self, reconciler):
        ts = reconciler.resolve('gibs_goes', NOW - 1)
        assert ts.text == '2024-06-09T10:50:00Z'
        assert str(ts) == '2024-06-09T10:50:00Z'

    def test_date(self, reconciler):
        assert reconciler.resolve('gibs_modis', NOW).text == '2024-06-09'

    def test_untimed(self, reconciler):
        assert reconciler.resolve('eox', NOW) is LATEST
        assert reconciler.resolve('eox', NOW + 86400) is LATEST

    def test_unknown_provider(self, reconciler):
        with pytest.raises(UnknownProviderError):
            reconciler.resolve('foo', NOW)

    def test_deterministic(self, reconciler, registry):
        instants = [NOW - i * 97 for i in range(200)]
        for provider_id in registry.ids():
            first = [reconciler.resolve(provider_id, t) for t in instants]
            second = [reconciler.resolve(provider_id, t) for t in reversed(instants)]
            assert first == list(reversed(second))

    def test_same_bucket_same_timestamp(self, reconciler):
        bucket_start = NOW - 300
        results = set(reconciler.resolve('iem', t) for t in range(bucket_start, NOW, 37))
        results.add(reconciler.resolve('iem', NOW - 1))
        assert results == {UpstreamTimestamp(NOW - 300, '202406091055')}
        assert reconciler.resolve('iem', NOW) != reconciler.resolve('iem', NOW - 1)

    def test_explicit_now(self, registry):
        reconciler = TimestampReconciler(registry, clock=lambda: 0)
        assert reconciler.resolve('iem', NOW, now=NOW).text == '202406091100'


class TestFutureInstants(object):
    def test_two_hours_ahead(self, reconciler):
        # iem has a 20 minutes publish tolerance
        assert reconciler.resolve('iem', NOW + 2 * 3600) is UNAVAILABLE

    def test_within_tolerance(self, reconciler):
        assert reconciler.resolve('iem', NOW + 20 * 60).text == '202406091120'
        assert reconciler.resolve('iem', NOW + 20 * 60 + 1) is UNAVAILABLE

    def test_zero_tolerance(self, reconciler):
        assert reconciler.resolve('gibs_modis', NOW).text == '2024-06-09'
        assert reconciler.resolve('gibs_modis', NOW + 1) is UNAVAILABLE

    def test_resolve_or_latest(self, reconciler):
        assert reconciler.resolve_or_latest('iem', NOW + 2 * 3600) is LATEST
        assert reconciler.resolve_or_latest('iem', NOW - 180).text == '202406091055'

    def test_resolve_strict(self, reconciler):
        with pytest.raises(NotYetPublished) as exc_info:
            reconciler.resolve_strict('iem', NOW + 2 * 3600)
        assert exc_info.value.provider_id == 'iem'
        assert reconciler.resolve_strict('iem', NOW).text == '202406091100'


class TestLatest(object):
    def test_publish_delay(self, reconciler):
        assert reconciler.latest('iem') == UpstreamTimestamp(NOW - 300, '202406091055')
        assert reconciler.latest('rainviewer').text == '1717930200'

    def test_daily(self, reconciler):
        assert reconciler.latest('gibs_modis').text == '2024-06-08'

    def test_untimed(self, reconciler):
        assert reconciler.latest('eox') is LATEST

    def test_markers(self):
        assert repr(LATEST) == 'LATEST'
        assert repr(UNAVAILABLE) == 'UNAVAILABLE'
        assert LATEST is not UNAVAILABLE
