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

import bisect
import threading

import pytest

from tileloop.cache.local import LocalTileCache
from tileloop.client.http import HTTPResponse
from tileloop.exception import NetworkError, RateLimitExceeded
from tileloop.loop import FrameRender, LayerRender, WeatherLoop
from tileloop.playback import LayerSet, Viewport
from tileloop.prefetch.scheduler import PrefetchBudget, PrefetchScheduler
from tileloop.providers import ProviderRegistry
from tileloop.reconcile import TimestampReconciler
from tileloop.timeline import Frame, Timeline
from tileloop.urls import TileURLBuilder

NOW = 1717930800
VIEWPORT = Viewport((-180, -85, 180, 85), 1)


def max_in_window(times, window=60.0):
    times = sorted(times)
    return max(bisect.bisect_left(times, t + window) - i for i, t in enumerate(times))


class FakeHTTPClient(object):
    def __init__(self, body, fail_urls=(), clock=None):
        self.body = body
        self.fail_urls = set(fail_urls)
        self.rate_limited = {}
        self.retry_after = 7
        self.clock = clock
        self.requested = []
        self.request_times = []
        self._lock = threading.Lock()

    def open(self, url):
        with self._lock:
            self.requested.append(url)
            if self.clock is not None:
                self.request_times.append(self.clock())
        if url in self.fail_urls:
            raise NetworkError('connection refused', url=url)
        if self.rate_limited.get(url):
            self.rate_limited[url] -= 1
            raise RateLimitExceeded('429 Too Many Requests', url=url, retry_after=self.retry_after)
        return HTTPResponse(url, 200, self.body, {'Content-Type': 'image/png'})


@pytest.fixture
def registry():
    return ProviderRegistry.from_config({
        'radar': dict(
            origin='https://radar.example.org',
            url_template='/radar/{time}/{z}/{x}/{y}.png',
            cadence=10, quantization='floor', time_format='epoch',
            max_zoom=7, max_in_flight=4, max_per_minute=600,
        ),
        'basemap': dict(
            origin='https://base.example.org',
            url_template='/base/{z}/{x}/{y}.png',
        ),
        'sector': dict(
            origin='https://img.example.org',
            kind='image',
            url_template='{sector_path}/{band}/{time}.jpg',
            latest_template='{sector_path}/{band}/latest.jpg',
            params=dict(satellite='GOES19', sector='ne', band='GEOCOLOR'),
            cadence=10, quantization='floor', time_format='julian',
            max_zoom=0, max_in_flight=4, max_per_minute=600,
        ),
    }, {})


@pytest.fixture
def timeline():
    frames = [Frame(NOW - (5 - i) * 600, i, False) for i in range(6)]
    return Timeline(frames, NOW)


@pytest.fixture
def http_client(tile_png):
    return FakeHTTPClient(tile_png)


@pytest.fixture
def local_cache(tmpdir, http_client):
    cache = LocalTileCache(tmpdir.join('tiles.sqlite').strpath, http_client=http_client)
    yield cache
    cache.cleanup()


@pytest.fixture
def make_loop(registry, local_cache, timeline, clock):
    loops = []

    def make_loop(**kw):
        kw.setdefault('layers', ['radar'])
        kw.setdefault('viewport', VIEWPORT)
        builder = TileURLBuilder(registry, TimestampReconciler(registry, clock=lambda: NOW))
        loop = WeatherLoop(registry, builder, local_cache, kw.pop('timeline', timeline),
                           scheduler=PrefetchScheduler(clock=clock, sleep=clock.sleep), **kw)
        loops.append(loop)
        return loop
    yield make_loop
    for loop in loops:
        loop.close()


class TestRender(object):
    def test_render_empty_cache(self, make_loop, http_client):
        loop = make_loop()
        render = loop.render()
        assert isinstance(render, FrameRender)
        assert render.frame.index == 5
        assert render.loaded_count == 0
        assert render.missing_count == 4
        assert not render.ok
        assert http_client.requested == []

    def test_render_without_viewport(self, make_loop):
        render = make_loop(viewport=None).render()
        assert render.layers == []
        assert render.ok

    def test_partial_render_is_ok(self, make_loop, local_cache, timeline):
        loop = make_loop()
        frame = timeline[5]
        url = loop.tile_url('radar', frame, VIEWPORT.tiles()[0])
        local_cache.get_or_fetch(url)
        render = loop.render()
        assert render.loaded_count == 1
        assert render.missing_count == 3
        assert render.ok
        layer = render.layers[0]
        assert isinstance(layer, LayerRender)
        assert layer.provider_id == 'radar'
        assert list(layer.loaded) == [VIEWPORT.tiles()[0]]

    def test_unknown_layer_ignored(self, make_loop):
        render = make_loop(layers=['radar', 'unknown']).render()
        assert [l.provider_id for l in render.layers] == ['radar']

    def test_tile_url(self, make_loop, timeline):
        loop = make_loop()
        url = loop.tile_url('radar', timeline[0], VIEWPORT.tiles()[0])
        assert url == 'https://radar.example.org/radar/%d/1/0/0.png' % (NOW - 3000, )


class TestPrefetch(object):
    def test_prefetch_fills_cache(self, make_loop, http_client):
        loop = make_loop()
        jobs = loop.prefetch(loop.timeline, LayerSet(['radar']), VIEWPORT, 5, background=False)
        assert set(jobs) == set(['radar'])
        assert jobs['radar'].progress.completed == 24
        assert loop.progress['radar'].is_complete
        assert len(http_client.requested) == 24
        assert len(set(http_client.requested)) == 24

        for index in range(6):
            render = loop.render(index)
            assert render.loaded_count == 4
            assert render.missing_count == 0

        loop.prefetch(loop.timeline, LayerSet(['radar']), VIEWPORT, 5, background=False)
        assert len(http_client.requested) == 24

    def test_current_frame_first(self, make_loop, http_client, timeline):
        loop = make_loop(budget_for=lambda pid: PrefetchBudget(1, 600))
        loop.prefetch(loop.timeline, LayerSet(['radar']), VIEWPORT, 2, background=False)
        instant = str(timeline[2].instant)
        assert all('/%s/' % instant in url for url in http_client.requested[:4])
        assert not any('/%s/' % instant in url for url in http_client.requested[4:])

    def test_untimed_layer_fetched_once(self, make_loop, http_client):
        loop = make_loop(layers=['basemap'])
        jobs = loop.prefetch(loop.timeline, LayerSet(['basemap']), VIEWPORT, 5, background=False)
        assert jobs['basemap'].total == 4
        assert len(http_client.requested) == 4
        assert all(render_ok for render_ok in (loop.render(i).ok for i in range(6)))

    def test_failed_tiles(self, make_loop, http_client, timeline):
        loop = make_loop()
        bad_url = loop.tile_url('radar', timeline[3], VIEWPORT.tiles()[2])
        http_client.fail_urls.add(bad_url)
        jobs = loop.prefetch(loop.timeline, LayerSet(['radar']), VIEWPORT, 5, background=False)
        assert jobs['radar'].progress.completed == 24
        assert jobs['radar'].progress.failed == 1
        assert loop.render(3).missing_count == 1

    def test_rate_limited_tile_retried(self, make_loop, http_client, timeline, clock):
        loop = make_loop()
        url = loop.tile_url('radar', timeline[4], VIEWPORT.tiles()[1])
        http_client.rate_limited[url] = 1
        jobs = loop.prefetch(loop.timeline, LayerSet(['radar']), VIEWPORT, 5, background=False)
        assert jobs['radar'].progress.failed == 0
        assert http_client.requested.count(url) == 2
        assert 7 in clock.sleeps

    def test_rate_limited_tile_gives_up(self, make_loop, http_client, timeline):
        loop = make_loop(rate_limit_retries=1)
        url = loop.tile_url('radar', timeline[4], VIEWPORT.tiles()[1])
        http_client.rate_limited[url] = 5
        jobs = loop.prefetch(loop.timeline, LayerSet(['radar']), VIEWPORT, 5, background=False)
        assert jobs['radar'].progress.failed == 1
        assert jobs['radar'].progress.completed == 24
        assert http_client.requested.count(url) == 2

    def test_rate_limited_retries_within_budget(self, make_loop, http_client, timeline, clock):
        http_client.clock = clock
        http_client.retry_after = 0
        loop = make_loop(budget_for=lambda pid: PrefetchBudget(1, 10))
        for frame in timeline:
            for coord in VIEWPORT.tiles():
                http_client.rate_limited[loop.tile_url('radar', frame, coord)] = 1
        jobs = loop.prefetch(loop.timeline, LayerSet(['radar']), VIEWPORT, 5, background=False)
        assert jobs['radar'].progress.completed == 24
        assert jobs['radar'].progress.failed == 0
        assert len(http_client.request_times) == 48
        assert len(jobs['radar'].dispatched) == 48
        assert max_in_window(http_client.request_times) <= 10

    def test_image_layer_one_request_per_frame(self, make_loop, http_client, timeline):
        loop = make_loop(layers=['sector'])
        jobs = loop.prefetch(loop.timeline, LayerSet(['sector']), VIEWPORT, 5, background=False)
        assert jobs['sector'].total == 6
        assert len(http_client.requested) == 6
        assert all(url.startswith('https://img.example.org/GOES19/ABI/SECTOR/ne/GEOCOLOR/')
                   for url in http_client.requested)
        # 2024-06-09 is day 161
        assert 'https://img.example.org/GOES19/ABI/SECTOR/ne/GEOCOLOR/20241611100.jpg' in \
            http_client.requested
        for index in range(6):
            render = loop.render(index)
            assert render.loaded_count == 1
            assert render.missing_count == 0

    def test_progress_callback(self, make_loop):
        seen = []
        loop = make_loop(on_progress=lambda pid, progress: seen.append((pid, progress.completed)))
        loop.prefetch(loop.timeline, LayerSet(['radar']), VIEWPORT, 5, background=False)
        assert seen == [('radar', i) for i in range(1, 25)]

    def test_set_layers_starts_prefetch(self, make_loop, http_client):
        loop = make_loop(layers=[])
        loop.set_layers(['radar', 'basemap'])
        assert loop.wait(5)
        assert len(http_client.requested) == 24 + 4
        assert loop.render().ok
        assert loop.render().missing_count == 0

    def test_set_viewport_starts_prefetch(self, make_loop, http_client):
        loop = make_loop(viewport=None)
        loop.set_viewport(VIEWPORT)
        assert loop.wait(5)
        assert len(http_client.requested) == 24


class TestFetchFrame(object):
    def test_fetch_missing_tiles(self, make_loop, http_client):
        loop = make_loop()
        assert loop.fetch_frame(3) == 4
        assert len(http_client.requested) == 4
        assert loop.fetch_frame(3) == 0
        assert len(http_client.requested) == 4
        assert loop.render(3).missing_count == 0

    def test_fetch_errors_logged(self, make_loop, http_client, timeline):
        loop = make_loop()
        http_client.fail_urls.add(loop.tile_url('radar', timeline[1], VIEWPORT.tiles()[0]))
        assert loop.fetch_frame(1) == 3
        assert loop.render(1).missing_count == 1

    def test_scrub_triggers_fetch(self, make_loop, http_client):
        loop = make_loop(scrub_debounce=10)
        loop.set_frame(1)
        loop.set_frame(2)
        assert http_client.requested == []
        loop.engine.flush()
        assert len(http_client.requested) == 4


class TestRefresh(object):
    def test_refresh_keeps_instant(self, make_loop, timeline):
        def timeline_factory(layers, now):
            frames = [Frame(NOW - (4 - i) * 600, i, False) for i in range(6)]
            return Timeline(frames, now)

        loop = make_loop(timeline_factory=timeline_factory)
        loop.set_frame(3)
        instant = loop.engine.current_frame.instant
        loop.refresh(NOW + 600)
        assert loop.wait(5)
        assert loop.timeline.built_at == NOW + 600
        assert loop.engine.current_frame.instant == instant
        assert loop.engine.current_index == 2

    def test_maybe_refresh(self, make_loop):
        calls = []

        def timeline_factory(layers, now):
            calls.append((layers, now))
            return Timeline([Frame(now, 0, False)], now)

        loop = make_loop(timeline_factory=timeline_factory, viewport=None)
        assert loop.maybe_refresh(NOW + 10) is None
        assert calls == []
        assert loop.maybe_refresh(NOW + 300) is not None
        assert calls == [(['radar'], NOW + 300)]
