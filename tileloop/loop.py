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
A weather loop session: timeline, two cache tiers, prefetching and playback
for one viewer.
"""
import threading
from collections import namedtuple

from tileloop.exception import FetchError, RateLimitExceeded, TileOutOfRange
from tileloop.grid import TileCoord
from tileloop.playback import LayerSet, PlaybackEngine
from tileloop.prefetch.scheduler import PrefetchBudget, PrefetchItem, PrefetchScheduler
from tileloop.util.backoff import BackoffError, exp_backoff

import logging
log = logging.getLogger('tileloop.playback')


class LayerRender(namedtuple('LayerRender', 'provider_id loaded missing')):
    """
    Cached tiles of one layer for one frame. `loaded` maps tile
    coordinates to `ImageSource`, `missing` lists coordinates that are not
    cached (yet).
    """
    __slots__ = ()

    @property
    def ok(self):
        return bool(self.loaded) or not self.missing


class FrameRender(object):
    """
    Result of rendering one frame from the cache tiers. A frame with partial
    coverage is a valid render.
    """
    def __init__(self, frame, layers):
        self.frame = frame
        self.layers = list(layers)

    @property
    def loaded_count(self):
        return sum(len(l.loaded) for l in self.layers)

    @property
    def missing_count(self):
        return sum(len(l.missing) for l in self.layers)

    @property
    def ok(self):
        return self.loaded_count > 0 or self.missing_count == 0

    def __repr__(self):
        return '<FrameRender %s loaded=%d missing=%d>' % (
            self.frame, self.loaded_count, self.missing_count)


class WeatherLoop(object):
    """
    Connects the `PlaybackEngine` to the URL builder, the local cache and
    the prefetch scheduler.

    Rendering reads exclusively from `local_cache`, the network is only
    used by prefetch jobs: one job per active layer, replaced whenever the
    layer set or the viewport changes.

    :param budget_for: ``budget_for(provider_id)`` returning the
        `PrefetchBudget` for a provider
    :param timeline_factory: ``timeline_factory(layers, now)`` returning a
        new `Timeline`, used by `refresh`
    :param on_progress: ``on_progress(provider_id, progress)``
    :param rate_limit_retries: retries with exponential backoff for tiles
        answered with 429. Prefetch retries count against the provider's
        request budget.
    """
    def __init__(self, registry, builder, local_cache, timeline, layers=(), viewport=None,
                 interval=0.4, scrub_debounce=0.15, scheduler=None, budget_for=None,
                 timeline_factory=None, on_progress=None, rate_limit_retries=2):
        self.registry = registry
        self.builder = builder
        self.local_cache = local_cache
        self.scheduler = scheduler or PrefetchScheduler()
        self.budget_for = budget_for or self._default_budget
        self.timeline_factory = timeline_factory
        self.on_progress = on_progress
        self.rate_limit_retries = rate_limit_retries
        self.progress = {}
        self._lock = threading.Lock()
        self.engine = PlaybackEngine(
            timeline,
            interval=interval,
            scrub_debounce=scrub_debounce,
            layers=layers,
            viewport=viewport,
            renderer=self.render_frame,
            fetch_trigger=self.fetch_frame,
            prefetcher=self.prefetch,
        )

    @classmethod
    def from_configuration(cls, conf, layers=None, viewport=None, **kw):
        """
        Create a session from a `TileLoopConfiguration`.
        """
        if layers is None:
            layers = conf.playback.layers
        layers = list(layers)
        return cls(
            conf.registry,
            conf.url_builder(),
            conf.local_cache(),
            conf.build_timeline(layers),
            layers=layers,
            viewport=viewport,
            interval=conf.playback.interval,
            scrub_debounce=conf.playback.scrub_debounce,
            budget_for=conf.prefetch_budget,
            timeline_factory=lambda layers, now: conf.build_timeline(layers, now=now),
            **kw
        )

    def _default_budget(self, provider_id):
        return PrefetchBudget.for_provider(self.registry.get(provider_id))

    @property
    def timeline(self):
        return self.engine.timeline

    def coords(self, provider_id, viewport):
        provider = self.registry.get(provider_id)
        if provider.is_image:
            # one image per frame, independent of the viewport
            return [TileCoord(0, 0, 0)]
        return viewport.tiles(max_zoom=provider.max_zoom, min_zoom=provider.min_zoom)

    def tile_url(self, provider_id, frame, coord):
        timestamp = self.builder.reconciler.resolve_or_latest(provider_id, frame.instant)
        return self.builder.build(provider_id, timestamp, coord)

    def _layer_ids(self, layers):
        for provider_id in layers:
            if provider_id in self.registry:
                yield provider_id
            else:
                log.warning('ignoring unknown layer %s', provider_id)

    def render_frame(self, frame, layers, viewport):
        """
        Collect the cached tiles of all `layers` for `frame`. Never fetches.
        """
        if viewport is None:
            return FrameRender(frame, [])
        result = []
        for provider_id in self._layer_ids(layers):
            loaded = {}
            missing = []
            for coord, url in self.builder.frame_urls(
                    provider_id, frame.instant, self.coords(provider_id, viewport)):
                source = self.local_cache.get(url)
                if source is None:
                    missing.append(coord)
                else:
                    loaded[coord] = source
            result.append(LayerRender(provider_id, loaded, missing))
        return FrameRender(frame, result)

    def render(self, index=None):
        """
        Render the frame at `index` (default: current frame) from the cache.
        """
        if index is None:
            frame = self.engine.current_frame
        else:
            frame = self.timeline[index]
        if frame is None:
            return None
        return self.render_frame(frame, self.engine.layers, self.engine.viewport)

    def _fetcher(self, provider_id):
        def fetch(item):
            url = self.tile_url(provider_id, item.frame, item.coord)
            return self.local_cache.get_or_fetch(url, group=provider_id)
        return fetch

    def _progress_callback(self, provider_id):
        def on_progress(job, progress):
            with self._lock:
                self.progress[provider_id] = progress
            if self.on_progress is not None:
                self.on_progress(provider_id, progress)
        return on_progress

    def prefetch(self, timeline, layers, viewport, index, background=True):
        """
        Start one prefetch job per layer for `viewport` and supersede the
        jobs of the previous target set. Returns the new jobs.
        """
        self.scheduler.supersede_all()
        with self._lock:
            self.progress = {}
        if viewport is None or not len(timeline):
            return {}
        current = timeline[max(0, min(index, len(timeline) - 1))]
        jobs = {}
        for provider_id in self._layer_ids(layers):
            provider = self.registry.get(provider_id)
            # all frames share one URL without a time dimension
            frames = list(timeline) if provider.is_timed else [current]
            jobs[provider_id] = self.scheduler.submit(
                provider_id,
                frames,
                self.coords(provider_id, viewport),
                self._fetcher(provider_id),
                self.budget_for(provider_id),
                current=current,
                on_progress=self._progress_callback(provider_id),
                background=background,
                retry_on=(RateLimitExceeded, ),
                retries=self.rate_limit_retries,
            )
        return jobs

    def fetch_frame(self, index):
        """
        Fetch the tiles of the frame at `index` that are missing in the local
        cache. Called once scrubbing settled.
        """
        viewport = self.engine.viewport
        if viewport is None or not len(self.timeline):
            return 0
        frame = self.timeline[index]
        fetched = 0
        for provider_id in self._layer_ids(self.engine.layers):
            fetch = self._fetcher(provider_id)
            for coord in self.coords(provider_id, viewport):
                try:
                    if self.local_cache.is_cached(self.tile_url(provider_id, frame, coord)):
                        continue
                    exp_backoff(fetch, args=(PrefetchItem(frame, coord), ),
                                max_repeat=self.rate_limit_retries,
                                exceptions=(RateLimitExceeded, ), sleep=self.scheduler.sleep)
                    fetched += 1
                except (FetchError, BackoffError, TileOutOfRange) as ex:
                    log.warning('failed to fetch %s %s: %s', frame, coord, ex)
        return fetched

    def refresh(self, now=None):
        """
        Rebuild the timeline and keep the current instant if it still exists.
        """
        if self.timeline_factory is None:
            return self.timeline
        timeline = self.timeline_factory(list(self.engine.layers), now)
        log.info('refreshed %r', timeline)
        self.engine.set_timeline(timeline)
        return timeline

    def maybe_refresh(self, now=None):
        if self.timeline.is_stale(now):
            return self.refresh(now)
        return None

    def wait(self, timeout=None):
        return self.scheduler.wait(timeout)

    # playback controls

    def play(self):
        self.engine.play()

    def pause(self):
        self.engine.pause()

    def toggle(self):
        self.engine.toggle()

    def next_frame(self):
        return self.engine.next_frame()

    def prev_frame(self):
        return self.engine.prev_frame()

    def set_frame(self, index):
        return self.engine.set_frame(index)

    def set_interval(self, interval):
        self.engine.set_interval(interval)

    def set_layers(self, layers):
        self.engine.set_layers(LayerSet(layers))

    def toggle_layer(self, provider_id):
        self.engine.toggle_layer(provider_id)

    def set_viewport(self, viewport):
        self.engine.set_viewport(viewport)

    def close(self):
        self.engine.close()
        self.scheduler.supersede_all()
