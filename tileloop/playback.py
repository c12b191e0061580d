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
Playback of the canonical timeline.

The engine is the single owner of the current frame index. Autoplay ticks,
scrubbing and timeline refreshes all go through one mutation path.
"""
import threading
from collections import namedtuple

from tileloop.grid import clamp_zoom, tiles_for_bbox

import logging
log = logging.getLogger('tileloop.playback')

STOPPED = 'STOPPED'
PLAYING = 'PLAYING'


class LayerSet(object):
    """
    Immutable set of active layer (provider) ids. Toggling returns a new
    value, the active set is always replaced as a whole.
    """
    __slots__ = ('_ids', )

    def __init__(self, ids=()):
        object.__setattr__(self, '_ids', frozenset(ids))

    def __setattr__(self, name, value):
        raise AttributeError('LayerSet is immutable')

    def toggle(self, layer_id):
        if layer_id in self._ids:
            return LayerSet(self._ids - {layer_id})
        return LayerSet(self._ids | {layer_id})

    def with_layer(self, layer_id):
        return LayerSet(self._ids | {layer_id})

    def without_layer(self, layer_id):
        return LayerSet(self._ids - {layer_id})

    def __contains__(self, layer_id):
        return layer_id in self._ids

    def __iter__(self):
        return iter(sorted(self._ids))

    def __len__(self):
        return len(self._ids)

    def __eq__(self, other):
        return isinstance(other, LayerSet) and self._ids == other._ids

    def __hash__(self):
        return hash(self._ids)

    def __repr__(self):
        return 'LayerSet(%r)' % (sorted(self._ids), )


class Viewport(namedtuple('Viewport', 'bbox zoom')):
    """
    Visible lon/lat `bbox` (minx, miny, maxx, maxy) at an integer `zoom`.
    """
    __slots__ = ()

    def tiles(self, max_zoom=None, min_zoom=0):
        """
        Tiles covering the viewport. The zoom is clamped to the given range,
        tiles above a provider's maximum zoom are never requested.
        """
        zoom = self.zoom
        if max_zoom is not None:
            zoom = clamp_zoom(zoom, max_zoom, min_zoom)
        return tiles_for_bbox(self.bbox, zoom)


class Debouncer(object):
    """
    Collapses rapid successive calls into one call of `func` with the last
    value, `wait` seconds after the last call.
    """
    def __init__(self, func, wait):
        self.func = func
        self.wait = wait
        self._timer = None
        self._pending = None
        self._lock = threading.Lock()

    def __call__(self, value):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = (value, )
            self._timer = threading.Timer(self.wait, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self):
        with self._lock:
            pending = self._pending
            self._pending = None
            self._timer = None
        if pending is not None:
            self.func(pending[0])

    def flush(self):
        """
        Fire a pending call immediately.
        """
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
        self._fire()

    def cancel(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending = None

    @property
    def pending(self):
        return self._pending is not None


class _TickThread(threading.Thread):
    def __init__(self, engine):
        threading.Thread.__init__(self, name='tileloop-playback')
        self.daemon = True
        self.engine = engine
        self.stopped = threading.Event()

    def run(self):
        while not self.stopped.wait(self.engine.interval):
            self.engine.tick()


class PlaybackEngine(object):
    """
    Drives the current frame index of a `Timeline`.

    :param renderer: ``renderer(frame, layers, viewport)`` returning a render
        result with a true ``ok`` attribute when anything could be shown.
        Renderers must only read from the cache tiers.
    :param fetch_trigger: called with the final index after scrubbing settled
    :param prefetcher: ``prefetcher(timeline, layers, viewport, index)`` starts
        a new prefetch job and supersedes the previous one
    """
    def __init__(self, timeline, interval=0.4, scrub_debounce=0.15, layers=(),
                 viewport=None, renderer=None, fetch_trigger=None, prefetcher=None):
        self.timeline = timeline
        self.interval = interval
        self.state = STOPPED
        self.layers = layers if isinstance(layers, LayerSet) else LayerSet(layers)
        self.viewport = viewport
        self.renderer = renderer
        self.fetch_trigger = fetch_trigger
        self.prefetcher = prefetcher
        self.displayed = None
        self._index = max(timeline.latest_index, 0)
        self._lock = threading.RLock()
        self._ticker = None
        self._debounced_fetch = Debouncer(self._trigger_fetch, scrub_debounce)

    @property
    def current_index(self):
        return self._index

    @property
    def current_frame(self):
        if not len(self.timeline):
            return None
        return self.timeline[self._index]

    @property
    def frame_count(self):
        return len(self.timeline)

    def _set_index(self, index):
        """
        The only place where the index changes.
        """
        with self._lock:
            count = len(self.timeline)
            if not count:
                self._index = 0
                return None
            self._index = max(0, min(int(index), count - 1))
            frame = self.timeline[self._index]
        self._render(frame)
        return frame

    def _render(self, frame):
        if self.renderer is None:
            return
        result = self.renderer(frame, self.layers, self.viewport)
        if result is not None and result.ok:
            self.displayed = result

    def tick(self):
        """
        Advance to the next frame if playing. Wraps around.
        """
        with self._lock:
            if self.state != PLAYING or not len(self.timeline):
                return None
            return self._set_index((self._index + 1) % len(self.timeline))

    def play(self):
        with self._lock:
            if self.state == PLAYING:
                return
            self.state = PLAYING
            self._ticker = _TickThread(self)
            self._ticker.start()
        log.debug('playing at %.2fs per frame', self.interval)

    def pause(self):
        with self._lock:
            self.state = STOPPED
            ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.stopped.set()

    stop = pause

    def toggle(self):
        if self.state == PLAYING:
            self.pause()
        else:
            self.play()

    def set_interval(self, interval):
        if interval <= 0:
            raise ValueError('interval must be positive')
        self.interval = interval

    def set_frame(self, index):
        """
        Scrub to `index`. The frame is shown from cache immediately, the
        downstream fetch is debounced.
        """
        frame = self._set_index(index)
        if frame is not None:
            self._debounced_fetch(self._index)
        return frame

    def next_frame(self):
        with self._lock:
            if not len(self.timeline):
                return None
            return self.set_frame((self._index + 1) % len(self.timeline))

    def prev_frame(self):
        with self._lock:
            if not len(self.timeline):
                return None
            return self.set_frame((self._index - 1) % len(self.timeline))

    def _trigger_fetch(self, index):
        if self.fetch_trigger is not None:
            self.fetch_trigger(index)

    def flush(self):
        self._debounced_fetch.flush()

    def set_timeline(self, timeline):
        """
        Replace the timeline (e.g. after a refresh). The index moves to the
        frame with the same instant if it still exists, else to the newest
        published frame.
        """
        with self._lock:
            current = self.current_frame
            self.timeline = timeline
            index = timeline.latest_index
            if current is not None:
                for frame in timeline:
                    if frame.instant == current.instant:
                        index = frame.index
                        break
        self._set_index(index)
        self._start_prefetch()

    def set_layers(self, layers):
        """
        Replace the active layer set. Starts a new prefetch job, the last
        displayed render stays until the new layers rendered.
        """
        if not isinstance(layers, LayerSet):
            layers = LayerSet(layers)
        with self._lock:
            if layers == self.layers:
                return
            self.layers = layers
        self._start_prefetch()
        self._set_index(self._index)

    def toggle_layer(self, layer_id):
        with self._lock:
            layers = self.layers.toggle(layer_id)
        self.set_layers(layers)

    def set_viewport(self, viewport):
        with self._lock:
            if viewport == self.viewport:
                return
            self.viewport = viewport
        self._start_prefetch()
        self._set_index(self._index)

    def _start_prefetch(self):
        if self.prefetcher is None or self.viewport is None:
            return
        self.prefetcher(self.timeline, self.layers, self.viewport, self._index)

    def close(self):
        self.pause()
        self._debounced_fetch.cancel()
