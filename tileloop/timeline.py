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
Canonical animation timeline.
"""
from collections import namedtuple

from tileloop.util.times import format_iso8601, utcnow

import logging
log = logging.getLogger('tileloop.timeline')


class Frame(namedtuple('Frame', 'instant index forecast')):
    """
    One canonical frame. `instant` is a UTC unix timestamp, `index` the
    position in the timeline. Frames are immutable.
    """
    __slots__ = ()

    def __str__(self):
        return '#%d %s%s' % (self.index, format_iso8601(self.instant),
                             ' (forecast)' if self.forecast else '')


class Timeline(object):
    """
    Ordered sequence of frames (oldest first) all layers are aligned to.
    """
    def __init__(self, frames, built_at, provider_id=None, refresh_interval=300):
        self.frames = tuple(frames)
        self.built_at = built_at
        self.provider_id = provider_id
        self.refresh_interval = refresh_interval

    def __len__(self):
        return len(self.frames)

    def __iter__(self):
        return iter(self.frames)

    def __getitem__(self, index):
        return self.frames[index]

    @property
    def instants(self):
        return [f.instant for f in self.frames]

    @property
    def latest_index(self):
        """
        Index of the newest frame that is not a forecast, or the last frame
        if all frames are forecasts. -1 for empty timelines.
        """
        for frame in reversed(self.frames):
            if not frame.forecast:
                return frame.index
        return len(self.frames) - 1

    def is_stale(self, now=None):
        if now is None:
            now = utcnow()
        return now - self.built_at >= self.refresh_interval

    def __repr__(self):
        return '<Timeline %s frames=%d built_at=%s>' % (
            self.provider_id, len(self.frames), format_iso8601(self.built_at))


def build_timeline(provider, now=None, history=120, forecast_steps=None, refresh_interval=300):
    """
    Build the canonical timeline from `provider` (usually the provider with
    the highest update frequency).

    Frames are spaced by the provider's cadence and cover `history` minutes
    up to the newest published instant, followed by the provider's forecast
    steps. A provider without a time dimension gives a single frame.
    """
    if now is None:
        now = utcnow()
    now = int(now)
    if forecast_steps is None:
        forecast_steps = provider.forecast_steps if provider else 0

    if provider is None or not provider.is_timed or not provider.cadence:
        frames = [Frame(now, 0, False)]
        return Timeline(frames, now, provider.id if provider else None, refresh_interval)

    step = provider.cadence * 60
    newest = provider.quantize(now - provider.publish_delay * 60)
    count = int(history * 60 // step) + 1
    instants = [newest - i * step for i in reversed(range(count))]
    instants.extend(newest + i * step for i in range(1, forecast_steps + 1))

    frames = [Frame(instant, i, instant > newest) for i, instant in enumerate(instants)]
    timeline = Timeline(frames, now, provider.id, refresh_interval)
    log.debug('built %r', timeline)
    return timeline
