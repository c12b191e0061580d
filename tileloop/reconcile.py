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
Map canonical instants to upstream timestamps.

Resolution is a closed-form transform of the instant, no upstream request
is needed to plan which URLs a frame needs.
"""
from collections import namedtuple

from tileloop.exception import NotYetPublished
from tileloop.util.times import utcnow


class _Marker(object):
    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return self.name

    def __reduce__(self):
        return self.name


LATEST = _Marker('LATEST')
UNAVAILABLE = _Marker('UNAVAILABLE')


class UpstreamTimestamp(namedtuple('UpstreamTimestamp', 'instant text')):
    """
    Quantized instant and its provider specific encoding.
    """
    __slots__ = ()

    def __str__(self):
        return self.text


class TimestampReconciler(object):
    """
    Resolves canonical instants per provider.

    :param registry: `ProviderRegistry`
    :param clock: callable returning the current UTC unix timestamp
    """
    def __init__(self, registry, clock=utcnow):
        self.registry = registry
        self.clock = clock

    def resolve(self, provider_id, instant, now=None):
        """
        Return the `UpstreamTimestamp` for `instant`, `LATEST` for providers
        without a time dimension or `UNAVAILABLE` if `instant` lies further
        in the future than the provider's publish tolerance.
        """
        provider = self.registry.get(provider_id)
        if not provider.is_timed:
            return LATEST
        if now is None:
            now = self.clock()
        if instant - now > provider.publish_tolerance * 60:
            return UNAVAILABLE
        quantized = provider.quantize(instant)
        return UpstreamTimestamp(quantized, provider.format_time(quantized))

    def resolve_or_latest(self, provider_id, instant, now=None):
        """
        Like `resolve`, but substitutes `LATEST` for `UNAVAILABLE`.
        This is the single fallback policy for unpublished instants.
        """
        result = self.resolve(provider_id, instant, now=now)
        if result is UNAVAILABLE:
            return LATEST
        return result

    def resolve_strict(self, provider_id, instant, now=None):
        """
        Like `resolve`, but raises `NotYetPublished` for unpublished instants.
        """
        result = self.resolve(provider_id, instant, now=now)
        if result is UNAVAILABLE:
            raise NotYetPublished(provider_id, instant)
        return result

    def latest(self, provider_id, now=None):
        """
        Return the newest `UpstreamTimestamp` the provider should have
        published, or `LATEST` for providers without a time dimension.
        """
        provider = self.registry.get(provider_id)
        if not provider.is_timed:
            return LATEST
        if now is None:
            now = self.clock()
        quantized = provider.quantize(now - provider.publish_delay * 60)
        return UpstreamTimestamp(quantized, provider.format_time(quantized))
