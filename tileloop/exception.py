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
Error taxonomy for timeline resolution, tile fetching and configuration.
"""


class TileLoopError(Exception):
    pass


class ConfigurationError(TileLoopError):
    pass


class UnknownProviderError(TileLoopError):
    def __init__(self, provider_id, known=()):
        TileLoopError.__init__(self, 'unknown provider: %s' % (provider_id, ))
        self.provider_id = provider_id
        self.known = tuple(known)


class TileOutOfRange(TileLoopError):
    """
    Tile coordinate is not valid for the grid or above the provider's
    maximum zoom level. Such tiles are never requested upstream.
    """
    pass


class NotYetPublished(TileLoopError):
    """
    The requested instant is ahead of what the provider can have published.
    Resolved locally, no request is sent.
    """
    def __init__(self, provider_id, instant):
        TileLoopError.__init__(self, '%s: no data published for %s yet' % (provider_id, instant))
        self.provider_id = provider_id
        self.instant = instant


class FetchError(TileLoopError):
    def __init__(self, msg, url=None, status=None):
        TileLoopError.__init__(self, msg)
        self.url = url
        self.status = status


class UpstreamError(FetchError):
    """
    Non-2xx response from the upstream origin.
    """
    def __init__(self, msg, url=None, status=None, body=b'', headers=None):
        FetchError.__init__(self, msg, url=url, status=status)
        self.body = body
        self.headers = headers or {}


class RateLimitExceeded(UpstreamError):
    """
    The origin answered with 429. `retry_after` is in seconds, if the origin
    sent a usable Retry-After header.
    """
    def __init__(self, msg, url=None, body=b'', headers=None, retry_after=None):
        UpstreamError.__init__(self, msg, url=url, status=429, body=body, headers=headers)
        self.retry_after = retry_after


class NetworkError(FetchError):
    """
    Transport failure or timeout for a single request.
    """
    pass
