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
HTTP access to upstream tile origins.
"""
import time

import requests

from tileloop.client.log import log_request
from tileloop.exception import NetworkError, RateLimitExceeded, UpstreamError
from tileloop.util.times import parse_httpdate, utcnow
from tileloop.version import version


class HTTPResponse(object):
    """
    Fully read upstream response.
    """
    def __init__(self, url, status, body, headers):
        self.url = url
        self.status = status
        self.body = body
        self.headers = headers

    @property
    def ok(self):
        return 200 <= self.status < 300

    @property
    def content_type(self):
        return self.headers.get('Content-Type', 'application/octet-stream')

    def __repr__(self):
        return '<HTTPResponse %s %d (%d bytes)>' % (self.url, self.status, len(self.body))


def parse_retry_after(value, now=None):
    """
    Seconds to wait from a `Retry-After` header, given as delay in seconds
    or as HTTP-date.

    >>> parse_retry_after('120')
    120.0
    >>> parse_retry_after('Sun, 09 Jun 2024 11:02:00 GMT', now=1717930800)
    120.0
    >>> parse_retry_after('Sun, 09 Jun 2024 10:00:00 GMT', now=1717930800)
    0.0
    >>> parse_retry_after(None) is None
    True
    >>> parse_retry_after('soon') is None
    True
    """
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    date = parse_httpdate(value)
    if date is None:
        return None
    if now is None:
        now = utcnow()
    return max(0.0, float(date - now))


class HTTPClient(object):
    """
    Thin wrapper around a `requests.Session` with a fixed per-request
    timeout. Each request is logged to ``tileloop.source.request``.
    """
    def __init__(self, timeout=10, headers=None, user_agent=None, session=None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {'User-Agent': user_agent or 'TileLoop/%s' % (version, )}
        if headers:
            self.headers.update(headers)

    def request(self, url, headers=None):
        """
        GET `url` and return a `HTTPResponse`, regardless of the status code.

        :raises NetworkError: on transport failures and timeouts
        """
        req_headers = dict(self.headers)
        if headers:
            req_headers.update(headers)
        status = None
        size = None
        start_time = time.time()
        try:
            resp = self.session.get(url, headers=req_headers, timeout=self.timeout)
            status = resp.status_code
            body = resp.content
            size = len(body)
        except requests.exceptions.Timeout as ex:
            raise NetworkError('Timeout for "%s": %s' % (url, ex), url=url)
        except requests.exceptions.RequestException as ex:
            raise NetworkError('No response from "%s": %s' % (url, ex), url=url)
        finally:
            log_request(url, status, size=size, duration=time.time() - start_time)
        return HTTPResponse(url, status, body, resp.headers)

    def open(self, url, headers=None):
        """
        GET `url` and return the `HTTPResponse` of a successful request.

        :raises RateLimitExceeded: for 429 responses
        :raises UpstreamError: for all other non-2xx responses
        :raises NetworkError: on transport failures and timeouts
        """
        resp = self.request(url, headers=headers)
        if resp.status == 429:
            raise RateLimitExceeded('HTTP Error 429 for "%s"' % (url, ), url=url,
                                    body=resp.body, headers=resp.headers,
                                    retry_after=parse_retry_after(resp.headers.get('Retry-After')))
        if not resp.ok:
            raise UpstreamError('HTTP Error %d for "%s"' % (resp.status, url), url=url,
                                status=resp.status, body=resp.body, headers=resp.headers)
        if resp.status == 204:
            raise UpstreamError('HTTP Error "204 No Content" for "%s"' % (url, ), url=url, status=204)
        return resp

    def close(self):
        self.session.close()
