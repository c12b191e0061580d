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
Service responses.
"""
from http import HTTPStatus


class Response(object):
    charset = 'utf-8'
    default_content_type = 'text/plain'

    def __init__(self, response, status=None, content_type=None, mimetype=None):
        self.response = response
        if status is None:
            status = 200
        self.status = status
        self.headers = {}
        if mimetype:
            if mimetype.startswith('text/'):
                content_type = mimetype + '; charset=' + self.charset
            else:
                content_type = mimetype
        if content_type is None:
            content_type = self.default_content_type
        self.headers['Content-Type'] = content_type

    @property
    def status(self):
        return self._status

    @status.setter
    def status(self, status):
        if isinstance(status, int):
            status = status_code(status)
        self._status = status

    @property
    def status_int(self):
        return int(self._status.split(' ', 1)[0])

    def cache_headers(self, max_age=None, no_cache=False):
        """
        Set cache-related headers.

        :param max_age: the maximum cache age in seconds
        """
        if no_cache:
            self.headers['Cache-Control'] = 'no-cache, no-store'
            self.headers['Pragma'] = 'no-cache'
            self.headers['Expires'] = '-1'
        elif max_age is not None:
            self.headers['Cache-Control'] = 'public, max-age=%d' % (max_age, )

    @property
    def content_type(self):
        return self.headers['Content-Type']

    @property
    def data(self):
        if isinstance(self.response, str):
            return self.response.encode(self.charset)
        return self.response or b''

    @property
    def fixed_headers(self):
        return [(key, str(value)) for key, value in self.headers.items()]

    def __call__(self, environ, start_response):
        body = self.data
        if environ.get('REQUEST_METHOD') == 'HEAD':
            resp_iter = iter([])
        else:
            resp_iter = iter([body]) if body else iter([])
        self.headers['Content-Length'] = str(len(body))
        if self.status_int in (204, 304):
            # responses without message body
            self.headers.pop('Content-Type', None)
        start_response(self.status, self.fixed_headers)
        return resp_iter


def status_code(code):
    """
    >>> status_code(404)
    '404 Not Found'
    >>> status_code(599)
    '599 Unknown'
    """
    try:
        return '%d %s' % (code, HTTPStatus(code).phrase)
    except ValueError:
        return '%d Unknown' % (code, )
