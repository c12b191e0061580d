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
Service requests.
"""
from urllib.parse import parse_qsl


class Request(object):
    charset = 'utf8'

    def __init__(self, environ):
        self.environ = environ
        self.environ['tileloop.request'] = self

        script_name = environ.get('HTTP_X_SCRIPT_NAME', '')
        if script_name:
            del environ['HTTP_X_SCRIPT_NAME']
            environ['SCRIPT_NAME'] = script_name
            path_info = environ['PATH_INFO']
            if path_info.startswith(script_name):
                environ['PATH_INFO'] = path_info[len(script_name):]

    @property
    def method(self):
        return self.environ.get('REQUEST_METHOD', 'GET').upper()

    @property
    def path(self):
        path = self.environ.get('PATH_INFO', '')
        if path and isinstance(path, bytes):
            path = path.decode('utf-8')
        return path

    @property
    def query_string(self):
        return self.environ.get('QUERY_STRING', '')

    @property
    def args(self):
        return dict(parse_qsl(self.query_string, keep_blank_values=True))

    def header(self, name, default=None):
        """
        Return the request header `name` (e.g. ``Origin``) or `default`.
        """
        key = 'HTTP_' + name.upper().replace('-', '_')
        if key in ('HTTP_CONTENT_TYPE', 'HTTP_CONTENT_LENGTH'):
            key = key[5:]
        return self.environ.get(key, default)

    @property
    def origin(self):
        return self.header('Origin')

    @property
    def url_scheme(self):
        scheme = self.environ.get('HTTP_X_FORWARDED_PROTO')
        if not scheme:
            scheme = self.environ.get('wsgi.url_scheme', 'http')
        return scheme

    @property
    def host(self):
        if 'HTTP_X_FORWARDED_HOST' in self.environ:
            # might be a list, return first host only
            return self.environ['HTTP_X_FORWARDED_HOST'].split(',', 1)[0].strip()
        elif 'HTTP_HOST' in self.environ:
            return self.environ['HTTP_HOST']
        return '%s:%s' % (self.environ.get('SERVER_NAME', 'localhost'),
                          self.environ.get('SERVER_PORT', '80'))

    @property
    def script_url(self):
        "Full script URL without trailing /"
        return (self.url_scheme + '://' + self.host + self.environ.get('SCRIPT_NAME', '')).rstrip('/')

    def __str__(self):
        return '%s %s%s' % (self.method, self.path,
                            '?' + self.query_string if self.query_string else '')
