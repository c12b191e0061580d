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
Cross-origin headers for proxy responses.
"""


def parse_origins(value):
    """
    >>> parse_origins('https://a.example, https://b.example,')
    ['https://a.example', 'https://b.example']
    >>> parse_origins(['https://a.example'])
    ['https://a.example']
    >>> parse_origins(None)
    []
    """
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(',')
    return [v.strip() for v in value if v and v.strip()]


def is_allowed_origin(origin, allowed_origins):
    return any(origin.startswith(allowed) for allowed in allowed_origins)


def cors_headers(origin, allowed_origins):
    """
    Return the CORS headers for a request from `origin`.

    Callers without an Origin header (non-browser clients) get a wildcard.
    Allowed origins are echoed, other origins get no
    Access-Control-Allow-Origin header at all.
    """
    headers = {
        'Access-Control-Allow-Methods': 'GET, OPTIONS',
        'Access-Control-Allow-Headers': 'Content-Type',
        'Access-Control-Max-Age': '86400',
    }
    if not origin:
        headers['Access-Control-Allow-Origin'] = '*'
    elif is_allowed_origin(origin, allowed_origins):
        headers['Access-Control-Allow-Origin'] = origin
        headers['Vary'] = 'Origin'
    return headers
