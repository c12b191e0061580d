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
Date and time utilities.

All instants are UTC unix timestamps in whole seconds.
"""
import calendar
import datetime
import time
from email.utils import parsedate

from dateutil import parser as date_parser
from dateutil.tz import tzutc


def utcnow():
    return int(time.time())


def parse_httpdate(date):
    """
    >>> parse_httpdate('Sun, 09 Jun 2024 11:00:00 GMT')
    1717930800
    """
    if not date:
        return None
    date = parsedate(date)
    if date is None:
        return None
    return calendar.timegm(date)


def parse_isodate(isodate):
    """
    Parse an ISO-8601 date or datetime. Naive values are taken as UTC.

    >>> parse_isodate('2024-06-09T10:57:00Z')
    1717930620
    >>> parse_isodate('2024-06-09T12:57:00+02:00')
    1717930620
    >>> parse_isodate('2024-06-09')
    1717891200
    """
    if isinstance(isodate, datetime.datetime):
        date = isodate
    else:
        date = date_parser.isoparse(isodate)
    if date.tzinfo is None:
        date = date.replace(tzinfo=tzutc())
    return calendar.timegm(date.utctimetuple())


def floor_minutes(timestamp, minutes):
    """
    Round `timestamp` down to the previous `minutes` boundary.

    >>> floor_minutes(1717930620, 5)
    1717930500
    >>> floor_minutes(1717930500, 5)
    1717930500
    """
    step = int(minutes) * 60
    return int(timestamp) // step * step


def floor_date(timestamp):
    """
    Round `timestamp` down to midnight UTC.

    >>> floor_date(1717930620)
    1717891200
    """
    return int(timestamp) // 86400 * 86400


def _utc(timestamp):
    return datetime.datetime.fromtimestamp(int(timestamp), tz=datetime.timezone.utc)


def format_iso8601(timestamp):
    """
    >>> format_iso8601(1717930500)
    '2024-06-09T10:55:00Z'
    """
    return _utc(timestamp).strftime('%Y-%m-%dT%H:%M:%SZ')


def format_compact(timestamp):
    """
    >>> format_compact(1717930500)
    '202406091055'
    """
    return _utc(timestamp).strftime('%Y%m%d%H%M')


def format_julian(timestamp):
    """
    Year, day of the year and time, as used in GOES image names.

    >>> format_julian(1717930500)
    '20241611055'
    """
    return _utc(timestamp).strftime('%Y%j%H%M')


def format_date(timestamp):
    """
    >>> format_date(1717930500)
    '2024-06-09'
    """
    return _utc(timestamp).strftime('%Y-%m-%d')


def format_epoch(timestamp):
    return str(int(timestamp))


timestamp_formatters = {
    'iso8601': format_iso8601,
    'compact': format_compact,
    'julian': format_julian,
    'date': format_date,
    'epoch': format_epoch,
}
