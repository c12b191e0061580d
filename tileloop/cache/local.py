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
Per-client persistent tile cache.
"""
import sqlite3
import threading
import time

from tileloop.exception import FetchError
from tileloop.image import ImageDecodeError, ImageSource, decode_image
from tileloop.util.fs import ensure_directory

import logging
log = logging.getLogger('tileloop.cache.local')


class LocalTileCache(object):
    """
    Durable store of decoded tiles keyed by the resolved tile URL, backed by
    a SQLite file.

    Entries older than `max_age` seconds are never returned. They are
    removed lazily on access and by an opportunistic sweep that runs at most
    every `sweep_interval` seconds before a lookup.

    :param http_client: `HTTPClient` used for misses
    :param clock: callable returning the current unix time
    """
    def __init__(self, filename, http_client=None, max_age=24 * 60 * 60,
                 sweep_interval=60, timeout=30, clock=time.time):
        self.filename = filename
        self.http_client = http_client
        self.max_age = max_age
        self.sweep_interval = sweep_interval
        self.timeout = timeout
        self.clock = clock
        self._last_sweep = None
        self._db_conn_cache = threading.local()
        self._write_lock = threading.Lock()
        self.ensure_db()

    @property
    def db(self):
        if not getattr(self._db_conn_cache, 'db', None):
            self._db_conn_cache.db = sqlite3.connect(self.filename, self.timeout)
        return self._db_conn_cache.db

    def ensure_db(self):
        ensure_directory(self.filename)
        with sqlite3.connect(self.filename, self.timeout) as db:
            db.execute("""
                CREATE TABLE IF NOT EXISTS tiles (
                    url TEXT PRIMARY KEY,
                    data BLOB NOT NULL,
                    content_type TEXT,
                    grp TEXT,
                    size INTEGER NOT NULL,
                    stored_at REAL NOT NULL
                )
            """)
            db.execute("CREATE INDEX IF NOT EXISTS idx_tiles_stored_at ON tiles (stored_at)")
            db.execute("CREATE INDEX IF NOT EXISTS idx_tiles_grp ON tiles (grp)")

    def cleanup(self):
        """
        Close the connection of the current thread.
        """
        if getattr(self._db_conn_cache, 'db', None):
            self._db_conn_cache.db.close()
        self._db_conn_cache.db = None

    def _maybe_sweep(self, now):
        if self._last_sweep is not None and now - self._last_sweep < self.sweep_interval:
            return
        self._last_sweep = now
        removed = self.purge_older_than(self.max_age)
        if removed:
            log.debug('removed %d expired tiles', removed)

    def get(self, url):
        """
        Return the cached `ImageSource` for `url` or ``None``. Never touches
        the network.
        """
        now = self.clock()
        self._maybe_sweep(now)
        cur = self.db.execute(
            "SELECT data, content_type, stored_at FROM tiles WHERE url = ?", (url, ))
        row = cur.fetchone()
        if row is None:
            return None
        data, content_type, stored_at = row
        if now - stored_at > self.max_age:
            self.remove(url)
            return None
        return ImageSource(bytes(data), content_type=content_type, url=url)

    def is_cached(self, url):
        return self.get(url) is not None

    def get_or_fetch(self, url, group=None):
        """
        Return the tile for `url` from the cache or fetch, decode and store
        it.

        :raises FetchError: if the fetch fails or the response is no image.
            Nothing is stored in this case.
        """
        source = self.get(url)
        if source is not None:
            return source
        if self.http_client is None:
            raise FetchError('tile not cached and no HTTP client configured: %s' % (url, ), url=url)
        resp = self.http_client.open(url)
        try:
            source = decode_image(resp.body, content_type=resp.content_type, url=url)
        except ImageDecodeError as ex:
            raise FetchError(str(ex), url=url, status=resp.status)
        self.store(url, source, group=group)
        return source

    def store(self, url, source, group=None):
        stmt = ("INSERT OR REPLACE INTO tiles (url, data, content_type, grp, size, stored_at)"
                " VALUES (?, ?, ?, ?, ?, ?)")
        with self._write_lock:
            try:
                self.db.execute(stmt, (url, sqlite3.Binary(source.data), source.content_type,
                                       group, source.size, self.clock()))
                self.db.commit()
            except sqlite3.OperationalError as ex:
                log.warning('unable to store tile %s: %s', url, ex)
                return False
        return True

    def remove(self, url):
        with self._write_lock:
            self.db.execute("DELETE FROM tiles WHERE url = ?", (url, ))
            self.db.commit()

    def purge_older_than(self, max_age):
        """
        Remove all entries older than `max_age` seconds. Returns the number
        of removed entries.
        """
        before = self.clock() - max_age
        with self._write_lock:
            cur = self.db.execute("DELETE FROM tiles WHERE stored_at < ?", (before, ))
            self.db.commit()
        return cur.rowcount

    def purge_group(self, group):
        with self._write_lock:
            cur = self.db.execute("DELETE FROM tiles WHERE grp = ?", (group, ))
            self.db.commit()
        return cur.rowcount

    def stats(self):
        """
        Return ``{'count': ..., 'total_bytes': ..., 'groups': {group: count}}``.
        """
        count, total = self.db.execute(
            "SELECT COUNT(*), COALESCE(SUM(size), 0) FROM tiles").fetchone()
        groups = dict(self.db.execute(
            "SELECT COALESCE(grp, ''), COUNT(*) FROM tiles GROUP BY grp").fetchall())
        return {'count': count, 'total_bytes': total, 'groups': groups}
