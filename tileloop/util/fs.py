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
File helpers for the file based caches.
"""
import errno
import os
import uuid


def ensure_directory(file_name):
    """
    Create the parent directory of `file_name`.
    """
    dir_name = os.path.dirname(file_name)
    if dir_name:
        os.makedirs(dir_name, exist_ok=True)


def write_atomic(filename, data):
    """
    Write `data` into a temporary file next to `filename` and move it into
    place. Concurrent readers see either the old or the new content.
    """
    tmp_name = '%s.%s.tmp' % (filename, uuid.uuid4().hex[:12])
    fd = os.open(tmp_name, os.O_EXCL | os.O_CREAT | os.O_WRONLY)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(tmp_name, filename)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def remove_file(filename):
    """
    Remove `filename`. Returns ``False`` if it did not exist.
    """
    try:
        os.remove(filename)
    except OSError as ex:
        if ex.errno == errno.ENOENT:
            return False
        raise
    return True
