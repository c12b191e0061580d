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
Decoded tile images.
"""
from io import BytesIO

from PIL import Image

import logging
log = logging.getLogger('tileloop.image')


class ImageDecodeError(Exception):
    pass


class ImageSource(object):
    """
    Wraps the raw bytes of a tile image. The decoded PIL image is created
    on first access to `as_image`.
    """
    def __init__(self, data, content_type=None, url=None):
        self.data = data
        self.content_type = content_type
        self.url = url
        self._img = None

    def as_buffer(self):
        return BytesIO(self.data)

    def as_image(self):
        """
        Returns the loaded image.

        :rtype: PIL `Image`
        """
        if self._img is None:
            log.debug('decoding %s', self.url or '<buffer>')
            img = Image.open(self.as_buffer())
            img.load()
            self._img = img
        return self._img

    @property
    def size(self):
        return len(self.data)

    @property
    def pixel_size(self):
        return self.as_image().size

    def __repr__(self):
        return '<ImageSource %s %d bytes>' % (self.url or '', self.size)


def decode_image(data, content_type=None, url=None):
    """
    Return an `ImageSource` for `data` after checking that it decodes.

    :raises ImageDecodeError: if `data` is not a readable image
    """
    source = ImageSource(data, content_type=content_type, url=url)
    try:
        source.as_image()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as ex:
        raise ImageDecodeError('response is not an image (%s): %s' % (url, ex))
    return source
