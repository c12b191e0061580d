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

from io import BytesIO

from PIL import Image


magic_bytes = {'png': [b"\211PNG\r\n\032\n"],
               'gif': [b"GIF87a", b"GIF89a"],
               'jpeg': [b"\xFF\xD8"],
               }


def is_format(data, format):
    return any(data.startswith(magic) for magic in magic_bytes[format])


def create_tmp_image_buf(size, format='png', color=(255, 0, 0), mode='RGB'):
    img = Image.new(mode, size, color=color)
    data = BytesIO()
    img.save(data, format)
    data.seek(0)
    return data


def create_tmp_image(size, format='png', color=(255, 0, 0), mode='RGB'):
    return create_tmp_image_buf(size, format, color, mode).read()
