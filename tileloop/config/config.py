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
System-wide configuration.
"""
import copy
import os

from tileloop.config import defaults


class Options(dict):
    """
    Dictionary with attribute style access.

    >>> o = Options(bar='foo')
    >>> o.bar
    'foo'
    """
    def __repr__(self):
        return '%s(%s)' % (self.__class__.__name__, dict.__repr__(self))

    def __getattr__(self, name):
        if name in self:
            return self[name]
        else:
            raise AttributeError(name)

    __setattr__ = dict.__setitem__

    def __delattr__(self, name):
        if name in self:
            del self[name]
        else:
            raise AttributeError(name)

    def __deepcopy__(self, memo):
        return Options(copy.deepcopy(list(self.items()), memo))


def _to_options_map(mapping):
    if isinstance(mapping, dict):
        opt = Options()
        for key, value in mapping.items():
            opt[key] = _to_options_map(value)
        return opt
    elif isinstance(mapping, list):
        return [_to_options_map(m) for m in mapping]
    else:
        return mapping


def load_default_config():
    """
    Return the built-in defaults as a plain dict.
    """
    conf = {}
    for name in ('globals', 'proxy', 'cache', 'timeline', 'prefetch',
                 'playback', 'providers', 'provider_defaults'):
        conf[name] = copy.deepcopy(getattr(defaults, name))
    conf['debug_mode'] = defaults.debug_mode
    return conf


def abspath(path, base_path=None):
    """
    Convert path to absolute path. Relative paths are resolved
    against `base_path` or the current working directory.

    >>> abspath('/tmp/cache')
    '/tmp/cache'
    >>> abspath('cache', '/srv/tileloop')
    '/srv/tileloop/cache'
    """
    if base_path:
        return os.path.abspath(os.path.join(base_path, path))
    return os.path.abspath(path)
