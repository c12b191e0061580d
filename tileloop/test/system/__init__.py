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

import os

import pytest

from webtest import TestApp as _TestApp

from tileloop.wsgiapp import make_wsgi_app


class WSGITestApp(_TestApp):
    """
    Wraps webtest.TestApp and explicitly converts URLs to strings.
    """

    def get(self, url, *args, **kw):
        return _TestApp.get(self, str(url), *args, **kw)


class SysTest(object):
    """
    Baseclass for pytest-based system tests.
    Provides `app` fixture with a configured TileLoop proxy, wrapped in
    webtest.TestApp. Subclasses set `config` to the YAML configuration.

    A new `app` is created for each test, so each test starts with an
    empty edge cache.
    """
    config = ''

    @pytest.fixture(scope="function")
    def base_dir(self, tmpdir):
        return tmpdir

    @pytest.fixture(scope="function")
    def config_file(self, base_dir):
        filename = base_dir.join('tileloop.yaml')
        filename.write(self.config)
        return filename

    @pytest.fixture(scope="function")
    def app(self, config_file, monkeypatch):
        monkeypatch.delenv('TILELOOP_ALLOWED_ORIGINS', raising=False)
        app = make_wsgi_app(config_file.strpath)
        return WSGITestApp(app, use_unicode=False)

    @pytest.fixture(scope="function")
    def cache_dir(self, base_dir):
        return os.path.join(base_dir.strpath, 'cache_data')
