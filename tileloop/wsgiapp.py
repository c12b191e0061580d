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
The WSGI application.
"""
import os
import sys
import traceback

from tileloop.request import Request
from tileloop.response import Response
from tileloop.config.loader import load_configuration
from tileloop.exception import ConfigurationError

import logging
log = logging.getLogger('tileloop.config')
log_wsgiapp = logging.getLogger('tileloop.wsgiapp')


def init_logging_system(log_conf, base_dir):
    import logging.config
    if log_conf:
        if not os.path.exists(log_conf):
            print('ERROR: log configuration %s not found.' % log_conf, file=sys.stderr)
            return
        logging.config.fileConfig(log_conf, dict(here=base_dir))


def make_wsgi_app(services_conf=None, debug=False):
    """
    Create a TileLoopApp with the given configuration.

    :param services_conf: the file name of the tileloop.yaml configuration
    """
    try:
        conf = load_configuration(services_conf)
    except ConfigurationError as e:
        log.fatal(e)
        raise

    if debug:
        conf.debug_mode = True
    app = TileLoopApp(conf.proxy_service(), debug_mode=conf.debug_mode)
    if debug:
        from werkzeug.debug import DebuggedApplication
        app = DebuggedApplication(app, evalex=True)
    app.config_files = conf.config_files
    return app


class TileLoopApp(object):
    """
    The TileLoop edge proxy WSGI application.
    """
    def __init__(self, service, debug_mode=False):
        self.service = service
        self.debug_mode = debug_mode

    def __call__(self, environ, start_response):
        req = Request(environ)
        try:
            resp = self.service.handle(req)
        except Exception:
            if self.debug_mode:
                raise
            log_wsgiapp.fatal('fatal error for %s %s',
                environ.get('PATH_INFO'), environ.get('QUERY_STRING'), exc_info=True)
            traceback.print_exc(file=environ['wsgi.errors'])
            resp = Response('internal error', status=500)
        return resp(environ, start_response)
