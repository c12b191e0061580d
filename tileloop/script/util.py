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

import io
import optparse
import os
import re
import shutil
import sys
import textwrap
import logging

from tileloop.version import version


def setup_logging(level=logging.INFO, format=None):
    tileloop_log = logging.getLogger('tileloop')
    tileloop_log.setLevel(level)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    if not format:
        format = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(format)
    ch.setFormatter(formatter)
    tileloop_log.addHandler(ch)


def add_config_option(parser):
    parser.add_option("-f", "--config", dest="conf_file", default=None,
                      help="TileLoop configuration (defaults to the built-in configuration).")


def load_conf_or_exit(conf_file):
    from tileloop.config.loader import load_configuration
    from tileloop.exception import ConfigurationError
    try:
        return load_configuration(conf_file)
    except ConfigurationError as ex:
        print('ERROR: %s' % (ex, ), file=sys.stderr)
        sys.exit(2)


def serve_develop_command(args):
    parser = optparse.OptionParser("usage: %prog serve-develop [options] tileloop.yaml")
    parser.add_option("-b", "--bind",
                      dest="address", default='127.0.0.1:8080',
                      help="Server socket [127.0.0.1:8080]. Use 0.0.0.0 for external access. :1234 to change port.")
    parser.add_option("--debug", default=False, action='store_true',
                      dest="debug",
                      help="Enable debug mode")
    options, args = parser.parse_args(args)

    if len(args) != 2:
        parser.print_help()
        print("\nERROR: TileLoop configuration required.")
        sys.exit(1)

    tileloop_conf = args[1]

    host, port = parse_bind_address(options.address)

    if options.debug and host not in ('localhost', '127.0.0.1'):
        print(textwrap.dedent("""\
        ################# WARNING! ##################
        Running debug mode with non-localhost address
        is a serious security vulnerability.
        #############################################\
        """))

    if options.debug:
        setup_logging(level=logging.DEBUG)
    else:
        setup_logging()
    from tileloop.wsgiapp import make_wsgi_app
    from tileloop.exception import ConfigurationError
    from werkzeug.serving import run_simple
    try:
        app = make_wsgi_app(tileloop_conf, debug=options.debug)
    except ConfigurationError:
        sys.exit(2)

    extra_files = list(app.config_files.keys())

    run_simple(host, port, app, use_reloader=True, processes=1,
        threaded=True, passthrough_errors=True,
        extra_files=extra_files)


def parse_bind_address(address, default=('localhost', 8080)):
    """
    >>> parse_bind_address('80')
    ('localhost', 80)
    >>> parse_bind_address('0.0.0.0')
    ('0.0.0.0', 8080)
    >>> parse_bind_address('0.0.0.0:8081')
    ('0.0.0.0', 8081)
    """
    if ':' in address:
        host, port = address.split(':', 1)
        port = int(port)
    elif re.match(r'^\d+$', address):
        host = default[0]
        port = int(address)
    else:
        host = address
        port = default[1]
    return host, port


def timeline_command(args):
    parser = optparse.OptionParser("usage: %prog timeline [options]")
    add_config_option(parser)
    parser.add_option("-l", "--layers", dest="layers", default=None,
                      help="Comma separated provider ids [playback.layers].")
    parser.add_option("--now", dest="now", default=None,
                      help="Reference time as ISO-8601 UTC instant [current time].")
    options, args = parser.parse_args(args)

    from tileloop.util.times import format_iso8601, parse_isodate

    conf = load_conf_or_exit(options.conf_file)
    if options.layers:
        layers = [l.strip() for l in options.layers.split(',') if l.strip()]
    else:
        layers = list(conf.playback.layers)
    for layer in layers:
        if layer not in conf.registry:
            print('ERROR: unknown provider %s. Valid: %s' % (
                layer, ', '.join(conf.registry.ids())), file=sys.stderr)
            sys.exit(1)

    now = parse_isodate(options.now) if options.now else None
    timeline = conf.build_timeline(layers, now=now)
    reconciler = conf.reconciler()

    print('timeline of %s, built at %s' % (timeline.provider_id, format_iso8601(timeline.built_at)))
    for frame in timeline:
        marker = '*' if frame.index == timeline.latest_index else ' '
        resolved = []
        for layer in layers:
            ts = reconciler.resolve(layer, frame.instant, now=timeline.built_at)
            resolved.append('%s=%s' % (layer, ts))
        print('%s%3d  %s%s  %s' % (marker, frame.index, format_iso8601(frame.instant),
                                   ' forecast' if frame.forecast else '         ',
                                   ' '.join(resolved)))
    return 0


def cache_stats_command(args):
    parser = optparse.OptionParser("usage: %prog cache-stats [options]")
    add_config_option(parser)
    options, args = parser.parse_args(args)

    conf = load_conf_or_exit(options.conf_file)
    stats = conf.local_cache().stats()
    print('local cache: %s' % (conf.abspath(conf.cache.local_file), ))
    print('  tiles: %d' % (stats['count'], ))
    print('  size:  %.1f KiB' % (stats['total_bytes'] / 1024.0, ))
    if stats['groups']:
        print_items(dict((group or '(none)', {'help': '%d tiles' % count})
                         for group, count in sorted(stats['groups'].items())),
                    title='  groups')
    return 0


def purge_cache_command(args):
    parser = optparse.OptionParser("usage: %prog purge-cache [options]")
    add_config_option(parser)
    parser.add_option("--max-age", dest="max_age", type="float", default=None,
                      help="Remove tiles older than this many seconds [cache.local_max_age].")
    parser.add_option("-g", "--group", dest="group", default=None,
                      help="Remove all tiles of this group (provider id).")
    options, args = parser.parse_args(args)

    conf = load_conf_or_exit(options.conf_file)
    cache = conf.local_cache()
    if options.group:
        removed = cache.purge_group(options.group)
    else:
        max_age = options.max_age
        if max_age is None:
            max_age = conf.cache.local_max_age
        removed = cache.purge_older_than(max_age)
    print('removed %d tiles' % (removed, ))
    return 0


def create_command(args):
    cmd = CreateCommand(args)
    cmd.run()


class CreateCommand(object):
    templates = {
        'base-config': {'help': 'Example tileloop.yaml.'},
        'log-ini': {'help': 'Logging configuration for make_wsgi_app.'},
        'wsgi-app': {'help': 'WSGI module for gunicorn or mod_wsgi (requires -f).'},
    }

    def __init__(self, args):
        parser = optparse.OptionParser("usage: %prog create [options] [destination]")
        parser.add_option("-t", "--template", dest="template",
            help="Create a configuration from this template.")
        parser.add_option("-l", "--list-templates", dest="list_templates",
            action="store_true", default=False,
            help="List all available configuration templates.")
        parser.add_option("-f", "--tileloop-conf", dest="tileloop_conf",
            help="Existing TileLoop configuration (required for some templates).")
        parser.add_option("--force", dest="force", action="store_true",
            default=False, help="Force operation (e.g. overwrite existing files).")

        self.options, self.args = parser.parse_args(args)
        self.parser = parser

    def log_error(self, msg, *args):
        print('ERROR:', msg % args, file=sys.stderr)

    def run(self):
        if self.options.list_templates:
            print_items(self.templates, title="Available templates")
            sys.exit(1)
        elif self.options.template:
            if self.options.template not in self.templates:
                self.log_error("unknown template " + self.options.template)
                sys.exit(1)

            if len(self.args) != 2:
                self.log_error("template requires destination argument")
                sys.exit(1)

            sys.exit(
                getattr(self, 'template_' + self.options.template.replace('-', '_'))()
            )
        else:
            self.parser.print_help()
            sys.exit(1)

    def template_dir(self):
        import tileloop.config_template
        template_dir = os.path.join(
            os.path.dirname(tileloop.config_template.__file__),
            'base_config')
        return template_dir

    @property
    def tileloop_conf(self):
        if not self.options.tileloop_conf:
            self.parser.print_help()
            self.log_error("template requires --tileloop-conf option")
            sys.exit(1)
        return os.path.abspath(self.options.tileloop_conf)

    def template_wsgi_app(self):
        app_filename = self.args[1]
        if '.' not in os.path.basename(app_filename):
            app_filename += '.py'
        tileloop_conf = self.tileloop_conf
        if os.path.exists(app_filename) and not self.options.force:
            self.log_error("%s already exists, use --force", app_filename)
            return 1

        print("writing TileLoop app to %s" % (app_filename, ))

        with io.open(os.path.join(self.template_dir(), 'config.wsgi'), encoding='utf-8') as f:
            app_template = f.read()
        with io.open(app_filename, 'w', encoding='utf-8') as f:
            f.write(app_template % {'tileloop_conf': tileloop_conf,
                'here': os.path.dirname(tileloop_conf)})

        return 0

    def template_base_config(self):
        outdir = self.args[1]
        if not os.path.exists(outdir):
            os.makedirs(outdir)

        to = os.path.join(outdir, 'tileloop.yaml')
        if os.path.exists(to) and not self.options.force:
            self.log_error("%s already exists, use --force", to)
            return 1
        print("writing %s" % (to, ))
        shutil.copy(os.path.join(self.template_dir(), 'tileloop.yaml'), to)
        return 0

    def template_log_ini(self):
        log_filename = self.args[1]

        if os.path.exists(log_filename) and not self.options.force:
            self.log_error("%s already exists, use --force", log_filename)
            return 1

        template_dir = self.template_dir()
        with io.open(os.path.join(template_dir, 'log.ini'), encoding='utf-8') as f:
            log_template = f.read()
        with io.open(log_filename, 'w', encoding='utf-8') as f:
            f.write(log_template)

        return 0


commands = {
    'serve-develop': {
        'func': serve_develop_command,
        'help': 'Run the edge proxy development server.'
    },
    'timeline': {
        'func': timeline_command,
        'help': 'Print the canonical timeline and resolved provider timestamps.'
    },
    'cache-stats': {
        'func': cache_stats_command,
        'help': 'Show local cache statistics.'
    },
    'purge-cache': {
        'func': purge_cache_command,
        'help': 'Remove old tiles from the local cache.'
    },
    'create': {
        'func': create_command,
        'help': 'Create example configurations.'
    },
}


class NonStrictOptionParser(optparse.OptionParser):
    def _process_args(self, largs, rargs, values):
        while rargs:
            arg = rargs[0]
            # We handle bare "--" explicitly, and bare "-" is handled by the
            # standard arg handler since the short arg case ensures that the
            # len of the opt string is greater than 1.
            try:
                if arg == "--":
                    del rargs[0]
                    return
                elif arg[0:2] == "--":
                    self._process_long_opt(rargs, values)
                elif arg[:1] == "-" and len(arg) > 1:
                    self._process_short_opts(rargs, values)
                elif self.allow_interspersed_args:
                    largs.append(arg)
                    del rargs[0]
                else:
                    return
            except optparse.BadOptionError:
                largs.append(arg)


def print_items(data, title='Commands'):
    name_len = max(len(name) for name in data)

    if title:
        print('%s:' % (title, ), file=sys.stdout)
    for name, item in data.items():
        help = item.get('help', '')
        name = ('%%-%ds' % name_len) % name
        if help:
            help = '  ' + help
        print('  %s%s' % (name, help), file=sys.stdout)


def main():
    parser = NonStrictOptionParser("usage: %prog COMMAND [options]",
        add_help_option=False)
    options, args = parser.parse_args()

    if len(args) < 1 or args[0] in ('--help', '-h'):
        parser.print_help()
        print()
        print_items(commands)
        sys.exit(1)

    if len(args) == 1 and args[0] == '--version':
        print('TileLoop ' + version)
        sys.exit(1)

    command = args[0]
    if command not in commands:
        parser.print_help()
        print()
        print_items(commands)
        print('\nERROR: unknown command %s' % (command,), file=sys.stdout)
        sys.exit(1)

    args = sys.argv[0:1] + sys.argv[2:]
    sys.exit(commands[command]['func'](args) or 0)


if __name__ == '__main__':
    main()
