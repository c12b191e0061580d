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

import optparse
import sys

from tileloop.playback import Viewport
from tileloop.script.util import add_config_option, load_conf_or_exit, setup_logging


def parse_bbox(value):
    """
    >>> parse_bbox('5.5,47,15.5,55.2')
    (5.5, 47.0, 15.5, 55.2)
    """
    try:
        bbox = tuple(float(v) for v in value.split(','))
    except ValueError:
        raise ValueError('invalid bbox %r' % (value, ))
    if len(bbox) != 4:
        raise ValueError('bbox needs four values (minx,miny,maxx,maxy)')
    if bbox[0] >= bbox[2] or bbox[1] >= bbox[3]:
        raise ValueError('invalid bbox %r' % (value, ))
    return bbox


def prefetch_command(args=None):
    parser = optparse.OptionParser("%prog [options] -b minx,miny,maxx,maxy -z zoom",
        description="Fill the local cache with all frames of the timeline.")
    add_config_option(parser)
    parser.add_option("-b", "--bbox", dest="bbox",
                      help="Lon/lat bbox of the viewport.")
    parser.add_option("-z", "--zoom", dest="zoom", type="int",
                      help="Zoom level of the viewport.")
    parser.add_option("-l", "--layers", dest="layers", default=None,
                      help="Comma separated provider ids [playback.layers].")
    parser.add_option("-q", "--quiet", dest="quiet", action="store_true", default=False,
                      help="Only log warnings and errors.")

    if args is None:
        args = sys.argv[1:]
    options, args = parser.parse_args(args)

    if not options.bbox or options.zoom is None:
        parser.print_help()
        print("\nERROR: --bbox and --zoom are required.", file=sys.stderr)
        return 1
    try:
        bbox = parse_bbox(options.bbox)
    except ValueError as ex:
        print('ERROR: %s' % (ex, ), file=sys.stderr)
        return 1

    import logging
    setup_logging(level=logging.WARNING if options.quiet else logging.INFO)

    from tileloop.loop import WeatherLoop

    conf = load_conf_or_exit(options.conf_file)
    layers = None
    if options.layers:
        layers = [l.strip() for l in options.layers.split(',') if l.strip()]
        unknown = [l for l in layers if l not in conf.registry]
        if unknown:
            print('ERROR: unknown provider %s. Valid: %s' % (
                ', '.join(unknown), ', '.join(conf.registry.ids())), file=sys.stderr)
            return 1

    loop = WeatherLoop.from_configuration(conf, layers=layers)
    viewport = Viewport(bbox, options.zoom)
    jobs = loop.prefetch(loop.timeline, loop.engine.layers, viewport,
                         loop.engine.current_index, background=False)

    failed = 0
    for provider_id, job in sorted(jobs.items()):
        print('%-12s %s' % (provider_id, job.progress))
        failed += job.progress.failed

    stats = conf.local_cache().stats()
    print('local cache: %d tiles, %.1f KiB' % (stats['count'], stats['total_bytes'] / 1024.0))
    return 2 if failed else 0


def main():
    sys.exit(prefetch_command())


if __name__ == '__main__':
    main()
