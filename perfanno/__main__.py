#!/usr/bin/env python3
#
# Annotate source lines with perf call-graph results.
#
# Example:
# perf report -i perf.data --stdio --no-children -g folded,0,caller,srcline \
#       > perf.out
# python -m perfanno perf.out -ecycles -Ipercentage -T0.01 -A
#
# Copyright (c) 2022, The littlefs authors.
# SPDX-License-Identifier: BSD-3-Clause
#

import csv
import os
import sys
import time

from perfanno import config as config_
from perfanno.errors import PerfannoError
from perfanno.highlight import annotate_source
from perfanno.session import Session
from perfanno.traces import SYMBOL_FILE, openio


def simplify_path(path):
    # show paths under cwd relative to it
    try:
        if os.path.commonpath([os.getcwd(), path]) == os.getcwd():
            return os.path.relpath(path)
    except ValueError:
        pass
    return path

def print_table(lines):
    widths = [max(len(l[i]) for l in lines) for i in range(len(lines[0]))]
    for line in lines:
        print('%-*s  %s' % (
                widths[0], line[0],
                ' '.join('%*s' % (widths[i], x)
                    for i, x in enumerate(line[1:], 1))).rstrip())

def print_events(session):
    for event in session.list_events():
        print('%s%s' % (
                event,
                ' (%d samples)' % session.callgraph(event).total_count))

def print_annotations(session, rendered):
    lines = [['line', session.event]]
    for a in rendered:
        lines.append(['%s:%d' % (simplify_path(a.file), a.line), a.text])
    print_table(lines)

def print_symbols(session):
    total = session.callgraph().total_count
    lines = [['function', 'lines', session.event]]
    for r in session.symbols():
        lines.append([
                '%s@%s' % (r.symbol, simplify_path(r.file)),
                '%d-%d' % (r.min_line, r.max_line),
                '%d (%.1f%%)' % (r.count, 100*r.count/total if total else 0)])
    print_table(lines)

def write_csv(path, session, rendered):
    with openio(path, 'w') as f:
        writer = csv.DictWriter(f, ['file', 'line', 'event', 'count',
                'rec_count', 'value', 'weight'])
        writer.writeheader()
        graph = session.callgraph()
        for a in rendered:
            node = graph[a.file, a.line]
            writer.writerow({
                    'file': a.file,
                    'line': a.line,
                    'event': session.event,
                    'count': node.count,
                    'rec_count': node.rec_count,
                    'value': a.text,
                    'weight': '%.4f' % a.weight})

def report(session, trace_path, *,
        event=None,
        list_events=False,
        symbols=False,
        annotate=False,
        output=None,
        quiet=False,
        **args):
    total = session.load(trace_path)
    if args.get('verbose'):
        print('loaded %d samples, %d events from %s' % (
                total, len(session.list_events()), trace_path),
                file=sys.stderr)

    if list_events:
        print_events(session)
        return

    if event is not None:
        session.select_event(event)

    session.clear()
    rendered = session.render_all()

    if output:
        write_csv(output, session, rendered)

    if quiet:
        return

    if symbols:
        print_symbols(session)
    elif annotate:
        graph = session.callgraph()
        for path in session.renderer.paths():
            if path == SYMBOL_FILE or not os.path.isfile(path):
                if args.get('verbose'):
                    print('skipping %s, no such file' % path,
                            file=sys.stderr)
                continue
            annotate_source(path, session.renderer[path],
                    context=args.get('context', 3),
                    width=args.get('width', 80),
                    color=args.get('color', False),
                    symbols={s: (r.min_line, r.max_line)
                        for s, r in graph.symbols.get(path, {}).items()})
    else:
        print_annotations(session, rendered)

# reload and report whenever the trace file changes, until interrupted
def watch(session, trace_path, *,
        sleep=None,
        **args):
    import inotify_simple
    try:
        while True:
            # register inotify before loading, this avoids modification
            # race conditions
            inotify = inotify_simple.INotify()
            inotify.add_watch(trace_path,
                    inotify_simple.flags.MODIFY
                        | inotify_simple.flags.ATTRIB
                        | inotify_simple.flags.MOVE_SELF
                        | inotify_simple.flags.DELETE_SELF)
            try:
                report(session, trace_path, **args)
            except PerfannoError as e:
                # keep the last good results around
                print('error: %s' % e, file=sys.stderr)

            ptime = time.time()
            inotify.read()
            inotify.close()
            # sleep a minimum amount of time to let writers finish
            time.sleep(max(0, (sleep or 0.1) - (time.time()-ptime)))
    except KeyboardInterrupt:
        pass

def main(trace_path, *,
        config=None,
        keep_open=False,
        sleep=None,
        **args):
    # figure out what color should be
    if args.get('color') == 'auto':
        args['color'] = sys.stdout.isatty()
    elif args.get('color') == 'always':
        args['color'] = True
    else:
        args['color'] = False

    # config file first, then flags
    try:
        session = Session()
        if config:
            session.update_config(config_.load(config))
        session.update_config({k: args[a]
                for k, a in [
                    ('eventOutputType', 'output_type'),
                    ('localRelative', 'local_relative'),
                    ('highlightColor', 'highlight_color'),
                    ('minimumThreshold', 'threshold')]
                if args.get(a) is not None})
    except (OSError, ValueError, config_.toml.TOMLDecodeError) as e:
        print('error: bad config: %s' % e, file=sys.stderr)
        sys.exit(-1)

    if not keep_open:
        try:
            report(session, trace_path, **args)
        except PerfannoError as e:
            print('error: %s' % e, file=sys.stderr)
            sys.exit(-1)
        return 0

    if trace_path == '-':
        print("error: can't keep stdin open, need a trace file",
                file=sys.stderr)
        sys.exit(-1)

    try:
        watch(session, trace_path, sleep=sleep, **args)
    except OSError as e:
        print('error: %s' % e, file=sys.stderr)
        sys.exit(-1)
    return 0


def run(argv=None):
    import argparse
    parser = argparse.ArgumentParser(
            description="Annotate source lines with perf call-graph results.",
            allow_abbrev=False)
    parser.add_argument(
            'trace_path',
            help="perf report output in folded format, '-' reads stdin.")
    parser.add_argument(
            '-v', '--verbose',
            action='store_true',
            help="Output what is being loaded.")
    parser.add_argument(
            '-q', '--quiet',
            action='store_true',
            help="Don't show anything, useful with -o.")
    parser.add_argument(
            '-o', '--output',
            help="Specify CSV file to store annotations.")
    parser.add_argument(
            '-l', '--list-events',
            action='store_true',
            help="List the events in the trace file.")
    parser.add_argument(
            '-e', '--event',
            help="Event to annotate. Defaults to the first event.")
    parser.add_argument(
            '-I', '--output-type',
            choices=['count', 'percentage', 'percentage_and_count'],
            help="How to show annotations. Defaults to 'percentage'.")
    parser.add_argument(
            '-L', '--local-relative',
            action='store_true',
            default=None,
            help="Show lines relative to their callers instead of the "
                "whole program.")
    parser.add_argument(
            '-T', '--threshold',
            type=float,
            help="Hide lines below this fraction of samples. Defaults "
                "to 0.")
    parser.add_argument(
            '--highlight-color',
            help="Highlight color as #rrggbb. Defaults to #ff0000.")
    parser.add_argument(
            '--config',
            help="TOML file to read config from, flags take precedence.")
    parser.add_argument(
            '-s', '--symbols',
            action='store_true',
            help="Show samples per function instead of per line.")
    parser.add_argument(
            '-A', '--annotate',
            action='store_true',
            help="Show source files annotated with perf info.")
    parser.add_argument(
            '-C', '--context',
            type=lambda x: int(x, 0),
            default=3,
            help="Show n additional lines of context. Defaults to 3.")
    parser.add_argument(
            '-W', '--width',
            type=lambda x: int(x, 0),
            default=80,
            help="Assume source is styled with this many columns. Defaults "
                "to 80.")
    parser.add_argument(
            '--color',
            choices=['never', 'always', 'auto'],
            default='auto',
            help="When to use terminal colors. Defaults to 'auto'.")
    parser.add_argument(
            '-k', '--keep-open',
            action='store_true',
            help="Use inotify to reload whenever the trace file changes.")
    parser.add_argument(
            '--sleep',
            type=float,
            help="Minimum seconds between reloads with -k. Defaults to 0.1.")
    args = parser.parse_args(argv)
    return main(**{k: v
            for k, v in vars(args).items()
            if v is not None})

if __name__ == "__main__":
    sys.exit(run())
