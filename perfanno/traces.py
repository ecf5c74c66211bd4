#
# Parse perf call-graph reports into per-event stack traces.
#
# Example input, as produced by perf report --stdio -g folded:
#
#   # Samples: 12K of event 'cycles'
#   100 main /src/a.c:10;foo /src/a.c:20
#   5 main /src/a.c:10;[unknown]
#
# Copyright (c) 2022, The littlefs authors.
# SPDX-License-Identifier: BSD-3-Clause
#

import collections as co
import os
import re
import sys

from perfanno.errors import MalformedFrame, FileUnreadable


# pseudo-file used for frames we could not resolve to a source line
SYMBOL_FILE = 'symbol'

HEADER_PATTERN = re.compile(
        r"# Samples: (?P<samples>\d+[KMB]?)\s+of event '(?P<event>.*)'")
TRACE_PATTERN = re.compile(r'^(?P<count>\d+) (?P<frames>.*)$')
FRAME_PATTERN = re.compile(r'^(?P<sym>.*?)\s*(?P<file>/.*):(?P<line>\d+)$')


# a frame we only know the symbol of
class Unresolved(co.namedtuple('Unresolved', 'symbol')):
    __slots__ = ()

    def __str__(self):
        return self.symbol

# a frame pointing at a source line, symbol may be None
class Resolved(co.namedtuple('Resolved', 'symbol file line')):
    __slots__ = ()
    def __new__(cls, symbol, file, line):
        return super().__new__(cls, symbol or None, file, int(line))

    def __str__(self):
        return '%s%s:%d' % (
                self.symbol + ' ' if self.symbol else '',
                self.file,
                self.line)

# one collapsed stack, frames are ordered root-first, so frames[i] calls
# frames[i+1]
class Trace(co.namedtuple('Trace', 'count frames')):
    __slots__ = ()
    def __new__(cls, count, frames=()):
        return super().__new__(cls, int(count), tuple(frames))


def openio(path, mode='r', buffering=-1, **kwargs):
    # allow '-' for stdin/stdout
    if path == '-':
        if 'r' in mode:
            return os.fdopen(os.dup(sys.stdin.fileno()), mode, buffering,
                    **kwargs)
        else:
            return os.fdopen(os.dup(sys.stdout.fileno()), mode, buffering,
                    **kwargs)
    else:
        return open(path, mode, buffering, **kwargs)

def parse_frame(s):
    m = FRAME_PATTERN.match(s)
    if m:
        return Resolved(m.group('sym'), m.group('file'), m.group('line'))
    else:
        return Unresolved(s)

def parse(lines):
    """Parse a perf call-graph report into an ordered dict of traces.

    Accepts either a string or an iterable of lines. Lines we don't
    understand are skipped, as are traces with a zero count or traces
    before the first event header. Events keep the order they first
    appear in.
    """
    if isinstance(lines, str):
        lines = lines.split('\n')

    results = co.OrderedDict()
    event = None
    for line in lines:
        line = line.rstrip('\r\n')

        m = HEADER_PATTERN.search(line)
        if m:
            # a repeated header starts the event over
            event = m.group('event')
            results[event] = []
            continue

        m = TRACE_PATTERN.match(line)
        if m:
            count = int(m.group('count'))
            if count <= 0 or event is None:
                continue

            results[event].append(Trace(count,
                    (parse_frame(f) for f in m.group('frames').split(';'))))

    return results

def read(path):
    """Read and parse a trace file, '-' reads stdin.

    Undecodable bytes are replaced rather than failing the load.
    """
    try:
        # only split on \n, same as parsing a string
        with openio(path, 'r',
                encoding='utf-8',
                errors='replace',
                newline='\n') as f:
            return parse(f)
    except OSError as e:
        raise FileUnreadable(path, e.strerror or str(e)) from e


# memoized realpath, falls back to the raw path if resolution fails
class RealPaths:
    def __init__(self):
        self.cache = {}

    def __call__(self, path):
        if path not in self.cache:
            try:
                self.cache[path] = os.path.realpath(path, strict=True)
            except OSError:
                self.cache[path] = path
        return self.cache[path]

    def __len__(self):
        return len(self.cache)

    def clear(self):
        self.cache.clear()

def resolve(frame, realpaths=None):
    """Unpack a frame into (symbol, file, line).

    Unresolved frames map to (None, SYMBOL_FILE, symbol) so they stay out
    of the line-indexed maps. Resolved files are canonicalized with
    realpaths if provided.
    """
    if isinstance(frame, str):
        frame = parse_frame(frame)

    file = getattr(frame, 'file', None)
    line = getattr(frame, 'line', None)
    if not file or not line:
        if not frame.symbol:
            raise MalformedFrame('frame must have a symbol: %r' % (frame,))
        return None, SYMBOL_FILE, frame.symbol

    if realpaths is not None:
        file = realpaths(file)
    return frame.symbol, file, line
