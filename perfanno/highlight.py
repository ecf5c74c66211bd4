#
# Highlight storage and terminal rendering of annotated sources.
#
# Copyright (c) 2022, The littlefs authors.
# SPDX-License-Identifier: BSD-3-Clause
#

import collections as co
import sys


# one decorated line, line is 0-based, weight in [0,1] scales the color
class Highlight(co.namedtuple('Highlight', 'line text color weight')):
    __slots__ = ()
    def __new__(cls, line, text='', color=(255, 0, 0), weight=1.0):
        return super().__new__(cls, int(line), text, tuple(color),
                float(weight))

    # color blended against a black background
    def rgb(self):
        return tuple(int(round(c*self.weight)) for c in self.color)

class Highlighter:
    """Collects highlights per file until cleared.

    This is the renderer side of a session: render_all calls highlight
    once per surviving annotation, and clear drops everything.
    """
    def __init__(self):
        self.highlights = co.OrderedDict()

    def highlight(self, path, line, text='', color=(255, 0, 0), weight=1.0):
        h = Highlight(line, text, color, weight)
        self.highlights.setdefault(path, []).append(h)
        return h

    def get(self, path, d=None):
        return self.highlights.get(path, d)

    def __getitem__(self, path):
        return self.highlights[path]

    def __contains__(self, path):
        return path in self.highlights

    def __len__(self):
        return sum(len(hs) for hs in self.highlights.values())

    def __iter__(self):
        for path, hs in self.highlights.items():
            for h in hs:
                yield path, h

    def paths(self):
        return list(self.highlights.keys())

    def clear(self):
        self.highlights.clear()


def annotate_source(path, highlights, *,
        context=3,
        width=80,
        color=False,
        symbols=None,
        all=False,
        out=None):
    """Print a source file with highlighted lines annotated.

    Only lines within context of a highlight are shown unless all is set.
    symbols optionally maps symbol -> (min_line, max_line), and is used to
    label each span.
    """
    if out is None:
        out = sys.stdout
    table = {h.line: h for h in highlights}

    def symbol_at(line):
        for sym, (lo, hi) in (symbols or {}).items():
            if lo is not None and lo-1 <= line <= hi-1:
                return sym
        return None

    # calculate spans to show
    spans = []
    if not all:
        last = None
        for line in sorted(table.keys()):
            if last is not None and line - last.stop <= context:
                last = range(last.start, line+1+context)
            else:
                if last is not None:
                    spans.append(last)
                last = range(max(line-context, 0), line+1+context)
        if last is not None:
            spans.append(last)

    with open(path) as f:
        skipped = True
        for i, line in enumerate(f):
            # skip lines not in spans?
            if not all and not any(i in s for s in spans):
                skipped = True
                continue

            if skipped and not all:
                skipped = False
                sym = symbol_at(i)
                out.write('%s@@ %s:%d%s @@%s\n' % (
                        '\x1b[36m' if color else '',
                        path,
                        i+1,
                        ': %s' % sym if sym else '',
                        '\x1b[m' if color else ''))

            if line.endswith('\n'):
                line = line[:-1]

            h = table.get(i)
            if h is not None:
                line = '%-*s // %s' % (width, line, h.text)
                if color:
                    line = '\x1b[48;2;%d;%d;%dm%s\x1b[m' % (*h.rgb(), line)

            out.write(line + '\n')
