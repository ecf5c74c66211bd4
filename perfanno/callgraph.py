#
# Aggregate stack traces into a per-line weighted call graph.
#
# Copyright (c) 2022, The littlefs authors.
# SPDX-License-Identifier: BSD-3-Clause
#

import collections as co

from perfanno.traces import RealPaths, resolve


class NodeKey(co.namedtuple('NodeKey', 'file line')):
    __slots__ = ()

    def __str__(self):
        return '%s:%s' % (self.file, self.line)

class Node:
    """Statistics for one file+line.

    count is the self count with recursion collapsed per trace, rec_count
    counts every occurrence, so rec_count >= count. out_counts/in_counts
    map callee/caller NodeKeys to edge weights, these are not deduplicated
    against recursion.
    """
    __slots__ = ('count', 'rec_count', 'out_counts', 'in_counts')
    def __init__(self, count=0, rec_count=0, out_counts=None, in_counts=None):
        self.count = count
        self.rec_count = rec_count
        self.out_counts = co.Counter(out_counts or {})
        self.in_counts = co.Counter(in_counts or {})

    def __repr__(self):
        return 'Node(count=%r, rec_count=%r, out_counts=%r, in_counts=%r)' % (
                self.count, self.rec_count,
                dict(self.out_counts), dict(self.in_counts))

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return ((self.count, self.rec_count, self.out_counts, self.in_counts)
                == (other.count, other.rec_count,
                    other.out_counts, other.in_counts))

class SymbolSummary:
    __slots__ = ('count', 'min_line', 'max_line')
    def __init__(self, count=0, min_line=None, max_line=None):
        self.count = count
        self.min_line = min_line
        self.max_line = max_line

    def widen(self, line):
        # first line sets both bounds
        if self.min_line is None:
            self.min_line = line
            self.max_line = line
        else:
            self.min_line = min(self.min_line, line)
            self.max_line = max(self.max_line, line)

    def __repr__(self):
        return 'SymbolSummary(count=%r, min_line=%r, max_line=%r)' % (
                self.count, self.min_line, self.max_line)

    def __eq__(self, other):
        if not isinstance(other, SymbolSummary):
            return NotImplemented
        return ((self.count, self.min_line, self.max_line)
                == (other.count, other.min_line, other.max_line))

class CallGraph:
    """Call graph for one event.

    nodes maps file -> line -> Node, symbols maps file -> symbol ->
    SymbolSummary. Unresolved frames live under the SYMBOL_FILE
    pseudo-file keyed by their symbol.
    """
    def __init__(self, nodes=None, symbols=None, total_count=0, max_count=0):
        self.nodes = nodes if nodes is not None else {}
        self.symbols = symbols if symbols is not None else {}
        self.total_count = total_count
        self.max_count = max_count

    def get(self, key, d=None):
        file, line = key
        return self.nodes.get(file, {}).get(line, d)

    def __getitem__(self, key):
        v = self.get(key)
        if v is None:
            raise KeyError(key)
        return v

    def __contains__(self, key):
        return self.get(key) is not None

    def __iter__(self):
        for file, lines in self.nodes.items():
            for line, node in lines.items():
                yield NodeKey(file, line), node

    def __len__(self):
        return sum(len(lines) for lines in self.nodes.values())

    def __eq__(self, other):
        if not isinstance(other, CallGraph):
            return NotImplemented
        return ((self.nodes, self.symbols, self.total_count, self.max_count)
                == (other.nodes, other.symbols,
                    other.total_count, other.max_count))

    def node(self, key):
        file, line = key
        lines = self.nodes.setdefault(file, {})
        if line not in lines:
            lines[line] = Node()
        return lines[line]

    def symbol(self, file, symbol):
        symbols = self.symbols.setdefault(file, {})
        if symbol not in symbols:
            symbols[symbol] = SymbolSummary()
        return symbols[symbol]


def aggregate(traces, realpaths=None):
    """Fold a list of Traces for one event into a CallGraph.

    Frames are root-first, so each adjacent pair (frames[i], frames[i+1])
    adds an out edge from the caller and an in edge to the callee.
    """
    if realpaths is None:
        realpaths = RealPaths()

    graph = CallGraph()
    try:
        for trace in traces:
            if trace.count <= 0:
                continue
            graph.total_count += trace.count

            # needed to get sane counts with recursion
            seen_lines = set()
            seen_syms = set()
            keys = []
            for frame in trace.frames:
                symbol, file, line = resolve(frame, realpaths)
                key = NodeKey(file, line)
                keys.append(key)

                node = graph.node(key)
                if key not in seen_lines:
                    seen_lines.add(key)
                    node.count += trace.count
                    graph.max_count = max(graph.max_count, node.count)

                # includes recursive calls
                node.rec_count += trace.count

                if symbol and isinstance(line, int):
                    if (file, symbol) not in seen_syms:
                        seen_syms.add((file, symbol))
                        summary = graph.symbol(file, symbol)
                        summary.count += trace.count
                        summary.widen(line)

            # no recursion detection here, these are compared against
            # rec_count later
            for caller, callee in zip(keys, keys[1:]):
                graph[caller].out_counts[callee] += trace.count
                graph[callee].in_counts[caller] += trace.count
    finally:
        # canonical paths may change between loads
        realpaths.clear()

    return graph
