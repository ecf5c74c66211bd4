#
# The loaded dataset, selected event, and annotation config.
#
# Copyright (c) 2022, The littlefs authors.
# SPDX-License-Identifier: BSD-3-Clause
#

import collections as co

from perfanno import config as config_
from perfanno import traces as traces_
from perfanno.annotate import annotation_for
from perfanno.callgraph import NodeKey, aggregate
from perfanno.errors import UnknownEvent
from perfanno.highlight import Highlighter


class SymbolResult(co.namedtuple('SymbolResult', [
        'file', 'symbol', 'count', 'min_line', 'max_line'])):
    __slots__ = ()


class Session:
    """Owns the call graphs for one loaded trace file.

    Not safe for concurrent use, callers should serialize load, select
    and render.
    """
    def __init__(self, renderer=None, config=None):
        self.renderer = renderer if renderer is not None else Highlighter()
        self.config = dict(config_.DEFAULTS)
        for k, v in (config or {}).items():
            self.set_config(k, v)
        self._reset()

    def _reset(self):
        self.loaded = False
        self.events = []
        self.callgraphs = {}
        self.selected = None

    # loading
    def load_traces(self, traces):
        """Replace all state with call graphs built from parsed traces.

        Returns the total sample count across all events. On failure the
        previous state is kept.
        """
        callgraphs = co.OrderedDict()
        for event, event_traces in traces.items():
            callgraphs[event] = aggregate(event_traces)

        self._reset()
        self.events = list(callgraphs.keys())
        self.callgraphs = callgraphs
        self.loaded = True
        return sum(g.total_count for g in callgraphs.values())

    def load(self, path):
        return self.load_traces(traces_.read(path))

    def is_loaded(self):
        return self.loaded

    # events
    def list_events(self):
        return list(self.events)

    def select_event(self, event):
        if event not in self.callgraphs:
            raise UnknownEvent(event)
        self.selected = event

    @property
    def event(self):
        if self.selected is not None:
            return self.selected
        return self.events[0] if self.events else None

    def callgraph(self, event=None):
        if event is None:
            event = self.event
        if event not in self.callgraphs:
            raise UnknownEvent(event)
        return self.callgraphs[event]

    # config
    def get_config(self, key, d=None):
        return self.config.get(key, d)

    def set_config(self, key, value):
        self.config[key] = config_.normalize(key, value)

    def update_config(self, config):
        # validate everything before changing anything
        config = {k: config_.normalize(k, v) for k, v in config.items()}
        self.config.update(config)

    # annotations
    def _annotate(self, graph, file, line, node):
        return annotation_for(node, graph,
                output_type=self.config['eventOutputType'],
                local_relative=self.config['localRelative'],
                threshold=self.config['minimumThreshold'],
                file=file,
                line=line)

    def annotations(self, file, event=None):
        """Annotations for one file, sorted by line."""
        graph = self.callgraph(event)
        annotations = []
        for line, node in sorted(
                ((l, n) for l, n in graph.nodes.get(file, {}).items()
                    if isinstance(l, int)),
                key=lambda x: x[0]):
            a = self._annotate(graph, file, line, node)
            if a is not None:
                annotations.append(a)
        return annotations

    def render_all(self, event=None):
        """Send every surviving annotation of the event to the renderer.

        Lines are 1-based here and 0-based for the renderer. Returns the
        rendered annotations.
        """
        graph = self.callgraph(event)
        rendered = []
        for file in graph.nodes.keys():
            for a in self.annotations(file, event):
                self.renderer.highlight(a.file, a.line-1,
                        text=a.text,
                        color=self.config['highlightColor'],
                        weight=a.weight)
                rendered.append(a)
        return rendered

    def clear(self):
        self.renderer.clear()

    def reannotate(self, event=None):
        self.clear()
        return self.render_all(event)

    # call graph queries
    def callers(self, file, line, event=None):
        node = self.callgraph(event).get(NodeKey(file, line))
        if node is None:
            return []
        return sorted(node.in_counts.items(), key=lambda x: (-x[1], x[0]))

    def callees(self, file, line, event=None):
        node = self.callgraph(event).get(NodeKey(file, line))
        if node is None:
            return []
        return sorted(node.out_counts.items(), key=lambda x: (-x[1], x[0]))

    def symbols(self, event=None):
        results = [
                SymbolResult(file, symbol, s.count, s.min_line, s.max_line)
                    for file, symbols in self.callgraph(event).symbols.items()
                    for symbol, s in symbols.items()]
        results.sort(key=lambda r: (-r.count, r.file, r.symbol))
        return results

    def symbol_location(self, symbol, event=None):
        # the hottest definition wins when names collide
        for r in self.symbols(event):
            if r.symbol == symbol:
                return r.file, r.min_line
        return None
