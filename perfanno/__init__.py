#
# Per-line annotations from sampled perf call graphs.
#
# Copyright (c) 2022, The littlefs authors.
# SPDX-License-Identifier: BSD-3-Clause
#

from perfanno.errors import (
        PerfannoError, MalformedFrame, UnknownEvent, FileUnreadable)
from perfanno.traces import (
        Unresolved, Resolved, Trace, SYMBOL_FILE,
        parse, read, resolve, RealPaths)
from perfanno.callgraph import (
        NodeKey, Node, SymbolSummary, CallGraph, aggregate)
from perfanno.annotate import OutputType, Annotation, annotation_for
from perfanno.highlight import Highlight, Highlighter
from perfanno.session import Session, SymbolResult

__version__ = '0.1.0'
