#
# Compute the value shown next to an annotated line.
#
# Copyright (c) 2022, The littlefs authors.
# SPDX-License-Identifier: BSD-3-Clause
#

import collections as co
import enum
import math as mt
import re


class OutputType(enum.Enum):
    COUNT = 'count'
    PERCENTAGE = 'percentage'
    PERCENTAGE_AND_COUNT = 'percentage_and_count'

    @classmethod
    def parse(cls, x):
        if isinstance(x, cls):
            return x
        # also accept 'percentage and count'
        try:
            return cls(re.sub(r'[\s-]+', '_', str(x).strip().lower()))
        except ValueError:
            raise ValueError('unknown output type %r, expected one of %s' % (
                    x, ', '.join(t.value for t in cls))) from None

    def format(self, count, total):
        if self is OutputType.COUNT:
            return format_count(count, total)
        elif self is OutputType.PERCENTAGE:
            return format_percentage(count, total)
        else:
            return format_percentage_and_count(count, total)

def format_count(count, total):
    return '%d/%d' % (count, total)

def format_percentage(count, total):
    # round half up, not to even
    p = mt.floor(count/total * 10000 + 0.5) / 100 if total else 0.0
    return '%.2f%%' % p

def format_percentage_and_count(count, total):
    return '%s (%s)' % (
            format_percentage(count, total),
            format_count(count, total))


# what to render for one line, weight is in [0,1]
class Annotation(co.namedtuple('Annotation', 'file line text weight')):
    __slots__ = ()

def local_total(node, graph):
    # sum of our callers' recursive counts, callers may be missing
    total = 0
    for key in node.in_counts:
        caller = graph.get(key)
        if caller is not None:
            total += caller.rec_count
    return total

def annotation_for(node, graph, *,
        output_type=OutputType.PERCENTAGE,
        local_relative=False,
        threshold=0.0,
        file=None,
        line=None):
    """Decide whether to annotate node, returns an Annotation or None.

    The denominator is normally the event's total_count, with the
    intensity scaled against max_count. With local_relative, both are
    replaced by the sum of the callers' rec_counts when that is nonzero.
    """
    if line is not None and (not isinstance(line, int) or line <= 0):
        return None

    total = graph.total_count
    scale = graph.max_count
    if local_relative:
        total_ = local_total(node, graph)
        if total_ > 0:
            total = total_
            scale = total_

    if not total or node.count / total < threshold:
        return None

    weight = min(max(node.count / scale, 0.0), 1.0) if scale else 0.0
    return Annotation(file, line,
            OutputType.parse(output_type).format(node.count, total),
            weight)
