#
# Annotation configuration, defaults and TOML loading.
#
# Example perfanno.toml:
#
#   [perfanno]
#   eventOutputType = "percentage_and_count"
#   localRelative = true
#   highlightColor = "#ff8000"
#   minimumThreshold = 0.01
#
# Copyright (c) 2022, The littlefs authors.
# SPDX-License-Identifier: BSD-3-Clause
#

import re

try:
    import tomllib as toml
except ModuleNotFoundError:
    import tomli as toml

from perfanno.annotate import OutputType


DEFAULTS = {
        'eventOutputType': OutputType.PERCENTAGE,
        'localRelative': False,
        'highlightColor': (255, 0, 0),
        'minimumThreshold': 0.0}


def hex_to_rgb(x):
    m = re.match(r'^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$',
            x.strip())
    if not m:
        raise ValueError('bad color %r, expected #rrggbb' % x)
    return tuple(int(c, 16) for c in m.groups())

def parse_color(x):
    if isinstance(x, str):
        return hex_to_rgb(x)
    try:
        rgb = tuple(int(c) for c in x)
    except (TypeError, ValueError):
        raise ValueError('bad color %r' % (x,)) from None
    if len(rgb) != 3 or not all(0 <= c <= 255 for c in rgb):
        raise ValueError('bad color %r, expected 3 values in 0-255' % (x,))
    return rgb

def parse_bool(x):
    if isinstance(x, str):
        if x.strip().lower() in {'1', 'true', 'yes', 'on'}:
            return True
        elif x.strip().lower() in {'0', 'false', 'no', 'off', ''}:
            return False
        raise ValueError('bad boolean %r' % x)
    return bool(x)

def parse_threshold(x):
    try:
        t = float(x)
    except (TypeError, ValueError):
        raise ValueError('bad threshold %r' % (x,)) from None
    if not 0 <= t < 1:
        raise ValueError('threshold %r not in [0,1)' % (x,))
    return t

PARSERS = {
        'eventOutputType': OutputType.parse,
        'localRelative': parse_bool,
        'highlightColor': parse_color,
        'minimumThreshold': parse_threshold}

def normalize(key, value):
    """Validate a config value, unrecognized keys pass through."""
    if key in PARSERS:
        return PARSERS[key](value)
    return value


def load(path):
    """Load config from a TOML file.

    Keys may live in a [perfanno] table or at the top-level, the table
    wins. Values are normalized.
    """
    with open(path, 'rb') as f:
        config = toml.load(f)

    table = config.pop('perfanno', {})
    config = {k: v for k, v in config.items() if not isinstance(v, dict)}
    config.update(table)
    return {k: normalize(k, v) for k, v in config.items()}
