#
# Errors raised while loading and annotating perf traces.
#
# Copyright (c) 2022, The littlefs authors.
# SPDX-License-Identifier: BSD-3-Clause
#

class PerfannoError(Exception):
    pass

# a frame with neither a symbol nor a file+line, aborts the load
class MalformedFrame(PerfannoError, ValueError):
    pass

class UnknownEvent(PerfannoError, KeyError):
    def __init__(self, event):
        super().__init__(event)
        self.event = event

    def __str__(self):
        if self.event is None:
            return 'no events loaded'
        return 'event %r does not exist' % self.event

class FileUnreadable(PerfannoError, OSError):
    def __init__(self, path, reason=None):
        super().__init__(path, reason)
        self.path = path
        self.reason = reason

    def __str__(self):
        if self.reason is not None:
            return 'could not read %r: %s' % (self.path, self.reason)
        return 'could not read %r' % self.path
