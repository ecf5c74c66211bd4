import pytest

from perfanno.session import Session


TRACES = """\
# Samples: 1K of event 'cycles'
# Event count (approx.): 1000
100 main /a.c:10;foo /a.c:20
50 main /a.c:10;bar /b.c:5;[unknown]

# Samples: 12 of event 'cache-misses'
7 main /a.c:10;foo /a.c:20
"""


@pytest.fixture
def traces_path(tmp_path):
    path = tmp_path / "perf.out"
    path.write_text(TRACES)
    return path


@pytest.fixture
def session():
    return Session()
