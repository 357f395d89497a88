# conftest.py

import pytest

from tests.helpers import OBSTACLE_SETS, make_config


def pytest_generate_tests(metafunc):
    if "obstacles" in metafunc.fixturenames:
        metafunc.parametrize("obstacles", list(OBSTACLE_SETS.values()),
                             ids=list(OBSTACLE_SETS.keys()))


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def block():
    return OBSTACLE_SETS["one"]
