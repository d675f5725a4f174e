import pytest

from nodeflow.core.GraphReducer import GraphReducer, ReducerConfig

from graph_helpers import make_config, make_reducer


@pytest.fixture
def reducer() -> GraphReducer:
    return make_reducer()


@pytest.fixture
def config() -> ReducerConfig:
    return make_config()
